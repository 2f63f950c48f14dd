from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from collections.abc import Callable

type Result[T] = Ok[T] | Ko


@dataclass
class Ok[T]:
    value: Final[T]


@dataclass
class Ko:
    value: Final[BaseException]


def capture[T](func: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
    try:
        return Ok(func(*args, **kwargs))
    except Exception as e:
        return Ko(e)


def unwrap[T](result: Result[T]) -> T:
    match result:
        case Ok(v):
            return v
        case Ko(e):
            raise e
