from __future__ import annotations

from typing import Any


def format_args_and_kwargs(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    parts = [repr(arg) for arg in args]
    parts += [f"{k}={v!r}" for k, v in kwargs.items()]
    return ", ".join(parts)


def truncate(s: str, n: int) -> str:
    if len(s) > n:
        return s[:n] + "..."
    return s


def qualname(func: Any) -> str:
    return f"{getattr(func, '__module__', None) or '<unknown>'}.{getattr(func, '__qualname__', type(func).__qualname__)}"
