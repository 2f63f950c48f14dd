from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Options:
    fail_fast: bool = True
    retry_on_reject: bool = False
    cache_ttl: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.fail_fast, bool):
            msg = f"fail_fast must be `bool`, got {type(self.fail_fast).__name__}"
            raise TypeError(msg)

        if not isinstance(self.retry_on_reject, bool):
            msg = f"retry_on_reject must be `bool`, got {type(self.retry_on_reject).__name__}"
            raise TypeError(msg)

        if self.cache_ttl is not None and not isinstance(self.cache_ttl, int | float):
            msg = f"cache_ttl must be `float | None`, got {type(self.cache_ttl).__name__}"
            raise TypeError(msg)

        if self.cache_ttl is not None and not (self.cache_ttl > 0):
            msg = "cache_ttl must be greater than zero"
            raise ValueError(msg)

    def merge(
        self,
        *,
        fail_fast: bool | None = None,
        retry_on_reject: bool | None = None,
        cache_ttl: float | None = None,
    ) -> Options:
        return Options(
            fail_fast=fail_fast if fail_fast is not None else self.fail_fast,
            retry_on_reject=retry_on_reject if retry_on_reject is not None else self.retry_on_reject,
            cache_ttl=cache_ttl if cache_ttl is not None else self.cache_ttl,
        )
