from __future__ import annotations

from typing import TYPE_CHECKING, Any

from settle import Context, Orchestrator

if TYPE_CHECKING:
    from collections.abc import Generator

orchestrator = Orchestrator(log_level="INFO")


def fetch_user_data(ctx: Context, fail: bool) -> Generator[Any, Any, dict[str, str]]:
    yield ctx.sleep(3)
    if fail:
        msg = "Error fetching data"
        raise ConnectionError(msg)
    return {"name": "Tech-Coder_", "id": "100"}


def get_user_data(ctx: Context, fail: bool = False) -> Generator[Any, Any, dict[str, str] | None]:
    ctx.logger.info("fetching user data...")
    try:
        user = yield ctx.spawn(fetch_user_data, fail)
    except ConnectionError as e:
        ctx.logger.error("%s", e)
        return None

    ctx.logger.info("user: %s", user)
    return user


if __name__ == "__main__":
    assert orchestrator.run(get_user_data) == {"name": "Tech-Coder_", "id": "100"}
    assert orchestrator.run(get_user_data, fail=True) is None
