from __future__ import annotations

from typing import TYPE_CHECKING, Any

from settle import Context, Orchestrator

if TYPE_CHECKING:
    from collections.abc import Generator

orchestrator = Orchestrator(cache_ttl=60)
calls: list[str] = []


def fetch_profile(ctx: Context, user: str) -> Generator[Any, Any, dict[str, str]]:
    calls.append(user)
    yield ctx.sleep(1)
    return {"user": user}


def render(ctx: Context, user: str) -> Generator[Any, Any, str]:
    profile = yield ctx.cached(fetch_profile, user)
    return f"<h1>{profile['user']}</h1>"


if __name__ == "__main__":
    handles = [orchestrator.begin_run(render, "tech-coder") for _ in range(5)]
    assert [orchestrator.wait(h) for h in handles] == ["<h1>tech-coder</h1>"] * 5

    # concurrent lookups share a single fetch
    assert calls == ["tech-coder"]
