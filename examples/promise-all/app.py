from __future__ import annotations

from typing import TYPE_CHECKING, Any

from settle import Context, Orchestrator

if TYPE_CHECKING:
    from collections.abc import Generator

orchestrator = Orchestrator()


def fetch_post_data(ctx: Context) -> Generator[Any, Any, str]:
    yield ctx.sleep(2)
    return "Post Data fetched"


def fetch_comment_data(ctx: Context) -> Generator[Any, Any, str]:
    yield ctx.sleep(3)
    return "Comment data fetched."


def get_blog_data(ctx: Context) -> Generator[Any, Any, list[str]]:
    post, comment = yield ctx.all(ctx.spawn(fetch_post_data), ctx.spawn(fetch_comment_data))
    ctx.logger.info("post: %s, comment: %s", post, comment)
    return [post, comment]


if __name__ == "__main__":
    v = orchestrator.run(get_blog_data)
    assert v == ["Post Data fetched", "Comment data fetched."]

    # both fetches wait concurrently
    assert orchestrator.timer.clock.time() == 3
