from __future__ import annotations

from settle import Deferred, StepTimer

timer = StepTimer()


def fetch_data(fail: bool = False) -> Deferred[str]:
    if fail:
        return timer.after(2).then(lambda _: Deferred.from_reason("Error fetching data"))
    return timer.after(2, "Data fetched successfully")


if __name__ == "__main__":
    d = fetch_data().then(lambda data: print(data)).then(lambda _: "Tech-Code_").then(lambda value: value.upper())
    failed = fetch_data(fail=True).then(lambda data: data.upper()).catch(lambda e: f"recovered: {e.reason}")

    timer.advance()
    assert d.value() == "TECH-CODE_"
    assert failed.value() == "recovered: Error fetching data"
