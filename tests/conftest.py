from __future__ import annotations

import logging

import pytest

from settle.orchestrator import Orchestrator
from settle.scheduler import Scheduler
from settle.sinks import ListSink
from settle.timers import StepTimer


def pytest_configure() -> None:
    logging.basicConfig(level=logging.ERROR)  # set log levels very high for tests


@pytest.fixture
def sink() -> ListSink:
    return ListSink()


@pytest.fixture
def scheduler(sink: ListSink) -> Scheduler:
    return Scheduler(sink=sink)


@pytest.fixture
def timer() -> StepTimer:
    return StepTimer()


@pytest.fixture
def orchestrator(sink: ListSink, timer: StepTimer) -> Orchestrator:
    return Orchestrator(sink=sink, timer=timer)
