# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# Shared fakes for the sampling tests. Nothing here needs a running
# MongoDB: the data service is an in-memory stand-in with the same
# count() / sample() surface as storage.MongoClient.
#
# FIXTURES:
# ---------
# - make_records(n)      → n small documents
# - data_service         → FakeDataService (configure per test)
# - recorder             → collects every SamplingState pushed
# - make_pipeline(...)   → SamplingPipeline with inline runner, no ticker
#
# ==============================================

import threading
from typing import Any, Callable, List, Optional

import pytest

from schema_sampler.analysis import analyze_schema
from schema_sampler.config import reset_config
from schema_sampler.sampling import SamplingPipeline, SamplingRequest, inline_runner


class FakeCursor:
    """Iterable over canned documents that can fail part-way and records close()."""

    def __init__(
        self,
        records: List[dict],
        error: Optional[Exception] = None,
        error_after: int = 0,
        gate: Optional[threading.Event] = None,
        gate_after: int = 1
    ):
        self.records = list(records)
        self.error = error
        self.error_after = error_after
        self.gate = gate
        self.gate_after = gate_after
        self.position = 0
        self.closed = False
        self.closed_event = threading.Event()

    def __iter__(self):
        return self

    def __next__(self) -> dict:
        if self.error is not None and self.position == self.error_after:
            raise self.error
        if self.gate is not None and self.position >= self.gate_after:
            self.gate.wait(5)
        if self.position >= len(self.records):
            raise StopIteration
        record = self.records[self.position]
        self.position += 1
        return record

    def close(self) -> None:
        self.closed = True
        self.closed_event.set()


class FakeDataService:
    """In-memory count() / sample() with hooks for failure scenarios."""

    def __init__(self, count: int = 0, records: Optional[List[dict]] = None):
        self.count_value = count
        self.records = records if records is not None else []
        self.count_error: Optional[Exception] = None
        self.sample_error: Optional[Exception] = None
        self.on_count: Optional[Callable[[], None]] = None
        self.cursor_factory: Optional[Callable[[], FakeCursor]] = None
        self.count_calls: List[tuple] = []
        self.sample_calls: List[tuple] = []
        self.cursors: List[FakeCursor] = []

    def count(self, namespace, filter, options) -> int:
        self.count_calls.append((namespace, filter, options))
        if self.on_count is not None:
            self.on_count()
        if self.count_error is not None:
            raise self.count_error
        return self.count_value

    def sample(self, namespace, options) -> FakeCursor:
        self.sample_calls.append((namespace, options))
        if self.sample_error is not None:
            raise self.sample_error
        if self.cursor_factory is not None:
            cursor = self.cursor_factory()
        else:
            cursor = FakeCursor(self.records)
        self.cursors.append(cursor)
        return cursor


class StateRecorder:
    """Subscriber that keeps every state it is given."""

    def __init__(self):
        self.states: List[Any] = []

    def __call__(self, state) -> None:
        self.states.append(state)

    @property
    def phases(self) -> List[str]:
        """Distinct consecutive phases seen, as strings."""
        phases: List[str] = []
        for state in self.states:
            if not phases or phases[-1] != state.phase.value:
                phases.append(state.phase.value)
        return phases


def build_records(n: int) -> List[dict]:
    return [
        {"_id": i, "username": f"user{i}", "age": 20 + i % 50, "address": {"city": "Pune"}}
        for i in range(n)
    ]


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def make_records():
    return build_records


@pytest.fixture
def data_service():
    return FakeDataService()


@pytest.fixture
def recorder():
    return StateRecorder()


@pytest.fixture
def request_for():
    def _request(namespace: str = "shop.orders", **kwargs) -> SamplingRequest:
        return SamplingRequest(namespace=namespace, **kwargs)
    return _request


@pytest.fixture
def make_pipeline(data_service, recorder):
    def _make(analyzer=analyze_schema, runner=inline_runner, tick_interval=None, **kwargs) -> SamplingPipeline:
        pipeline = SamplingPipeline(
            data_service,
            analyzer,
            tick_interval=tick_interval,
            runner=runner,
            **kwargs
        )
        pipeline.subscribe(recorder)
        return pipeline
    return _make
