# ==============================================
# Tests for SchemaSampler
# ==============================================

import threading

import pytest

from schema_sampler.config import AppConfig, SamplingConfig
from schema_sampler.sampler import SchemaSampler
from schema_sampler.sampling import ReadPreference, SamplerError, SamplingPhase, inline_runner

from conftest import FakeDataService, build_records


def quiet_config(**sampling) -> AppConfig:
    sampling.setdefault("tick_seconds", 0)
    return AppConfig(sampling=SamplingConfig(**sampling))


@pytest.fixture
def service():
    return FakeDataService(count=25, records=build_records(25))


class TestSchemaSampler:
    def test_sample_returns_final_state(self, service):
        sampler = SchemaSampler(quiet_config(), data_service=service, runner=inline_runner)
        state = sampler.sample("shop.orders", {"age": {"$gte": 20}})

        assert state.phase is SamplingPhase.COMPLETE
        assert state.schema["count"] == 25
        assert service.count_calls[0][1] == {"age": {"$gte": 20}}

    def test_config_flows_into_requests(self, service):
        config = quiet_config(max_time_ms=3000, sample_size=10, read_preference="secondary")
        sampler = SchemaSampler(config, data_service=service, runner=inline_runner)
        sampler.sample("shop.orders")

        count_options = service.count_calls[0][2]
        sample_options = service.sample_calls[0][1]
        assert count_options.max_time_ms == 3000
        assert count_options.read_preference is ReadPreference.SECONDARY
        assert sample_options.size == 10

    def test_max_time_override_and_reset(self, service):
        sampler = SchemaSampler(quiet_config(), data_service=service, runner=inline_runner)
        sampler.set_max_time_ms(250)
        sampler.sample("shop.orders")
        sampler.reset_max_time_ms()
        sampler.sample("shop.orders")

        assert [call[2].max_time_ms for call in service.count_calls] == [250, 10000]

    def test_get_status(self, service):
        sampler = SchemaSampler(quiet_config(sample_size=50), data_service=service, runner=inline_runner)
        sampler.sample("shop.orders")

        status = sampler.get_status()
        assert status["phase"] == "complete"
        assert status["progress_percent"] == 100
        assert status["running"] is False
        assert status["sample_size"] == 50
        assert status["max_time_ms"] == 10000
        assert status["read_preference"] == "primaryPreferred"

    def test_subscribe_and_change_namespace(self, service):
        sampler = SchemaSampler(quiet_config(), data_service=service, runner=inline_runner)
        phases = []
        sampler.subscribe(lambda state: phases.append(state.phase))

        sampler.change_namespace("shop.orders")
        sampler.change_namespace("shop")

        assert phases[-1] is SamplingPhase.INITIAL
        assert SamplingPhase.COMPLETE in phases
        assert len(service.count_calls) == 1

    def test_timeout_stops_the_run(self):
        release = threading.Event()
        service = FakeDataService(count=1, records=build_records(1))
        service.on_count = lambda: release.wait(5)
        sampler = SchemaSampler(quiet_config(), data_service=service)

        state = sampler.sample("shop.orders", timeout=0.05)
        release.set()

        assert state.phase is SamplingPhase.COUNTING
        assert not sampler.pipeline.is_running

    def test_sample_refuses_while_another_run_is_live(self):
        release = threading.Event()
        service = FakeDataService(count=1, records=build_records(1))
        service.on_count = lambda: release.wait(5)
        sampler = SchemaSampler(quiet_config(), data_service=service)

        assert sampler.start("shop.orders") is True
        with pytest.raises(SamplerError):
            sampler.sample("shop.users")
        release.set()

        assert sampler.pipeline.wait(5).phase is SamplingPhase.COMPLETE
        assert [call[0] for call in service.count_calls] == ["shop.orders"]

    def test_injected_service_is_not_closed(self, service):
        # FakeDataService has no connect()/disconnect(); calling them would fail
        with SchemaSampler(quiet_config(), data_service=service, runner=inline_runner) as sampler:
            sampler.sample("shop.orders")
        assert sampler.state.phase is SamplingPhase.COMPLETE


class TestOwnedConnection:
    def test_connects_on_use_and_disconnects_on_close(self, monkeypatch):
        created = []

        class RecordingClient(FakeDataService):
            def __init__(self, **kwargs):
                super().__init__(count=1, records=build_records(1))
                self.kwargs = kwargs
                self.connects = 0
                self.disconnects = 0
                created.append(self)

            def connect(self):
                self.connects += 1

            def disconnect(self):
                self.disconnects += 1

        monkeypatch.setattr("schema_sampler.sampler.MongoClient", RecordingClient)
        config = quiet_config()
        config.mongo.host = "db.internal"

        with SchemaSampler(config, runner=inline_runner) as sampler:
            assert created[0].connects == 0
            sampler.sample("shop.orders")

        client = created[0]
        assert client.kwargs["host"] == "db.internal"
        assert client.connects == 1
        assert client.disconnects == 1
