# ==============================================
# SchemaSampler: Orchestrator
# ==============================================
#
# PURPOSE:
#   Wire the pieces together so a caller only deals with one object:
#
#   ┌──────────────────────────────────────────────────────────┐
#   │                     SchemaSampler                        │
#   │                                                          │
#   │  AppConfig ──► MongoClient (storage/)                    │
#   │                    │ count() / sample()                  │
#   │                    ▼                                     │
#   │               SamplingPipeline (sampling/)               │
#   │                    │ records                             │
#   │                    ▼                                     │
#   │               analyze_schema (analysis/)                 │
#   │                    │ Progress / schema                   │
#   │                    ▼                                     │
#   │               SamplingState  ──► subscribers             │
#   └──────────────────────────────────────────────────────────┘
#
# CLASS: SchemaSampler
# --------------------
#   - __init__(config=None, data_service=None, analyzer=None, runner=None)
#   - start(namespace, filter=None) -> bool      non-blocking, False if busy
#   - sample(namespace, filter=None, timeout=None) -> SamplingState
#                                                blocking convenience
#   - stop() / reset() / change_namespace(namespace, filter=None)
#   - set_max_time_ms(ms) / reset_max_time_ms()
#   - subscribe(listener) -> unsubscribe
#   - get_status() -> dict
#   - close()
#   - context manager
#
# ==============================================

import logging
from typing import Any, Callable, Dict, Optional

from schema_sampler.analysis import analyze_schema
from schema_sampler.config import AppConfig, get_config
from schema_sampler.sampling import (
    ReadPreference,
    SamplerError,
    SamplingPipeline,
    SamplingState,
)
from schema_sampler.sampling.pipeline import Analyzer, DataService, Runner
from schema_sampler.storage import MongoClient

logger = logging.getLogger(__name__)


class SchemaSampler:
    """
    High-level wrapper: configuration + MongoDB + analyzer + pipeline.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        data_service: Optional[DataService] = None,
        analyzer: Optional[Analyzer] = None,
        runner: Optional[Runner] = None
    ):
        """
        Args:
            config: Optional configuration. If None, loads from environment.
            data_service: Anything with count()/sample(). Defaults to a
                          MongoClient built from the config, connected on
                          first use.
            analyzer: Defaults to analyze_schema
            runner: Defaults to a background thread per run
        """
        self._config = config or get_config()
        self._owns_data_service = data_service is None
        if data_service is None:
            mongo = self._config.mongo
            data_service = MongoClient(
                host=mongo.host,
                port=mongo.port,
                user=mongo.user,
                password=mongo.password,
                uri=mongo.uri
            )
        self._data_service = data_service

        sampling = self._config.sampling
        self._pipeline = SamplingPipeline(
            data_service=data_service,
            analyzer=analyzer or analyze_schema,
            max_time_ms=sampling.max_time_ms,
            sample_size=sampling.sample_size,
            read_preference=ReadPreference.parse(sampling.read_preference),
            tick_interval=sampling.tick_seconds or None,
            runner=runner
        )

    @property
    def pipeline(self) -> SamplingPipeline:
        return self._pipeline

    @property
    def state(self) -> SamplingState:
        return self._pipeline.state

    def _ensure_connected(self) -> None:
        if self._owns_data_service:
            self._data_service.connect()

    def start(self, namespace: str, filter: Optional[Dict[str, Any]] = None) -> bool:
        """
        Start sampling `namespace` in the background.

        Returns:
            False if another run is still live and this one was not started
        """
        self._ensure_connected()
        return self._pipeline.start(self._pipeline.build_request(namespace, filter))

    def sample(
        self,
        namespace: str,
        filter: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> SamplingState:
        """
        Sample `namespace` and wait for the run to finish.

        Args:
            namespace: "database.collection"
            filter: Query the sample is drawn from
            timeout: Seconds to wait; on expiry the run is stopped

        Returns:
            The final SamplingState (complete or error, or the phase the
            run was in when the timeout hit)

        Raises:
            SamplerError: If another run is still live
        """
        if not self.start(namespace, filter):
            raise SamplerError(f"Cannot sample {namespace}, another sampling run is in progress")
        state = self._pipeline.wait(timeout)
        if self._pipeline.is_running:
            logger.warning("Sampling %s did not finish within %ss, stopping", namespace, timeout)
            self._pipeline.stop()
            state = self._pipeline.state
        return state

    def stop(self) -> None:
        self._pipeline.stop()

    def reset(self) -> None:
        self._pipeline.reset()

    def change_namespace(self, namespace: Optional[str], filter: Optional[Dict[str, Any]] = None) -> None:
        if namespace:
            self._ensure_connected()
        self._pipeline.change_namespace(namespace, filter)

    def set_max_time_ms(self, max_time_ms: int) -> None:
        self._pipeline.set_max_time_ms(max_time_ms)

    def reset_max_time_ms(self) -> None:
        self._pipeline.reset_max_time_ms()

    def subscribe(self, listener: Callable[[SamplingState], None]) -> Callable[[], None]:
        return self._pipeline.subscribe(listener)

    def get_status(self) -> dict:
        """
        Current sampler status.

        Returns:
            Dictionary with the state snapshot and the active settings
        """
        status = self._pipeline.state.to_dict()
        status.update({
            "running": self._pipeline.is_running,
            "max_time_ms": self._pipeline.max_time_ms,
            "sample_size": self._config.sampling.sample_size,
            "read_preference": self._config.sampling.read_preference,
        })
        return status

    def close(self) -> None:
        """Stop any run and close the connection if this sampler opened it."""
        self._pipeline.stop()
        if self._owns_data_service:
            self._data_service.disconnect()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
