# ==============================================
# SamplingPipeline
# ==============================================
#
# PURPOSE:
#   Run count → sample → analyze against one namespace and turn what
#   happens along the way into SamplingState transitions.
#
# HOW A RUN FLOWS:
#
#   start(request)
#     │  busy? → ignored
#     ▼
#   [counting]   data_service.count(namespace, filter, CountOptions)
#     │  failure → [error] COUNT_FAILURE
#     ▼  num_samples = min(count, requested_sample_size)
#   [sampling]   data_service.sample(namespace, SampleOptions)
#     │            └─ piped into analyzer(records)
#     │  sample error → [error] SAMPLE_STREAM_FAILURE
#     ▼  first analyzer progress
#   [analyzing]  each progress: sample_count += 1, publish percent
#     │            only when it goes up
#     │  analyzer error → [error] ANALYSIS_FAILURE
#     ▼  end of stream
#   [complete]   if num_samples == 0 or sample_count > 0
#   [error]      otherwise, EMPTY_RESULT_ANOMALY
#
# CLASS: SamplingPipeline
# -----------------------
#   - start(request) -> bool       Returns at once; the run executes on
#                                  the runner (a daemon thread by default).
#                                  False when ignored because a run is live.
#   - stop() -> None               Tear down the live run, keep the phase.
#   - reset() -> None              stop() + back to the initial state.
#   - change_namespace(ns, filter) reset() + start() when ns names a collection
#   - set_max_time_ms(ms) / reset_max_time_ms()
#   - subscribe(listener) -> unsubscribe
#   - wait(timeout) -> SamplingState
#
# THREADING:
#   All state changes happen under one re-entrant lock. Every callback
#   carries the RunHandle it was created for and is ignored once that
#   handle is no longer the live one. Streams are closed outside the
#   lock.
#
# ==============================================

import itertools
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from .errors import ErrorInfo, ErrorKind, InvalidArgument
from .progress import INDETERMINATE, ProgressTracker
from .request import (
    DEFAULT_MAX_TIME_MS,
    DEFAULT_READ_PREFERENCE,
    DEFAULT_SAMPLE_SIZE,
    CountOptions,
    Namespace,
    ReadPreference,
    SampleOptions,
    SamplingRequest,
)
from .state import SamplingPhase, SamplingState, SamplingStateMachine, StateListener
from .stream import CancellableStream

logger = logging.getLogger(__name__)


class DataService(Protocol):
    """The two store primitives the pipeline needs."""

    def count(self, namespace: str, filter: Dict[str, Any], options: CountOptions) -> int:
        ...

    def sample(self, namespace: str, options: SampleOptions) -> Iterable[dict]:
        ...


# analyzer(records) yields Progress markers and schema snapshots
Analyzer = Callable[[Iterable[dict]], Iterable[Any]]
Runner = Callable[[Callable[[], None]], None]


def thread_runner(task: Callable[[], None]) -> None:
    """Run a sampling task on a background daemon thread."""
    threading.Thread(target=task, name="schema-sampler-run", daemon=True).start()


def inline_runner(task: Callable[[], None]) -> None:
    """Run a sampling task on the calling thread (start() blocks until done)."""
    task()


class ElapsedTicker:
    """Calls `callback` every `interval` seconds until stopped."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        self._interval = interval
        self._callback = callback
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="schema-sampler-ticker", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()

    def _loop(self) -> None:
        while not self._stopped.wait(self._interval):
            self._callback()


_run_ids = itertools.count(1)


class RunHandle:
    """
    Ownership token for one count → sample → analyze chain.

    Holds the per-run counters and the two streams so that closing the
    handle releases everything the run opened.
    """

    def __init__(self, request: SamplingRequest, tracker: ProgressTracker):
        self.id = next(_run_ids)
        self.request = request
        self.tracker = tracker
        self.num_samples = 0
        self.sample_count = 0
        self.schema: Optional[Any] = None
        self.sampling_stream: Optional[CancellableStream] = None
        self.analyzing_stream: Optional[CancellableStream] = None
        self.ticker: Optional[ElapsedTicker] = None

    def stop_ticker(self) -> None:
        if self.ticker is not None:
            self.ticker.stop()

    def close(self) -> None:
        """Stop the ticker and close both streams. Idempotent."""
        self.stop_ticker()
        if self.analyzing_stream is not None:
            self.analyzing_stream.close()
        if self.sampling_stream is not None:
            self.sampling_stream.close()

    def __repr__(self) -> str:
        return f"RunHandle(id={self.id}, namespace={self.request.namespace!r})"


class SamplingPipeline:
    """
    Samples a namespace, streams the sample through an analyzer, and
    exposes the run as an observable SamplingState.
    """

    def __init__(
        self,
        data_service: DataService,
        analyzer: Analyzer,
        max_time_ms: int = DEFAULT_MAX_TIME_MS,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        read_preference: ReadPreference = DEFAULT_READ_PREFERENCE,
        tick_interval: Optional[float] = 1.0,
        runner: Optional[Runner] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            data_service: Provides count() and sample()
            analyzer: Turns an iterable of records into Progress markers
                      and schema snapshots
            max_time_ms: Default server-side time limit for new requests
            sample_size: Default upper bound on the sample draw
            read_preference: Default routing policy for count / sample
            tick_interval: Seconds between elapsed-time refreshes
                           (None or 0 disables the ticker)
            runner: Executes a run; defaults to a daemon thread per run
            clock: Monotonic clock in seconds
        """
        self._data_service = data_service
        self._analyzer = analyzer
        self._default_max_time_ms = max_time_ms
        self._max_time_ms = max_time_ms
        self._sample_size = sample_size
        self._read_preference = ReadPreference.parse(read_preference)
        self._tick_interval = tick_interval
        self._runner = runner or thread_runner
        self._clock = clock

        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._machine = SamplingStateMachine()
        self._run: Optional[RunHandle] = None

        self.set_max_time_ms(max_time_ms)

    # ======================================
    # Observation
    # ======================================
    @property
    def state(self) -> SamplingState:
        with self._lock:
            return self._machine.state

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._run is not None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Call `listener` with every new SamplingState.

        Listeners run while the pipeline lock is held and must not block.
        """
        with self._lock:
            return self._machine.subscribe(listener)

    def wait(self, timeout: Optional[float] = None) -> SamplingState:
        """
        Block until no run is live (or the timeout expires).

        Returns:
            The state at the time the wait ended
        """
        with self._idle:
            self._idle.wait_for(lambda: self._run is None, timeout)
            return self._machine.state

    # ======================================
    # Settings
    # ======================================
    @property
    def max_time_ms(self) -> int:
        return self._max_time_ms

    def set_max_time_ms(self, max_time_ms: int) -> None:
        """Time limit used for requests built after this call."""
        if isinstance(max_time_ms, bool) or not isinstance(max_time_ms, int) or max_time_ms < 0:
            raise InvalidArgument(f"max_time_ms must be an integer >= 0, got {max_time_ms!r}")
        self._max_time_ms = max_time_ms

    def reset_max_time_ms(self) -> None:
        self._max_time_ms = self._default_max_time_ms

    def build_request(self, namespace: str, filter: Optional[Dict[str, Any]] = None) -> SamplingRequest:
        """Build a request for `namespace` from the pipeline's current settings."""
        return SamplingRequest(
            namespace=namespace,
            filter=dict(filter or {}),
            max_time_ms=self._max_time_ms,
            requested_sample_size=self._sample_size,
            read_preference=self._read_preference
        )

    # ======================================
    # Control
    # ======================================
    def start(self, request: SamplingRequest) -> bool:
        """
        Begin sampling `request.namespace`.

        Ignored while another run is live. Never raises for run failures;
        watch the state for the outcome.

        Returns:
            True if a run was started, False if the start was ignored
        """
        with self._lock:
            if self._run is not None and self._machine.phase.is_busy:
                logger.debug("Ignoring start for %s, a run is already live", request.namespace)
                return False

            # Leaving a finished or abandoned run goes through the initial phase
            if self._machine.phase is not SamplingPhase.INITIAL:
                self._machine.reset()

            handle = RunHandle(request, ProgressTracker(self._clock))
            handle.tracker.start()
            self._run = handle
            self._machine.transition(
                SamplingPhase.COUNTING,
                progress_percent=INDETERMINATE,
                elapsed_ms=0
            )
            if self._tick_interval:
                handle.ticker = ElapsedTicker(self._tick_interval, lambda: self._on_tick(handle))
                handle.ticker.start()

        logger.info(
            "Sampling %s (size=%d, maxTimeMS=%d, readPreference=%s)",
            request.namespace,
            request.requested_sample_size,
            request.max_time_ms,
            request.read_preference.value
        )
        self._runner(lambda: self._execute(handle))
        return True

    def stop(self) -> None:
        """Tear down the live run, if any. The phase is left as it is."""
        with self._lock:
            handle = self._run
            if handle is None:
                return
            self._detach(handle)
        logger.info("Stopped sampling %s", handle.request.namespace)
        handle.close()

    def reset(self) -> None:
        """Stop any live run and return to the initial state."""
        self.stop()
        with self._lock:
            self._machine.reset()

    def change_namespace(self, namespace: Optional[str], filter: Optional[Dict[str, Any]] = None) -> None:
        """
        React to the caller switching to another namespace.

        Resets, then starts sampling if the namespace names a collection.
        """
        self.reset()
        if not namespace:
            return
        if not Namespace.parse(namespace).has_collection:
            logger.debug("Namespace %s has no collection, not sampling", namespace)
            return
        self.start(self.build_request(namespace, filter))

    # ======================================
    # Run execution
    # ======================================
    def _execute(self, handle: RunHandle) -> None:
        request = handle.request

        try:
            count = self._data_service.count(request.namespace, dict(request.filter), request.count_options())
        except Exception as exc:
            self._fail(handle, ErrorKind.COUNT_FAILURE, exc)
            return

        with self._lock:
            if not self._is_live(handle):
                return
            handle.num_samples = min(max(0, int(count)), request.requested_sample_size)
            self._machine.transition(
                SamplingPhase.SAMPLING,
                progress_percent=0,
                elapsed_ms=handle.tracker.elapsed_ms()
            )
        logger.debug("Counted %s documents in %s, sampling %d", count, request.namespace, handle.num_samples)

        try:
            source = self._data_service.sample(request.namespace, request.sample_options())
        except Exception as exc:
            self._fail(handle, ErrorKind.SAMPLE_STREAM_FAILURE, exc)
            return

        sampling = CancellableStream(source, name=f"sample:{request.namespace}")
        sampling.on_error(lambda exc: self._fail(handle, ErrorKind.SAMPLE_STREAM_FAILURE, exc))
        try:
            analyzing = sampling.pipe(self._analyzer, name=f"analyze:{request.namespace}")
        except Exception as exc:
            sampling.close()
            self._fail(handle, ErrorKind.ANALYSIS_FAILURE, exc)
            return
        analyzing.on_progress(lambda _record: self._on_progress(handle))
        analyzing.on_data(lambda schema: self._on_data(handle, schema))
        analyzing.on_error(lambda exc: self._fail(handle, ErrorKind.ANALYSIS_FAILURE, exc))
        analyzing.on_end(lambda: self._on_end(handle))

        with self._lock:
            live = self._is_live(handle)
            if live:
                handle.sampling_stream = sampling
                handle.analyzing_stream = analyzing
        if not live:
            analyzing.close()
            return

        try:
            analyzing.pump()
        except Exception as exc:
            self._fail(handle, ErrorKind.ANALYSIS_FAILURE, exc)

    # ======================================
    # Event handlers (each guarded by its RunHandle)
    # ======================================
    def _on_progress(self, handle: RunHandle) -> None:
        with self._lock:
            if not self._is_live(handle):
                return
            if self._machine.phase is SamplingPhase.SAMPLING:
                self._machine.transition(
                    SamplingPhase.ANALYZING,
                    progress_percent=self._machine.state.progress_percent,
                    elapsed_ms=handle.tracker.elapsed_ms()
                )

            handle.sample_count += 1
            percent = ProgressTracker.compute_percent(handle.sample_count, handle.num_samples)
            if percent > self._machine.state.progress_percent:
                self._machine.update(
                    progress_percent=percent,
                    elapsed_ms=handle.tracker.elapsed_ms()
                )

    def _on_data(self, handle: RunHandle, schema: Any) -> None:
        with self._lock:
            if self._is_live(handle):
                handle.schema = schema

    def _on_end(self, handle: RunHandle) -> None:
        with self._lock:
            if not self._is_live(handle) or self._machine.phase is SamplingPhase.ERROR:
                return
            if handle.num_samples > 0 and handle.sample_count == 0:
                empty = True
            else:
                empty = False
                self._machine.transition(
                    SamplingPhase.COMPLETE,
                    schema=handle.schema,
                    progress_percent=100,
                    elapsed_ms=handle.tracker.elapsed_ms()
                )
                logger.info(
                    "Sampled %d documents from %s in %d ms",
                    handle.sample_count,
                    handle.request.namespace,
                    self._machine.state.elapsed_ms
                )
                self._detach(handle)

        if empty:
            self._fail(handle, ErrorKind.EMPTY_RESULT_ANOMALY, None)
        else:
            handle.close()

    def _on_tick(self, handle: RunHandle) -> None:
        with self._lock:
            if self._is_live(handle) and self._machine.phase.is_busy:
                self._machine.update(elapsed_ms=handle.tracker.elapsed_ms())

    def _fail(self, handle: RunHandle, kind: ErrorKind, exc: Optional[BaseException]) -> None:
        with self._lock:
            if not self._is_live(handle):
                logger.debug("Ignoring %s from %r, it is no longer live", kind.value, handle)
                return
            if kind is ErrorKind.EMPTY_RESULT_ANOMALY:
                error = ErrorInfo(
                    kind=kind,
                    message=f"Expected {handle.num_samples} samples but the stream ended without any"
                )
            else:
                error = ErrorInfo.from_exception(kind, exc)
            self._machine.transition(
                SamplingPhase.ERROR,
                error=error,
                elapsed_ms=handle.tracker.elapsed_ms()
            )
            self._detach(handle)
        logger.warning("Sampling %s failed (%s): %s", handle.request.namespace, kind.value, error.message)
        handle.close()

    # ======================================
    # Internal helpers
    # ======================================
    def _is_live(self, handle: RunHandle) -> bool:
        return self._run is handle

    def _detach(self, handle: RunHandle) -> None:
        # Caller holds the lock
        if self._run is handle:
            self._run = None
        handle.stop_ticker()
        self._idle.notify_all()
