# ==============================================
# CancellableStream
# ==============================================
#
# PURPOSE:
#   Wrap one live producer (a MongoDB cursor, a generator, any
#   iterable) so it can be torn down early and so its lifecycle is
#   reported through callbacks: data, progress, error, end.
#
# WHY THIS CLASS EXISTS:
#   The sample cursor and the analyzer are two resources chained
#   together. When the user cancels or switches collections both have
#   to stop, and nothing they produce afterwards may reach the
#   pipeline. Closing the downstream stream closes the upstream one.
#
# CLASS: CancellableStream
# ------------------------
#   Constructor:
#   - __init__(source: Iterable, name: str = "stream", upstream=None)
#
#   Handlers (exactly one of each, registering twice is a ValueError):
#   - on_data(handler)      handler(item)
#   - on_progress(handler)  handler(item)   (items wrapped in Progress)
#   - on_error(handler)     handler(exc)
#   - on_end(handler)       handler()
#
#   Methods:
#   - __iter__()            Yield source items, emitting events on the way.
#                           A source exception is emitted as "error" and
#                           ends iteration. Exhaustion emits "end".
#   - pump()                Consume the stream until it stops.
#   - pipe(transform)       New stream over transform(iter(self)).
#   - close()               Idempotent. No new event is dispatched after
#                           it returns. Also closes the upstream stream.
#
# NOTES:
# ------
# - Handlers run outside the stream lock, so a handler that takes
#   other locks never blocks close(). A handler already running when
#   close() returns may still finish; consumers that care check their
#   own ownership token.
# - A source that is being iterated is released by the iterating
#   thread once it notices the stream was closed. Generators cannot
#   be closed from another thread while they run.
#
# ==============================================

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

logger = logging.getLogger(__name__)

DATA = "data"
PROGRESS = "progress"
ERROR = "error"
END = "end"


@dataclass(frozen=True)
class Progress:
    """Marker a producer yields to report progress instead of data."""
    item: Any = None


class CancellableStream:
    """
    A single-consumer event stream over an iterable that can be closed early.
    """

    def __init__(
        self,
        source: Iterable,
        name: str = "stream",
        upstream: Optional["CancellableStream"] = None
    ):
        self._source = source
        self.name = name
        self._upstream = upstream
        self._lock = threading.RLock()
        self._handlers: Dict[str, Callable[..., None]] = {}
        self._closed = False
        self._iterating = False
        self._released = False

    # ======================================
    # Handler registration
    # ======================================
    def on_data(self, handler: Callable[[Any], None]) -> "CancellableStream":
        return self._register(DATA, handler)

    def on_progress(self, handler: Callable[[Any], None]) -> "CancellableStream":
        return self._register(PROGRESS, handler)

    def on_error(self, handler: Callable[[BaseException], None]) -> "CancellableStream":
        return self._register(ERROR, handler)

    def on_end(self, handler: Callable[[], None]) -> "CancellableStream":
        return self._register(END, handler)

    def _register(self, event: str, handler: Callable[..., None]) -> "CancellableStream":
        with self._lock:
            if event in self._handlers:
                raise ValueError(f"{self.name}: a '{event}' handler is already registered")
            self._handlers[event] = handler
        return self

    # ======================================
    # Lifecycle
    # ======================================
    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Tear the stream down.

        Safe to call more than once and from any thread. Once this returns,
        no further event of this stream is dispatched.
        """
        with self._lock:
            already_closed = self._closed
            self._closed = True
            iterating = self._iterating

        if not already_closed:
            logger.debug("Closed %s", self.name)
            if not iterating:
                self._release()

        if self._upstream is not None:
            self._upstream.close()

    def _release(self) -> None:
        # Close the underlying cursor / generator exactly once
        with self._lock:
            if self._released:
                return
            self._released = True
        closer = getattr(self._source, "close", None)
        if callable(closer):
            closer()
        # Nothing consumes the upstream once this stream's source is gone
        if self._upstream is not None:
            self._upstream._release()

    def _emit(self, event: str, *args: Any) -> bool:
        """
        Deliver one event to its handler.

        Returns:
            False if the stream is closed (nothing was delivered), True otherwise
        """
        with self._lock:
            if self._closed:
                return False
            handler = self._handlers.get(event)
        if handler is not None:
            handler(*args)
        return True

    # ======================================
    # Consumption
    # ======================================
    def __iter__(self) -> Iterator[Any]:
        return self._iterate()

    def _iterate(self) -> Iterator[Any]:
        with self._lock:
            if self._closed:
                return
            if self._iterating:
                raise RuntimeError(f"{self.name} already has a consumer")
            self._iterating = True

        try:
            try:
                iterator = iter(self._source)
            except Exception as exc:
                self._emit(ERROR, exc)
                return

            while not self._closed:
                try:
                    item = next(iterator)
                except StopIteration:
                    self._emit(END)
                    return
                except Exception as exc:
                    if self._closed:
                        logger.debug("Dropped error from closed %s: %s", self.name, exc)
                    else:
                        self._emit(ERROR, exc)
                    return

                if isinstance(item, Progress):
                    delivered = self._emit(PROGRESS, item.item)
                else:
                    delivered = self._emit(DATA, item)
                if not delivered:
                    return
                yield item
        finally:
            with self._lock:
                self._iterating = False
                release = self._closed
            if release:
                self._release()

    def pump(self) -> None:
        """Consume the stream until it ends, fails, or is closed."""
        for _ in self:
            pass

    def pipe(
        self,
        transform: Callable[[Iterable[Any]], Iterable[Any]],
        name: Optional[str] = None
    ) -> "CancellableStream":
        """
        Chain a transform onto this stream.

        Args:
            transform: Takes an iterable of this stream's items, returns
                       an iterable of new items (e.g. an analyzer)
            name: Name of the new stream (for logs)

        Returns:
            A downstream CancellableStream. Closing it closes this one.
        """
        return CancellableStream(
            transform(iter(self)),
            name=name or f"{self.name}|{getattr(transform, '__name__', 'transform')}",
            upstream=self
        )

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"CancellableStream({self.name!r}, {state})"
