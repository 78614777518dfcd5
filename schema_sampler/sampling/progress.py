# ==============================================
# ProgressTracker
# ==============================================
#
# PURPOSE:
#   Numeric policy for a sampling run: turn (samples seen, samples
#   wanted) into a whole percentage, and read elapsed time.
#
# CLASS: ProgressTracker
# ----------------------
#   Static:
#   - compute_percent(samples_processed, samples_wanted) -> int
#       wanted == 0            → 100
#       otherwise              → ceil(processed * 100 / wanted), clamped 0..100
#       negative input         → InvalidArgument
#
#   - elapsed_between(start, now) -> int
#       Milliseconds between two clock readings (seconds), never negative.
#
#   Stateful (one instance per run):
#   - start() -> None
#   - elapsed_ms() -> int   (never decreases between calls)
#
# ==============================================

import time
from typing import Callable, Optional

from .errors import InvalidArgument

# Progress value published while the sample size is not yet known
INDETERMINATE = -1


class ProgressTracker:
    """
    Computes progress percentages and elapsed-time readings for one run.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            clock: Returns the current time in seconds. Must not go backwards
                   much; readings are clamped so elapsed time never decreases.
        """
        self._clock = clock
        self._start: Optional[float] = None
        self._last_elapsed_ms = 0

    @staticmethod
    def compute_percent(samples_processed: int, samples_wanted: int) -> int:
        """
        Percentage of the target sample that has been processed.

        Args:
            samples_processed: Samples seen so far (>= 0)
            samples_wanted: Target sample size (>= 0)

        Returns:
            Integer percentage between 0 and 100
        """
        if samples_processed < 0:
            raise InvalidArgument(f"samples_processed must be >= 0, got {samples_processed}")
        if samples_wanted < 0:
            raise InvalidArgument(f"samples_wanted must be >= 0, got {samples_wanted}")
        if samples_wanted == 0:
            return 100

        # Integer ceiling division keeps exact results (e.g. 29/100 → 29)
        percent = -(-samples_processed * 100 // samples_wanted)
        return max(0, min(100, percent))

    @staticmethod
    def elapsed_between(start: float, now: float) -> int:
        """Milliseconds from start to now, clamped at zero."""
        return max(0, int((now - start) * 1000))

    def start(self) -> None:
        """Record the run-start instant and reset the elapsed reading."""
        self._start = self._clock()
        self._last_elapsed_ms = 0

    @property
    def started(self) -> bool:
        return self._start is not None

    def elapsed_ms(self) -> int:
        """
        Milliseconds since start().

        Returns 0 before start() is called. Successive readings within one
        run never decrease.
        """
        if self._start is None:
            return 0
        reading = self.elapsed_between(self._start, self._clock())
        self._last_elapsed_ms = max(self._last_elapsed_ms, reading)
        return self._last_elapsed_ms
