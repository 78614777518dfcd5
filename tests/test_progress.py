# ==============================================
# Tests for ProgressTracker
# ==============================================

import itertools

import pytest

from schema_sampler.sampling import InvalidArgument, ProgressTracker


class TestComputePercent:
    """Percent policy."""

    @pytest.mark.parametrize("processed,wanted,expected", [
        (0, 10, 0),
        (1, 10, 10),
        (1, 3, 34),
        (2, 3, 67),
        (29, 100, 29),
        (1, 1000, 1),
        (999, 1000, 100),
        (500, 500, 100),
    ])
    def test_ceiling_of_ratio(self, processed, wanted, expected):
        assert ProgressTracker.compute_percent(processed, wanted) == expected

    @pytest.mark.parametrize("processed", [0, 1, 7, 10000])
    def test_zero_target_is_complete(self, processed):
        assert ProgressTracker.compute_percent(processed, 0) == 100

    def test_clamped_above_target(self):
        assert ProgressTracker.compute_percent(15, 10) == 100

    @pytest.mark.parametrize("wanted", [1, 3, 7, 100, 1000, 1234])
    def test_monotonic_and_exactly_100_at_target(self, wanted):
        values = [ProgressTracker.compute_percent(i, wanted) for i in range(wanted + 1)]
        assert all(a <= b for a, b in zip(values, values[1:]))
        assert values[-1] == 100
        assert all(0 <= v <= 100 for v in values)

    def test_negative_processed_rejected(self):
        with pytest.raises(InvalidArgument):
            ProgressTracker.compute_percent(-1, 10)

    def test_invalid_argument_is_a_value_error(self):
        with pytest.raises(ValueError):
            ProgressTracker.compute_percent(-5, 0)


class TestElapsed:
    """Elapsed-time readings."""

    def test_elapsed_between(self):
        assert ProgressTracker.elapsed_between(10.0, 11.5) == 1500
        assert ProgressTracker.elapsed_between(10.0, 9.0) == 0

    def test_zero_before_start(self):
        tracker = ProgressTracker(clock=lambda: 42.0)
        assert tracker.elapsed_ms() == 0
        assert not tracker.started

    def test_readings_never_decrease(self):
        readings = iter([100.0, 101.0, 100.5, 102.0])
        tracker = ProgressTracker(clock=lambda: next(readings))
        tracker.start()
        assert tracker.elapsed_ms() == 1000
        # Clock stepped backwards
        assert tracker.elapsed_ms() == 1000
        assert tracker.elapsed_ms() == 2000

    def test_start_resets(self):
        ticks = itertools.count(0.0, 1.0)
        tracker = ProgressTracker(clock=lambda: next(ticks))
        tracker.start()
        assert tracker.elapsed_ms() == 1000
        tracker.start()
        assert tracker.elapsed_ms() == 1000
