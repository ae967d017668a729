"""Test suite for the rate reporter."""

import sys
import os
import unittest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.metrics_utils import (
    calculate_rate,
    elapsed_seconds,
    log_average,
    now_ms,
    progress_interval,
    should_log_progress,
)
from common.phase_manager import PhaseTiming


class TestCalculateRate:
    """Test cases for the messages-per-second formula."""

    def test_rate_formula(self):
        assert calculate_rate(1000, 0, 2000) == 500.0

    def test_fractional_duration(self):
        assert calculate_rate(300, 1000, 1500) == 600.0

    def test_zero_duration(self):
        """Should return 0.0 rather than dividing by zero."""
        assert calculate_rate(10, 5000, 5000) == 0.0

    def test_inverted_interval(self):
        assert calculate_rate(10, 2000, 1000) == 0.0

    def test_elapsed_seconds(self):
        elapsed = elapsed_seconds(now_ms() - 1500)
        assert 1.5 <= elapsed < 60.0


class TestProgressCadence:
    """Test cases for progress logging cadence."""

    def test_interval_is_tenth(self):
        assert progress_interval(100) == 10
        assert progress_interval(1000) == 100
        assert progress_interval(105) == 10

    def test_logs_every_tenth_of_100(self):
        interval = progress_interval(100)
        logged = [i for i in range(1, 101) if should_log_progress(i, interval)]
        assert logged == [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]

    def test_small_total_skips_progress(self):
        """Totals below 10 give a zero interval and no progress lines."""
        interval = progress_interval(3)
        assert interval == 0
        assert not any(should_log_progress(i, interval) for i in range(1, 4))


class TestLogAverage(unittest.TestCase):
    """Test the summary line."""

    def test_summary_format(self):
        with self.assertLogs(level="INFO") as cm:
            rate = log_average(1000, PhaseTiming(0, 2000))
        self.assertEqual(rate, 500.0)
        self.assertEqual(len(cm.output), 1)
        self.assertIn("average: 500.00 msg/s (1000 messages in 2.00s)", cm.output[0])


class TestPhaseTiming(unittest.TestCase):

    def test_duration(self):
        timing = PhaseTiming(1000, 3500)
        self.assertEqual(timing.duration_seconds, 2.5)

    def test_immutable(self):
        timing = PhaseTiming(0, 1)
        with self.assertRaises(AttributeError):
            timing.start_ms = 5


if __name__ == '__main__':
    unittest.main()
