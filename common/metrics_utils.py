"""
Shared utilities for benchmark metrics: message rates and progress cadence.
"""

import logging
import time

from configuration import MILLIS_PER_SECOND, PROGRESS_DIVISOR

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * MILLIS_PER_SECOND


def duration_seconds(start_ms: float, end_ms: float) -> float:
    return (end_ms - start_ms) / MILLIS_PER_SECOND


def calculate_rate(message_count: int, start_ms: float, end_ms: float) -> float:
    """
    Calculate messages per second from a message count and a millisecond interval.

    Args:
        message_count: Number of messages in the interval
        start_ms: Interval start in milliseconds
        end_ms: Interval end in milliseconds

    Returns:
        Messages per second, or 0.0 for an empty or inverted interval
    """
    duration = duration_seconds(start_ms, end_ms)
    if duration <= 0:
        return 0.0
    return message_count / duration


def progress_interval(total_messages: int) -> int:
    """
    Number of messages between two progress lines.

    Integer division, so totals below PROGRESS_DIVISOR give 0 and
    periodic progress is skipped for them.
    """
    return total_messages // PROGRESS_DIVISOR


def should_log_progress(count: int, interval: int) -> bool:
    if interval <= 0:
        return False
    return count % interval == 0


def elapsed_seconds(start_ms: float) -> float:
    """Seconds since start_ms."""
    return duration_seconds(start_ms, now_ms())


def log_progress(verb: str, count: int, start_ms: float) -> None:
    """Log a progress line such as 'sent    100 messages in 0.25s'."""
    elapsed = elapsed_seconds(start_ms)
    logger.info("%s %6d messages in %2.2fs" % (verb, count, elapsed))


def log_average(message_count: int, timing) -> float:
    """
    Log the average rate of a finished phase.

    Args:
        message_count: Messages measured in the phase
        timing: PhaseTiming of the phase

    Returns:
        The rate in messages per second
    """
    duration = timing.duration_seconds
    average = calculate_rate(message_count, timing.start_ms, timing.end_ms)
    logger.info(
        "average: %.2f msg/s (%d messages in %2.2fs)" % (average, message_count, duration)
    )
    return average
