"""
Phase manager for tracking benchmark phases and their timing.
"""

import logging
from typing import NamedTuple, Optional

from common.metrics_utils import duration_seconds, now_ms

logger = logging.getLogger(__name__)

WARMUP = "warmup"
MEASURING = "measuring"


class PhaseTiming(NamedTuple):
    """Start and end of one phase, in milliseconds."""

    start_ms: float
    end_ms: float

    @property
    def duration_seconds(self) -> float:
        return duration_seconds(self.start_ms, self.end_ms)


class PhaseManager:
    """Tracks the active phase and when its measurement began."""

    def __init__(self):
        self.phase_id: str = ""
        self.phase_start_ms: Optional[float] = None

    def begin_phase(self, phase_id: str, timestamp_ms: Optional[float] = None) -> float:
        """Begin a new phase.

        Args:
            phase_id: Phase identifier (WARMUP or MEASURING)
            timestamp_ms: When the phase started (defaults to now)

        Returns:
            The phase start timestamp in milliseconds
        """
        self.phase_id = phase_id
        self.phase_start_ms = timestamp_ms if timestamp_ms is not None else now_ms()
        logger.debug(f"Began phase: {phase_id}")
        return self.phase_start_ms

    def end_phase(self, timestamp_ms: Optional[float] = None) -> PhaseTiming:
        """Close the active phase.

        Returns:
            PhaseTiming from the phase start to timestamp_ms (defaults to now)

        Raises:
            RuntimeError: If no phase is active
        """
        if self.phase_start_ms is None:
            raise RuntimeError("No phase is active")
        end_ms = timestamp_ms if timestamp_ms is not None else now_ms()
        timing = PhaseTiming(self.phase_start_ms, end_ms)
        logger.debug(f"Ended phase {self.phase_id} after {timing.duration_seconds:.3f}s")
        return timing

    def __repr__(self) -> str:
        return f"PhaseManager(phase_id='{self.phase_id}', start_ms={self.phase_start_ms})"
