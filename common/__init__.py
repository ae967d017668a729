"""
Common utilities for the queue benchmark.
"""

from .batcher import TransactionBatcher
from .params import BenchmarkParameters
from .phase_manager import PhaseManager, PhaseTiming

__all__ = ['BenchmarkParameters', 'PhaseManager', 'PhaseTiming', 'TransactionBatcher']
