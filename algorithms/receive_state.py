"""
Listener state machine: counts warm-up and measured deliveries and signals completion.
"""

import logging
import threading
from typing import Optional

from common.batcher import TransactionBatcher
from common.metrics_utils import log_progress, should_log_progress
from common.phase_manager import MEASURING, WARMUP, PhaseManager, PhaseTiming

logger = logging.getLogger(__name__)


class PerfListener:
    """Message callback driving the warm-up -> measuring transition.

    The transport invokes on_message on a thread it owns. Deliveries for
    one consumer arrive serially, but the compound phase/counter/commit
    update still runs under a lock. The measured phase starts on the first
    delivery after warm-up, which is counted as message 1.
    """

    def __init__(self, session, params, metrics=None):
        self.session = session
        self.params = params
        self.metrics = metrics
        self.completed = threading.Event()
        self.timing: Optional[PhaseTiming] = None
        self.phase_manager = PhaseManager()
        self.warming_up = params.warmup_messages > 0
        self.started = False
        self.ignored = 0
        self.errors = 0
        self.commits = 0
        self._lock = threading.Lock()
        self.batcher = self._new_batcher()

        if self.warming_up:
            self.phase_manager.begin_phase(WARMUP)
        elif params.messages_to_send == 0:
            self._complete_empty_run()

    @property
    def phase(self) -> str:
        return WARMUP if self.warming_up else MEASURING

    @property
    def count(self) -> int:
        return self.batcher.count

    def __call__(self, message) -> None:
        self.on_message(message)

    def on_message(self, message) -> None:
        """Handle one delivery. Never raises into the delivery thread."""
        try:
            with self._lock:
                self._handle(message)
        except Exception as e:
            self.errors += 1
            logger.error(f"Failed to process message in {self.phase} phase: {e}")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the measured phase completes.

        Args:
            timeout: Seconds to wait (None = wait forever)

        Returns:
            True if the run completed
        """
        return self.completed.wait(timeout)

    def _handle(self, message) -> None:
        if self.completed.is_set():
            self.ignored += 1
            logger.debug(f"Ignoring delivery after completion ({self.ignored} so far)")
            return

        # A failed commit still counts the message, so the phase checks run in finally
        if self.warming_up:
            if self.metrics is not None:
                self.metrics.record_message("listener", WARMUP)
            try:
                self.batcher.record()
            finally:
                if self.batcher.count == self.params.warmup_messages:
                    self._end_warmup()
            return

        if not self.started:
            self.started = True
            self.batcher = self._new_batcher()
            self.phase_manager.begin_phase(MEASURING)

        if self.metrics is not None:
            self.metrics.record_message("listener", MEASURING)
        try:
            self.batcher.record()
        finally:
            if should_log_progress(self.batcher.count, self.params.progress_interval):
                log_progress("received", self.batcher.count, self.phase_manager.phase_start_ms)
            if self.batcher.count == self.params.messages_to_send:
                self._complete()

    def _end_warmup(self) -> None:
        self.warming_up = False
        logger.info(f"warmed up after receiving {self.batcher.count} msgs")
        try:
            self.batcher.flush()
        finally:
            if self.params.messages_to_send == 0:
                self._complete_empty_run()

    def _complete(self) -> None:
        try:
            self.batcher.flush()
        finally:
            self.timing = self.phase_manager.end_phase()
            self.completed.set()

    def _complete_empty_run(self) -> None:
        start_ms = self.phase_manager.begin_phase(MEASURING)
        self.timing = self.phase_manager.end_phase(start_ms)
        self.completed.set()

    def _new_batcher(self) -> TransactionBatcher:
        return TransactionBatcher(
            self.session,
            self.params.transacted,
            self.params.batch_size,
            on_commit=self._on_commit,
        )

    def _on_commit(self) -> None:
        self.commits += 1
        if self.metrics is not None:
            self.metrics.record_commit("listener")
