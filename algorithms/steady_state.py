"""
Measured phase of the sender: timed sends with periodic progress lines.
"""

import logging

from algorithms.send_pass import send_messages
from common.batcher import TransactionBatcher
from common.phase_manager import MEASURING, PhaseManager, PhaseTiming

logger = logging.getLogger(__name__)


class SteadyState:
    """Timed send pass over the measured message count."""

    def __init__(self, session, producer, message, params, metrics=None):
        self.session = session
        self.producer = producer
        self.message = message
        self.params = params
        self.metrics = metrics
        self.phase_manager = PhaseManager()
        self.batcher = TransactionBatcher(
            session,
            params.transacted,
            params.batch_size,
            on_commit=self._on_commit,
        )

    def execute(self) -> PhaseTiming:
        """Execute the measured phase.

        The timing covers every send and the final commit.

        Returns:
            PhaseTiming of the measured phase
        """
        start_ms = self.phase_manager.begin_phase(MEASURING)
        on_send = None
        if self.metrics is not None:
            on_send = lambda: self.metrics.record_message("sender", MEASURING)
        send_messages(
            self.producer,
            self.message,
            self.params.messages_to_send,
            self.batcher,
            interval=self.params.progress_interval,
            start_ms=start_ms,
            on_send=on_send,
        )
        return self.phase_manager.end_phase()

    def _on_commit(self) -> None:
        if self.metrics is not None:
            self.metrics.record_commit("sender")
