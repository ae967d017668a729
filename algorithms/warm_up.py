"""
Warm-up phase of the sender: untimed sends to settle connections and caches.
"""

import logging

from algorithms.send_pass import send_messages
from common.batcher import TransactionBatcher
from common.phase_manager import WARMUP

logger = logging.getLogger(__name__)


class WarmUp:
    """Sends the warm-up messages without timing or progress lines."""

    def __init__(self, session, producer, message, params, metrics=None):
        self.session = session
        self.producer = producer
        self.message = message
        self.params = params
        self.metrics = metrics
        self.batcher = TransactionBatcher(
            session,
            params.transacted,
            params.batch_size,
            on_commit=self._on_commit,
        )

    def execute(self) -> int:
        """Execute the warm-up phase.

        Returns:
            Number of messages sent
        """
        logger.info(f"warming up by sending {self.params.warmup_messages} messages")
        on_send = None
        if self.metrics is not None:
            on_send = lambda: self.metrics.record_message("sender", WARMUP)
        sent = send_messages(
            self.producer,
            self.message,
            self.params.warmup_messages,
            self.batcher,
            on_send=on_send,
        )
        logger.info("warmed up")
        return sent

    def _on_commit(self) -> None:
        if self.metrics is not None:
            self.metrics.record_commit("sender")
