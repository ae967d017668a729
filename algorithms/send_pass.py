"""
Send loop shared by the warm-up and steady state phases of the sender.
"""

import logging
from typing import Callable, Optional

from common.batcher import TransactionBatcher
from common.metrics_utils import log_progress, should_log_progress

logger = logging.getLogger(__name__)


def send_messages(
    producer,
    message,
    count: int,
    batcher: TransactionBatcher,
    interval: int = 0,
    start_ms: Optional[float] = None,
    on_send: Optional[Callable[[], None]] = None,
) -> int:
    """Send count copies of message, committing through batcher.

    Args:
        producer: MessageProducer to send with
        message: The reusable message
        count: Number of sends
        batcher: Batcher of this phase; flushed after the last send
        interval: Messages between progress lines (0 = no progress lines)
        start_ms: Phase start for the elapsed time in progress lines
        on_send: Optional callable invoked after each send

    Returns:
        Number of messages sent
    """
    for i in range(1, count + 1):
        producer.send(message)
        batcher.record()
        if on_send is not None:
            on_send()
        if start_ms is not None and should_log_progress(i, interval):
            log_progress("sent", i, start_ms)
    batcher.flush()
    return count
