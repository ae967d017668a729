"""
Queue drain: discard stale messages left over from a previous run.
"""

import logging

from configuration import DRAIN_RECEIVE_TIMEOUT_MS

logger = logging.getLogger(__name__)


def drain_queue(consumer, timeout_ms: int = DRAIN_RECEIVE_TIMEOUT_MS, batcher=None) -> int:
    """Pull and discard messages until a pull times out empty.

    Args:
        consumer: MessageConsumer of the benchmark queue
        timeout_ms: Bounded wait of each pull
        batcher: Optional TransactionBatcher committing the discarded receipts

    Returns:
        Number of discarded messages
    """
    logger.info("draining queue")
    drained = 0
    while True:
        message = consumer.receive(timeout_ms)
        if message is None:
            break
        drained += 1
        if batcher is not None:
            batcher.record()
    if batcher is not None:
        batcher.flush()
    logger.info("queue is drained")
    logger.debug(f"Discarded {drained} stale messages")
    return drained
