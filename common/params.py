"""
Benchmark parameters shared by the sender and listener roles.
"""

import logging
from typing import NamedTuple

from common.metrics_utils import progress_interval
from configuration import DEFAULT_CONNECTION_FACTORY, DEFAULT_QUEUE
from systems.base import (
    AUTO_ACKNOWLEDGE,
    DUPS_OK_ACKNOWLEDGE,
    NON_PERSISTENT,
    PERSISTENT,
    SESSION_TRANSACTED,
)

logger = logging.getLogger(__name__)


class BenchmarkParameters(NamedTuple):
    """Immutable configuration of one benchmark run.

    Attributes:
        messages_to_send: Messages in the measured phase
        warmup_messages: Messages in the untimed warmup phase
        message_size: Payload size in bytes
        durable: Send with persistent delivery
        transacted: Use a transacted session and commit in batches
        batch_size: Messages per commit (only used when transacted)
        dups_ok: Use lazy acknowledgement on non-transacted sessions
        drain_queue: Discard stale messages before the listener starts
        queue_lookup: Lookup name of the queue
        connection_factory_lookup: Lookup name of the connection factory
    """

    messages_to_send: int
    warmup_messages: int = 0
    message_size: int = 1024
    durable: bool = False
    transacted: bool = False
    batch_size: int = 1
    dups_ok: bool = False
    drain_queue: bool = False
    queue_lookup: str = DEFAULT_QUEUE
    connection_factory_lookup: str = DEFAULT_CONNECTION_FACTORY

    def validate(self) -> "BenchmarkParameters":
        """Check the parameter invariants.

        Returns:
            self, so construction and validation can be chained

        Raises:
            ValueError: If a count or size is negative, or a transacted run
                has a non-positive batch size
        """
        for field in ("messages_to_send", "warmup_messages", "message_size"):
            if getattr(self, field) < 0:
                raise ValueError(f"{field} must not be negative, got {getattr(self, field)}")
        if self.transacted and self.batch_size <= 0:
            raise ValueError(
                f"batch_size must be positive for transacted runs, got {self.batch_size}"
            )
        return self

    @property
    def acknowledge_mode(self) -> str:
        if self.transacted:
            return SESSION_TRANSACTED
        return DUPS_OK_ACKNOWLEDGE if self.dups_ok else AUTO_ACKNOWLEDGE

    @property
    def delivery_mode(self) -> str:
        return PERSISTENT if self.durable else NON_PERSISTENT

    @property
    def progress_interval(self) -> int:
        """Messages between progress lines; 0 disables periodic progress."""
        return progress_interval(self.messages_to_send)

    def __str__(self) -> str:
        return (
            f"BenchmarkParameters(messages_to_send={self.messages_to_send}, "
            f"warmup_messages={self.warmup_messages}, message_size={self.message_size}, "
            f"delivery_mode={self.delivery_mode}, transacted={self.transacted}, "
            f"batch_size={self.batch_size}, acknowledge_mode={self.acknowledge_mode}, "
            f"drain_queue={self.drain_queue}, queue='{self.queue_lookup}', "
            f"connection_factory='{self.connection_factory_lookup}')"
        )
