"""
Listener role: optional drain, then asynchronous receipt until the target count.
"""

import logging
from typing import Optional

from algorithms.drain import drain_queue
from algorithms.receive_state import PerfListener
from common.batcher import TransactionBatcher
from common.metrics_utils import calculate_rate, log_average
from configuration import DRAIN_RECEIVE_TIMEOUT_MS
from systems.base import CompletionTimeout, close_quietly, open_session

logger = logging.getLogger(__name__)


class ListenerRunner:
    """Runs the consumer side of the benchmark against one queue."""

    def __init__(
        self,
        context,
        params,
        metrics=None,
        timeout: Optional[float] = None,
        drain_timeout_ms: int = DRAIN_RECEIVE_TIMEOUT_MS,
    ):
        """
        Args:
            context: NamingContext resolving the queue and connection factory
            params: BenchmarkParameters of the run
            metrics: Optional BenchmarkMetricsExporter
            timeout: Seconds to wait for completion (None = wait forever)
            drain_timeout_ms: Bounded wait of each drain pull
        """
        self.context = context
        self.params = params.validate()
        self.metrics = metrics
        self.timeout = timeout
        self.drain_timeout_ms = drain_timeout_ms
        self.connection = None
        self.listener: Optional[PerfListener] = None

    def run(self) -> float:
        """Execute the listener run.

        Blocks until the measured phase is complete. A stalled transport
        blocks forever unless a timeout was given.

        Returns:
            Average rate of the measured phase in messages per second

        Raises:
            SetupError: If the queue, connection or session cannot be obtained
            TransportError: If starting, draining or registering fails
            CompletionTimeout: If the timeout expires first
        """
        logger.info(f"params = {self.params}")
        try:
            queue, self.connection, session = open_session(self.context, self.params)
            consumer = session.create_consumer(queue)
            self.connection.start()

            if self.params.drain_queue:
                batcher = TransactionBatcher(session, self.params.transacted, self.params.batch_size)
                drain_queue(consumer, self.drain_timeout_ms, batcher)

            logger.info("READY!!!")

            self.listener = PerfListener(session, self.params, self.metrics)
            consumer.set_message_listener(self.listener)

            if not self.listener.wait(self.timeout):
                raise CompletionTimeout(
                    f"received {self.listener.count} of {self.params.messages_to_send} "
                    f"messages in {self.listener.phase} phase within {self.timeout}s"
                )

            timing = self.listener.timing
            log_average(self.params.messages_to_send, timing)
            rate = calculate_rate(self.params.messages_to_send, timing.start_ms, timing.end_ms)
            if self.metrics is not None:
                self.metrics.update_rate("listener", rate)
            return rate
        finally:
            close_quietly(self.connection)


def run_listener(context, params, metrics=None, timeout: Optional[float] = None) -> float:
    """Run the listener role and return its measured rate."""
    return ListenerRunner(context, params, metrics, timeout).run()
