"""
Sender role: warm-up pass, then a timed pass over the send endpoint.
"""

import logging
from typing import Optional

from algorithms.steady_state import SteadyState
from algorithms.warm_up import WarmUp
from common.metrics_utils import calculate_rate, log_average
from common.phase_manager import PhaseTiming
from systems.base import close_quietly, open_session

logger = logging.getLogger(__name__)


class SenderRunner:
    """Runs the producer side of the benchmark against one queue."""

    def __init__(self, context, params, metrics=None):
        """
        Args:
            context: NamingContext resolving the queue and connection factory
            params: BenchmarkParameters of the run
            metrics: Optional BenchmarkMetricsExporter
        """
        self.context = context
        self.params = params.validate()
        self.metrics = metrics
        self.connection = None
        self.timing: Optional[PhaseTiming] = None

    def run(self) -> float:
        """Execute the sender run.

        Returns:
            Average rate of the measured phase in messages per second

        Raises:
            SetupError: If the queue, connection or session cannot be obtained
            TransportError: If a send or commit fails
        """
        logger.info(f"params = {self.params}")
        try:
            queue, self.connection, session = open_session(self.context, self.params)

            producer = session.create_producer(queue)
            producer.disable_message_id = True
            producer.disable_message_timestamp = True
            producer.delivery_mode = self.params.delivery_mode

            message = session.create_bytes_message()
            message.write_bytes(bytes(self.params.message_size))

            WarmUp(session, producer, message, self.params, self.metrics).execute()
            self.timing = SteadyState(
                session, producer, message, self.params, self.metrics
            ).execute()

            log_average(self.params.messages_to_send, self.timing)
            rate = calculate_rate(
                self.params.messages_to_send, self.timing.start_ms, self.timing.end_ms
            )
            if self.metrics is not None:
                self.metrics.update_rate("sender", rate)
            return rate
        finally:
            close_quietly(self.connection)


def run_sender(context, params, metrics=None) -> float:
    """Run the sender role and return its measured rate."""
    return SenderRunner(context, params, metrics).run()
