"""
Prometheus metrics exporter for the queue benchmark.
"""

import logging
from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)


class BenchmarkMetricsExporter:
    """Prometheus exporter for message, commit and rate metrics.

    Metrics live in a private registry so several exporters can coexist
    in one process.
    """

    def __init__(self, port: int = 9100, registry: CollectorRegistry = None):
        self.port = port
        self.server_started = False
        self.registry = registry or CollectorRegistry()

        self.messages_total = Counter(
            'queue_bench_messages_total', 'Messages sent or received',
            ['role', 'phase'], registry=self.registry,
        )
        self.commits_total = Counter(
            'queue_bench_commits_total', 'Transaction commits',
            ['role'], registry=self.registry,
        )
        self.rate = Gauge(
            'queue_bench_rate_msgs_per_second', 'Average rate of the measured phase',
            ['role'], registry=self.registry,
        )

    def start_server(self):
        """Start the Prometheus HTTP server."""
        if not self.server_started:
            try:
                start_http_server(self.port, registry=self.registry)
                self.server_started = True
                logger.info(f"Prometheus server started on port {self.port}")
            except Exception as e:
                logger.error(f"Failed to start Prometheus server: {e}")

    def record_message(self, role: str, phase: str):
        self.messages_total.labels(role=role, phase=phase).inc()

    def record_commit(self, role: str):
        self.commits_total.labels(role=role).inc()

    def update_rate(self, role: str, rate: float):
        """Update the rate gauge."""
        try:
            self.rate.labels(role=role).set(rate)
        except Exception as e:
            logger.error(f"Failed to update rate metric: {e}")
