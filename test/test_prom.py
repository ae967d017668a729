"""Tests for the Prometheus metrics exporter."""

import os
import sys
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from prometheus_client import CollectorRegistry

from observability.prom import BenchmarkMetricsExporter


class TestBenchmarkMetricsExporter:

    def test_counters_and_gauge(self):
        registry = CollectorRegistry()
        exporter = BenchmarkMetricsExporter(registry=registry)
        exporter.record_message("listener", "warmup")
        exporter.record_message("listener", "measuring")
        exporter.record_message("listener", "measuring")
        exporter.record_commit("listener")
        exporter.update_rate("listener", 1234.5)

        assert registry.get_sample_value(
            'queue_bench_messages_total', {'role': 'listener', 'phase': 'measuring'}) == 2.0
        assert registry.get_sample_value(
            'queue_bench_commits_total', {'role': 'listener'}) == 1.0
        assert registry.get_sample_value(
            'queue_bench_rate_msgs_per_second', {'role': 'listener'}) == 1234.5

    def test_exporters_do_not_share_metrics(self):
        first = BenchmarkMetricsExporter()
        second = BenchmarkMetricsExporter()
        first.record_commit("sender")
        assert second.registry.get_sample_value(
            'queue_bench_commits_total', {'role': 'sender'}) is None

    def test_start_server_once(self):
        exporter = BenchmarkMetricsExporter(port=9123)
        with patch("observability.prom.start_http_server") as start:
            exporter.start_server()
            exporter.start_server()
        start.assert_called_once_with(9123, registry=exporter.registry)
        assert exporter.server_started

    def test_start_server_failure_is_logged(self):
        exporter = BenchmarkMetricsExporter(port=9124)
        with patch("observability.prom.start_http_server", side_effect=OSError("in use")):
            exporter.start_server()
        assert not exporter.server_started
