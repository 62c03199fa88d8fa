"""
Prometheus metrics definitions for Docker container statistics.

Container figures are not kept in prometheus_client gauges. ``StoreCollector``
reads one snapshot of the metrics store per scrape and builds the seven gauge
families from it, so every container's series in a scrape come from the same
sample.
"""

from typing import Iterator

from prometheus_client import CollectorRegistry, Counter, Gauge
from prometheus_client.core import GaugeMetricFamily

from docker_stats_exporter.store import MetricsStore


# (metric name, help text, NormalizedMetrics attribute)
CONTAINER_GAUGES = (
    ('docker_cpu_percent', 'CPU usage %', 'cpu_percent'),
    ('docker_mem_usage_bytes', 'Memory used', 'mem_usage_bytes'),
    ('docker_mem_limit_bytes', 'Memory limit', 'mem_limit_bytes'),
    ('docker_net_input_bytes', 'Network In', 'net_in_bytes'),
    ('docker_net_output_bytes', 'Network Out', 'net_out_bytes'),
    ('docker_block_read_bytes', 'Block I/O Read', 'block_read_bytes'),
    ('docker_block_write_bytes', 'Block I/O Write', 'block_write_bytes'),
)

LABELS = ['name']


class StoreCollector:
    """Custom collector exposing the metrics store as gauge families."""

    def __init__(self, store: MetricsStore):
        self.store = store

    def collect(self) -> Iterator[GaugeMetricFamily]:
        snapshot = self.store.snapshot()
        names = sorted(snapshot)

        for metric_name, documentation, attribute in CONTAINER_GAUGES:
            family = GaugeMetricFamily(metric_name, documentation, labels=LABELS)
            for name in names:
                family.add_metric([name], float(getattr(snapshot[name], attribute)))
            yield family

    def describe(self):
        # Describe without touching the store so registration stays cheap
        for metric_name, documentation, _ in CONTAINER_GAUGES:
            yield GaugeMetricFamily(metric_name, documentation, labels=LABELS)


class ExporterMetrics:
    """Exporter health metrics, registered next to the container gauges."""

    def __init__(self, registry: CollectorRegistry, store: MetricsStore):
        # Counters get a "_total" suffix in the exposition
        self.lines = Counter(
            'docker_stats_exporter_lines',
            'Stats lines read from the source',
            registry=registry
        )
        self.parse_errors = Counter(
            'docker_stats_exporter_parse_errors',
            'Stats lines dropped because they could not be parsed',
            registry=registry
        )
        self.containers = Gauge(
            'docker_stats_exporter_containers',
            'Containers currently held in the metrics store',
            registry=registry
        )
        self.containers.set_function(lambda: len(store))
