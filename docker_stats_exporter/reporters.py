"""
Reporting targets.

The ingestion loop hands every normalized sample to a ``Reporter``. Two
targets exist, chosen at startup:

- ``PrometheusReporter`` (pull): nothing happens per sample; scrapes read the
  metrics store through ``StoreCollector``.
- ``InfluxDBReporter`` (push): each sample is written to InfluxDB as one point.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from influxdb import InfluxDBClient
from influxdb.exceptions import InfluxDBClientError, InfluxDBServerError
from prometheus_client import CollectorRegistry, generate_latest

from docker_stats_exporter.metrics import ExporterMetrics, StoreCollector
from docker_stats_exporter.store import MetricsStore, NormalizedMetrics

logger = logging.getLogger(__name__)


class Reporter:
    """Base reporter. Every hook is a no-op."""

    def report(self, name: str, metrics: NormalizedMetrics) -> None:
        """Called after a sample for ``name`` has been stored."""
        pass

    def observe_line(self) -> None:
        pass

    def observe_parse_error(self) -> None:
        pass

    def close(self) -> None:
        pass


class PrometheusReporter(Reporter):
    """Pull target: renders the metrics store in the Prometheus text format."""

    def __init__(self, store: MetricsStore, registry: Optional[CollectorRegistry] = None):
        self.store = store
        self.registry = registry or CollectorRegistry()
        self.registry.register(StoreCollector(store))
        self.exporter_metrics = ExporterMetrics(self.registry, store)

    def observe_line(self) -> None:
        self.exporter_metrics.lines.inc()

    def observe_parse_error(self) -> None:
        self.exporter_metrics.parse_errors.inc()

    def render(self) -> bytes:
        """Exposition text for one scrape."""
        return generate_latest(self.registry)


class InfluxDBReporter(Reporter):
    """Push target: writes one InfluxDB point per ingested sample."""

    def __init__(
        self,
        host: str = 'localhost',
        port: int = 8086,
        database: str = 'metrics',
        measurement: str = 'docker_stats',
        client: Optional[InfluxDBClient] = None
    ):
        """
        Initialize the InfluxDB reporter.

        Args:
            host: InfluxDB host
            port: InfluxDB HTTP port
            database: Target database
            measurement: Measurement the points are written to
            client: Preconfigured client, mainly for tests
        """
        self.host = host
        self.port = port
        self.database = database
        self.measurement = measurement
        self.client = client or InfluxDBClient(host=host, port=port, database=database)
        self.points_written = 0
        self.write_errors = 0
        logger.info(f"Writing to InfluxDB at {host}:{port}, database '{database}'")

    def build_point(self, name: str, metrics: NormalizedMetrics) -> Dict[str, Any]:
        return {
            'measurement': self.measurement,
            'tags': {'name': name},
            'time': datetime.now(timezone.utc),
            'fields': metrics.as_fields(),
        }

    def report(self, name: str, metrics: NormalizedMetrics) -> None:
        """Write the sample; failures are logged and the sample is skipped."""
        point = self.build_point(name, metrics)
        try:
            self.client.write_points([point])
        except (InfluxDBClientError, InfluxDBServerError, requests.exceptions.RequestException) as e:
            self.write_errors += 1
            logger.error(f"InfluxDB write error for container {name}: {e}")
            return
        self.points_written += 1

    def close(self) -> None:
        try:
            self.client.close()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Error closing InfluxDB client: {e}")
