"""
Main Docker Stats Exporter application.

Wires the stats source, the ingestion loop and the selected reporting target
together. For the Prometheus target the ingestion loop runs in a background
thread while Flask serves scrapes; for the InfluxDB target the ingestion loop
runs in the foreground and pushes every sample.
"""

import logging
import signal
import sys
from typing import Iterable, Optional, Sequence

from flask import Flask, Response
from prometheus_client import CONTENT_TYPE_LATEST

from docker_stats_exporter import __version__
from docker_stats_exporter.config import ExporterConfig, parse_config
from docker_stats_exporter.errors import StatSourceError
from docker_stats_exporter.ingest import Ingestor
from docker_stats_exporter.reporters import InfluxDBReporter, PrometheusReporter, Reporter
from docker_stats_exporter.source import DockerStatsSource, LineSource
from docker_stats_exporter.store import MetricsStore

logger = logging.getLogger(__name__)


def configure_logging(level: str = 'INFO'):
    logging.basicConfig(
        level=getattr(logging, level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def open_source(config: ExporterConfig):
    """Stats source for the configuration: a recorded file, stdin or docker."""
    if config.input_path == '-':
        return LineSource(sys.stdin)
    if config.input_path:
        return LineSource(open(config.input_path, encoding='utf-8', errors='replace'))
    return DockerStatsSource(docker_bin=config.docker_bin)


class DockerStatsExporter:
    """Main exporter class that ingests docker stats and reports them."""

    def __init__(
        self,
        config: ExporterConfig,
        source: Optional[Iterable[str]] = None,
        reporter: Optional[Reporter] = None,
        install_signal_handlers: bool = True
    ):
        """
        Initialize the exporter.

        Args:
            config: Validated configuration
            source: Stats line source; built from the configuration when None
            reporter: Reporting target; built from the configuration when None
            install_signal_handlers: Register SIGINT/SIGTERM handlers
        """
        self.config = config
        self.store = MetricsStore(stale_after=config.stale_after)
        self.source = source if source is not None else open_source(config)
        self.reporter = reporter or self._build_reporter()
        self.ingestor = Ingestor(self.store, self.reporter)
        self.ingest_thread = None

        self.app = Flask(__name__)
        self._setup_routes()

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

    def _build_reporter(self) -> Reporter:
        if self.config.target == 'influxdb':
            return InfluxDBReporter(
                host=self.config.host,
                port=self.config.port,
                database=self.config.db,
                measurement=self.config.measurement
            )
        return PrometheusReporter(self.store)

    def _setup_routes(self):
        """Setup Flask routes."""

        @self.app.route('/metrics')
        def metrics_endpoint():
            """Prometheus metrics endpoint."""
            if not isinstance(self.reporter, PrometheusReporter):
                return {'error': 'metrics are pushed to InfluxDB'}, 404
            return Response(self.reporter.render(), mimetype=CONTENT_TYPE_LATEST)

        @self.app.route('/health')
        def health():
            """Health check endpoint."""
            ingesting = self.ingestor.running
            return {
                'status': 'healthy' if ingesting else 'degraded',
                'ingesting': ingesting,
                'containers': len(self.store),
            }, 200

        @self.app.route('/')
        def root():
            """Root endpoint with information."""
            return {
                'name': 'Docker Stats Exporter',
                'version': __version__,
                'target': self.config.target,
                'endpoints': {
                    '/metrics': 'Prometheus metrics',
                    '/health': 'Health check'
                }
            }

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.stop()
        sys.exit(0)

    def start(self):
        """Start the exporter. Blocks until the process is stopped."""
        logger.info(f"Starting Docker Stats Exporter v{__version__}...")
        logger.info(f"Target: {self.config.target}")

        start_source = getattr(self.source, 'start', None)
        if start_source is not None:
            start_source()

        if self.config.target == 'influxdb':
            # Push target: ingest in the foreground until the source ends
            self.ingestor.run(self.source)
            self.stop()
            return

        self.ingest_thread = self.ingestor.start_background(self.source)

        logger.info(f"Prometheus endpoint on http://0.0.0.0:{self.config.port}/metrics")
        self.app.run(host='0.0.0.0', port=self.config.port, threaded=True)

    def stop(self):
        """Stop the exporter."""
        logger.info("Stopping Docker Stats Exporter...")

        close = getattr(self.source, 'close', None)
        if close is not None:
            close()

        if self.ingest_thread:
            self.ingest_thread.join(timeout=5)

        self.reporter.close()
        logger.info("Exporter stopped")


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point."""
    config = parse_config(argv)
    configure_logging(config.log_level)

    logger.info(f"Configuration: target={config.target}, port={config.port}")

    try:
        exporter = DockerStatsExporter(config)
    except OSError as e:
        logger.error(f"Failed to open stats input: {e}")
        sys.exit(1)

    try:
        exporter.start()
    except StatSourceError as e:
        logger.error(f"Failed to start stats source: {e}")
        logger.error("Make sure the docker CLI is installed and the daemon is reachable")
        exporter.stop()
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
        exporter.stop()
    except OSError as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        exporter.stop()
        sys.exit(1)


if __name__ == '__main__':
    main()
