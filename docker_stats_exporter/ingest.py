"""
Ingestion loop: stats lines in, store updates and reports out.
"""

import logging
import threading
from typing import Iterable, Optional

from docker_stats_exporter.errors import SampleParseError
from docker_stats_exporter.parser import normalize, parse_raw_sample
from docker_stats_exporter.reporters import Reporter
from docker_stats_exporter.store import MetricsStore, NormalizedMetrics

logger = logging.getLogger(__name__)


class Ingestor:
    """Parses stats lines into the metrics store and forwards them to a reporter."""

    def __init__(self, store: MetricsStore, reporter: Optional[Reporter] = None):
        self.store = store
        self.reporter = reporter or Reporter()
        self.lines_total = 0
        self.samples_total = 0
        self.errors_total = 0
        self.running = False
        self.finished = threading.Event()

    def ingest(self, line: str) -> NormalizedMetrics:
        """
        Ingest one stats line.

        Raises:
            SampleParseError: If the line is not a valid stats sample. The
                store is left untouched in that case.
        """
        sample = parse_raw_sample(line)
        metrics = normalize(sample)
        self.store.update(sample.name, metrics)
        self.reporter.report(sample.name, metrics)
        return metrics

    def run(self, source: Iterable[str]) -> int:
        """
        Consume the source until it ends or fails.

        Malformed lines are dropped. Errors reading the source end the loop
        but are never raised to the caller.

        Returns:
            Number of samples ingested
        """
        logger.info("Ingestion loop started")
        self.running = True
        ingested = 0

        try:
            for line in source:
                self.lines_total += 1
                self.reporter.observe_line()
                try:
                    self.ingest(line)
                except SampleParseError as e:
                    self.errors_total += 1
                    self.reporter.observe_parse_error()
                    logger.debug(f"Dropped stats line: {e}")
                    continue

                ingested += 1
                self.samples_total += 1
                self.store.evict_stale()
            logger.info(f"Stats source ended after {self.lines_total} lines")
        except (OSError, ValueError) as e:
            logger.error(f"Error reading stats source: {e}", exc_info=True)
        finally:
            self.running = False
            self.finished.set()

        logger.info(f"Ingestion loop stopped, {ingested} samples ingested")
        return ingested

    def start_background(self, source: Iterable[str]) -> threading.Thread:
        """Run the ingestion loop in a daemon thread."""
        self.running = True
        thread = threading.Thread(target=self.run, args=(source,), name='stats-ingest', daemon=True)
        thread.start()
        logger.info("Ingestion thread started")
        return thread
