"""
Latest known metrics per container.

The ingestion thread is the only writer; the HTTP scrape path (or nothing, for
the push target) reads. Records are immutable, so replacing the entry for a
container under the lock is all it takes for a reader never to see a record
mixing two samples.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedMetrics:
    """Numeric usage figures for one container at one sampling tick."""
    cpu_percent: float = 0.0
    mem_usage_bytes: int = 0
    mem_limit_bytes: int = 0
    net_in_bytes: int = 0
    net_out_bytes: int = 0
    block_read_bytes: int = 0
    block_write_bytes: int = 0

    def as_fields(self) -> Dict[str, float]:
        """Field names and values as written to InfluxDB."""
        return {
            'cpu_percent': self.cpu_percent,
            'mem_usage': self.mem_usage_bytes,
            'mem_limit': self.mem_limit_bytes,
            'net_input': self.net_in_bytes,
            'net_output': self.net_out_bytes,
            'block_read': self.block_read_bytes,
            'block_write': self.block_write_bytes,
        }


class MetricsStore:
    """
    Thread-safe map from container name to its latest ``NormalizedMetrics``.

    Entries are created on first sight and replaced by every later sample for
    the same name. They are kept until the process exits unless
    ``stale_after`` is set, in which case ``evict_stale`` drops containers that
    have not reported for that many seconds.
    """

    def __init__(self, stale_after: Optional[float] = None, clock=time.monotonic):
        """
        Initialize the store.

        Args:
            stale_after: Seconds without an update after which an entry is
                evicted by ``evict_stale``. None keeps entries forever.
            clock: Monotonic time source, replaceable in tests
        """
        self._entries: Dict[str, Tuple[NormalizedMetrics, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.stale_after = stale_after

    def update(self, name: str, metrics: NormalizedMetrics) -> None:
        """Insert or replace the record for a container."""
        seen_at = self._clock()
        with self._lock:
            self._entries[name] = (metrics, seen_at)

    def get(self, name: str) -> Optional[NormalizedMetrics]:
        with self._lock:
            entry = self._entries.get(name)
        return entry[0] if entry else None

    def snapshot(self) -> Dict[str, NormalizedMetrics]:
        """Copy of every current record, keyed by container name."""
        with self._lock:
            return {name: entry[0] for name, entry in self._entries.items()}

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def evict_stale(self) -> List[str]:
        """
        Remove containers not updated within ``stale_after`` seconds.

        Returns:
            Names of the evicted containers (empty when eviction is disabled)
        """
        if self.stale_after is None:
            return []

        cutoff = self._clock() - self.stale_after
        with self._lock:
            stale = [name for name, (_, seen_at) in self._entries.items() if seen_at < cutoff]
            for name in stale:
                del self._entries[name]

        if stale:
            logger.info(f"Evicted {len(stale)} stale containers: {', '.join(sorted(stale))}")
        return stale

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._entries
