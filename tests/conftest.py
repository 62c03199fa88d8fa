"""
Pytest configuration and shared fixtures
"""
import pytest

from docker_stats_exporter.ingest import Ingestor
from docker_stats_exporter.store import MetricsStore


WEB_LINE = (
    '{"Name":"web","CPUPerc":"5.00%","MemUsage":"10MiB / 100MiB",'
    '"NetIO":"1kB / 2kB","BlockIO":"0B / 0B"}'
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running"
    )


@pytest.fixture
def store():
    """Empty metrics store with eviction disabled"""
    return MetricsStore()


@pytest.fixture
def ingestor(store):
    """Ingestor writing to the store fixture with the no-op reporter"""
    return Ingestor(store)


@pytest.fixture
def web_line():
    """A complete docker stats line for container 'web'"""
    return WEB_LINE


def stats_line(name, cpu="0.00%", mem="0B / 0B", net="0B / 0B", block="0B / 0B"):
    """Build a docker stats JSON line."""
    return (
        f'{{"Name":"{name}","CPUPerc":"{cpu}","MemUsage":"{mem}",'
        f'"NetIO":"{net}","BlockIO":"{block}"}}'
    )


@pytest.fixture
def make_line():
    """Factory for docker stats JSON lines"""
    return stats_line
