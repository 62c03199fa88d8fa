"""
Startup configuration.

Command line flags take precedence over environment variables, which take
precedence over the built-in defaults.
"""

import argparse
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from docker_stats_exporter.errors import ConfigError

TARGETS = ('prometheus', 'influxdb')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

DEFAULT_TARGET = 'prometheus'
DEFAULT_PORT = 9187
DEFAULT_HOST = 'localhost'
DEFAULT_DB = 'metrics'
DEFAULT_MEASUREMENT = 'docker_stats'


@dataclass
class ExporterConfig:
    """Validated exporter settings."""
    target: str = DEFAULT_TARGET
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    db: str = DEFAULT_DB
    measurement: str = DEFAULT_MEASUREMENT
    stale_after: Optional[float] = None
    docker_bin: str = 'docker'
    input_path: Optional[str] = None
    log_level: str = 'INFO'

    def validate(self):
        """
        Raises:
            ConfigError: If a setting is out of range
        """
        if self.target not in TARGETS:
            raise ConfigError(f"unknown target {self.target!r} (choose from {', '.join(TARGETS)})")
        if not 1 <= self.port <= 65535:
            raise ConfigError(f"port must be between 1 and 65535, got {self.port}")
        if self.stale_after is not None and self.stale_after <= 0:
            raise ConfigError(f"stale age must be positive, got {self.stale_after}")
        if not self.db:
            raise ConfigError("database name must not be empty")
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"unknown log level {self.log_level!r}")
        return self


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}")
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port must be between 1 and 65535, got {port}")
    return port


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def build_parser(env: Optional[Mapping[str, str]] = None) -> argparse.ArgumentParser:
    """Argument parser whose defaults come from the environment."""
    env = os.environ if env is None else env

    parser = argparse.ArgumentParser(
        prog='docker-stats-exporter',
        description='Export docker stats to Prometheus (pull) or InfluxDB (push)'
    )
    parser.add_argument(
        '--target',
        choices=TARGETS,
        default=env.get('EXPORTER_TARGET', DEFAULT_TARGET),
        help='prometheus (default) or influxdb'
    )
    parser.add_argument(
        '-p', '--port',
        type=_port,
        default=env.get('EXPORTER_PORT', str(DEFAULT_PORT)),
        help=f'Port for HTTP (Prometheus) or InfluxDB server (default: {DEFAULT_PORT})'
    )
    parser.add_argument(
        '--host',
        default=env.get('INFLUXDB_HOST', DEFAULT_HOST),
        help=f'InfluxDB host (default: {DEFAULT_HOST})'
    )
    parser.add_argument(
        '--db',
        default=env.get('INFLUXDB_DB', DEFAULT_DB),
        help=f'InfluxDB database (default: {DEFAULT_DB})'
    )
    parser.add_argument(
        '--measurement',
        default=DEFAULT_MEASUREMENT,
        help=f'InfluxDB measurement (default: {DEFAULT_MEASUREMENT})'
    )
    parser.add_argument(
        '--stale-after',
        type=_positive_float,
        default=env.get('STALE_AFTER'),
        metavar='SECONDS',
        help='Drop containers that have not reported for SECONDS (default: keep forever)'
    )
    parser.add_argument(
        '--docker-bin',
        default=env.get('DOCKER_BIN', 'docker'),
        help='Docker CLI executable (default: docker)'
    )
    parser.add_argument(
        '--input',
        metavar='FILE',
        help="Read recorded stats lines from FILE ('-' for stdin) instead of running docker stats"
    )
    parser.add_argument(
        '--log-level',
        default=env.get('LOG_LEVEL', 'INFO'),
        choices=LOG_LEVELS,
        type=str.upper,
        help='Logging level (default: INFO)'
    )
    return parser


def parse_config(argv: Optional[Sequence[str]] = None, env: Optional[Mapping[str, str]] = None) -> ExporterConfig:
    """
    Parse command line arguments into an ``ExporterConfig``.

    Invalid flags or values print the usage message and exit with status 2.
    """
    parser = build_parser(env)
    args = parser.parse_args(argv)

    config = ExporterConfig(
        target=args.target,
        port=args.port,
        host=args.host,
        db=args.db,
        measurement=args.measurement,
        stale_after=args.stale_after,
        docker_bin=args.docker_bin,
        input_path=args.input,
        log_level=args.log_level,
    )
    try:
        return config.validate()
    except ConfigError as e:
        parser.error(str(e))
