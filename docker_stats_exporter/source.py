"""
Line sources feeding the ingestion loop.

``DockerStatsSource`` follows ``docker stats`` in streaming mode, which prints
one JSON object per running container on every refresh. ``LineSource`` wraps
any iterable of lines (an open file, stdin, a list in tests).
"""

import logging
import re
import subprocess
from typing import Iterable, Iterator, Optional, Sequence

from docker_stats_exporter.errors import StatSourceError

logger = logging.getLogger(__name__)

# CSI sequences such as "\x1b[2J\x1b[H" printed before every refresh
ANSI_ESCAPE = re.compile(r'\x1b\[[0-9;?]*[A-Za-z]')


def clean_line(line: str) -> str:
    """Strip terminal control sequences and the line terminator."""
    return ANSI_ESCAPE.sub('', line).strip()


class LineSource:
    """Iterates over pre-recorded stats lines."""

    def __init__(self, lines: Iterable[str]):
        self._lines = lines

    def __iter__(self) -> Iterator[str]:
        for line in self._lines:
            yield clean_line(line)

    def close(self):
        close = getattr(self._lines, 'close', None)
        if close is not None:
            close()


class DockerStatsSource:
    """Streams ``docker stats --format '{{json .}}'`` from a child process."""

    FORMAT = '{{json .}}'

    def __init__(self, docker_bin: str = 'docker', extra_args: Sequence[str] = ()):
        """
        Initialize the source. The child process is started lazily.

        Args:
            docker_bin: Docker CLI executable
            extra_args: Additional ``docker stats`` arguments (container names,
                ``--all``)
        """
        self.docker_bin = docker_bin
        self.extra_args = list(extra_args)
        self.process: Optional[subprocess.Popen] = None

    @property
    def command(self):
        return [self.docker_bin, 'stats', '--format', self.FORMAT] + self.extra_args

    def start(self) -> subprocess.Popen:
        """
        Spawn ``docker stats``.

        Raises:
            StatSourceError: If the docker CLI cannot be executed
        """
        if self.process is not None:
            return self.process

        try:
            self.process = subprocess.Popen(
                self.command,
                stdout=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding='utf-8',
                errors='replace',
            )
        except OSError as e:
            logger.error(f"Failed to spawn {' '.join(self.command)}: {e}")
            raise StatSourceError(f"Failed to spawn docker stats: {e}") from e

        logger.info(f"Started docker stats (pid {self.process.pid})")
        return self.process

    def __iter__(self) -> Iterator[str]:
        process = self.start()
        for line in process.stdout:
            yield clean_line(line)

        returncode = process.poll()
        logger.info(f"docker stats output ended (exit status {returncode})")

    def close(self, timeout: float = 5):
        """Terminate the child process, killing it if it does not exit in time."""
        process = self.process
        if process is None:
            return

        if process.poll() is None:
            logger.info(f"Stopping docker stats (pid {process.pid})")
            process.terminate()
            try:
                process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("docker stats did not exit after SIGTERM, killing it")
                process.kill()
                process.wait()

        if process.stdout is not None:
            process.stdout.close()
