"""Exceptions raised by the Docker stats exporter."""


class ExporterError(Exception):
    """Base class for exporter errors."""
    pass


class SampleParseError(ExporterError):
    """Raised when a stats line cannot be decoded into a sample."""

    def __init__(self, message: str, line: str = ''):
        super().__init__(message)
        self.line = line


class StatSourceError(ExporterError):
    """Raised when the stats producing process cannot be started."""
    pass


class ConfigError(ExporterError):
    """Raised for invalid startup configuration values."""
    pass
