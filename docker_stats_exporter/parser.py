"""
Parsing of ``docker stats --format '{{json .}}'`` output.

Docker prints usage figures as human readable strings, for example::

    {"Name": "web", "CPUPerc": "5.00%", "MemUsage": "10MiB / 100MiB",
     "NetIO": "1kB / 2kB", "BlockIO": "0B / 0B"}

The helpers in this module turn those strings into plain numbers. They never
raise on bad numeric text: an unparseable value becomes zero so a single odd
field does not cost the whole sample. Only a line that cannot be decoded into
a sample at all raises ``SampleParseError``.
"""

import json
import math
from dataclasses import dataclass
from typing import Tuple

from docker_stats_exporter.errors import SampleParseError
from docker_stats_exporter.store import NormalizedMetrics


# Longest suffixes first: every other unit also ends with "B"
UNIT_FACTORS = (
    ('GiB', 1024 ** 3),
    ('MiB', 1024 ** 2),
    ('kB', 1024),
    ('B', 1),
)

# JSON key -> RawSample attribute
SAMPLE_FIELDS = {
    'Name': 'name',
    'CPUPerc': 'cpu_perc',
    'MemUsage': 'mem_usage',
    'NetIO': 'net_io',
    'BlockIO': 'block_io',
}


@dataclass(frozen=True)
class RawSample:
    """One decoded stats line, before normalization."""
    name: str
    cpu_perc: str
    mem_usage: str
    net_io: str
    block_io: str


def _parse_number(text: str) -> float:
    """Parse a decimal number that may use a comma as decimal separator."""
    text = text.strip()
    if '_' in text:
        raise ValueError(f"Digit separators are not accepted: {text!r}")
    value = float(text.replace(',', '.'))
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"Non-finite value: {text!r}")
    return value


def parse_percent(value: str) -> float:
    """
    Parse a percentage such as ``"45.30%"`` or ``"45,30%"``.

    Returns:
        The percentage as a float, 0.0 when the text is not a number.
    """
    try:
        percent = _parse_number(value.strip().rstrip('%'))
    except (ValueError, AttributeError):
        return 0.0
    return percent if percent > 0 else 0.0


def parse_byte_size(value: str) -> int:
    """
    Parse a size such as ``"4.2MiB"`` into a number of bytes.

    The unit suffixes recognised are GiB, MiB, kB and B, tried in that order.
    Anything else, including Docker's ``"--"`` placeholder, yields 0.

    Args:
        value: Size string as printed by docker

    Returns:
        Size in bytes, truncated to an integer
    """
    try:
        value = value.strip()
    except AttributeError:
        return 0

    for unit, factor in UNIT_FACTORS:
        if value.endswith(unit):
            try:
                number = _parse_number(value[:-len(unit)])
            except ValueError:
                return 0
            size = number * factor
            if number <= 0 or math.isinf(size):
                return 0
            return int(size)
    return 0


def parse_composite_pair(value: str) -> Tuple[int, int]:
    """
    Parse a ``"used / limit"`` or ``"in / out"`` string into two byte counts.

    A missing side counts as 0.
    """
    if not isinstance(value, str):
        return 0, 0
    parts = [part.strip() for part in value.split('/')]
    first = parse_byte_size(parts[0]) if len(parts) > 0 else 0
    second = parse_byte_size(parts[1]) if len(parts) > 1 else 0
    return first, second


def parse_raw_sample(line: str) -> RawSample:
    """
    Decode one JSON stats line.

    Raises:
        SampleParseError: If the line is not a JSON object carrying the five
            string fields Name, CPUPerc, MemUsage, NetIO and BlockIO
    """
    try:
        document = json.loads(line)
    except (TypeError, ValueError) as e:
        raise SampleParseError(f"Invalid JSON: {e}", line) from e

    if not isinstance(document, dict):
        raise SampleParseError("Stats line is not a JSON object", line)

    values = {}
    for key, attribute in SAMPLE_FIELDS.items():
        field_value = document.get(key)
        if not isinstance(field_value, str):
            raise SampleParseError(f"Missing or non-string field {key!r}", line)
        try:
            field_value.encode('utf-8')
        except UnicodeEncodeError as e:
            raise SampleParseError(f"Field {key!r} is not valid UTF-8: {e}", line) from e
        values[attribute] = field_value

    return RawSample(**values)


def normalize(sample: RawSample) -> NormalizedMetrics:
    """Convert a raw sample into numeric metrics."""
    mem_usage, mem_limit = parse_composite_pair(sample.mem_usage)
    net_in, net_out = parse_composite_pair(sample.net_io)
    block_read, block_write = parse_composite_pair(sample.block_io)

    return NormalizedMetrics(
        cpu_percent=parse_percent(sample.cpu_perc),
        mem_usage_bytes=mem_usage,
        mem_limit_bytes=mem_limit,
        net_in_bytes=net_in,
        net_out_bytes=net_out,
        block_read_bytes=block_read,
        block_write_bytes=block_write,
    )
