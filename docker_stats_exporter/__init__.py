"""
Docker Stats Exporter

Follows the output of ``docker stats``, normalizes the human readable
CPU/memory/network/block I/O strings into numbers and republishes them either
as a Prometheus scrape endpoint or as points written to InfluxDB.
"""

__version__ = "1.0.0"
