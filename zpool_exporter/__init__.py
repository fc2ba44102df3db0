"""
zpool-status-exporter - Prometheus exporter for ZFS pool health.

Provides:
- Parsing of `zpool status -p` output
- Pool, scan, error and device gauges on /metrics
- Optional HTTP Basic allow-list
"""

__version__ = "0.1.0"
__author__ = "zpool-status-exporter contributors"
