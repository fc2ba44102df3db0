"""
Prometheus text exposition of parsed pool metrics.

Metric names, label sets and the numeric value of each status are part of
the published interface: keep them stable so dashboards and alert rules
survive upgrades.
"""

import sys
import time
from datetime import datetime, timezone
from typing import Callable, List, NamedTuple, Optional, Type

from zpool_exporter.models.pool import DeviceMetrics, PoolMetrics
from zpool_exporter.models.values import (
    DeviceStatusValue,
    ErrorStatusValue,
    PoolStatusDescriptionValue,
    ScanStatusValue,
    StatusValue,
)

PREFIX = "zpool"
METRIC_TYPE = "gauge"
SECONDS_PER_HOUR = 60.0 * 60.0


class Metric(NamedTuple):
    name: str
    help: str
    values: Optional[Type[StatusValue]] = None

    @property
    def full_name(self) -> str:
        return f"{PREFIX}_{self.name}"

    def header_lines(self) -> List[str]:
        help_text = self.help
        if self.values is not None:
            help_text = f"{help_text}: {self.values.summarize()}"
        return [
            f"# HELP {self.full_name} {help_text}",
            f"# TYPE {self.full_name} {METRIC_TYPE}",
        ]


POOL_STATE = Metric("pool_state", "Pool state", DeviceStatusValue)
POOL_STATUS_DESC = Metric("pool_status_desc", "Pool status description", PoolStatusDescriptionValue)
SCAN_STATE = Metric("scan_state", "Scan status", ScanStatusValue)
SCAN_AGE = Metric("scan_age", "Scan age in hours")
ERROR_STATE = Metric("error_state", "Error status", ErrorStatusValue)

DEV_STATE = Metric("dev_state", "Device state", DeviceStatusValue)
DEV_ERRORS_READ = Metric("dev_errors_read", "Read error count")
DEV_ERRORS_WRITE = Metric("dev_errors_write", "Write error count")
DEV_ERRORS_CHECKSUM = Metric("dev_errors_checksum", "Checksum error count")

LOOKUP = Metric("lookup", "Total duration of the lookup in seconds")

POOL_METRICS = (POOL_STATE, POOL_STATUS_DESC, SCAN_STATE, SCAN_AGE, ERROR_STATE)
DEVICE_METRICS = (DEV_STATE, DEV_ERRORS_READ, DEV_ERRORS_WRITE, DEV_ERRORS_CHECKSUM)


def escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def format_value(value: float) -> str:
    """Integers print without a decimal point, anything else with 6 decimals."""
    if abs(value - int(value)) < sys.float_info.epsilon:
        return f"{value:.0f}"
    return format_duration(value)


def format_duration(value: float) -> str:
    """Durations always carry 6 decimals."""
    return f"{value:.6f}"


class DeviceTreeName:
    """Slash-joined path of vdev names below the pool root."""

    def __init__(self):
        self.parts: List[str] = []

    def update(self, depth: int, name: str) -> None:
        # depth 0 is the pool itself
        if depth == 0:
            self.parts.clear()
            return
        del self.parts[depth - 1:]
        self.parts.append(name)

    def __str__(self) -> str:
        return "/".join(self.parts)


class FormatPoolMetrics:
    """Renders one snapshot; `now` must be timezone-aware."""

    def __init__(
        self,
        pools: List[PoolMetrics],
        now: datetime,
        compute_time_start: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.pools = pools
        self.now = now
        self.compute_time_start = compute_time_start
        self.clock = clock

    def render(self) -> str:
        lines: List[str] = []
        if not self.pools:
            lines.append("# no pools reported")
        else:
            for metric in POOL_METRICS:
                lines.extend(metric.header_lines())
                for pool in self.pools:
                    labels = f'pool="{escape_label_value(pool.name)}"'
                    lines.append(f"{metric.full_name}{{{labels}}} {self.pool_value(metric, pool)}")
            for metric in DEVICE_METRICS:
                lines.extend(metric.header_lines())
                for pool in self.pools:
                    lines.extend(self.device_lines(metric, pool))

        if self.compute_time_start is not None:
            lines.extend(LOOKUP.header_lines())
            elapsed = self.clock() - self.compute_time_start
            lines.append(f"{LOOKUP.full_name} {format_duration(elapsed)}")

        return "\n".join(lines) + "\n"

    def pool_value(self, metric: Metric, pool: PoolMetrics) -> str:
        if metric is SCAN_AGE:
            if pool.scan_status is None:
                return format_value(0)
            _, scan_time = pool.scan_status
            # in UTC: subtraction ignores offsets when both share one tzinfo
            age = self.now.astimezone(timezone.utc) - scan_time.astimezone(timezone.utc)
            return format_duration(age.total_seconds() / SECONDS_PER_HOUR)

        if metric is POOL_STATE:
            value = POOL_STATE.values.from_source(pool.state)
        elif metric is POOL_STATUS_DESC:
            value = POOL_STATUS_DESC.values.from_source(pool.pool_status)
        elif metric is SCAN_STATE:
            scan = pool.scan_status[0] if pool.scan_status else None
            value = SCAN_STATE.values.from_source(scan)
        else:
            value = ERROR_STATE.values.from_source(pool.error)
        return format_value(float(value))

    def device_lines(self, metric: Metric, pool: PoolMetrics) -> List[str]:
        lines = []
        pool_label = escape_label_value(pool.name)
        dev_name = DeviceTreeName()
        for device in pool.devices:
            dev_name.update(device.depth, device.name)
            labels = f'pool="{pool_label}",dev="{escape_label_value(str(dev_name))}"'
            lines.append(f"{metric.full_name}{{{labels}}} {self.device_value(metric, device)}")
        return lines

    @staticmethod
    def device_value(metric: Metric, device: DeviceMetrics) -> int:
        if metric is DEV_STATE:
            return int(DEV_STATE.values.from_source(device.state))
        if metric is DEV_ERRORS_READ:
            return device.errors_read
        if metric is DEV_ERRORS_WRITE:
            return device.errors_write
        return device.errors_checksum


def format_metrics(
    pools: List[PoolMetrics],
    now: datetime,
    compute_time_start: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> str:
    """Returns the prometheus-style output for `pools`."""
    return FormatPoolMetrics(pools, now, compute_time_start, clock).render()
