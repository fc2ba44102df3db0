from zpool_exporter.models.pool import (
    DeviceMetrics,
    DeviceStatus,
    ErrorStatus,
    PoolMetrics,
    PoolStatusDescription,
    ScanStatus,
)

__all__ = [
    "DeviceMetrics",
    "DeviceStatus",
    "ErrorStatus",
    "PoolMetrics",
    "PoolStatusDescription",
    "ScanStatus",
]
