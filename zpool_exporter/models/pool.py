"""
Pydantic models and status enums for `zpool status` metrics.

`PoolMetrics` fields hold:
- `None` if the entry is not present in the output, or
- an `UNRECOGNIZED` variant if the entry is present but not a known value.

Novel ZFS states appear from time to time; the status enums map any unknown
text to `UNRECOGNIZED` (and log it) so that metrics keep flowing.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

DIAGNOSTICS_LOGGER = "zpool_exporter.diagnostics"


def _report_unrecognized(category: str, raw: str, diagnostics: Optional[logging.Logger]) -> None:
    (diagnostics or logging.getLogger(DIAGNOSTICS_LOGGER)).warning(
        "Unrecognized %s: %r", category, raw
    )


class DeviceStatus(str, Enum):
    """Pool or vdev state, e.g. ONLINE, DEGRADED."""
    UNRECOGNIZED = "Unrecognized"
    ONLINE = "Online"
    OFFLINE = "Offline"
    SPLIT = "Split"
    DEGRADED = "Degraded"
    FAULTED = "Faulted"
    SUSPENDED = "Suspended"  # pool only
    REMOVED = "Removed"
    UNAVAIL = "Unavail"

    @classmethod
    def parse(cls, raw: str, diagnostics: Optional[logging.Logger] = None) -> "DeviceStatus":
        # <https://github.com/openzfs/zfs/blob/master/cmd/zpool/zpool_main.c>
        status = _DEVICE_STATUS_TOKENS.get(raw)
        if status is None:
            _report_unrecognized("DeviceStatus", raw, diagnostics)
            return cls.UNRECOGNIZED
        return status


_DEVICE_STATUS_TOKENS = {
    "ONLINE": DeviceStatus.ONLINE,
    "OFFLINE": DeviceStatus.OFFLINE,
    "SPLIT": DeviceStatus.SPLIT,
    "DEGRADED": DeviceStatus.DEGRADED,
    "FAULTED": DeviceStatus.FAULTED,
    "SUSPENDED": DeviceStatus.SUSPENDED,
    "REMOVED": DeviceStatus.REMOVED,
    "UNAVAIL": DeviceStatus.UNAVAIL,
}


# Continuation lines are joined with "\n" by the parser, so the wrapped
# narratives keep the line breaks zpool prints.
_SUFFICIENT_REPLICAS = (
    "One or more devices could not be used because the label is missing or\n"
    "invalid.  Sufficient replicas exist for the pool to continue\n"
    "functioning in a degraded state"
)
_DATA_CORRUPTION = (
    "One or more devices has experienced an error resulting in data\n"
    "corruption.  Applications may be affected"
)
_FEATURES_AVAILABLE = (
    "Some supported and requested features are not enabled on the pool.\n"
    "The pool can still be used, but some features are unavailable.",
    "Some supported features are not enabled on the pool. The pool can\n"
    "still be used, but some features are unavailable.",
)
_DEVICE_REMOVED = (
    "One or more devices has been removed by the administrator.\n"
    "Sufficient replicas exist for the pool to continue functioning in a\n"
    "degraded state."
)


class PoolStatusDescription(str, Enum):
    """Classification of the free-form `status:` narrative."""
    UNRECOGNIZED = "Unrecognized"
    FEATURES_AVAILABLE = "FeaturesAvailable"
    SUFFICIENT_REPLICAS_FOR_MISSING = "SufficientReplicasForMissing"
    DEVICE_REMOVED = "DeviceRemoved"
    DATA_CORRUPTION = "DataCorruption"

    @classmethod
    def parse(cls, raw: str, diagnostics: Optional[logging.Logger] = None) -> "PoolStatusDescription":
        if raw.startswith(_SUFFICIENT_REPLICAS):
            return cls.SUFFICIENT_REPLICAS_FOR_MISSING
        if raw.startswith(_DATA_CORRUPTION):
            return cls.DATA_CORRUPTION
        if raw.startswith(_FEATURES_AVAILABLE):
            return cls.FEATURES_AVAILABLE
        if raw.startswith(_DEVICE_REMOVED):
            return cls.DEVICE_REMOVED
        _report_unrecognized("PoolStatusDescription", raw, diagnostics)
        return cls.UNRECOGNIZED


class ScanStatus(str, Enum):
    """What the last scan did; numeric progress details are ignored."""
    UNRECOGNIZED = "Unrecognized"
    SCRUB_REPAIRED = "ScrubRepaired"
    RESILVERED = "Resilvered"
    SCRUB_IN_PROGRESS = "ScrubInProgress"

    @classmethod
    def parse(cls, raw: str, diagnostics: Optional[logging.Logger] = None) -> "ScanStatus":
        if raw.startswith("scrub repaired"):
            return cls.SCRUB_REPAIRED
        if raw.startswith("resilvered"):
            return cls.RESILVERED
        if raw.startswith("scrub in progress"):
            return cls.SCRUB_IN_PROGRESS
        _report_unrecognized("ScanStatus", raw, diagnostics)
        return cls.UNRECOGNIZED


class ErrorStatus(str, Enum):
    """Summary from the `errors:` line."""
    UNRECOGNIZED = "Unrecognized"
    OK = "Ok"
    DATA_ERRORS = "DataErrors"

    @classmethod
    def parse(cls, raw: str, diagnostics: Optional[logging.Logger] = None) -> "ErrorStatus":
        if raw.startswith("No known data errors"):
            return cls.OK
        # e.g. "3 data errors, use '-v' for a list"
        _first_word, _, remainder = raw.partition(" ")
        if remainder.startswith("data errors"):
            return cls.DATA_ERRORS
        _report_unrecognized("ErrorStatus", raw, diagnostics)
        return cls.UNRECOGNIZED


class DeviceMetrics(BaseModel):
    """One row of the devices table."""
    depth: int = Field(ge=0)  # 0 for the pool root
    name: str
    state: DeviceStatus
    errors_read: int = Field(ge=0)
    errors_write: int = Field(ge=0)
    errors_checksum: int = Field(ge=0)


class PoolMetrics(BaseModel):
    """Everything reported for one pool."""
    name: str
    state: Optional[DeviceStatus] = None
    pool_status: Optional[PoolStatusDescription] = None
    scan_status: Optional[Tuple[ScanStatus, datetime]] = None
    devices: List[DeviceMetrics] = []
    error: Optional[ErrorStatus] = None
