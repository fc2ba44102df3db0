"""
Numeric encodings published for each status enum.

Keep the values stable, for continuity in prometheus history. Larger is
worse; gaps leave room for new variants.
"""

from enum import IntEnum


class StatusValue(IntEnum):
    """Base for the value enums; member names mirror the parsed enum."""

    @classmethod
    def summarize(cls) -> str:
        """Comma-separated "Variant = value" pairs, in declaration order."""
        return ", ".join(f"{member.label} = {member.value}" for member in cls)

    @property
    def label(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))

    @classmethod
    def from_source(cls, source) -> "StatusValue":
        """Value for a parsed variant; `None` maps to UNKNOWN_MISSING."""
        if source is None:
            return cls(0)
        return cls[source.name]


class DeviceStatusValue(StatusValue):
    UNKNOWN_MISSING = 0
    UNRECOGNIZED = 1
    # healthy
    ONLINE = 10
    # misc
    OFFLINE = 25
    SPLIT = 26
    # errors (order by increasing severity)
    DEGRADED = 50
    FAULTED = 60
    SUSPENDED = 70
    REMOVED = 80
    UNAVAIL = 100


class PoolStatusDescriptionValue(StatusValue):
    UNKNOWN_MISSING = 0
    UNRECOGNIZED = 1
    # normal
    FEATURES_AVAILABLE = 5
    SUFFICIENT_REPLICAS_FOR_MISSING = 10
    DEVICE_REMOVED = 15
    # errors
    DATA_CORRUPTION = 50


class ScanStatusValue(StatusValue):
    UNKNOWN_MISSING = 0
    UNRECOGNIZED = 1
    # healthy
    SCRUB_REPAIRED = 10
    RESILVERED = 15
    # misc
    SCRUB_IN_PROGRESS = 30


class ErrorStatusValue(StatusValue):
    UNKNOWN_MISSING = 0
    UNRECOGNIZED = 1
    # healthy
    OK = 10
    # errors
    DATA_ERRORS = 50

