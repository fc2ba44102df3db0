"""
Exceptions raised while producing a metrics snapshot.

Every error carries a `kind` so callers (and tests) can tell failures apart
without matching on message text. Nested failures are chained with
`raise ... from`, and `error_chain()` walks that chain for display.
"""

from enum import Enum
from typing import List, Optional, Sequence


class ZpoolExporterError(Exception):
    """Base exception for zpool-status-exporter"""

    kind: Enum

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


# =========================================================================
# zpool status parsing
# =========================================================================

class ParseErrorKind(str, Enum):
    HEADER_LINE = "header_line"
    DEVICE_LINE = "device_line"
    HEADER_BEFORE_POOL = "header_before_pool"
    NEEDS_ZFS_DEVICE_MOUNTS = "needs_zfs_device_mounts"
    UNKNOWN_HEADER = "unknown_header"
    INVALID_DEVICE_TABLE_LABELS = "invalid_device_table_labels"
    MISSING_DEVICE_TABLE_LABELS = "missing_device_table_labels"
    MISSING_BLANK_FOR_DEVICES = "missing_blank_for_devices"


class ZpoolParseError(ZpoolExporterError):
    """Line of `zpool status` output that does not match the expected format"""

    DESCRIPTIONS = {
        ParseErrorKind.HEADER_LINE: "unexpected metrics header",
        ParseErrorKind.DEVICE_LINE: "unexpected device metrics",
        ParseErrorKind.HEADER_BEFORE_POOL: "unexpected header before pool label",
        ParseErrorKind.NEEDS_ZFS_DEVICE_MOUNTS: "zpool requires access to /dev/zfs and /proc/self/mounts",
        ParseErrorKind.UNKNOWN_HEADER: "unknown header",
        ParseErrorKind.INVALID_DEVICE_TABLE_LABELS: "invalid device table labels",
        ParseErrorKind.MISSING_DEVICE_TABLE_LABELS: "missing device table labels",
        ParseErrorKind.MISSING_BLANK_FOR_DEVICES: "expect blank line before devices",
    }

    def __init__(
        self,
        kind: ParseErrorKind,
        line_number: int,
        line: str,
        label: Optional[str] = None,
    ):
        self.kind = kind
        self.line_number = line_number
        self.line = line
        self.label = label
        description = self.DESCRIPTIONS[kind]
        if kind == ParseErrorKind.HEADER_BEFORE_POOL and label is not None:
            description = f"unexpected header {label!r} before pool label"
        super().__init__(f"{description} on zpool-status output line {line_number}: {line!r}")

    @property
    def detail(self) -> Optional[ZpoolExporterError]:
        """The header or device error this failure wraps, if any."""
        cause = self.__cause__
        return cause if isinstance(cause, ZpoolExporterError) else None


class HeaderErrorKind(str, Enum):
    DUPLICATE_ENTRY = "duplicate_entry"
    SCAN_CONTENT = "scan_content"
    EXPECTED_EMPTY = "expected_empty"
    UNKNOWN_LABEL = "unknown_label"


class HeaderLineError(ZpoolExporterError):
    """Labeled header entry that cannot be stored on the pool"""

    def __init__(
        self,
        kind: HeaderErrorKind,
        label: str,
        content: str,
        previous: Optional[str] = None,
    ):
        self.kind = kind
        self.label = label
        self.content = content
        self.previous = previous
        if kind == HeaderErrorKind.DUPLICATE_ENTRY:
            message = f"duplicate {label}: {previous!r} and {content!r}"
        elif kind == HeaderErrorKind.SCAN_CONTENT:
            message = f"invalid {label} content {content!r}"
        elif kind == HeaderErrorKind.EXPECTED_EMPTY:
            message = f"expected empty line for {label}, found {content!r}"
        else:
            message = f"unknown label {label!r} with content {content!r}"
        super().__init__(message)


class ScanErrorKind(str, Enum):
    MISSING_TIMESTAMP_SEPARATOR = "missing_timestamp_separator"
    INVALID_TIMESTAMP = "invalid_timestamp"


class ScanContentError(ZpoolExporterError):
    """`scan:` content without a parseable timestamp"""

    def __init__(
        self,
        kind: ScanErrorKind,
        separators: Sequence[str] = (),
        timestamp: Optional[str] = None,
    ):
        self.kind = kind
        self.timestamp = timestamp
        if kind == ScanErrorKind.MISSING_TIMESTAMP_SEPARATOR:
            message = f"expected timestamp separator token (one of {list(separators)!r})"
        else:
            message = f"invalid timestamp {timestamp!r}"
        super().__init__(message)


class DeviceErrorKind(str, Enum):
    MISSING_LEADING_WHITESPACE = "missing_leading_whitespace"
    INVALID_LEADING_WHITESPACE = "invalid_leading_whitespace"
    MISSING_NAME = "missing_name"
    MISSING_STATE = "missing_state"
    MISSING_READ_COUNT = "missing_read_count"
    MISSING_WRITE_COUNT = "missing_write_count"
    MISSING_CHECKSUM_COUNT = "missing_checksum_count"
    INVALID_COUNT = "invalid_count"


class DeviceLineError(ZpoolExporterError):
    """Malformed row in the devices table"""

    DESCRIPTIONS = {
        DeviceErrorKind.MISSING_LEADING_WHITESPACE: "expected leading table whitespace",
        DeviceErrorKind.INVALID_LEADING_WHITESPACE: "invalid leading whitespace in table",
        DeviceErrorKind.MISSING_NAME: "expected device name",
        DeviceErrorKind.MISSING_STATE: "expected device state",
        DeviceErrorKind.MISSING_READ_COUNT: "expected read error count",
        DeviceErrorKind.MISSING_WRITE_COUNT: "expected write error count",
        DeviceErrorKind.MISSING_CHECKSUM_COUNT: "expected checksum error count",
    }

    def __init__(
        self,
        kind: DeviceErrorKind,
        device_name: Optional[str] = None,
        cell: Optional[str] = None,
    ):
        self.kind = kind
        self.device_name = device_name
        self.cell = cell
        if kind == DeviceErrorKind.INVALID_COUNT:
            description = f"invalid count {cell!r}"
        else:
            description = self.DESCRIPTIONS[kind]
        if device_name is not None:
            description = f"{description} for device {device_name!r}"
        super().__init__(description)


# =========================================================================
# zpool command execution
# =========================================================================

class CommandErrorKind(str, Enum):
    SPAWN = "spawn"
    TIMEOUT = "timeout"
    EXIT_STATUS = "exit_status"
    NON_UTF8 = "non_utf8"
    EMPTY_OUTPUT = "empty_output"


class ZpoolCommandError(ZpoolExporterError):
    """The `zpool` command could not produce usable output"""

    def __init__(
        self,
        kind: CommandErrorKind,
        command: str,
        args: Sequence[str],
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
        timeout: Optional[float] = None,
    ):
        self.kind = kind
        self.command = command
        self.command_args = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        described = f"command {command!r} (args {self.command_args!r})"
        if kind == CommandErrorKind.SPAWN:
            message = f"failed to start {described}"
        elif kind == CommandErrorKind.TIMEOUT:
            message = f"{described} timed out after {timeout} seconds"
        elif kind == CommandErrorKind.EXIT_STATUS:
            message = (
                f"{described} failed with exit code {returncode}, "
                f"stdout: {stdout!r}, stderr: {stderr!r}"
            )
        elif kind == CommandErrorKind.NON_UTF8:
            message = f"{described} produced non-UTF-8 output"
        else:
            message = f"empty output from {described}"
        super().__init__(message)


class AuthFileErrorKind(str, Enum):
    IO = "io"
    NO_ENTRIES = "no_entries"


class AuthFileError(ZpoolExporterError):
    """Basic-auth keys file that cannot be used"""

    def __init__(self, kind: AuthFileErrorKind, path: str):
        self.kind = kind
        self.path = path
        description = "failed to read" if kind == AuthFileErrorKind.IO else "no entries in"
        super().__init__(f"{description} file {path}")


class AuthHeaderErrorKind(str, Enum):
    MISSING_BASIC = "missing_basic"
    BASE64 = "base64"
    UTF8 = "utf8"


class AuthHeaderError(ZpoolExporterError):
    """Authorization header present but not a valid Basic credential"""

    DESCRIPTIONS = {
        AuthHeaderErrorKind.MISSING_BASIC: "missing basic-authentication prefix",
        AuthHeaderErrorKind.BASE64: "invalid base64",
        AuthHeaderErrorKind.UTF8: "non-UTF8 string",
    }

    def __init__(self, kind: AuthHeaderErrorKind, auth_value: str):
        self.kind = kind
        self.auth_value = auth_value
        super().__init__(f"{self.DESCRIPTIONS[kind]} in authorization header value: {auth_value}")


# =========================================================================
# Display helpers
# =========================================================================

def error_chain(exc: BaseException) -> List[str]:
    """Return the message of `exc` followed by each chained cause."""
    messages = []
    current: Optional[BaseException] = exc
    while current is not None:
        messages.append(str(current))
        current = current.__cause__
    return messages


def format_error_body(exc: BaseException) -> str:
    """Render an error as a comment-only exposition body."""
    lines = ["# ERROR:"]
    for message in error_chain(exc):
        for part in message.splitlines() or [""]:
            lines.append(f"# {part}")
    return "\n".join(lines) + "\n"
