"""
Parser for `zpool status -p` output.

The output is a loose, human-formatted document: labeled header lines
(with tab-indented continuation lines), a blank line, then an indented
devices table. Errors are only raised when the input does not match this
structure, which signals a format change in zpool itself. Unknown values
within a valid structure become `UNRECOGNIZED` and are logged.
"""

import logging
from datetime import datetime, tzinfo
from enum import Enum
from typing import List, Optional, Tuple

from zpool_exporter.errors import (
    DeviceErrorKind,
    DeviceLineError,
    HeaderErrorKind,
    HeaderLineError,
    ParseErrorKind,
    ScanContentError,
    ScanErrorKind,
    ZpoolParseError,
)
from zpool_exporter.models.pool import (
    DIAGNOSTICS_LOGGER,
    DeviceMetrics,
    DeviceStatus,
    ErrorStatus,
    PoolMetrics,
    PoolStatusDescription,
    ScanStatus,
)

TIME_SEPARATORS = (" on ", " since ")

# e.g. "Sun Oct 27 15:14:51 2024"
SCAN_TIMESTAMP_FORMAT = "%a %b %d %H:%M:%S %Y"

# zpool status uses 2 spaces for each level of indentation
DEPTH_MULTIPLE = 2

NO_POOLS_MARKER = "no pools available"
NEEDS_DEVICE_MOUNTS_PREFIX = "/dev/zfs and /proc/self/mounts"
DEVICE_TABLE_LABELS_PREFIX = "\tNAME "


class ZpoolStatusSection(Enum):
    HEADER = "header"
    BLANK_BEFORE_DEVICES = "blank_before_devices"
    DEVICES = "devices"


def split_lines(text: str) -> List[str]:
    """Split on newlines only; a trailing newline does not add an empty line."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class ZpoolStatusParser:
    """Turns one `zpool status` document into a list of `PoolMetrics`."""

    def __init__(self, timezone: Optional[tzinfo] = None, diagnostics: Optional[logging.Logger] = None):
        self.timezone = timezone
        self.diagnostics = diagnostics or logging.getLogger(DIAGNOSTICS_LOGGER)

    def parse(self, zpool_output: str) -> List[PoolMetrics]:
        """
        Extract metrics from the output of `zpool status`.

        Raises:
            ZpoolParseError: a line does not match the expected format
                (e.g. header line "foobar: ...", or non-numeric error
                counters in the devices table).
        """
        pools: List[PoolMetrics] = []
        # disambiguate header lines from device rows (which may contain a colon)
        section = ZpoolStatusSection.HEADER
        lines = split_lines(zpool_output)
        index = 0
        while index < len(lines):
            raw_line = lines[index]
            line_number = index + 1

            def fail(kind: ParseErrorKind, label: Optional[str] = None) -> ZpoolParseError:
                return ZpoolParseError(kind, line_number, raw_line, label=label)

            if section == ZpoolStatusSection.HEADER:
                line = raw_line
                # continuation lines start with a tab
                while index + 1 < len(lines) and lines[index + 1].startswith("\t"):
                    line += "\n" + lines[index + 1][1:]
                    index += 1

                if ":" in line:
                    label, content = line.split(":", 1)
                    label = label.strip()
                    content = content.strip()
                    if label == "pool":
                        pools.append(PoolMetrics(name=content))
                    elif pools:
                        try:
                            next_section = self.add_header(pools[-1], label, content)
                        except HeaderLineError as err:
                            raise fail(ParseErrorKind.HEADER_LINE) from err
                        if next_section is not None:
                            section = next_section
                    else:
                        raise fail(ParseErrorKind.HEADER_BEFORE_POOL, label=label)
                elif not line.strip():
                    pass
                elif line == NO_POOLS_MARKER:
                    pass
                elif line.startswith(NEEDS_DEVICE_MOUNTS_PREFIX):
                    raise fail(ParseErrorKind.NEEDS_ZFS_DEVICE_MOUNTS)
                else:
                    raise fail(ParseErrorKind.UNKNOWN_HEADER)

            elif section == ZpoolStatusSection.BLANK_BEFORE_DEVICES:
                if raw_line.strip():
                    raise fail(ParseErrorKind.MISSING_BLANK_FOR_DEVICES)
                if index + 1 >= len(lines):
                    raise fail(ParseErrorKind.MISSING_DEVICE_TABLE_LABELS)
                if not lines[index + 1].startswith(DEVICE_TABLE_LABELS_PREFIX):
                    raise fail(ParseErrorKind.INVALID_DEVICE_TABLE_LABELS)
                # skip the labels row
                index += 1
                section = ZpoolStatusSection.DEVICES

            else:
                is_empty = not raw_line.strip()
                if is_empty or not raw_line.startswith("\t"):
                    if not is_empty:
                        self.diagnostics.warning(
                            "ignoring line interrupting devices table: %r", raw_line
                        )
                    section = ZpoolStatusSection.HEADER
                else:
                    try:
                        device = self.parse_device(raw_line)
                    except DeviceLineError as err:
                        raise fail(ParseErrorKind.DEVICE_LINE) from err
                    pools[-1].devices.append(device)

            index += 1
        return pools

    # =========================================================================
    # Header lines
    # =========================================================================

    def add_header(
        self,
        pool: PoolMetrics,
        label: str,
        content: str,
    ) -> Optional[ZpoolStatusSection]:
        """
        Store one labeled header entry on `pool`.

        Returns the next section when the label opens one (`config:`).
        """
        # NOTE: reference the openzfs source (cmd/zpool/zpool_main.c) for formatting changes
        if label == "state":
            self._set_once(pool, "state", label, content, DeviceStatus.parse(content, self.diagnostics))
        elif label == "status":
            self._set_once(
                pool, "pool_status", label, content,
                PoolStatusDescription.parse(content, self.diagnostics),
            )
        elif label == "scan":
            try:
                scan_status = self.parse_scan_content(content)
            except ScanContentError as err:
                raise HeaderLineError(HeaderErrorKind.SCAN_CONTENT, label, content) from err
            self._set_once(pool, "scan_status", label, content, scan_status)
        elif label == "config":
            # signals the blank line before the devices table
            if content:
                raise HeaderLineError(HeaderErrorKind.EXPECTED_EMPTY, label, content)
            return ZpoolStatusSection.BLANK_BEFORE_DEVICES
        elif label == "errors":
            self._set_once(pool, "error", label, content, ErrorStatus.parse(content, self.diagnostics))
        elif label in ("action", "see"):
            pass
        else:
            raise HeaderLineError(HeaderErrorKind.UNKNOWN_LABEL, label, content)
        return None

    @staticmethod
    def _set_once(pool: PoolMetrics, field: str, label: str, content: str, value) -> None:
        previous = getattr(pool, field)
        if previous is not None:
            raise HeaderLineError(
                HeaderErrorKind.DUPLICATE_ENTRY, label, content, previous=_describe(previous)
            )
        setattr(pool, field, value)

    def parse_scan_content(self, content: str) -> Tuple[ScanStatus, datetime]:
        # status is only on the first line
        content = content.split("\n", 1)[0]

        for separator in TIME_SEPARATORS:
            if separator in content:
                message, timestamp = content.split(separator, 1)
                break
        else:
            raise ScanContentError(
                ScanErrorKind.MISSING_TIMESTAMP_SEPARATOR, separators=TIME_SEPARATORS
            )

        scan_status = ScanStatus.parse(message, self.diagnostics)
        try:
            parsed = self.parse_timestamp(timestamp)
        except ValueError as err:
            raise ScanContentError(ScanErrorKind.INVALID_TIMESTAMP, timestamp=timestamp) from err
        return scan_status, parsed

    def parse_timestamp(self, timestamp: str) -> datetime:
        """
        Parse "Sun Oct 27 15:14:51 2024" as wall-clock time in the configured
        timezone, or in the system local time when none is configured.
        """
        parsed = datetime.strptime(timestamp, SCAN_TIMESTAMP_FORMAT)
        if self.timezone is None:
            # offset of that instant, not of now (DST)
            return parsed.astimezone()
        return parsed.replace(tzinfo=self.timezone)

    # =========================================================================
    # Devices table
    # =========================================================================

    def parse_device(self, line: str) -> DeviceMetrics:
        before_tab, tab, line = line.partition("\t")
        if not tab:
            raise DeviceLineError(DeviceErrorKind.MISSING_LEADING_WHITESPACE)
        if before_tab:
            raise DeviceLineError(DeviceErrorKind.INVALID_LEADING_WHITESPACE)

        unindented = line.lstrip(" ")
        depth = (len(line) - len(unindented)) // DEPTH_MULTIPLE

        # FIXME device names containing spaces are split into several cells
        cells = iter(unindented.split())
        name = next(cells, None)
        if name is None:
            raise DeviceLineError(DeviceErrorKind.MISSING_NAME)

        state = next(cells, None)
        if state is None:
            raise DeviceLineError(DeviceErrorKind.MISSING_STATE, device_name=name)

        errors_read = self._parse_count(name, next(cells, None), DeviceErrorKind.MISSING_READ_COUNT)
        errors_write = self._parse_count(name, next(cells, None), DeviceErrorKind.MISSING_WRITE_COUNT)
        errors_checksum = self._parse_count(name, next(cells, None), DeviceErrorKind.MISSING_CHECKSUM_COUNT)

        return DeviceMetrics(
            depth=depth,
            name=name,
            state=DeviceStatus.parse(state, self.diagnostics),
            errors_read=errors_read,
            errors_write=errors_write,
            errors_checksum=errors_checksum,
        )

    @staticmethod
    def _parse_count(name: str, cell: Optional[str], kind_if_missing: DeviceErrorKind) -> int:
        if cell is None:
            raise DeviceLineError(kind_if_missing, device_name=name)
        try:
            # int() alone would also take signs, underscores and non-ASCII digits
            if not (cell.isascii() and cell.isdigit()):
                raise ValueError(f"not a non-negative decimal integer: {cell!r}")
            return int(cell)
        except ValueError as err:
            raise DeviceLineError(DeviceErrorKind.INVALID_COUNT, device_name=name, cell=cell) from err


def _describe(value) -> str:
    if isinstance(value, tuple):
        status, timestamp = value
        return f"{status.value} at {timestamp.isoformat()}"
    return value.value


def parse_zpool_status(
    zpool_output: str,
    timezone: Optional[tzinfo] = None,
    diagnostics: Optional[logging.Logger] = None,
) -> List[PoolMetrics]:
    """Parse `zpool status` output in one call."""
    return ZpoolStatusParser(timezone, diagnostics).parse(zpool_output)
