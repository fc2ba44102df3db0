"""
Application context: one metrics snapshot per call.

Each snapshot is a pure function of (zpool output, now, timezone); the
context only decides where those three come from.
"""

import logging
import time
from datetime import datetime, timezone as dt_timezone, tzinfo
from typing import Callable, Optional

from zpool_exporter.errors import ZpoolExporterError, format_error_body
from zpool_exporter.services.formatter import format_metrics
from zpool_exporter.services.parser import ZpoolStatusParser
from zpool_exporter.services.zpool import ZpoolCommand

logger = logging.getLogger(__name__)


class AppContext:
    """Timezone, clock and command source for metrics snapshots."""

    def __init__(
        self,
        timezone: Optional[tzinfo] = None,
        zpool_command: Optional[ZpoolCommand] = None,
        diagnostics: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        # None means the system local time rules, resolved per timestamp
        self.timezone = timezone
        self.zpool_command = zpool_command or ZpoolCommand()
        self.diagnostics = diagnostics
        self.clock = clock

    @classmethod
    def assume_local_is_utc(cls, **kwargs) -> "AppContext":
        """Context that reads and reports every time in UTC (for tests)."""
        return cls(timezone=dt_timezone.utc, **kwargs)

    def now(self) -> datetime:
        if self.clock is not None:
            return self.clock()
        if self.timezone is None:
            return datetime.now().astimezone()
        return datetime.now(self.timezone)

    def get_metrics_for_output(
        self,
        zpool_output: str,
        now: Optional[datetime] = None,
        compute_time_start: Optional[float] = None,
    ) -> str:
        """Parse `zpool status` output and format it as exposition text."""
        pools = ZpoolStatusParser(self.timezone, self.diagnostics).parse(zpool_output)
        return format_metrics(pools, now or self.now(), compute_time_start)

    def get_metrics_now(self, compute_time_start: Optional[float] = None) -> str:
        """Run `zpool status -p` and format the result."""
        zpool_output = self.zpool_command.run_status()
        return self.get_metrics_for_output(zpool_output, compute_time_start=compute_time_start)

    def get_metrics_body(self, compute_time_start: Optional[float] = None) -> str:
        """Like `get_metrics_now`, but failures become a `# ERROR:` comment body."""
        if compute_time_start is None:
            compute_time_start = time.monotonic()
        try:
            return self.get_metrics_now(compute_time_start)
        except ZpoolExporterError as e:
            logger.error(f"Failed to create metrics: {e}")
            return format_error_body(e)
