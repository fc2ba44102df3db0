"""
zpool command wrapper service.

Executes `zpool status -p` and returns its stdout for the parser.
"""

import subprocess
import logging
import time
from typing import List, Optional, Tuple

from zpool_exporter.config import settings
from zpool_exporter.errors import CommandErrorKind, ZpoolCommandError

logger = logging.getLogger(__name__)

STATUS_ARGS = ["status", "-p"]

POLL_INITIAL_SECONDS = 0.001
POLL_MAX_SECONDS = 1.0


class ZpoolCommand:
    """Service for executing the zpool binary."""

    def __init__(
        self,
        binary: Optional[str] = None,
        fallback_binary: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.binary = binary or settings.zpool_binary
        self.fallback_binary = fallback_binary or settings.zpool_fallback_binary
        self.timeout = timeout if timeout is not None else settings.command_timeout_seconds

    def _spawn(self, args: List[str]) -> Tuple[str, subprocess.Popen]:
        """Start the preferred binary, falling back only if it cannot be spawned."""
        try:
            return self.binary, self._popen([self.binary] + args)
        except OSError as e:
            logger.debug(f"Could not start {self.binary}: {e}, trying {self.fallback_binary}")
        try:
            return self.fallback_binary, self._popen([self.fallback_binary] + args)
        except OSError as e:
            raise ZpoolCommandError(CommandErrorKind.SPAWN, self.fallback_binary, args) from e

    @staticmethod
    def _popen(cmd: List[str]) -> subprocess.Popen:
        logger.debug(f"Running command: {' '.join(cmd)}")
        return subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

    def _wait(self, command: str, args: List[str], process: subprocess.Popen) -> Tuple[bytes, bytes]:
        """Poll with geometrically increasing sleeps until exit or timeout."""
        deadline = time.monotonic() + self.timeout
        delay = POLL_INITIAL_SECONDS
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                process.kill()
                process.communicate()
                logger.error(f"Command timed out: {command} {' '.join(args)}")
                raise ZpoolCommandError(CommandErrorKind.TIMEOUT, command, args, timeout=self.timeout)
            try:
                return process.communicate(timeout=min(delay, remaining))
            except subprocess.TimeoutExpired:
                delay = min(delay * 2, POLL_MAX_SECONDS)

    def run(self, args: List[str]) -> str:
        """Execute zpool with `args` and return its decoded stdout."""
        command, process = self._spawn(args)
        stdout_bytes, stderr_bytes = self._wait(command, args, process)
        stderr = stderr_bytes.decode("utf-8", errors="replace")

        if process.returncode != 0:
            stdout = stdout_bytes.decode("utf-8", errors="replace")
            logger.error(f"Command failed: {stderr}")
            raise ZpoolCommandError(
                CommandErrorKind.EXIT_STATUS,
                command,
                args,
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr,
            )

        try:
            stdout = stdout_bytes.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ZpoolCommandError(CommandErrorKind.NON_UTF8, command, args) from e

        if not stdout.strip():
            raise ZpoolCommandError(CommandErrorKind.EMPTY_OUTPUT, command, args, stderr=stderr)
        return stdout

    def run_status(self) -> str:
        """Output of `zpool status -p` (exact integer counters)."""
        return self.run(STATUS_ARGS)
