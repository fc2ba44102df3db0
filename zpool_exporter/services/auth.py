"""
HTTP Basic authentication allow-list.

The keys file holds one `user:pass` entry per line. Requests are accepted
when the decoded Basic credential matches an entry exactly.
"""

import base64
import binascii
import bisect
import logging
from enum import Enum
from typing import Iterable, List, Optional

from zpool_exporter.errors import (
    AuthFileError,
    AuthFileErrorKind,
    AuthHeaderError,
    AuthHeaderErrorKind,
)

logger = logging.getLogger(__name__)

BASIC_PREFIX = "Basic "
MAX_DEBUG_LEN = 80


class AuthResult(str, Enum):
    ACCEPT = "accept"
    DENY = "deny"
    MISSING_AUTH_HEADER = "missing_auth_header"
    NONE_CONFIGURED = "none_configured"


def debug_user_string(value: str) -> str:
    """Quote a user-supplied value for logs, truncated to a maximum length."""
    if len(value) > MAX_DEBUG_LEN:
        return f'"{value[:MAX_DEBUG_LEN]}"... (len {len(value)})'
    return f'"{value}"'


class AuthRules:
    """Sorted allow-list of `user:pass` entries."""

    def __init__(self, entries: List[str]):
        self.entries_sorted = sorted(entries)

    @classmethod
    def from_entries(cls, entries: Iterable[str]) -> Optional["AuthRules"]:
        """Returns `None` when no entries are given."""
        entries = list(entries)
        return cls(entries) if entries else None

    @classmethod
    def from_file(cls, path: str) -> "AuthRules":
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise AuthFileError(AuthFileErrorKind.IO, path) from e
        rules = cls.from_entries(line for line in content.splitlines() if line)
        if rules is None:
            raise AuthFileError(AuthFileErrorKind.NO_ENTRIES, path)
        return rules

    def log_start_message(self) -> None:
        count = len(self.entries_sorted)
        plural = "entry" if count == 1 else "entries"
        logger.info(f"Allow-list configured with {count} {plural}")
        logger.warning(
            "HTTP transmits authentication in plaintext, use a HTTPS-proxy on the local machine"
        )

    def contains(self, credential: str) -> bool:
        index = bisect.bisect_left(self.entries_sorted, credential)
        return index < len(self.entries_sorted) and self.entries_sorted[index] == credential

    def query(self, authorization: Optional[str]) -> AuthResult:
        """
        Evaluate an Authorization header value against the rules.

        Raises:
            AuthHeaderError: the header is present but is not a valid
                Basic credential.
        """
        if authorization is None:
            return AuthResult.MISSING_AUTH_HEADER
        credential = parse_authorization_value(authorization)
        if self.contains(credential):
            return AuthResult.ACCEPT
        logger.info(f"denied access for {debug_user_string(credential)}")
        return AuthResult.DENY


def query_rules(rules: Optional[AuthRules], authorization: Optional[str]) -> AuthResult:
    if rules is None:
        return AuthResult.NONE_CONFIGURED
    return rules.query(authorization)


def parse_authorization_value(auth_value: str) -> str:
    shown = debug_user_string(auth_value)
    if not auth_value.startswith(BASIC_PREFIX):
        raise AuthHeaderError(AuthHeaderErrorKind.MISSING_BASIC, shown)
    try:
        auth_bytes = base64.b64decode(auth_value[len(BASIC_PREFIX):], validate=True)
    except binascii.Error as e:
        raise AuthHeaderError(AuthHeaderErrorKind.BASE64, shown) from e
    try:
        return auth_bytes.decode("utf-8")
    except UnicodeDecodeError as e:
        raise AuthHeaderError(AuthHeaderErrorKind.UTF8, shown) from e
