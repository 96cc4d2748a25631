"""Error kinds raised (or returned in AuthResult) by the directory client."""

from __future__ import annotations

from typing import Any, Optional


class DirectoryError(Exception):
    """Base class for all directory client errors."""

    def __init__(self, message: str, result: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.result = result


class TransportError(DirectoryError):
    """Dial or TLS negotiation failed."""


class BindError(DirectoryError):
    """A bind was rejected.

    For authenticate() the partially resolved user attributes are carried in
    `attributes`.
    """

    def __init__(
        self,
        message: str,
        result: Optional[dict[str, Any]] = None,
        attributes: Optional[dict[str, str]] = None,
    ) -> None:
        super().__init__(message, result)
        self.attributes = attributes


class DirectoryLogicError(DirectoryError):
    """The directory answered, but not with exactly one entry."""


class UserNotFoundError(DirectoryLogicError):
    def __init__(self, message: str = "User does not exist") -> None:
        super().__init__(message)


class TooManyEntriesError(DirectoryLogicError):
    def __init__(self, message: str = "Too many entries returned") -> None:
        super().__init__(message)


class SearchError(DirectoryError):
    """The directory rejected or failed the search itself."""


def describe_result(result: Optional[dict[str, Any]], default: str = "unknown error") -> str:
    """Short human-readable text for an ldap3 result dict."""
    res = dict(result or {})
    desc = str(res.get("description") or "").strip()
    msg = str(res.get("message") or "").strip()
    if desc and msg and msg != desc:
        return f"{desc}: {msg}"
    return desc or msg or default
