"""LDAP directory client.

Authenticates users with search-then-bind, lists a user's groups and
enumerates all users or groups under a base DN.

Public API:
    - ClientConfig, ClientCertificate
    - LDAPClient
    - AuthResult, DirectoryEntry
    - ClientSettings, get_settings
    - setup_logging
    - error classes
"""

from .client import LDAPClient
from .env_settings import ClientSettings, get_settings
from .errors import (
    BindError,
    DirectoryError,
    DirectoryLogicError,
    SearchError,
    TooManyEntriesError,
    TransportError,
    UserNotFoundError,
)
from .log_config import setup_logging
from .models import AuthResult, ClientCertificate, ClientConfig, DirectoryEntry

__all__ = [
    "AuthResult",
    "BindError",
    "ClientCertificate",
    "ClientConfig",
    "ClientSettings",
    "DirectoryEntry",
    "DirectoryError",
    "DirectoryLogicError",
    "LDAPClient",
    "SearchError",
    "TooManyEntriesError",
    "TransportError",
    "UserNotFoundError",
    "get_settings",
    "setup_logging",
]
