from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from ldap3 import DEREF_NEVER, SUBTREE
from ldap3.utils.ciDict import CaseInsensitiveDict
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import DirectoryError
from .utils import PLACEHOLDER, count_placeholders


class ClientCertificate(BaseModel):
    """Client certificate presented for mutual TLS (PEM files)."""

    model_config = ConfigDict(frozen=True)

    cert_file: str
    key_file: str
    key_password: str = Field(default="")

    @field_validator("cert_file", "key_file")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        s = (v or "").strip()
        if not s:
            raise ValueError("certificate and key file paths must not be empty")
        return s


class ClientConfig(BaseModel):
    """Connection and query settings of one LDAPClient.

    StartTLS verifies the server certificate the same way LDAPS does. Set
    legacy_start_tls_trust to accept any certificate on the upgrade.
    """

    model_config = ConfigDict(frozen=True)

    base: str
    host: str
    port: int = Field(default=389, ge=1, le=65535)

    use_ssl: bool = Field(default=False)
    skip_tls: bool = Field(default=False)
    insecure_skip_verify: bool = Field(default=False)
    server_name: str = Field(default="", max_length=255)
    ca_certs_file: str = Field(default="")
    client_certificates: list[ClientCertificate] = Field(default_factory=list)
    # StartTLS accepts any server certificate, whatever insecure_skip_verify says.
    legacy_start_tls_trust: bool = Field(default=False)

    bind_dn: str = Field(default="")
    bind_password: str = Field(default="")

    user_filter: str = Field(default="(uid=%s)")
    group_filter: str = Field(default="(memberUid=%s)")
    attributes: list[str] = Field(default_factory=list)

    # Accepted for compatibility; searches are not paged.
    page_size: int = Field(default=0, ge=0)

    connect_timeout: Optional[float] = Field(default=None, gt=0)
    receive_timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("base", "host", "server_name", "ca_certs_file", "bind_dn")
    @classmethod
    def _strip(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("host")
    @classmethod
    def _validate_host(cls, v: str) -> str:
        if not v:
            raise ValueError("host must not be empty")
        return v

    @field_validator("user_filter", "group_filter")
    @classmethod
    def _validate_filter(cls, v: str) -> str:
        s = (v or "").strip()
        n = count_placeholders(s)
        if n != 1:
            raise ValueError(f"filter template must contain exactly one {PLACEHOLDER} placeholder, found {n}")
        try:
            s % ("x",)
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid filter template {s!r}: {e}") from e
        if not (s.startswith("(") and s.endswith(")")):
            raise ValueError(f"filter template must be parenthesized: {s!r}")
        return s

    @field_validator("attributes")
    @classmethod
    def _strip_list(cls, v: list[str]) -> list[str]:
        return [(x or "").strip() for x in (v or []) if (x or "").strip()]

    @model_validator(mode="after")
    def _check_certificates(self):
        # ldap3 presents a single certificate chain per connection.
        if len(self.client_certificates) > 1:
            raise ValueError("only one client certificate is supported")
        return self

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def has_service_account(self) -> bool:
        return bool(self.bind_dn and self.bind_password)

    @property
    def client_certificate(self) -> Optional[ClientCertificate]:
        return self.client_certificates[0] if self.client_certificates else None


@dataclass(frozen=True)
class TLSConfig:
    insecure_skip_verify: bool = False
    server_name: str = ""
    ca_certs_file: str = ""
    client_certificate: Optional[ClientCertificate] = None


@dataclass(frozen=True)
class SearchRequest:
    base: str
    filter: str
    attributes: list[str]
    scope: str = SUBTREE
    dereference_aliases: str = DEREF_NEVER
    size_limit: int = 0
    time_limit: int = 0
    types_only: bool = False
    controls: Optional[list[Any]] = None


@dataclass
class DirectoryEntry:
    """One search result: DN plus the first value of each returned attribute."""

    dn: str
    attributes: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)

    def get(self, name: str) -> str:
        return str(self.attributes.get(name, "") or "")


@dataclass
class AuthResult:
    success: bool
    attributes: Optional[dict[str, str]] = None
    error: Optional[DirectoryError] = None

    def __iter__(self) -> Iterator[Any]:
        return iter((self.success, self.attributes, self.error))
