from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .models import ClientCertificate, ClientConfig


class ClientSettings(BaseSettings):
    """LDAP client settings read from LDAP_* environment variables."""

    base: str = Field(..., alias="LDAP_BASE")
    host: str = Field(..., alias="LDAP_HOST")
    port: int = Field(389, alias="LDAP_PORT")

    use_ssl: bool = Field(False, alias="LDAP_USE_SSL")
    skip_tls: bool = Field(False, alias="LDAP_SKIP_TLS")
    insecure_skip_verify: bool = Field(False, alias="LDAP_INSECURE_SKIP_VERIFY")
    server_name: str = Field("", alias="LDAP_SERVER_NAME")
    ca_certs_file: str = Field("", alias="LDAP_CA_CERTS_FILE")
    client_cert_file: str = Field("", alias="LDAP_CLIENT_CERT_FILE")
    client_key_file: str = Field("", alias="LDAP_CLIENT_KEY_FILE")
    client_key_password: str = Field("", alias="LDAP_CLIENT_KEY_PASSWORD")
    legacy_start_tls_trust: bool = Field(False, alias="LDAP_LEGACY_START_TLS_TRUST")

    bind_dn: str = Field("", alias="LDAP_BIND_DN")
    bind_password: str = Field("", alias="LDAP_BIND_PASSWORD")

    user_filter: str = Field("(uid=%s)", alias="LDAP_USER_FILTER")
    group_filter: str = Field("(memberUid=%s)", alias="LDAP_GROUP_FILTER")
    attributes: Annotated[list[str], NoDecode] = Field(default_factory=list, alias="LDAP_ATTRIBUTES")
    page_size: int = Field(0, alias="LDAP_PAGE_SIZE")

    connect_timeout: Optional[float] = Field(None, alias="LDAP_CONNECT_TIMEOUT")
    receive_timeout: Optional[float] = Field(None, alias="LDAP_RECEIVE_TIMEOUT")

    model_config = SettingsConfigDict(populate_by_name=True)

    @field_validator("attributes", mode="before")
    @classmethod
    def _split_attributes(cls, v):
        # "givenName,sn,mail" or a JSON list
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                return json.loads(s)
            return [x.strip() for x in s.split(",") if x.strip()]
        return v

    def to_config(self) -> ClientConfig:
        certs: list[ClientCertificate] = []
        if self.client_cert_file or self.client_key_file:
            certs.append(
                ClientCertificate(
                    cert_file=self.client_cert_file,
                    key_file=self.client_key_file,
                    key_password=self.client_key_password,
                )
            )
        return ClientConfig(
            base=self.base,
            host=self.host,
            port=self.port,
            use_ssl=self.use_ssl,
            skip_tls=self.skip_tls,
            insecure_skip_verify=self.insecure_skip_verify,
            server_name=self.server_name,
            ca_certs_file=self.ca_certs_file,
            client_certificates=certs,
            legacy_start_tls_trust=self.legacy_start_tls_trust,
            bind_dn=self.bind_dn,
            bind_password=self.bind_password,
            user_filter=self.user_filter,
            group_filter=self.group_filter,
            attributes=self.attributes,
            page_size=self.page_size,
            connect_timeout=self.connect_timeout,
            receive_timeout=self.receive_timeout,
        )


@lru_cache(maxsize=1)
def get_settings() -> ClientSettings:
    return ClientSettings()
