"""ldap3 adapter: the wire-protocol primitives the client is built on.

Each method maps one protocol step onto ldap3 and turns ldap3 failures into
the client's error kinds:

    dial / dial_tls / start_tls  -> TransportError
    bind                         -> BindError
    search                       -> SearchError
"""

from __future__ import annotations

import logging
import ssl
from typing import Any, Optional

from ldap3 import NONE, SIMPLE, SYNC, Connection, Server, Tls
from ldap3.core.exceptions import LDAPException
from ldap3.core.results import RESULT_SUCCESS
from ldap3.utils.ciDict import CaseInsensitiveDict

from .errors import BindError, SearchError, TransportError, describe_result
from .models import DirectoryEntry, SearchRequest, TLSConfig

log = logging.getLogger(__name__)


def _first_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        if not value:
            return ""
        value = value[0]
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class Ldap3Transport:
    def __init__(
        self,
        client_strategy: str = SYNC,
        connect_timeout: Optional[float] = None,
        receive_timeout: Optional[float] = None,
    ) -> None:
        self.client_strategy = client_strategy
        self.connect_timeout = connect_timeout
        self.receive_timeout = receive_timeout

    @staticmethod
    def build_tls(cfg: TLSConfig) -> Tls:
        tls_kwargs: dict[str, Any] = {
            "validate": ssl.CERT_NONE if cfg.insecure_skip_verify else ssl.CERT_REQUIRED,
        }
        if cfg.server_name:
            tls_kwargs["sni"] = cfg.server_name
            if not cfg.insecure_skip_verify:
                tls_kwargs["valid_names"] = [cfg.server_name]
        # Custom CA only matters when verification is enabled.
        if cfg.ca_certs_file and not cfg.insecure_skip_verify:
            tls_kwargs["ca_certs_file"] = cfg.ca_certs_file
        cert = cfg.client_certificate
        if cert is not None:
            tls_kwargs["local_certificate_file"] = cert.cert_file
            tls_kwargs["local_private_key_file"] = cert.key_file
            if cert.key_password:
                tls_kwargs["local_private_key_password"] = cert.key_password
        return Tls(**tls_kwargs)

    def _server(self, host: str, port: int, use_ssl: bool, tls: Optional[Tls]) -> Server:
        return Server(
            host=host,
            port=port,
            use_ssl=use_ssl,
            get_info=NONE,
            tls=tls,
            connect_timeout=self.connect_timeout,
        )

    def _open(self, server: Server) -> Connection:
        conn = Connection(
            server,
            auto_bind=False,
            client_strategy=self.client_strategy,
            raise_exceptions=False,
            receive_timeout=self.receive_timeout,
        )
        try:
            conn.open()
        except LDAPException as e:
            raise TransportError(f"cannot connect to {server.host}:{server.port}: {e}") from e
        return conn

    def dial(self, host: str, port: int) -> Connection:
        log.debug("dial ldap://%s:%s", host, port)
        return self._open(self._server(host, port, False, None))

    def dial_tls(self, host: str, port: int, tls: TLSConfig) -> Connection:
        log.debug("dial ldaps://%s:%s (verify=%s)", host, port, not tls.insecure_skip_verify)
        try:
            ldap_tls = self.build_tls(tls)
        except LDAPException as e:
            raise TransportError(f"invalid TLS configuration: {e}") from e
        return self._open(self._server(host, port, True, ldap_tls))

    def start_tls(self, conn: Connection, tls: TLSConfig) -> None:
        log.debug("StartTLS (verify=%s)", not tls.insecure_skip_verify)
        # ldap3 negotiates StartTLS with the Tls object of the server.
        try:
            conn.server.tls = self.build_tls(tls)
            ok = conn.start_tls(read_server_info=False)
        except LDAPException as e:
            raise TransportError(f"StartTLS failed: {e}") from e
        if not ok:
            raise TransportError(f"StartTLS failed: {describe_result(conn.result)}", conn.result)

    def bind(self, conn: Connection, dn: str, password: str) -> None:
        log.debug("bind as %s", dn)
        try:
            ok = conn.rebind(user=dn, password=password, authentication=SIMPLE, read_server_info=False)
        except LDAPException as e:
            raise BindError(f"bind as {dn} failed: {e}") from e
        if not ok:
            res = dict(conn.result or {})
            raise BindError(f"bind as {dn} failed: {describe_result(res)}", res)

    def search(self, conn: Connection, request: SearchRequest) -> list[DirectoryEntry]:
        log.debug("search base=%s filter=%s attrs=%s", request.base, request.filter, request.attributes)
        try:
            conn.search(
                search_base=request.base,
                search_filter=request.filter,
                search_scope=request.scope,
                dereference_aliases=request.dereference_aliases,
                attributes=list(request.attributes),
                size_limit=request.size_limit,
                time_limit=request.time_limit,
                types_only=request.types_only,
                controls=request.controls,
            )
        except LDAPException as e:
            raise SearchError(f"search {request.filter} failed: {e}") from e

        # search() returns False for an empty result too, so check the result code.
        res = dict(conn.result or {})
        if res.get("result") != RESULT_SUCCESS:
            raise SearchError(f"search {request.filter} failed: {describe_result(res)}", res)

        entries: list[DirectoryEntry] = []
        for item in conn.response or []:
            if item.get("type") != "searchResEntry":
                continue
            attrs = CaseInsensitiveDict()
            for name, value in (item.get("attributes") or {}).items():
                attrs[name] = _first_value(value)
            entries.append(DirectoryEntry(dn=str(item.get("dn") or ""), attributes=attrs))
        return entries

    def close(self, conn: Connection) -> None:
        log.debug("close connection")
        conn.unbind()
