from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from ldap3.core.exceptions import LDAPException

from .errors import BindError, DirectoryError, TooManyEntriesError, UserNotFoundError
from .models import AuthResult, ClientConfig, DirectoryEntry, SearchRequest, TLSConfig
from .transport import Ldap3Transport
from .utils import format_filter

log = logging.getLogger(__name__)

ALL_USERS_FILTER = "(&(objectCategory=person)(objectClass=user))"
ALL_GROUPS_FILTER = "(objectCategory=group)"
GROUP_NAME_ATTRIBUTE = "cn"
DN_ATTRIBUTE = "dn"


class LDAPClient:
    """Search-then-bind directory client.

    Every query opens its own connection, binds as the service account (when
    one is configured), runs a whole-subtree search under `cfg.base` and
    closes the connection again. Calls on one instance are serialized.
    """

    def __init__(self, cfg: ClientConfig, transport: Any = None) -> None:
        self.cfg = cfg
        if transport is None:
            transport = Ldap3Transport(
                connect_timeout=cfg.connect_timeout,
                receive_timeout=cfg.receive_timeout,
            )
        self.transport = transport
        self.conn: Any = None
        self._lock = threading.RLock()

    def __enter__(self) -> "LDAPClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _tls_config(self, *, start_tls: bool = False) -> TLSConfig:
        if start_tls and self.cfg.legacy_start_tls_trust:
            return TLSConfig(insecure_skip_verify=True)
        return TLSConfig(
            insecure_skip_verify=self.cfg.insecure_skip_verify,
            server_name=self.cfg.server_name,
            ca_certs_file=self.cfg.ca_certs_file,
            client_certificate=self.cfg.client_certificate,
        )

    def connect(self) -> None:
        """Open the connection unless one is already held."""
        with self._lock:
            if self.conn is not None:
                return

            cfg = self.cfg
            if not cfg.use_ssl:
                conn = self.transport.dial(cfg.host, cfg.port)
                if not cfg.skip_tls:
                    try:
                        self.transport.start_tls(conn, self._tls_config(start_tls=True))
                    except DirectoryError:
                        self._release(conn)
                        raise
            else:
                conn = self.transport.dial_tls(cfg.host, cfg.port, self._tls_config())

            log.debug("connected to %s (ssl=%s, starttls=%s)", cfg.address, cfg.use_ssl, not (cfg.use_ssl or cfg.skip_tls))
            self.conn = conn

    def close(self) -> None:
        """Close the held connection, if any."""
        with self._lock:
            conn, self.conn = self.conn, None
            if conn is not None:
                self._release(conn)

    def _release(self, conn: Any) -> None:
        try:
            self.transport.close(conn)
        except (LDAPException, OSError):
            log.debug("error while closing connection to %s", self.cfg.address, exc_info=True)

    def _service_bind(self, conn: Any) -> None:
        if self.cfg.has_service_account:
            self.transport.bind(conn, self.cfg.bind_dn, self.cfg.bind_password)

    @contextmanager
    def session(self) -> Iterator[Any]:
        """Connected (and service-bound) connection, closed on exit."""
        with self._lock:
            self.connect()
            try:
                self._service_bind(self.conn)
                yield self.conn
            finally:
                self.close()

    def _search(self, conn: Any, flt: str, attributes: list[str]) -> list[DirectoryEntry]:
        request = SearchRequest(base=self.cfg.base, filter=flt, attributes=list(attributes))
        return self.transport.search(conn, request)

    def do_search(self, flt: str, attributes: list[str]) -> list[DirectoryEntry]:
        """Run one search on a fresh connection."""
        with self.session() as conn:
            return self._search(conn, flt, attributes)

    def _find_user(self, conn: Any, username: str, attributes: list[str]) -> DirectoryEntry:
        entries = self._search(conn, format_filter(self.cfg.user_filter, username), attributes)
        if len(entries) < 1:
            raise UserNotFoundError()
        if len(entries) > 1:
            raise TooManyEntriesError()
        return entries[0]

    def authenticate(self, username: str, password: str) -> AuthResult:
        """Verify a user's password.

        The result unpacks as (success, attributes, error). attributes is set
        once the user has been found, even if the password turns out wrong.
        """
        user: Optional[dict[str, str]] = None
        try:
            with self.session() as conn:
                entry = self._find_user(conn, username, self.cfg.attributes + [DN_ATTRIBUTE])
                user = {attr: entry.get(attr) for attr in self.cfg.attributes}

                if not password:
                    raise BindError(f"bind as {entry.dn} failed: empty password")
                # Bind as the user to verify the password.
                self.transport.bind(conn, entry.dn, password)

                # Rebind as the service account for any further queries.
                try:
                    self._service_bind(conn)
                except BindError as e:
                    e.attributes = user
                    return AuthResult(success=True, attributes=user, error=e)
        except BindError as e:
            e.attributes = user
            return AuthResult(success=False, attributes=user, error=e)
        except DirectoryError as e:
            return AuthResult(success=False, attributes=None, error=e)

        return AuthResult(success=True, attributes=user, error=None)

    def get_groups_of_user(self, username: str) -> list[str]:
        """Names (cn) of the groups the user belongs to, in server order."""
        entries = self.do_search(format_filter(self.cfg.user_filter, username), [DN_ATTRIBUTE])
        if len(entries) != 1:
            raise UserNotFoundError()

        user_dn = entries[0].dn
        groups = self.do_search(format_filter(self.cfg.group_filter, user_dn), [GROUP_NAME_ATTRIBUTE])
        return [e.get(GROUP_NAME_ATTRIBUTE) for e in groups]

    def get_all_users(self, attribute: str) -> list[str]:
        """Value of `attribute` for every user entry ("" when missing)."""
        entries = self.do_search(ALL_USERS_FILTER, [attribute])
        return [e.get(attribute) for e in entries]

    def get_all_groups(self) -> list[str]:
        entries = self.do_search(ALL_GROUPS_FILTER, [GROUP_NAME_ATTRIBUTE])
        return [e.get(GROUP_NAME_ATTRIBUTE) for e in entries]
