"""Shared fixtures: a recording fake transport and an in-memory ldap3 directory."""

from __future__ import annotations

import pytest
from ldap3 import MOCK_SYNC, NONE, Connection, Server

from dirclient import ClientConfig, LDAPClient
from dirclient.errors import BindError
from dirclient.models import DirectoryEntry, SearchRequest, TLSConfig
from dirclient.transport import Ldap3Transport

BASE = "dc=example,dc=com"
READER_DN = "cn=reader,ou=system,dc=example,dc=com"
READER_PW = "readerpass"
ALICE_DN = "uid=alice,ou=people,dc=example,dc=com"
BOB_DN = "uid=bob,ou=people,dc=example,dc=com"


class FakeConn:
    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.tls: TLSConfig | None = None
        self.closed = False


class FakeTransport:
    """Records every protocol call; searches are answered by filter string."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.results: dict[str, list[DirectoryEntry]] = {}
        self.passwords: dict[str, str] = {}
        self.fail: dict[str, Exception] = {}
        self.connections: list[FakeConn] = []

    def _check(self, op: str) -> None:
        exc = self.fail.get(op)
        if exc is not None:
            raise exc

    def dial(self, host, port):
        self.calls.append(("dial", host, port))
        self._check("dial")
        conn = FakeConn("plain")
        self.connections.append(conn)
        return conn

    def dial_tls(self, host, port, tls):
        self.calls.append(("dial_tls", host, port, tls))
        self._check("dial_tls")
        conn = FakeConn("tls")
        conn.tls = tls
        self.connections.append(conn)
        return conn

    def start_tls(self, conn, tls):
        self.calls.append(("start_tls", tls))
        self._check("start_tls")
        conn.tls = tls

    def bind(self, conn, dn, password):
        self.calls.append(("bind", dn))
        self._check("bind")
        if self.passwords.get(dn) != password:
            raise BindError(f"bind as {dn} failed: invalidCredentials")

    def search(self, conn, request: SearchRequest):
        self.calls.append(("search", request))
        self._check("search")
        return list(self.results.get(request.filter, []))

    def close(self, conn):
        self.calls.append(("close",))
        conn.closed = True

    def ops(self) -> list[str]:
        return [c[0] for c in self.calls]


class MockDirectoryTransport(Ldap3Transport):
    """ldap3 transport talking to a MOCK_SYNC server that keeps its entries between connections."""

    def __init__(self, server: Server) -> None:
        super().__init__(client_strategy=MOCK_SYNC)
        self.server = server
        self.dials = 0

    def _server(self, host, port, use_ssl, tls):
        self.dials += 1
        return self.server


def entry(dn: str, **attrs: str) -> DirectoryEntry:
    e = DirectoryEntry(dn=dn)
    for k, v in attrs.items():
        e.attributes[k] = v
    return e


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def base_config() -> ClientConfig:
    return ClientConfig(
        base=BASE,
        host="ldap.example.com",
        port=389,
        skip_tls=True,
        user_filter="(uid=%s)",
        group_filter="(member=%s)",
        attributes=["givenName", "sn", "mail", "uid"],
    )


@pytest.fixture
def service_config(base_config: ClientConfig) -> ClientConfig:
    return base_config.model_copy(update={"bind_dn": READER_DN, "bind_password": READER_PW})


@pytest.fixture
def mock_server() -> Server:
    server = Server("ldap.example.com", get_info=NONE)
    seed = Connection(server, client_strategy=MOCK_SYNC)
    add = seed.strategy.add_entry

    add(BASE, {"objectClass": ["top", "domain"], "dc": "example"})
    add(READER_DN, {"objectClass": ["top", "person"], "cn": "reader", "userPassword": READER_PW})
    add(ALICE_DN, {
        "objectClass": ["top", "person", "user"],
        "objectCategory": "person",
        "uid": "alice",
        "givenName": "Alice",
        "sn": "Smith",
        "mail": "alice@example.com",
        "userPassword": "alicepass",
    })
    add(BOB_DN, {
        "objectClass": ["top", "person", "user"],
        "objectCategory": "person",
        "uid": "bob",
        "givenName": "Bob",
        "sn": "Jones",
        "userPassword": "bobpass",
    })
    add("cn=twin1,ou=people,dc=example,dc=com", {
        "objectClass": ["top", "person", "user"],
        "objectCategory": "person",
        "uid": "twin",
        "userPassword": "twinpass",
    })
    add("cn=twin2,ou=people,dc=example,dc=com", {
        "objectClass": ["top", "person", "user"],
        "objectCategory": "person",
        "uid": "twin",
        "userPassword": "twinpass",
    })
    add("cn=admins,ou=groups,dc=example,dc=com", {
        "objectClass": ["top", "groupOfNames"],
        "objectCategory": "group",
        "cn": "admins",
        "member": [ALICE_DN],
    })
    add("cn=staff,ou=groups,dc=example,dc=com", {
        "objectClass": ["top", "groupOfNames"],
        "objectCategory": "group",
        "cn": "staff",
        "member": [ALICE_DN, BOB_DN],
    })
    return server


@pytest.fixture
def mock_transport(mock_server: Server) -> MockDirectoryTransport:
    return MockDirectoryTransport(mock_server)


@pytest.fixture
def directory_client(service_config: ClientConfig, mock_transport: MockDirectoryTransport) -> LDAPClient:
    return LDAPClient(service_config, transport=mock_transport)
