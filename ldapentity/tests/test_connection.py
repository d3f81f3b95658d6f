# mypy: disable-error-code="attr-defined"
# type: ignore
"""
Test suite for DirectoryConnection using python-ldap-faker.

python-ldap-faker stands in for the directory server, so these tests exercise
the real protocol calls: searches, reads, adds, modifies and binds.
"""

import unittest

import django
import ldap
import pytest
from django.conf import settings
from ldap_faker.unittest import LDAPFakerMixin

from ldapentity.audit import MemoryChangeSink
from ldapentity.connection import DirectoryConnection, connections
from ldapentity.entries import ModOp, Modification
from ldapentity.exceptions import (
    ConflictError,
    InvalidIdentifierError,
    NotUniqueError,
)
from ldapentity.identity import LdapGroup, LdapUser

# Configure Django settings before any model is defined
if not settings.configured:
    settings.configure(
        USE_TZ=True,
        LDAP_SERVERS={
            "default": {
                "url": "ldap://localhost:389",
                "user": "cn=admin,dc=example,dc=com",
                "password": "admin",
                "basedn": "dc=example,dc=com",
                "use_starttls": False,
                "tls_verify": "never",
                "log_changes": True,
            },
            "untracked": {
                "url": "ldap://localhost:389",
                "user": "cn=admin,dc=example,dc=com",
                "password": "admin",
                "basedn": "dc=example,dc=com",
                "use_starttls": False,
                "tls_verify": "never",
            },
        },
        LDAP_CHANGE_SINK={"BACKEND": "ldapentity.audit.MemoryChangeSink"},
    )
    django.setup()


ADMIN_DN = "cn=admin,dc=example,dc=com"
ALICE_DN = "cn=alice,ou=people,dc=example,dc=com"
BOB_DN = "cn=bob,ou=people,dc=example,dc=com"
STAFF_DN = "cn=staff,ou=groups,dc=example,dc=com"


def user(name, verified=True):
    return (
        f"cn={name},ou=people,dc=example,dc=com",
        {
            "cn": [name.encode()],
            "uid": [name.encode()],
            "mail": [f"{name}@example.com".encode()],
            "emailVerified": [b"TRUE" if verified else b"FALSE"],
            "userPassword": [b"password"],
            "objectClass": [b"top", b"inetOrgPerson", b"vcpUser"],
        },
    )


DIRECTORY = [
    (
        ADMIN_DN,
        {
            "cn": [b"admin"],
            "userPassword": [b"admin"],
            "objectClass": [b"simpleSecurityObject", b"organizationalRole", b"top"],
        },
    ),
    (
        "ou=people,dc=example,dc=com",
        {"ou": [b"people"], "objectClass": [b"top", b"organizationalUnit"]},
    ),
    (
        "ou=groups,dc=example,dc=com",
        {"ou": [b"groups"], "objectClass": [b"top", b"organizationalUnit"]},
    ),
    user("alice"),
    user("bob", verified=False),
    user("carol"),
    (
        STAFF_DN,
        {
            "cn": [b"staff"],
            "displayName": [b"Staff"],
            "member": [ALICE_DN.encode(), BOB_DN.encode()],
            "objectClass": [b"top", b"groupOfNames", b"vcpGroup"],
        },
    ),
]


class DirectoryTestCase(LDAPFakerMixin, unittest.TestCase):
    ldap_modules = ["ldapentity"]

    server = "default"

    def setUp(self):
        super().setUp()
        self.server_factory.default.raw_objects.clear()
        self.server_factory.default.objects.clear()
        for dn, attrs in DIRECTORY:
            self.server_factory.default.register_object((dn, attrs))
        self.sink = MemoryChangeSink()
        self.conn = DirectoryConnection(self.server, sink=self.sink)

    def tearDown(self):
        self.conn.close()
        connections.close_all()
        super().tearDown()


class TestConnect(DirectoryTestCase):
    def test_lazy_connect(self):
        assert not self.conn.is_connected
        self.conn.search(LdapUser)
        assert self.conn.is_connected

    def test_binds_once(self):
        first = self.conn.connection
        self.conn.search(LdapUser)
        self.conn.read(LdapUser, ALICE_DN)
        assert self.conn.connection is first

    def test_close(self):
        self.conn.search(LdapUser)
        self.conn.close()
        assert not self.conn.is_connected
        assert len(self.conn.search(LdapUser)) == 3

    def test_context_manager(self):
        with DirectoryConnection("default", sink=self.sink) as conn:
            conn.search(LdapUser)
            assert conn.is_connected
        assert not conn.is_connected

    def test_explicit_config(self):
        conn = DirectoryConnection(
            {
                "hostname": "localhost",
                "port": 389,
                "user": ADMIN_DN,
                "password": "admin",
                "basedn": "dc=example,dc=com",
                "use_starttls": False,
            }
        )
        assert conn.config["url"] == "ldap://localhost:389"
        assert len(conn.search(LdapUser)) == 3
        conn.close()

    def test_registry(self):
        assert connections["default"] is connections["default"]
        assert connections["default"] is not connections["untracked"]
        assert "default" in connections
        connections.close_all()
        assert "default" not in connections


class TestCheckCredentials(DirectoryTestCase):
    def test_valid(self):
        assert self.conn.check_credentials(ALICE_DN, "password") is True

    def test_invalid(self):
        assert self.conn.check_credentials(ALICE_DN, "wrong") is False

    def test_empty_password(self):
        assert self.conn.check_credentials(ALICE_DN, "") is False

    def test_primary_connection_untouched(self):
        primary = self.conn.connection
        self.conn.check_credentials(ALICE_DN, "password")
        assert self.conn.connection is primary
        assert self.conn.bind_dn == ADMIN_DN


class TestSearch(DirectoryTestCase):
    def test_search_all(self):
        users = self.conn.search(LdapUser)
        assert sorted(u.id for u in users) == ["alice", "bob", "carol"]
        assert all(isinstance(u, LdapUser) for u in users)

    def test_search_filter(self):
        users = self.conn.search(LdapUser, filterstr="(uid=alice)")
        assert len(users) == 1
        alice = users[0]
        assert alice.dn == ALICE_DN
        assert alice.mail == "alice@example.com"
        assert alice.emailVerified is True
        assert alice.origin is not None

    def test_search_objectclass_constraint(self):
        groups = self.conn.search(LdapGroup)
        assert [g.id for g in groups] == ["staff"]
        assert groups[0].member == [ALICE_DN, BOB_DN]

    def test_search_basedn(self):
        users = self.conn.search(LdapUser, basedn="ou=groups,dc=example,dc=com")
        assert users == []

    def test_search_scope(self):
        users = self.conn.search(
            LdapUser, basedn="dc=example,dc=com", scope=ldap.SCOPE_ONELEVEL
        )
        assert users == []

    def test_search_missing_base(self):
        assert self.conn.search(LdapUser, basedn="ou=nowhere,dc=example,dc=com") == []

    def test_search_first_none(self):
        assert self.conn.search_first(LdapUser, filterstr="(uid=nobody)") is None

    def test_search_first_one(self):
        bob = self.conn.search_first(LdapUser, filterstr="(uid=bob)", expect_unique=True)
        assert bob.dn == BOB_DN
        assert bob.emailVerified is False

    def test_search_first_not_unique(self):
        with pytest.raises(NotUniqueError) as excinfo:
            self.conn.search_first(LdapUser, filterstr="(mail=*)", expect_unique=True)
        assert excinfo.value.count == 3

    def test_search_first_many_allowed(self):
        assert self.conn.search_first(LdapUser, filterstr="(mail=*)") is not None

    def test_dispatch(self):
        future = self.conn.dispatch("search", LdapUser, filterstr="(uid=carol)")
        users = future.result(timeout=10)
        assert [u.id for u in users] == ["carol"]


class TestRead(DirectoryTestCase):
    def test_read(self):
        alice = self.conn.read(LdapUser, ALICE_DN)
        assert alice.id == "alice"
        assert alice.uid == "alice"
        assert alice.objectclasses == ["top", "inetOrgPerson", "vcpUser"]

    def test_read_missing(self):
        assert self.conn.read(LdapUser, "cn=nobody,ou=people,dc=example,dc=com") is None

    def test_read_invalid_dn(self):
        with pytest.raises(InvalidIdentifierError):
            self.conn.read(LdapUser, "not a dn")

    def test_read_safe_invalid_dn(self):
        assert self.conn.read_safe(LdapUser, "not a dn") is None

    def test_read_safe(self):
        assert self.conn.read_safe(LdapUser, ALICE_DN).id == "alice"


class TestAdd(DirectoryTestCase):
    def test_add(self):
        dave = LdapUser(
            id="dave",
            dn="cn=dave,ou=people,dc=example,dc=com",
            uid="dave",
            mail="dave@example.com",
        )
        result = self.conn.add(dave)
        assert result is dave
        assert dave.origin is not None
        assert dave.objectclasses == ["inetOrgPerson", "vcpUser"]
        again = self.conn.read(LdapUser, dave.dn)
        assert again.uid == "dave"
        assert again.mail == "dave@example.com"
        assert again.emailVerified is False

    def test_add_then_update(self):
        dave = LdapUser(id="dave", dn="cn=dave,ou=people,dc=example,dc=com", uid="dave")
        self.conn.add(dave)
        dave.mail = "dave@example.com"
        assert dave.get_modifications() == [
            Modification(ModOp.ADD, "mail", ("dave@example.com",))
        ]
        assert self.conn.update(dave) is True

    def test_add_audit(self):
        dave = LdapUser(id="dave", dn="cn=dave,ou=people,dc=example,dc=com", uid="dave")
        self.conn.add(dave)
        assert [c.property for c in self.sink.entries] == [
            "objectClass",
            "cn",
            "uid",
            "emailVerified",
        ]
        assert all(c.operation == "add" for c in self.sink.entries)
        assert all(c.actor == ADMIN_DN for c in self.sink.entries)

    def test_add_audit_actor(self):
        dave = LdapUser(id="dave", dn="cn=dave,ou=people,dc=example,dc=com", uid="dave")
        self.conn.add(dave, actor=ALICE_DN)
        assert {c.actor for c in self.sink.entries} == {ALICE_DN}

    def test_add_conflict(self):
        with pytest.raises(ConflictError):
            self.conn.add(LdapUser(id="alice", dn=ALICE_DN, uid="alice"))
        assert self.sink.entries == []

    def test_add_without_dn(self):
        with pytest.raises(InvalidIdentifierError):
            self.conn.add(LdapUser(id="erin", uid="erin"))


class TestUpdate(DirectoryTestCase):
    def test_update(self):
        alice = self.conn.read(LdapUser, ALICE_DN)
        alice.mail = "alice@example.org"
        alice.emailVerified = False
        assert self.conn.update(alice) is True
        again = self.conn.read(LdapUser, ALICE_DN)
        assert again.mail == "alice@example.org"
        assert again.emailVerified is False

    def test_update_refreshes_snapshot(self):
        alice = self.conn.read(LdapUser, ALICE_DN)
        alice.mail = "alice@example.org"
        self.conn.update(alice)
        assert alice.get_modifications() == []
        assert alice.origin.get("mail") == ("alice@example.org",)

    def test_update_audit(self):
        alice = self.conn.read(LdapUser, ALICE_DN)
        alice.mail = "alice@example.org"
        self.conn.update(alice, actor=ALICE_DN)
        assert len(self.sink.entries) == 1
        change = self.sink.entries[0]
        assert change.dn == ALICE_DN
        assert change.property == "mail"
        assert change.operation == "replace"
        assert change.new_value == "alice@example.org"
        assert change.objectclass == "top,inetOrgPerson,vcpUser"
        assert change.actor == ALICE_DN

    def test_update_no_changes(self):
        alice = self.conn.read(LdapUser, ALICE_DN)
        assert self.conn.update(alice) is True
        assert self.sink.entries == []

    def test_update_list(self):
        staff = self.conn.read(LdapGroup, STAFF_DN)
        carol_dn = "cn=carol,ou=people,dc=example,dc=com"
        staff.member = [BOB_DN, carol_dn]
        assert self.conn.update(staff) is True
        again = self.conn.read(LdapGroup, STAFF_DN)
        assert sorted(again.member) == sorted([BOB_DN, carol_dn])
        assert [(c.operation, c.new_value) for c in self.sink.entries] == [
            ("add", carol_dn),
            ("delete", ALICE_DN),
        ]

    def test_update_delete_attribute(self):
        staff = self.conn.read(LdapGroup, STAFF_DN)
        staff.displayName = None
        assert self.conn.update(staff) is True
        again = self.conn.read(LdapGroup, STAFF_DN)
        assert again.displayName is None
        assert again.display_name == "staff"

    def test_update_unread_record(self):
        assert self.conn.update(LdapUser(id="alice", dn=ALICE_DN)) is False

    def test_modify(self):
        ok = self.conn.modify(
            LdapUser,
            BOB_DN,
            [Modification(ModOp.REPLACE, "emailVerified", ("TRUE",))],
        )
        assert ok is True
        assert self.conn.read(LdapUser, BOB_DN).emailVerified is True
        assert self.sink.entries[0].property == "emailVerified"

    def test_modify_empty(self):
        assert self.conn.modify(LdapUser, BOB_DN, []) is True
        assert not self.conn.is_connected

    def test_modify_missing_entry(self):
        ok = self.conn.modify(
            LdapUser,
            "cn=nobody,ou=people,dc=example,dc=com",
            [Modification(ModOp.REPLACE, "mail", ("x@example.com",))],
        )
        assert ok is False
        assert self.sink.entries == []


class TestUntracked(DirectoryTestCase):
    server = "untracked"

    def test_no_audit(self):
        alice = self.conn.read(LdapUser, ALICE_DN)
        alice.mail = "alice@example.org"
        assert self.conn.update(alice) is True
        self.conn.add(LdapUser(id="dave", dn="cn=dave,ou=people,dc=example,dc=com", uid="dave"))
        assert self.sink.entries == []

    def test_snapshot_refreshed_without_reread(self):
        alice = self.conn.read(LdapUser, ALICE_DN)
        alice.mail = "alice@example.org"
        self.conn.update(alice)
        assert alice.get_modifications() == []


class TestManager(DirectoryTestCase):
    def test_filter(self):
        users = LdapUser.objects.filter(uid="alice")
        assert [u.dn for u in users] == [ALICE_DN]

    def test_filter_with_filterstr(self):
        users = LdapUser.objects.filter("(emailVerified=TRUE)", mail__iendswith="example.com")
        assert sorted(u.id for u in users) == ["alice", "carol"]

    def test_get(self):
        assert LdapUser.objects.get(ALICE_DN).uid == "alice"

    def test_get_missing(self):
        with pytest.raises(LdapUser.DoesNotExist):
            LdapUser.objects.get("cn=nobody,ou=people,dc=example,dc=com")

    def test_create(self):
        dave = LdapUser.objects.using(self.conn).create(
            id="dave", dn="cn=dave,ou=people,dc=example,dc=com", uid="dave"
        )
        assert dave.origin is not None
        assert self.conn.read(LdapUser, dave.dn).uid == "dave"
        assert self.sink.entries

    def test_using(self):
        manager = LdapUser.objects.using(self.conn)
        assert manager.connection is self.conn
        assert manager.model is LdapUser
        assert manager.search_first(filterstr="(uid=bob)").dn == BOB_DN

    def test_default_connection(self):
        assert LdapUser.objects.connection is connections["default"]
