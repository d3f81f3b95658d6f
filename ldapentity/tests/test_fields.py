# type: ignore
"""
Tests for field descriptors and the per-model schema table.
"""

import datetime
import unittest

import django
import pytest
import pytz
from django.conf import settings
from django.core.exceptions import FieldDoesNotExist, ImproperlyConfigured

from ldapentity.exceptions import MappingError
from ldapentity.fields import (
    BooleanField,
    CharField,
    CharListField,
    DateTimeField,
    IntegerField,
    ValueKind,
)
from ldapentity.managers import EntityManager
from ldapentity.models import Model

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


class Person(Model):
    uid = CharField(required=True)
    mail = CharField()
    loginCount = IntegerField()
    verified = BooleanField()
    lastLogin = DateTimeField()
    nicknames = CharListField()
    employeeNumber = CharField(editable=False)

    class Meta:
        objectclasses = ["top", "person"]
        basedn = "ou=people,dc=example,dc=com"
        rdn_attribute = "cn"
        ldap_server = "untracked"


class Employee(Person):
    department = CharField(db_column="departmentNumber")

    class Meta:
        objectclasses = ["person", "employee"]


class TestFieldKinds(unittest.TestCase):
    def test_value_kinds(self):
        opts = Person._meta
        assert opts.get_field("uid").value_kind == ValueKind.STRING
        assert opts.get_field("loginCount").value_kind == ValueKind.INTEGER
        assert opts.get_field("verified").value_kind == ValueKind.BOOLEAN
        assert opts.get_field("lastLogin").value_kind == ValueKind.TIMESTAMP
        assert opts.get_field("nicknames").value_kind == ValueKind.STRING_LIST
        assert opts.get_field("nicknames").multivalued

    def test_zero_values(self):
        opts = Person._meta
        assert opts.get_field("mail").zero_value is None
        assert opts.get_field("loginCount").zero_value is None
        assert opts.get_field("verified").zero_value is False
        assert opts.get_field("lastLogin").zero_value is None
        assert opts.get_field("nicknames").zero_value == []

    def test_integer_parse(self):
        field = Person._meta.get_field("loginCount")
        assert field.from_db_value(["42"]) == 42
        assert field.from_db_value([" 7 "]) == 7
        assert field.to_db_value(0) == ["0"]
        assert field.to_db_value(None) == []

    def test_integer_parse_failure(self):
        field = Person._meta.get_field("loginCount")
        with pytest.raises(MappingError):
            field.from_db_value(["forty-two"])

    def test_boolean_tokens(self):
        field = Person._meta.get_field("verified")
        assert field.from_db_value(["TRUE"]) is True
        assert field.from_db_value(["false"]) is False
        assert field.from_db_value([]) is False
        assert field.to_db_value(True) == ["TRUE"]
        assert field.to_db_value(False) == ["FALSE"]

    def test_boolean_parse_failure(self):
        field = Person._meta.get_field("verified")
        with pytest.raises(MappingError):
            field.from_db_value(["yes"])

    def test_datetime_round_trip(self):
        field = Person._meta.get_field("lastLogin")
        value = field.from_db_value(["20231104153000Z"])
        assert value == datetime.datetime(2023, 11, 4, 15, 30, tzinfo=pytz.utc)
        assert field.to_db_value(value) == ["20231104153000Z"]

    def test_datetime_naive_is_utc(self):
        field = Person._meta.get_field("lastLogin")
        assert field.to_db_value(datetime.datetime(2020, 1, 2, 3, 4, 5)) == [
            "20200102030405Z"
        ]

    def test_datetime_other_zone_converted(self):
        field = Person._meta.get_field("lastLogin")
        eastern = pytz.timezone("US/Eastern")
        value = eastern.localize(datetime.datetime(2020, 1, 2, 3, 4, 5))
        assert field.to_db_value(value) == ["20200102080405Z"]

    def test_datetime_microseconds_kept(self):
        field = Person._meta.get_field("lastLogin")
        value = datetime.datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=pytz.utc)
        assert field.to_db_value(value) == ["20240501123045.123456Z"]
        assert field.from_db_value(field.to_db_value(value)) == value

    def test_datetime_offsets(self):
        field = Person._meta.get_field("lastLogin")
        assert field.from_db_value(["20240501123045+0200"]) == datetime.datetime(
            2024, 5, 1, 10, 30, 45, tzinfo=pytz.utc
        )
        assert field.from_db_value(["20240501123045.5-0500"]) == datetime.datetime(
            2024, 5, 1, 17, 30, 45, 500000, tzinfo=pytz.utc
        )
        assert field.from_db_value(["20240501123045+0200"]).tzinfo is not None

    def test_datetime_parse_failure(self):
        field = Person._meta.get_field("lastLogin")
        with pytest.raises(MappingError):
            field.from_db_value(["yesterday"])

    def test_datetime_short_value(self):
        field = Person._meta.get_field("lastLogin")
        with pytest.raises(MappingError):
            field.from_db_value(["202405011230Z"])

    def test_list_field(self):
        field = Person._meta.get_field("nicknames")
        assert field.from_db_value(["a", "b"]) == ["a", "b"]
        assert field.from_db_value([]) == []
        assert field.to_db_value(["a", "", "b"]) == ["a", "b"]
        assert field.to_db_value("a\nb") == ["a", "b"]

    def test_required_absent(self):
        field = Person._meta.get_field("uid")
        with pytest.raises(MappingError):
            field.from_db_value([])

    def test_db_column(self):
        field = Employee._meta.get_field("department")
        assert field.ldap_attribute == "departmentNumber"


class TestOptions(unittest.TestCase):
    def test_field_order(self):
        names = [f.name for f in Person._meta.fields]
        assert names == [
            "uid",
            "mail",
            "loginCount",
            "verified",
            "lastLogin",
            "nicknames",
            "employeeNumber",
        ]

    def test_composed_fields_come_first(self):
        names = [f.name for f in Employee._meta.fields]
        assert names[-1] == "department"
        assert names[:-1] == [f.name for f in Person._meta.fields]

    def test_objectclasses_accumulate(self):
        assert Employee._meta.objectclasses == ("top", "person", "employee")
        assert Employee._meta.objectclass == "employee"
        assert Person._meta.objectclass == "person"

    def test_storage_settings_inherited(self):
        assert Employee._meta.basedn == "ou=people,dc=example,dc=com"
        assert Employee._meta.ldap_server == "untracked"
        assert Employee._meta.rdn_attribute == "cn"

    def test_attributes(self):
        attrs = Employee._meta.attributes
        assert attrs[0] == "objectClass"
        assert attrs[1] == "cn"
        assert "departmentNumber" in attrs

    def test_get_field_unknown(self):
        with pytest.raises(FieldDoesNotExist):
            Person._meta.get_field("nope")

    def test_manager_attached(self):
        assert isinstance(Person.objects, EntityManager)
        assert Person.objects.model is Person
        assert Employee.objects.model is Employee

    def test_invalid_meta_attribute(self):
        with pytest.raises(TypeError):

            class Bad(Model):
                name = CharField()

                class Meta:
                    ordering = ["name"]

    def test_reserved_field_name(self):
        with pytest.raises(ImproperlyConfigured):

            class Bad(Model):
                dn = CharField()

    def test_objectclass_field(self):
        with pytest.raises(ImproperlyConfigured):

            class Bad(Model):
                classes = CharListField(db_column="objectClass")

    def test_rdn_field(self):
        with pytest.raises(ImproperlyConfigured):

            class Bad(Model):
                cn = CharField()

    def test_duplicate_attribute(self):
        with pytest.raises(ImproperlyConfigured):

            class Bad(Model):
                mail = CharField()
                email = CharField(db_column="MAIL")


class TestModelInit(unittest.TestCase):
    def test_defaults(self):
        p = Person(id="alice", uid="alice")
        assert p.id == "alice"
        assert p.dn is None
        assert p.uid == "alice"
        assert p.mail is None
        assert p.verified is False
        assert p.nicknames == []
        assert p.origin is None

    def test_invalid_kwarg(self):
        with pytest.raises(TypeError):
            Person(id="alice", shoe_size=9)

    def test_list_default_not_shared(self):
        a = Person(id="a")
        b = Person(id="b")
        a.nicknames.append("x")
        assert b.nicknames == []

    def test_equality_by_dn(self):
        a = Person(id="a", dn="cn=a,ou=people,dc=example,dc=com")
        b = Person(id="a", dn="CN=a,ou=people,dc=example,dc=com")
        assert a == b
        assert hash(a) == hash(b)
        assert a != Employee(id="a", dn="cn=a,ou=people,dc=example,dc=com")
        assert Person(id="c") != Person(id="c")
