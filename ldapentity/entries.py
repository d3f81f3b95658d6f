"""
Raw directory data structures.

:py:class:`DirectoryEntry` is the decoded-to-``str`` form of what python-ldap
hands back from a search, and :py:class:`Modification` is one change we want to
send to the server in a modify request.
"""

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from ldapentity import ldap

from .exceptions import MappingError
from .typing import AddModlist, LDAPData, ModListEntry

#: The attribute holding an entry's object classes.
OBJECTCLASS = "objectClass"


def _freeze(attributes: Mapping[str, Iterable[str]]) -> Mapping[str, tuple[str, ...]]:
    return MappingProxyType({k: tuple(v) for k, v in attributes.items()})


@dataclass(frozen=True)
class DirectoryEntry:
    """
    One entry as stored in the directory: its DN plus a mapping of attribute
    name to the ordered values of that attribute.

    Instances are immutable, which is what lets a record keep the entry it was
    decoded from as its origin snapshot.

    Args:
        dn: the distinguished name of the entry
        attributes: attribute name to values

    """

    dn: str
    attributes: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _freeze(self.attributes))

    @classmethod
    def from_ldap(cls, data: LDAPData) -> "DirectoryEntry":
        """
        Build an entry from a python-ldap ``(dn, {attr: [bytes, ...]})`` tuple.

        Raises:
            MappingError: a value is not valid UTF-8

        """
        dn, attrs = data
        attributes = {}
        for name, values in attrs.items():
            try:
                attributes[name] = tuple(
                    v.decode("utf-8") if isinstance(v, bytes) else v for v in values
                )
            except UnicodeDecodeError as e:
                msg = f'Attribute "{name}" of {dn} holds a value that is not UTF-8'
                raise MappingError(msg) from e
        return cls(dn, attributes)

    def get(self, name: str) -> tuple[str, ...]:
        """
        Return the values for attribute ``name``, matching the name
        case-insensitively as LDAP does.  Absent attributes return ``()``.
        """
        if name in self.attributes:
            return self.attributes[name]
        lowered = name.lower()
        for key, values in self.attributes.items():
            if key.lower() == lowered:
                return values
        return ()

    def has(self, name: str) -> bool:
        return len(self.get(name)) > 0

    @property
    def objectclasses(self) -> list[str]:
        return list(self.get(OBJECTCLASS))

    def apply(self, modifications: Iterable["Modification"]) -> "DirectoryEntry":
        """
        Return a copy of this entry with ``modifications`` applied, the way the
        server would apply them.
        """
        attributes = {k: list(v) for k, v in self.attributes.items()}
        keys = {k.lower(): k for k in attributes}
        for mod in modifications:
            key = keys.setdefault(mod.attribute.lower(), mod.attribute)
            current = attributes.get(key, [])
            if mod.op == ModOp.REPLACE:
                current = list(mod.values)
            elif mod.op == ModOp.ADD:
                current = current + [v for v in mod.values if v not in current]
            elif mod.values:
                current = [v for v in current if v not in mod.values]
            else:
                current = []
            attributes[key] = current
        return DirectoryEntry(self.dn, {k: v for k, v in attributes.items() if v})

    def to_modlist(self) -> AddModlist:
        """
        Return this entry as the modlist python-ldap's ``add_s`` expects.
        Attributes without values are left out.
        """
        return [
            (name, [v.encode("utf-8") for v in values])
            for name, values in self.attributes.items()
            if values
        ]


class ModOp(enum.IntEnum):
    """The three kinds of LDAP modification, valued as python-ldap's constants."""

    ADD = ldap.MOD_ADD  # type: ignore[attr-defined]
    DELETE = ldap.MOD_DELETE  # type: ignore[attr-defined]
    REPLACE = ldap.MOD_REPLACE  # type: ignore[attr-defined]


@dataclass(frozen=True)
class Modification:
    """
    One modification of one attribute.

    A ``DELETE`` with no values removes the whole attribute; with values it
    removes just those values.
    """

    op: ModOp
    attribute: str
    values: tuple[str, ...] = ()

    def to_ldap(self) -> ModListEntry:
        values: list[bytes] | None = [v.encode("utf-8") for v in self.values]
        if self.op == ModOp.DELETE and not values:
            values = None
        return (int(self.op), self.attribute, values)

    def __str__(self) -> str:
        return f"{self.op.name} {self.attribute}: {', '.join(self.values)}"


def modlist(modifications: Iterable[Modification]) -> list[ModListEntry]:
    """Convert a sequence of :py:class:`Modification` to a python-ldap modlist."""
    return [m.to_ldap() for m in modifications]
