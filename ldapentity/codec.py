"""
Translation between directory entries and typed records.

:py:func:`decode` turns a :py:class:`~ldapentity.entries.DirectoryEntry` into a
model instance and keeps the entry as the instance's origin snapshot;
:py:func:`encode` turns a record built for creation into the entry to add.
"""

from typing import TYPE_CHECKING, cast

from ldap.dn import escape_dn_chars, str2dn

from ldapentity import ldap

from .entries import OBJECTCLASS, DirectoryEntry
from .exceptions import InvalidIdentifierError, MappingError

if TYPE_CHECKING:
    from .models import Model
    from .options import Options


def leaf_name(dn: str) -> str | None:
    """
    Return the value of the first RDN of ``dn``, or ``None`` if ``dn`` is
    not a valid DN.
    """
    try:
        parts = str2dn(dn)
    except ldap.DECODING_ERROR:  # type: ignore[attr-defined]
        return None
    if not parts:
        return None
    return parts[0][0][1]


def decode(model: type["Model"], entry: DirectoryEntry) -> "Model":
    """
    Decode ``entry`` into an instance of ``model``.

    * ``id`` is the entry's rdn attribute value (the first RDN of the DN if the
      attribute itself wasn't returned)
    * ``dn`` is the entry's DN
    * ``objectclasses`` is the entry's object classes
    * every schema field is decoded per its kind; absent optional attributes
      get the kind's zero value

    The entry becomes the record's origin snapshot.

    Raises:
        MappingError: a value can't be parsed per its field's kind, or a
            required attribute is absent

    """
    opts = cast("Options", model._meta)
    obj = model.__new__(model)
    rdn_values = entry.get(opts.rdn_attribute)
    obj.id = rdn_values[0] if rdn_values else leaf_name(entry.dn)
    obj.dn = entry.dn
    obj.objectclasses = entry.objectclasses
    for field in opts.fields:
        try:
            value = field.from_db_value(entry.get(field.ldap_attribute))
        except MappingError as e:
            msg = f"{entry.dn}: {e}"
            raise MappingError(msg) from e
        setattr(obj, cast("str", field.name), value)
    if opts.children is not None:
        opts.children.init_slots(obj)
    obj._origin = entry
    return obj


def build_dn(obj: "Model") -> str:
    """
    Return the DN ``obj`` should be created at: its own ``dn`` if it has one,
    otherwise ``<rdn attribute>=<id>,<model basedn>``.

    Raises:
        InvalidIdentifierError: no DN can be derived

    """
    opts = cast("Options", obj._meta)
    if obj.dn:
        return obj.dn
    if not obj.id:
        msg = f"Can't build a DN for a {opts.object_name} without an id"
        raise InvalidIdentifierError(None, msg)
    if not opts.basedn:
        msg = (
            f"Can't build a DN for {opts.object_name} '{obj.id}': it has no dn "
            "and its model has no basedn"
        )
        raise InvalidIdentifierError(None, msg)
    return f"{opts.rdn_attribute}={escape_dn_chars(obj.id)},{opts.basedn}"


def encode(obj: "Model") -> DirectoryEntry:
    """
    Encode a record as the entry to add for it.

    The object classes are the model's own followed by any extra ones set on
    the record.  Fields whose value is empty are left out, as are fields that
    aren't editable.  The origin snapshot is not consulted.

    Raises:
        InvalidIdentifierError: the record has no id, or no DN can be derived

    """
    opts = cast("Options", obj._meta)
    dn = build_dn(obj)
    if not obj.id:
        msg = f"Can't encode a {opts.object_name} without an id"
        raise InvalidIdentifierError(dn, msg)
    objectclasses = list(opts.objectclasses)
    objectclasses.extend(oc for oc in obj.objectclasses if oc not in objectclasses)
    attributes: dict[str, list[str]] = {
        OBJECTCLASS: objectclasses,
        opts.rdn_attribute: [obj.id],
    }
    for field in opts.fields:
        if not field.editable:
            continue
        values = field.to_db_value(field.value_from_object(obj))
        if values:
            attributes[field.ldap_attribute] = values
    return DirectoryEntry(dn, attributes)
