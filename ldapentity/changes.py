"""
Minimal change sets between a record and the entry it was decoded from.
"""

from typing import TYPE_CHECKING, Any, cast

from .entries import ModOp, Modification
from .fields import Field

if TYPE_CHECKING:
    from .models import Model
    from .options import Options


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for v in values:
        if v not in seen:
            seen.add(v)
            result.append(v)
    return result


def _diff_list(field: Field, old: list[str], new: Any) -> list[Modification]:
    old_values = _unique(field.to_db_value(old))
    new_values = _unique(field.to_db_value(new))
    old_set = set(old_values)
    new_set = set(new_values)
    attr = field.ldap_attribute
    adds = [Modification(ModOp.ADD, attr, (v,)) for v in new_values if v not in old_set]
    deletes = [
        Modification(ModOp.DELETE, attr, (v,)) for v in old_values if v not in new_set
    ]
    return adds + deletes


def _diff_scalar(
    field: Field, old: Any, new: Any, old_present: bool
) -> Modification | None:
    attr = field.ldap_attribute
    new_present = not field.is_empty(new)
    if not new_present:
        if not old_present:
            return None
        return Modification(ModOp.DELETE, attr)
    values = tuple(field.to_db_value(new))
    if old_present:
        # typed comparison; new is normalized through its stored form
        if field.parse(values[0]) == old:
            return None
        return Modification(ModOp.REPLACE, attr, values)
    if field.zero_value == new:
        # absent booleans already read as False
        return None
    return Modification(ModOp.ADD, attr, values)


def diff(obj: "Model") -> list[Modification]:
    """
    Compute the modifications that bring ``obj``'s directory entry in line with
    ``obj``'s current field values.

    Fields are compared in schema order against the values decoded from the
    record's origin snapshot:

    * single-valued fields: absent to present is ``ADD``, present to absent is
      ``DELETE``, changed is ``REPLACE``
    * multi-valued fields: one ``ADD`` per value only in the new list, then one
      ``DELETE`` per value only in the old list

    The DN, the rdn attribute, ``objectClass`` and non-editable fields are never
    part of the diff.  A record without an origin snapshot (one built for
    creation) has an empty diff.

    Returns:
        The ordered list of modifications; empty if nothing changed.

    """
    origin = obj.origin
    if origin is None:
        return []
    opts = cast("Options", obj._meta)
    modifications: list[Modification] = []
    for field in opts.fields:
        if not field.editable:
            continue
        raw_old = origin.get(field.ldap_attribute)
        old = field.from_db_value(raw_old)
        new = field.value_from_object(obj)
        if field.multivalued:
            modifications.extend(_diff_list(field, old, new))
            continue
        mod = _diff_scalar(field, old, new, bool(raw_old))
        if mod is not None:
            modifications.append(mod)
    return modifications
