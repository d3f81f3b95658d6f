"""
Search filter composition.

Filters are built with ``ldap_filter`` and rendered to strings only at the
moment they are sent to the server.
"""

from typing import TYPE_CHECKING, Any, cast

from ldap_filter import Filter

from .entries import OBJECTCLASS

if TYPE_CHECKING:
    from .models import Model
    from .options import Options

#: Lookup suffixes :py:func:`field_filter` understands.
SUFFIXES = ("iexact", "icontains", "istartswith", "iendswith", "exists", "in")


def parse(filterstr: str):
    """
    Parse a caller supplied filter string.  A bare ``attr=value`` is accepted
    and wrapped in parentheses.
    """
    filterstr = filterstr.strip()
    if not filterstr.startswith("("):
        filterstr = f"({filterstr})"
    return Filter.parse(filterstr)


def objectclass_filter(model: type["Model"], objectclass: str | None = None):
    """
    Return a filter matching entries of ``model``'s most specific object class,
    or of ``objectclass`` if given.  Models with no object classes match every
    entry.
    """
    opts = cast("Options", model._meta)
    objectclass = objectclass or opts.objectclass
    if not objectclass:
        return Filter.attribute(OBJECTCLASS).present()
    return Filter.attribute(OBJECTCLASS).equal_to(objectclass)


def and_filter(*filters) -> Any:
    """
    AND together ``filters``, skipping any that are ``None`` or empty strings.
    Strings are parsed with :py:func:`parse`.
    """
    parts = [parse(f) if isinstance(f, str) else f for f in filters if f]
    if len(parts) == 1:
        return parts[0]
    return Filter.AND(parts).simplify()


def search_filter(
    model: type["Model"],
    filterstr: str | None = None,
    objectclass: str | None = None,
) -> str:
    """
    Return the filter string a search for ``model`` sends: the object class
    constraint ANDed with ``filterstr``.
    """
    return and_filter(objectclass_filter(model, objectclass), filterstr).to_string()


def field_filter(model: type["Model"], **lookups) -> Any:  # noqa: PLR0912
    """
    Build a filter from Django style lookups on ``model``'s field names::

        field_filter(LdapUser, uid="alice", mail__iendswith="@example.com")

    Raises:
        Model.InvalidField: a lookup names a field ``model`` doesn't have
        ValueError: unknown lookup suffix, or ``__in`` without a list

    """
    opts = cast("Options", model._meta)
    parts = []
    for key, value in lookups.items():
        if "__" in key:
            field_name, suffix = key.split("__", 1)
        else:
            field_name = key
            suffix = "iexact"
        if field_name not in opts.fields_map:
            msg = f'"{field_name}" is not a valid field on model {model.__name__}'
            raise model.InvalidField(msg)
        field = opts.fields_map[field_name]
        attr = Filter.attribute(field.ldap_attribute)
        if suffix == "iexact":
            if value is None:
                parts.append(Filter.NOT(attr.present()))
            else:
                parts.append(attr.equal_to(field.format(value)))
        elif suffix == "icontains":
            parts.append(attr.contains(value))
        elif suffix == "istartswith":
            parts.append(attr.starts_with(value))
        elif suffix == "iendswith":
            parts.append(attr.ends_with(value))
        elif suffix == "exists":
            parts.append(attr.present() if value else Filter.NOT(attr.present()))
        elif suffix == "in":
            if not isinstance(value, list):
                msg = 'When using the "__in" filter you must supply a list'
                raise ValueError(msg)
            if not value:
                continue
            parts.append(
                Filter.OR([attr.equal_to(field.format(v)) for v in value]).simplify()
            )
        else:
            msg = f'Unknown filter suffix: "{suffix}"'
            raise ValueError(msg)
    if not parts:
        return None
    return and_filter(*parts)
