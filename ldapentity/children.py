"""
Loading child entries of hierarchical models.

A model with child entries names a loader in its ``Meta``::

    class Tribe(LdapGroup):
        class Meta:
            objectclasses = ["vcpTribe"]
            children = FixedChildren({
                "sl": ("{id}_sl", TribeSl),
                "gs": ("{id}_gs", TribeGs),
            })

The loader adds one attribute per slot to every record of the model, fills the
slots after the parent is decoded and before it is handed to the caller, and
tells :py:meth:`~ldapentity.connection.DirectoryConnection.add_children` which
child records to write.
"""

import threading
from typing import TYPE_CHECKING, cast

from ldap.dn import escape_dn_chars

from ldapentity import ldap

if TYPE_CHECKING:
    from .connection import DirectoryConnection
    from .models import Model
    from .options import Options


class ChildLoader:
    """
    Base class for child loading strategies.
    """

    #: The record attributes this loader manages.
    slots: tuple[str, ...] = ()

    def init_slots(self, obj: "Model") -> None:
        """Give ``obj`` empty values for our slots."""
        raise NotImplementedError

    def load(
        self,
        obj: "Model",
        connection: "DirectoryConnection",
        cancel: threading.Event | None = None,
    ) -> None:
        """Read ``obj``'s children through ``connection`` and fill our slots."""
        raise NotImplementedError

    def get_children(self, obj: "Model") -> list["Model"]:
        """
        Return the child records ``obj`` carries, in a stable order, with their
        DN filled in from ``obj``'s DN where they don't have one.
        """
        raise NotImplementedError

    def _child_dn(self, obj: "Model", child: "Model") -> str:
        opts = cast("Options", child._meta)
        return f"{opts.rdn_attribute}={escape_dn_chars(cast('str', child.id))},{obj.dn}"


class FixedChildren(ChildLoader):
    """
    A fixed set of children, each at a known RDN directly below the parent.

    Each child is read on its own.  A child that doesn't exist is not an error;
    its slot is left as ``None``.  Any other failure reading a child, a
    :py:exc:`~ldapentity.exceptions.MappingError` included, is raised.

    Args:
        children: slot name to ``(rdn value template, model)``.  The template is
            formatted with the parent's ``id``, so ``"{id}_sl"`` under parent
            ``cn=red,ou=tribes,...`` reads ``cn=red_sl,cn=red,ou=tribes,...``

    """

    def __init__(self, children: dict[str, tuple[str, type["Model"]]]) -> None:
        self.children = dict(children)
        self.slots = tuple(self.children)

    def init_slots(self, obj: "Model") -> None:
        for slot in self.slots:
            setattr(obj, slot, None)

    def child_id(self, obj: "Model", slot: str) -> str:
        template = self.children[slot][0]
        return template.format(id=obj.id)

    def load(
        self,
        obj: "Model",
        connection: "DirectoryConnection",
        cancel: threading.Event | None = None,
    ) -> None:
        for slot, (_, model) in self.children.items():
            opts = cast("Options", model._meta)
            rdn_value = escape_dn_chars(self.child_id(obj, slot))
            dn = f"{opts.rdn_attribute}={rdn_value},{obj.dn}"
            setattr(obj, slot, connection.read(model, dn, cancel=cancel))

    def get_children(self, obj: "Model") -> list["Model"]:
        children = []
        for slot in self.slots:
            child = getattr(obj, slot, None)
            if child is None:
                continue
            if not child.id:
                child.id = self.child_id(obj, slot)
            if not child.dn:
                child.dn = self._child_dn(obj, child)
            children.append(child)
        return children


class FlaggedChildren(ChildLoader):
    """
    Any number of children one level below the parent, split into two lists
    by a boolean field on the child.

    All children are fetched with a single one-level search.

    Args:
        model: the child model; only entries of its object class are loaded
        flag_field: name of a :py:class:`~ldapentity.fields.BooleanField` on
            ``model``
        true_slot: parent attribute for the children whose flag is set
        false_slot: parent attribute for the rest

    """

    def __init__(
        self,
        model: type["Model"],
        flag_field: str,
        true_slot: str,
        false_slot: str,
    ) -> None:
        self.model = model
        self.flag_field = flag_field
        self.true_slot = true_slot
        self.false_slot = false_slot
        self.slots = (true_slot, false_slot)

    def init_slots(self, obj: "Model") -> None:
        setattr(obj, self.true_slot, [])
        setattr(obj, self.false_slot, [])

    def load(
        self,
        obj: "Model",
        connection: "DirectoryConnection",
        cancel: threading.Event | None = None,
    ) -> None:
        children = connection.search(
            self.model,
            basedn=obj.dn,
            scope=ldap.SCOPE_ONELEVEL,  # type: ignore[attr-defined]
            cancel=cancel,
        )
        flagged: list[Model] = []
        unflagged: list[Model] = []
        for child in children:
            if getattr(child, self.flag_field):
                flagged.append(child)
            else:
                unflagged.append(child)
        setattr(obj, self.true_slot, flagged)
        setattr(obj, self.false_slot, unflagged)

    def get_children(self, obj: "Model") -> list["Model"]:
        children = [
            *getattr(obj, self.true_slot, []),
            *getattr(obj, self.false_slot, []),
        ]
        for child in children:
            if not child.dn:
                child.dn = self._child_dn(obj, child)
        return children
