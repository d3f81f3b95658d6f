"""
Directory model base classes and metaclass.

This module provides the base Model class and LdapModelBase metaclass for
declaring typed models of directory entries.  The metaclass builds each model's
schema table (:py:class:`~ldapentity.options.Options`) once, when the class is
created.
"""

import inspect
from typing import TYPE_CHECKING, Any, cast

from django.db.models.signals import class_prepared, post_init

from .entries import DirectoryEntry
from .options import Options

if TYPE_CHECKING:
    from .managers import EntityManager


class LdapModelBase(type):
    """
    Metaclass for directory models.

    Builds the model's :py:class:`~ldapentity.options.Options` from its
    ``class Meta`` and field declarations, composing in the fields and object
    classes of any model it derives from, then attaches a manager as
    ``objects``.
    """

    def __new__(cls, name, bases, attrs, **kwargs):
        super_new = super().__new__
        parents = [b for b in bases if isinstance(b, LdapModelBase)]
        if not parents:
            return super_new(cls, name, bases, attrs)

        # Create the class.
        module = attrs.pop("__module__")
        new_attrs = {"__module__": module}
        classcell = attrs.pop("__classcell__", None)
        if classcell is not None:
            new_attrs["__classcell__"] = classcell
        new_class = super_new(cls, name, bases, new_attrs, **kwargs)
        meta = attrs.pop("Meta", None)

        base_options = [
            p._meta for p in parents if getattr(p, "_meta", None) is not None
        ]
        new_class.add_to_class("_meta", Options(meta, bases=base_options))

        # Add all attributes to the class.  This is where the fields get
        # registered with the schema
        for obj_name, obj in attrs.items():
            new_class.add_to_class(obj_name, obj)

        new_class._prepare()
        return new_class

    def add_to_class(cls, name: str, value: Any) -> None:
        """
        Add an attribute to the class, calling contribute_to_class if available.
        """
        # We should call the contribute_to_class method only if it's bound
        if not inspect.isclass(value) and hasattr(value, "contribute_to_class"):
            value.contribute_to_class(cls, name)
        else:
            setattr(cls, name, value)

    def _prepare(cls) -> None:
        """
        Finish the schema and add the manager.
        """
        opts = cls._meta  # type: ignore[attr-defined]
        opts._prepare(cls)

        # Give the class a docstring -- its definition.
        if cls.__doc__ is None:
            cls.__doc__ = "{}({})".format(
                cls.__name__,
                ", ".join(cast("str", f.name) for f in opts.fields),
            )

        manager = opts.manager_class()
        cls.add_to_class("objects", manager)
        class_prepared.send(sender=cls)


class Model(metaclass=LdapModelBase):
    """
    Base class for directory models.

    A record has an ``id`` (the value of its rdn attribute), a ``dn``, the list
    of its ``objectclasses``, one attribute per schema field, and, if it was
    decoded from the directory, the :py:class:`~ldapentity.entries.DirectoryEntry`
    it was decoded from as :py:attr:`origin`.  Records built by hand for
    creation have no origin.

    Models whose ``Meta.children`` is set also get one attribute per child slot
    of their loader; see :py:mod:`ldapentity.children`.
    """

    class DoesNotExist(Exception):
        """Raised when an entry that must exist does not."""

    class InvalidField(Exception):
        """Raised when an invalid field is referenced."""

    #: The model's schema.
    _meta: Options | None = None
    #: The default manager for this model.
    objects: "EntityManager | None" = None

    def __init__(
        self,
        id: str | None = None,  # noqa: A002
        dn: str | None = None,
        objectclasses: list[str] | None = None,
        **kwargs,
    ) -> None:
        """
        Build a new record for creation.

        Args:
            id: the value of the record's rdn attribute
            dn: the record's distinguished name; derived from ``id`` and the
                model's ``basedn`` when the record is added, if not given
            objectclasses: object classes to add on top of the model's own
            **kwargs: field values by field name; missing fields get their
                default

        Raises:
            TypeError: If an invalid keyword argument is provided.

        """
        opts = cast("Options", self._meta)
        self.id = id
        self.dn = dn
        self.objectclasses: list[str] = list(objectclasses or [])
        self._origin: DirectoryEntry | None = None

        for field in opts.fields:
            name = cast("str", field.name)
            if name in kwargs:
                value = kwargs.pop(name)
            else:
                value = field.get_default()
            setattr(self, name, value)

        if opts.children is not None:
            opts.children.init_slots(self)

        for kwarg in kwargs:
            msg = f"'{kwarg}' is an invalid keyword argument for this function"
            raise TypeError(msg)
        post_init.send(sender=self.__class__, instance=self)

    @classmethod
    def from_entry(cls, entry: DirectoryEntry) -> "Model":
        """
        Decode ``entry`` into an instance of this model.  See
        :py:func:`ldapentity.codec.decode`.
        """
        from .codec import decode

        return decode(cls, entry)

    def to_entry(self) -> DirectoryEntry:
        """
        Encode this record as a new entry.  See :py:func:`ldapentity.codec.encode`.
        """
        from .codec import encode

        return encode(self)

    def get_modifications(self) -> list:
        """
        Return the modifications needed to bring the directory entry in line
        with this record.  See :py:func:`ldapentity.changes.diff`.
        """
        from .changes import diff

        return diff(self)

    @property
    def origin(self) -> DirectoryEntry | None:
        """
        The entry this record was decoded from, or ``None`` for records built
        for creation.
        """
        return self._origin

    def get_children(self) -> list["Model"]:
        """
        Return the child records this record carries, in the order
        ``add_children`` writes them.  Empty for models without children.
        """
        opts = cast("Options", self._meta)
        if opts.children is None:
            return []
        return opts.children.get_children(self)

    @property
    def has_children(self) -> bool:
        return cast("Options", self._meta).children is not None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self}>"

    def __str__(self) -> str:
        return f"{self.__class__.__name__} object ({self.dn or self.id})"

    def __eq__(self, other: object) -> bool:
        """
        Records are equal when they are of the same model and have the same DN.
        Records without a DN are only equal to themselves.
        """
        if not isinstance(other, Model):
            return False
        if self.__class__ is not other.__class__:
            return False
        if self.dn is None:
            return self is other
        return self.dn.lower() == (other.dn or "").lower()

    def __hash__(self) -> int:
        return hash((self.__class__, (self.dn or "").lower() or id(self)))
