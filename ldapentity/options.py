"""
Model metadata.

This module provides the Options class, the per-model schema table: the ordered
field descriptors, the object classes the model contributes, and where its
entries live in the directory.
"""

from bisect import bisect
from typing import TYPE_CHECKING, cast

from django.core.exceptions import FieldDoesNotExist, ImproperlyConfigured
from django.utils.functional import cached_property

from .entries import OBJECTCLASS

if TYPE_CHECKING:
    from .children import ChildLoader
    from .fields import Field
    from .managers import EntityManager
    from .models import Model

#: The attributes a ``class Meta`` may set.
DEFAULT_NAMES = (
    "ldap_server",
    "manager_class",
    "basedn",
    "objectclasses",
    "rdn_attribute",
    "children",
    "verbose_name",
)

#: Record attributes that fields may not shadow.
RESERVED_NAMES = ("id", "dn", "objectclasses", "origin", "objects")


class Options:
    """
    Schema and configuration for one model type.

    This gets instantiated by parsing the ``Meta`` class for the model, and is
    available as ``model._meta`` on the model class.  Once the metaclass has
    finished building the model it is not modified again.

    Args:
        meta: The Meta class from the model definition.
        bases: The ``Options`` of any models this model is composed from, in
            declaration order.  Their fields and object classes come first.

    """

    def __init__(self, meta, bases: list["Options"] | None = None) -> None:
        from .managers import EntityManager

        #: The key into ``settings.LDAP_SERVERS`` this model uses.
        self.ldap_server: str = "default"
        #: The manager class to attach as ``Model.objects``.
        self.manager_class: type[EntityManager] = EntityManager
        #: Where new entries of this model are created when they have no DN.
        self.basedn: str | None = None
        #: The object classes this model itself contributes.  Combined with
        #: those of any base models into :py:attr:`objectclasses`.
        self.local_objectclasses: list[str] = []
        #: The attribute that names an entry within its parent.
        self.rdn_attribute: str = "cn"
        #: How this model's child entries get loaded, if it has any.
        self.children: ChildLoader | None = None
        #: The verbose name for this model.
        self.verbose_name: str | None = None

        #: Set up by :py:class:`~ldapentity.models.LdapModelBase`.
        self.model_name: str | None = None
        #: Set up by :py:class:`~ldapentity.models.LdapModelBase`.
        self.object_name: str | None = None
        #: Set up by :py:class:`~ldapentity.models.LdapModelBase`.
        self.model: type[Model] | None = None
        #: Set up by :py:class:`~ldapentity.models.LdapModelBase`.
        self.base_manager: EntityManager | None = None
        #: Fields declared directly on this model.
        self.local_fields: list[Field] = []

        self.meta = meta
        self.bases = bases or []

    def __repr__(self) -> str:
        return f"<Options for {self.object_name}>"

    def contribute_to_class(self, cls: type["Model"], name: str) -> None:  # noqa: ARG002
        """
        Used by the :py:class:`~ldapentity.models.LdapModelBase` metaclass to
        add this :py:class:`Options` instance to a model class.
        """
        cls._meta = self
        self.model = cls
        self.object_name = cls.__name__
        self.model_name = self.object_name.lower()
        self.verbose_name = self.object_name

        # Inherit the storage settings of the model we are composed from,
        # before the Meta of this model gets a chance to override them.
        for base in self.bases:
            self.ldap_server = base.ldap_server
            self.rdn_attribute = base.rdn_attribute
            self.basedn = base.basedn

        if self.meta:
            meta_attrs = {
                k: v for k, v in self.meta.__dict__.items() if not k.startswith("_")
            }
            for attr_name in DEFAULT_NAMES:
                if attr_name not in meta_attrs:
                    continue
                value = meta_attrs.pop(attr_name)
                if attr_name == "objectclasses":
                    self.local_objectclasses = list(value)
                else:
                    setattr(self, attr_name, value)
            # Any leftover attributes must be invalid.
            if meta_attrs:
                msg = "'class Meta' got invalid attribute(s): {}".format(
                    ",".join(meta_attrs)
                )
                raise TypeError(msg)
        del self.meta

    def add_field(self, field: "Field") -> None:
        """
        Used by :py:meth:`ldapentity.fields.Field.contribute_to_class` to add
        a field to the model.
        """
        self.local_fields.insert(bisect(self.local_fields, field), field)

    def _prepare(self, model: type["Model"]) -> None:  # noqa: ARG002
        """
        Check the finished schema.

        Raises:
            ImproperlyConfigured: a field maps the object class or rdn
                attribute, or two fields map the same attribute.

        """
        seen: set[str] = set()
        for f in self.fields:
            if f.name in RESERVED_NAMES:
                msg = (
                    f"'{self.object_name}' can't have a field named '{f.name}'; "
                    "that name is used by every record"
                )
                raise ImproperlyConfigured(msg)
            attr = f.ldap_attribute.lower()
            if attr == OBJECTCLASS.lower():
                msg = (
                    "The objectClass attribute is managed automatically; don't "
                    f"manually define it on the '{self.object_name}' model"
                )
                raise ImproperlyConfigured(msg)
            if attr == self.rdn_attribute.lower():
                msg = (
                    f"'{self.object_name}' maps its rdn attribute "
                    f"'{self.rdn_attribute}' to field '{f.name}'; the rdn is "
                    "available as the record's id"
                )
                raise ImproperlyConfigured(msg)
            if attr in seen:
                msg = (
                    f"'{self.object_name}' maps attribute '{f.ldap_attribute}' "
                    "more than once"
                )
                raise ImproperlyConfigured(msg)
            seen.add(attr)

    @cached_property
    def fields(self) -> tuple["Field", ...]:
        """
        All fields, those of composed base models first, in declaration order.
        """
        fields: list[Field] = []
        for base in self.bases:
            fields.extend(f for f in base.fields if f not in fields)
        fields.extend(self.local_fields)
        return tuple(fields)

    @cached_property
    def objectclasses(self) -> tuple[str, ...]:
        """
        Object classes this model puts on new entries: those of the base models
        first, then our own, without duplicates.
        """
        classes: list[str] = []
        for base in self.bases:
            classes.extend(oc for oc in base.objectclasses if oc not in classes)
        classes.extend(oc for oc in self.local_objectclasses if oc not in classes)
        return tuple(classes)

    @property
    def objectclass(self) -> str | None:
        """
        The most specific object class of this model, used to restrict searches
        to entries of this model.
        """
        if self.local_objectclasses:
            return self.local_objectclasses[-1]
        if self.objectclasses:
            return self.objectclasses[-1]
        return None

    @cached_property
    def fields_map(self) -> dict[str, "Field"]:
        return {cast("str", f.name): f for f in self.fields}

    @cached_property
    def attributes(self) -> list[str]:
        """
        Every attribute we ask the server for when loading this model.
        """
        return [
            OBJECTCLASS,
            self.rdn_attribute,
            *(f.ldap_attribute for f in self.fields),
        ]

    def get_field(self, field_name: str) -> "Field":
        """
        Return a field instance given its name.

        Raises:
            FieldDoesNotExist: If no field with the given name exists.

        """
        try:
            return self.fields_map[field_name]
        except KeyError as e:
            msg = f"{self.object_name} has no field named '{field_name}'"
            raise FieldDoesNotExist(msg) from e
