"""
Model managers.

Every model gets an :py:class:`EntityManager` as ``Model.objects``.  The
manager runs the model's directory operations on the connection for the
model's ``Meta.ldap_server``::

    user = LdapUser.objects.filter(uid="alice")[0]
    user.mail = "alice@example.com"
    LdapUser.objects.update(user)
"""

import threading
from typing import TYPE_CHECKING, cast

from .filters import and_filter, field_filter

if TYPE_CHECKING:
    from .connection import DirectoryConnection
    from .models import Model
    from .options import Options


class EntityManager:
    """
    The default manager for directory models.

    Args:
        connection: use this connection instead of the one the registry hands
            out for the model's ``ldap_server``

    """

    def __init__(self, connection: "DirectoryConnection | None" = None) -> None:
        self.model: type[Model] | None = None
        self._connection = connection

    def contribute_to_class(self, cls: type["Model"], accessor_name: str) -> None:
        """
        Bind the manager to a model class.

        Args:
            cls: The model class.
            accessor_name: The attribute name to assign the manager to.

        """
        self.model = cls
        cast("Options", cls._meta).base_manager = self
        setattr(cls, accessor_name, self)

    @property
    def connection(self) -> "DirectoryConnection":
        """
        The connection our operations run on.  Looked up on each use, so
        settings can change between tests.
        """
        if self._connection is not None:
            return self._connection
        from .connection import connections

        opts = cast("Options", cast("type[Model]", self.model)._meta)
        return connections[opts.ldap_server]

    def using(self, connection: "DirectoryConnection") -> "EntityManager":
        """
        Return a manager for the same model that runs on ``connection``.
        """
        manager = self.__class__(connection=connection)
        manager.model = self.model
        return manager

    def search(self, *args, **kwargs) -> list["Model"]:
        return self.connection.search(self.model, *args, **kwargs)

    def search_first(self, *args, **kwargs) -> "Model | None":
        return self.connection.search_first(self.model, *args, **kwargs)

    def read(self, dn: str, **kwargs) -> "Model | None":
        return self.connection.read(self.model, dn, **kwargs)

    def read_safe(self, dn: str, **kwargs) -> "Model | None":
        return self.connection.read_safe(self.model, dn, **kwargs)

    def get(self, dn: str, **kwargs) -> "Model":
        """
        Like :py:meth:`read`, but raise the model's ``DoesNotExist`` instead of
        returning ``None``.
        """
        model = cast("type[Model]", self.model)
        obj = self.read(dn, **kwargs)
        if obj is None:
            msg = f"No {model.__name__} at {dn}"
            raise model.DoesNotExist(msg)
        return obj

    def filter(
        self,
        filterstr: str | None = None,
        cancel: threading.Event | None = None,
        **lookups,
    ) -> list["Model"]:
        """
        Search with the filter built by
        :py:func:`~ldapentity.filters.field_filter` from ``lookups``, ANDed
        with ``filterstr`` if given.
        """
        lookup_filter = field_filter(cast("type[Model]", self.model), **lookups)
        if filterstr or lookup_filter:
            searchfilter = and_filter(filterstr, lookup_filter)
        else:
            searchfilter = None
        return self.search(filterstr=searchfilter, cancel=cancel)

    def add(self, obj: "Model", actor: str | None = None) -> "Model":
        return self.connection.add(obj, actor=actor)

    def create(self, actor: str | None = None, **kwargs) -> "Model":
        """
        Build a record from ``kwargs`` and add it.
        """
        obj = cast("type[Model]", self.model)(**kwargs)
        return self.add(obj, actor=actor)

    def update(self, obj: "Model", actor: str | None = None) -> bool:
        return self.connection.update(obj, actor=actor)

    def add_children(self, obj: "Model", actor: str | None = None) -> "Model | None":
        return self.connection.add_children(obj, actor=actor)
