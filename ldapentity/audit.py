"""
The change-tracking audit trail.

When a server has ``"log_changes": True`` in its ``settings.LDAP_SERVERS``
entry, every successful add or modify appends one :py:class:`ChangeLogEntry`
per attribute change to the configured change sink.

The directory write and the audit append are two separate writes to two
separate stores.  If the process dies between them, or the sink fails, the
directory change stands without an audit record.  The directory protocol has no
transaction we could enlist both writes in, so this is an accepted gap, not one
we paper over.

The sink is chosen with ``settings.LDAP_CHANGE_SINK``::

    LDAP_CHANGE_SINK = {
        "BACKEND": "ldapentity.audit.JSONLinesChangeSink",
        "OPTIONS": {"path": "/var/log/ldap/changes.jsonl"},
    }

and defaults to :py:class:`LoggingChangeSink`.
"""

import datetime
import json
import logging
import threading
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone
from django.utils.module_loading import import_string

from .entries import DirectoryEntry, ModOp

if TYPE_CHECKING:
    from .entries import Modification

logger = logging.getLogger("ldapentity.audit")

#: Joins the values of a multi-valued attribute in :py:attr:`ChangeLogEntry.new_value`
VALUE_SEPARATOR = "\n"


@dataclass(frozen=True)
class ChangeLogEntry:
    """
    One attribute mutation applied to the directory.
    """

    #: DN of the changed entry
    dn: str
    #: Object classes of the entry after the change, comma separated
    objectclass: str
    #: The attribute that changed
    property: str
    #: ``add``, ``replace`` or ``delete``
    operation: str
    #: The values written, newline separated; ``None`` for whole-attribute deletes
    new_value: str | None
    timestamp: datetime.datetime
    #: Who made the change: the bind identity of the connection, unless the
    #: caller named someone else
    actor: str | None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def changes_for_add(
    entry: DirectoryEntry, actor: str | None = None
) -> list[ChangeLogEntry]:
    """
    Return one ``add`` change per attribute of a newly written entry.
    """
    now = timezone.now()
    objectclass = ",".join(entry.objectclasses)
    return [
        ChangeLogEntry(
            dn=entry.dn,
            objectclass=objectclass,
            property=name,
            operation=ModOp.ADD.name.lower(),
            new_value=VALUE_SEPARATOR.join(values),
            timestamp=now,
            actor=actor,
        )
        for name, values in entry.attributes.items()
        if values
    ]


def changes_for_modify(
    dn: str,
    objectclasses: Iterable[str],
    modifications: Iterable["Modification"],
    actor: str | None = None,
) -> list[ChangeLogEntry]:
    """
    Return one change per applied modification.
    """
    now = timezone.now()
    objectclass = ",".join(objectclasses)
    return [
        ChangeLogEntry(
            dn=dn,
            objectclass=objectclass,
            property=mod.attribute,
            operation=mod.op.name.lower(),
            new_value=VALUE_SEPARATOR.join(mod.values) if mod.values else None,
            timestamp=now,
            actor=actor,
        )
        for mod in modifications
    ]


class ChangeSink:
    """
    Base class for append-only stores of :py:class:`ChangeLogEntry`.

    Subclasses implement :py:meth:`append`.  Appends may come from several
    threads at once; implementations must not interleave the content of two
    entries, though the order of entries from concurrent writers is not
    guaranteed.
    """

    def __init__(self, **options) -> None:
        self.options = options

    def append(self, entries: list[ChangeLogEntry]) -> None:
        raise NotImplementedError


class MemoryChangeSink(ChangeSink):
    """
    Keeps the entries in a list.  Useful in tests.
    """

    def __init__(self, **options) -> None:
        super().__init__(**options)
        self.entries: list[ChangeLogEntry] = []
        self._lock = threading.Lock()

    def append(self, entries: list[ChangeLogEntry]) -> None:
        with self._lock:
            self.entries.extend(entries)

    def clear(self) -> None:
        with self._lock:
            self.entries.clear()


class JSONLinesChangeSink(ChangeSink):
    """
    Appends each entry as one JSON object per line to the file at ``path``.

    Keyword Args:
        path: the file to append to; it is created if it doesn't exist

    Raises:
        ImproperlyConfigured: ``path`` was not given

    """

    def __init__(self, **options) -> None:
        super().__init__(**options)
        try:
            self.path = Path(options["path"])
        except KeyError as e:
            msg = "JSONLinesChangeSink needs a 'path' option"
            raise ImproperlyConfigured(msg) from e
        self._lock = threading.Lock()

    def append(self, entries: list[ChangeLogEntry]) -> None:
        lines = "".join(
            json.dumps(entry.as_dict(), cls=DjangoJSONEncoder) + "\n"
            for entry in entries
        )
        with self._lock, self.path.open("a", encoding="utf-8") as fh:
            fh.write(lines)


class LoggingChangeSink(ChangeSink):
    """
    Emits one ``INFO`` record per entry on the ``ldapentity.audit`` logger, for
    deployments that ship their logs somewhere durable.
    """

    def append(self, entries: list[ChangeLogEntry]) -> None:
        for entry in entries:
            logger.info(
                "ldapentity.audit.change dn=%s objectclass=%s property=%s "
                "operation=%s new_value=%r timestamp=%s actor=%s",
                entry.dn,
                entry.objectclass,
                entry.property,
                entry.operation,
                entry.new_value,
                entry.timestamp.isoformat(),
                entry.actor,
            )


def get_change_sink() -> ChangeSink:
    """
    Build the sink configured in ``settings.LDAP_CHANGE_SINK``.

    Raises:
        ImproperlyConfigured: the backend can't be imported

    """
    config = getattr(settings, "LDAP_CHANGE_SINK", None) or {}
    backend = config.get("BACKEND", "ldapentity.audit.LoggingChangeSink")
    try:
        sink_class = import_string(backend)
    except ImportError as e:
        msg = f"LDAP_CHANGE_SINK: could not import backend '{backend}'"
        raise ImproperlyConfigured(msg) from e
    return sink_class(**config.get("OPTIONS", {}))
