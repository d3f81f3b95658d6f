"""
Directory connections.

A :py:class:`DirectoryConnection` holds one bind identity for its lifetime and
runs searches, reads, adds and modifies against one server, decoding results
into model instances, computing change sets for updates and writing the audit
trail.

Connections are usually fetched from the process wide registry::

    from ldapentity.connection import connections

    conn = connections["default"]
    user = conn.read(LdapUser, "uid=alice,ou=people,dc=example,dc=com")

The registry creates one connection per key of ``settings.LDAP_SERVERS`` the
first time it is asked for it.
"""

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from ldap.dn import is_dn

from ldapentity import ldap

from .audit import ChangeSink, changes_for_add, changes_for_modify, get_change_sink
from .conf import get_server_config, normalize_config
from .entries import DirectoryEntry, Modification, modlist
from .exceptions import (
    ConflictError,
    DirectoryReadError,
    DirectoryWriteError,
    InvalidIdentifierError,
    LdapConnectionError,
    LdapEntityError,
    NotUniqueError,
    OperationCancelled,
)
from .filters import search_filter
from .typing import LDAPData

if TYPE_CHECKING:
    from .models import Model
    from .options import Options

logger = logging.getLogger("ldapentity")

#: How long we wait for each piece of a search result before checking whether
#: the caller cancelled, in seconds.
DEFAULT_POLL_INTERVAL = 0.1

#: The size of each connection's worker pool for :py:meth:`DirectoryConnection.dispatch`.
DEFAULT_MAX_WORKERS = 4

#: The filter used when reading a single entry by DN.
ANY_ENTRY = "(objectClass=*)"

#: Protocol errors that mean we lost the server rather than that it refused
#: the request.
TRANSPORT_ERRORS = (
    ldap.SERVER_DOWN,  # type: ignore[attr-defined]
    ldap.CONNECT_ERROR,  # type: ignore[attr-defined]
    ldap.TIMEOUT,  # type: ignore[attr-defined]
)


class DirectoryConnection:
    """
    A connection to one directory server.

    The connection is opened and bound lazily, exactly once, the first time an
    operation needs it.  Concurrent first uses wait for the one bind in
    progress rather than racing it.

    Args:
        server: either a key into ``settings.LDAP_SERVERS`` or an explicit
            config dict with the same keys

    Keyword Args:
        sink: where to append audit entries; defaults to the sink configured in
            ``settings.LDAP_CHANGE_SINK``

    Raises:
        ImproperlyConfigured: ``server`` names no configured server, or the
            config names no host

    """

    def __init__(
        self, server: str | dict[str, Any] = "default", sink: ChangeSink | None = None
    ) -> None:
        if isinstance(server, dict):
            self.name = "<explicit>"
            self.config = normalize_config(server)
        else:
            self.name = server
            self.config = get_server_config(server)
        #: Whether successful writes are appended to the audit trail.
        self.log_changes: bool = bool(self.config.get("log_changes", False))
        self.poll_interval: float = float(
            self.config.get("poll_interval", DEFAULT_POLL_INTERVAL)
        )
        self._sink = sink
        self._ldap_object: Any = None
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<DirectoryConnection: {self.name} {self.config['url']}>"

    def __enter__(self) -> "DirectoryConnection":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # -----------------------
    # Connect and bind
    # -----------------------

    @property
    def bind_dn(self) -> str | None:
        """The identity this connection binds as."""
        return self.config.get("user")

    @property
    def sink(self) -> ChangeSink:
        if self._sink is None:
            self._sink = get_change_sink()
        return self._sink

    def _connect(  # noqa: PLR0912
        self, dn: str | None = None, password: str | None = None
    ) -> Any:
        """
        Open a new connection to our server and bind to it.

        Binds as ``dn`` with ``password`` if given, else as the configured
        ``user``.

        Raises:
            ValueError: If the ``tls_verify`` value in the configuration is invalid.
            OSError: If a configured TLS certificate or key file does not exist
                or is not a file.
            ldap.LDAPError: the server could not be reached, or the bind failed

        Returns:
            A bound ``LDAPObject``.

        """
        config = self.config
        if not dn:
            dn = config.get("user")
            password = config.get("password")
        ldap_object = ldap.initialize(config["url"])  # type: ignore[attr-defined]
        if config.get("follow_referrals", False):
            ldap_object.set_option(ldap.OPT_REFERRALS, 1)  # type: ignore[attr-defined]
        else:
            ldap_object.set_option(ldap.OPT_REFERRALS, 0)  # type: ignore[attr-defined]
        timeout = config.get("timeout", 15.0)
        ldap_object.set_option(ldap.OPT_NETWORK_TIMEOUT, float(timeout))  # type: ignore[attr-defined]
        tls_verify = config.get("tls_verify", "never")
        if tls_verify == "never":
            ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_NEVER)  # type: ignore[attr-defined]
        elif tls_verify == "always":
            ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_DEMAND)  # type: ignore[attr-defined]
        else:
            msg = f"Invalid tls_verify value: {tls_verify}"
            raise ValueError(msg)
        for key, option, label in (
            ("tls_ca_certfile", "OPT_X_TLS_CACERTFILE", "CA Certificate file"),
            ("tls_certfile", "OPT_X_TLS_CERTFILE", "TLS Certificate file"),
            ("tls_keyfile", "OPT_X_TLS_KEYFILE", "TLS Key file"),
        ):
            filename = config.get(key)
            if not filename:
                continue
            path = Path(filename)
            if not path.exists():
                msg = f"{label} does not exist: {filename}"
                raise OSError(msg)
            if not path.is_file():
                msg = f"{label} is not a file: {filename}"
                raise OSError(msg)
            ldap_object.set_option(getattr(ldap, option), filename)
        ldap_object.set_option(ldap.OPT_X_TLS_NEWCTX, 0)  # type: ignore[attr-defined]
        if config.get("use_starttls", True):
            ldap_object.start_tls_s()
        ldap_object.simple_bind_s(dn, password)
        return ldap_object

    @property
    def connection(self) -> Any:
        """
        The bound ``LDAPObject``, connecting and binding on first use.

        Raises:
            LdapConnectionError: the server could not be reached, or rejected
                our bind

        """
        if self._ldap_object is None:
            with self._lock:
                if self._ldap_object is None:
                    try:
                        self._ldap_object = self._connect()
                    except ldap.LDAPError as e:  # type: ignore[attr-defined]
                        logger.error(
                            "ldapentity.connection.bind.failed server=%s url=%s "
                            "user=%s error=%s",
                            self.name,
                            self.config["url"],
                            self.bind_dn,
                            e,
                        )
                        msg = f"Could not bind to {self.config['url']} as {self.bind_dn}"
                        raise LdapConnectionError(msg) from e
                    logger.debug(
                        "ldapentity.connection.bind.success server=%s user=%s",
                        self.name,
                        self.bind_dn,
                    )
        return self._ldap_object

    @property
    def is_connected(self) -> bool:
        return self._ldap_object is not None

    def _lost_connection(
        self, operation: str, dn: str, error: Exception
    ) -> LdapConnectionError:
        logger.error(
            "ldapentity.connection.lost server=%s operation=%s dn=%s error=%s",
            self.name,
            operation,
            dn,
            error,
        )
        msg = f"Lost the connection to {self.config['url']} during {operation} of {dn}"
        return LdapConnectionError(msg)

    def close(self) -> None:
        """
        Unbind, and shut down the worker pool.  The next operation connects
        again.
        """
        with self._lock:
            ldap_object, self._ldap_object = self._ldap_object, None
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        if ldap_object is not None:
            try:
                ldap_object.unbind_s()
            except ldap.LDAPError as e:  # type: ignore[attr-defined]
                logger.warning(
                    "ldapentity.connection.unbind.failed server=%s error=%s",
                    self.name,
                    e,
                )

    def check_credentials(self, dn: str, password: str) -> bool:
        """
        Check whether ``password`` is the password for ``dn``.

        This binds a separate, throwaway connection; the bind identity of this
        connection is not touched.

        Returns:
            ``True`` if the bind succeeded, ``False`` if the server rejected
            the credentials.

        Raises:
            LdapConnectionError: the server could not be reached

        """
        if not password:
            # an empty password binds anonymously
            logger.warning("auth.invalid_credentials dn=%s", dn)
            return False
        try:
            ldap_object = self._connect(dn=dn, password=password)
        except ldap.INVALID_CREDENTIALS:  # type: ignore[attr-defined]
            logger.warning("auth.invalid_credentials dn=%s", dn)
            return False
        except ldap.LDAPError as e:  # type: ignore[attr-defined]
            logger.error("auth.failed dn=%s error=%s", dn, e)
            msg = f"Could not check credentials for {dn} against {self.config['url']}"
            raise LdapConnectionError(msg) from e
        ldap_object.unbind_s()
        logger.info("auth.success dn=%s", dn)
        return True

    # -----------------------
    # Dispatch
    # -----------------------

    @property
    def executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=int(
                        self.config.get("max_workers", DEFAULT_MAX_WORKERS)
                    ),
                    thread_name_prefix=f"ldapentity-{self.name}",
                )
            return self._executor

    def dispatch(self, method: str | Callable, *args, **kwargs) -> Future:
        """
        Run an operation of this connection on its worker pool.

        ``method`` is either the name of one of our operations or a callable
        taking this connection as its first argument::

            event = threading.Event()
            future = conn.dispatch("search", LdapUser, cancel=event)
            ...
            event.set()  # future now raises OperationCancelled

        Returns:
            A future for the operation's result.

        """
        func = getattr(self, method) if isinstance(method, str) else method
        if not isinstance(method, str):
            args = (self, *args)
        return self.executor.submit(func, *args, **kwargs)

    # -----------------------
    # Searches
    # -----------------------

    def _abandon(self, msgid: int) -> None:
        try:
            self.connection.abandon(msgid)
        except ldap.LDAPError as e:  # type: ignore[attr-defined]
            logger.warning(
                "ldapentity.search.abandon.failed msgid=%s error=%s", msgid, e
            )

    def _search(
        self,
        basedn: str,
        scope: int,
        filterstr: str,
        attributes: list[str] | None,
        cancel: threading.Event | None = None,
    ) -> list[LDAPData]:
        """
        Run one asynchronous search and collect the whole result set.

        We poll for results every :py:attr:`poll_interval` seconds so that we
        notice ``cancel`` being set.  Search references are dropped.

        Raises:
            OperationCancelled: ``cancel`` was set before the search completed;
                the search has been abandoned
            ldap.LDAPError: the server reported an error

        """
        msg = f"search {filterstr} under {basedn}"
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(msg)
        conn = self.connection
        msgid = conn.search_ext(basedn, scope, filterstr, attributes)
        results: list[LDAPData] = []
        while True:
            if cancel is not None and cancel.is_set():
                self._abandon(msgid)
                logger.info(
                    "ldapentity.search.cancelled basedn=%s filter=%s",
                    basedn,
                    filterstr,
                )
                raise OperationCancelled(msg)
            try:
                rtype, rdata, _, _ = conn.result3(msgid, 0, self.poll_interval)
            except ldap.TIMEOUT:  # type: ignore[attr-defined]
                continue
            for dn, attrs in rdata or []:
                # Referrals come back as (None, [urls])
                if isinstance(attrs, dict):
                    results.append((dn, attrs))
            if rtype not in (
                ldap.RES_SEARCH_ENTRY,  # type: ignore[attr-defined]
                ldap.RES_SEARCH_REFERENCE,  # type: ignore[attr-defined]
            ):
                return results

    def _load_children(
        self, records: Iterable["Model"], cancel: threading.Event | None
    ) -> None:
        for obj in records:
            opts = cast("Options", obj._meta)
            if opts.children is not None:
                opts.children.load(obj, self, cancel=cancel)

    def search(
        self,
        model: type["Model"],
        basedn: str | None = None,
        filterstr: Any = None,
        scope: int = ldap.SCOPE_SUBTREE,  # type: ignore[attr-defined]
        attributes: list[str] | None = None,
        objectclass: str | None = None,
        cancel: threading.Event | None = None,
    ) -> list["Model"]:
        """
        Search for entries of ``model``.

        The filter sent is ``(&(objectClass=<model's class>)<filterstr>)``.
        Every returned entry is decoded into a ``model`` instance, and for
        models with children the children of every record are loaded before
        the list is returned.

        Args:
            model: the model class to decode results into
            basedn: where to search; defaults to ``Meta.basedn``, then to the
                server's ``basedn``
            filterstr: an extra filter string, or a filter from
                :py:mod:`ldapentity.filters`
            scope: the search scope
            attributes: the attributes to ask for; defaults to all the
                attributes of the model's schema
            objectclass: constrain on this object class instead of the model's
            cancel: set this to abandon the search

        Raises:
            ValueError: no ``basedn`` anywhere
            OperationCancelled: ``cancel`` was set; nothing is returned
            MappingError: an entry doesn't match the model's schema
            DirectoryReadError: the search failed
            LdapConnectionError: the connection to the server was lost

        Returns:
            The decoded records, possibly empty.

        """
        opts = cast("Options", model._meta)
        basedn = basedn or opts.basedn or self.config.get("basedn")
        if not basedn:
            msg = (
                f"{model.__name__}: no basedn given, no Meta.basedn and "
                f"settings.LDAP_SERVERS['{self.name}'] has no 'basedn' key"
            )
            raise ValueError(msg)
        searchfilter = search_filter(model, filterstr, objectclass=objectclass)
        try:
            data = self._search(
                basedn, scope, searchfilter, attributes or opts.attributes, cancel
            )
        except ldap.NO_SUCH_OBJECT:  # type: ignore[attr-defined]
            logger.debug(
                "ldapentity.search.no-such-base basedn=%s filter=%s",
                basedn,
                searchfilter,
            )
            return []
        except TRANSPORT_ERRORS as e:
            raise self._lost_connection("search", basedn, e) from e
        except ldap.LDAPError as e:  # type: ignore[attr-defined]
            logger.error(
                "ldapentity.search.failed basedn=%s filter=%s error=%s",
                basedn,
                searchfilter,
                e,
            )
            msg = f"Search {searchfilter} under {basedn} failed"
            raise DirectoryReadError(msg) from e
        records = [model.from_entry(DirectoryEntry.from_ldap(d)) for d in data]
        self._load_children(records, cancel)
        return records

    def search_first(
        self, model: type["Model"], *args, expect_unique: bool = False, **kwargs
    ) -> "Model | None":
        """
        Like :py:meth:`search`, but return only the first record, or ``None``
        if nothing matched.

        Keyword Args:
            expect_unique: raise instead of picking one when more than one
                entry matches

        Raises:
            NotUniqueError: ``expect_unique`` is set and more than one entry
                matched

        """
        records = self.search(model, *args, **kwargs)
        if not records:
            return None
        if expect_unique and len(records) > 1:
            searchfilter = search_filter(
                model, kwargs.get("filterstr"), objectclass=kwargs.get("objectclass")
            )
            raise NotUniqueError(searchfilter, len(records))
        return records[0]

    def _read_entry(
        self,
        dn: str,
        attributes: list[str] | None,
        cancel: threading.Event | None = None,
    ) -> DirectoryEntry | None:
        """
        Read the raw entry at ``dn``.

        Raises:
            InvalidIdentifierError: ``dn`` is not a valid DN
            OperationCancelled: ``cancel`` was set
            DirectoryReadError: the read failed for any other reason than the
                entry not existing

        """
        if not dn or not is_dn(dn):
            raise InvalidIdentifierError(dn)
        try:
            data = self._search(
                dn,
                ldap.SCOPE_BASE,  # type: ignore[attr-defined]
                ANY_ENTRY,
                attributes,
                cancel,
            )
        except ldap.NO_SUCH_OBJECT:  # type: ignore[attr-defined]
            return None
        except ldap.INVALID_DN_SYNTAX as e:  # type: ignore[attr-defined]
            raise InvalidIdentifierError(dn) from e
        except TRANSPORT_ERRORS as e:
            raise self._lost_connection("read", dn, e) from e
        except ldap.LDAPError as e:  # type: ignore[attr-defined]
            logger.error("ldapentity.read.failed dn=%s error=%s", dn, e)
            msg = f"Reading {dn} failed"
            raise DirectoryReadError(msg) from e
        if not data:
            return None
        return DirectoryEntry.from_ldap(data[0])

    def read(
        self,
        model: type["Model"],
        dn: str,
        attributes: list[str] | None = None,
        cancel: threading.Event | None = None,
    ) -> "Model | None":
        """
        Read the entry at ``dn`` as a ``model`` instance, with its children
        loaded if ``model`` has them.

        Raises:
            InvalidIdentifierError: ``dn`` is not a valid DN
            OperationCancelled: ``cancel`` was set
            MappingError: the entry doesn't match the model's schema
            DirectoryReadError: the read failed for any other reason than the
                entry not existing
            LdapConnectionError: the connection to the server was lost

        Returns:
            The record, or ``None`` if there is no entry at ``dn``.

        """
        opts = cast("Options", model._meta)
        entry = self._read_entry(dn, attributes or opts.attributes, cancel)
        if entry is None:
            return None
        obj = model.from_entry(entry)
        self._load_children([obj], cancel)
        return obj

    def read_safe(
        self,
        model: type["Model"],
        dn: str,
        attributes: list[str] | None = None,
        cancel: threading.Event | None = None,
    ) -> "Model | None":
        """
        Like :py:meth:`read`, but log failures and return ``None`` instead of
        raising, so a caller can't tell a missing entry from a failed read.

        Cancellation is still raised.
        """
        try:
            return self.read(model, dn, attributes=attributes, cancel=cancel)
        except OperationCancelled:
            raise
        except LdapEntityError as e:
            logger.warning("ldapentity.read.failed dn=%s error=%s", dn, e)
            return None

    # -----------------------
    # Writes
    # -----------------------

    def _append_changes(self, dn: str, entries: list) -> None:
        """
        Append ``entries`` to the audit trail.

        The directory write has already happened by the time we get here, so
        a sink failure is logged and the write stands.
        """
        try:
            self.sink.append(entries)
        except Exception as e:  # noqa: BLE001
            logger.error(
                "ldapentity.audit.failed dn=%s changes=%d error=%s",
                dn,
                len(entries),
                e,
            )

    def add(self, obj: "Model", actor: str | None = None) -> "Model":
        """
        Create the entry for ``obj``.

        On success ``obj.dn`` is set and ``obj`` gets the written entry as its
        origin snapshot, so it can be updated straight away.  With change
        tracking on, one audit entry per written attribute is appended.

        Args:
            obj: a record built for creation
            actor: who to record as making the change; defaults to our bind
                identity

        Raises:
            InvalidIdentifierError: no DN can be derived for ``obj``
            ConflictError: there is already an entry at the DN
            LdapConnectionError: the connection to the server was lost
            DirectoryWriteError: the add failed for any other reason

        Returns:
            ``obj``

        """
        entry = obj.to_entry()
        try:
            self.connection.add_s(entry.dn, entry.to_modlist())
        except ldap.ALREADY_EXISTS as e:  # type: ignore[attr-defined]
            logger.warning("ldapentity.add.exists dn=%s", entry.dn)
            raise ConflictError(entry.dn) from e
        except ldap.INVALID_DN_SYNTAX as e:  # type: ignore[attr-defined]
            raise InvalidIdentifierError(entry.dn) from e
        except TRANSPORT_ERRORS as e:
            raise self._lost_connection("add", entry.dn, e) from e
        except ldap.LDAPError as e:  # type: ignore[attr-defined]
            logger.error("ldapentity.add.failed dn=%s error=%s", entry.dn, e)
            msg = f"Adding {entry.dn} failed"
            raise DirectoryWriteError(msg) from e
        logger.info("ldapentity.add.success dn=%s", entry.dn)
        obj.dn = entry.dn
        obj.objectclasses = entry.objectclasses
        obj._origin = entry
        if self.log_changes:
            self._append_changes(
                entry.dn, changes_for_add(entry, actor or self.bind_dn)
            )
        return obj

    def _apply(
        self,
        model: type["Model"],
        dn: str,
        modifications: list[Modification],
    ) -> tuple[bool, DirectoryEntry | None]:
        """
        Send ``modifications`` for ``dn``.

        Returns:
            Whether the modify succeeded, and the entry as read back after
            the change if change tracking made us read it.

        """
        if not modifications:
            logger.debug("ldapentity.update.no-changes dn=%s", dn)
            return True, None
        try:
            self.connection.modify_s(dn, modlist(modifications))
        except (ldap.LDAPError, LdapEntityError) as e:  # type: ignore[attr-defined]
            logger.error(
                "ldapentity.update.failed dn=%s changes=%s error=%s",
                dn,
                "; ".join(str(m) for m in modifications),
                e,
            )
            return False, None
        logger.info(
            "ldapentity.update.success dn=%s changes=%d", dn, len(modifications)
        )
        if not self.log_changes:
            return True, None
        opts = cast("Options", model._meta)
        try:
            after = self._read_entry(dn, opts.attributes)
        except LdapEntityError as e:
            logger.warning("ldapentity.update.reread.failed dn=%s error=%s", dn, e)
            after = None
        return True, after

    def _log_modify(
        self,
        dn: str,
        after: DirectoryEntry | None,
        modifications: list[Modification],
        actor: str | None,
    ) -> None:
        if not self.log_changes or not modifications:
            return
        objectclasses = after.objectclasses if after is not None else []
        self._append_changes(
            dn,
            changes_for_modify(dn, objectclasses, modifications, actor or self.bind_dn),
        )

    def modify(
        self,
        model: type["Model"],
        dn: str,
        modifications: list[Modification],
        actor: str | None = None,
    ) -> bool:
        """
        Apply ``modifications`` to the entry at ``dn`` in one modify request.

        An empty ``modifications`` succeeds without talking to the server.
        With change tracking on, the entry is read back to get its object
        classes, and one audit entry per modification is appended.  A failure
        to append the audit entries is logged and does not undo the modify.

        Returns:
            ``True`` on success, ``False`` if the modify failed; the cause is
            logged.

        """
        ok, after = self._apply(model, dn, modifications)
        if ok:
            self._log_modify(dn, after, modifications, actor)
        return ok

    def update(self, obj: "Model", actor: str | None = None) -> bool:
        """
        Write the changes made to ``obj`` since it was read.

        The modifications are computed with
        :py:meth:`~ldapentity.models.Model.get_modifications` and applied as in
        :py:meth:`modify`.  On success ``obj``'s origin snapshot is refreshed
        before the audit trail is written, so updating it again with no
        further changes sends nothing.

        Returns:
            ``True`` on success or if there was nothing to change, ``False``
            if the modify failed; the cause is logged.

        """
        if obj.origin is None or not obj.dn:
            logger.error(
                "ldapentity.update.failed dn=%s error=record was not read from "
                "the directory",
                obj.dn,
            )
            return False
        modifications = obj.get_modifications()
        ok, after = self._apply(type(obj), obj.dn, modifications)
        if ok and modifications:
            obj._origin = after or obj.origin.apply(modifications)
            self._log_modify(obj.dn, after, modifications, actor)
        return ok

    def add_children(self, obj: "Model", actor: str | None = None) -> "Model | None":
        """
        Add every child record ``obj`` carries, in the order its model's
        child loader gives them.

        Children added before a failure stay in the directory.

        Returns:
            ``obj``, or ``None`` if a child could not be added; the cause is
            logged.

        """
        for child in obj.get_children():
            try:
                self.add(child, actor=actor)
            except LdapEntityError as e:
                logger.error(
                    "ldapentity.add_children.failed parent=%s child=%s error=%s",
                    obj.dn,
                    child.dn,
                    e,
                )
                return None
        return obj


class ConnectionHandler:
    """
    The registry of :py:class:`DirectoryConnection` objects, one per key of
    ``settings.LDAP_SERVERS``, created on first use.
    """

    def __init__(self) -> None:
        self._connections: dict[str, DirectoryConnection] = {}
        self._lock = threading.Lock()

    def __getitem__(self, name: str) -> DirectoryConnection:
        with self._lock:
            if name not in self._connections:
                self._connections[name] = DirectoryConnection(name)
            return self._connections[name]

    def __contains__(self, name: str) -> bool:
        return name in self._connections

    def close_all(self) -> None:
        """Close and forget every connection we created."""
        with self._lock:
            connections, self._connections = self._connections, {}
        for connection in connections.values():
            connection.close()


connections = ConnectionHandler()
