"""
Exceptions raised by the directory mapper.

Every failure the mapper can surface to a caller has its own class here so that
callers can branch on the kind of failure instead of parsing messages.  All of
them derive from :py:class:`LdapEntityError`.
"""


class LdapEntityError(Exception):
    """Base class for all errors raised by ``ldapentity``."""


class LdapConnectionError(LdapEntityError):
    """
    We could not reach the directory, or could not bind as the connection's
    configured identity.  This is fatal for the operation that triggered it.
    """


class NotUniqueError(LdapEntityError):
    """
    A search that was expected to match at most one entry matched more.

    Args:
        searchfilter: the filter string we searched with
        count: how many entries matched

    """

    def __init__(self, searchfilter: str, count: int) -> None:
        self.searchfilter = searchfilter
        self.count = count
        super().__init__(
            f"Search {searchfilter} expected at most one entry but matched {count}"
        )


class InvalidIdentifierError(LdapEntityError):
    """A distinguished name was malformed, or could not be derived for a record."""

    def __init__(self, dn: str | None, msg: str | None = None) -> None:
        self.dn = dn
        super().__init__(msg or f"Invalid distinguished name: {dn!r}")


class ConflictError(LdapEntityError):
    """An add targeted a distinguished name that already exists."""

    def __init__(self, dn: str) -> None:
        self.dn = dn
        super().__init__(f"Entry already exists: {dn}")


class MappingError(LdapEntityError):
    """
    A value stored in the directory does not match the kind its field declares,
    or a required attribute is missing.
    """


class DirectoryReadError(LdapEntityError):
    """A read failed for a reason other than the entry not existing."""


class DirectoryWriteError(LdapEntityError):
    """An add failed for a reason other than the entry already existing."""


class OperationCancelled(LdapEntityError):  # noqa: N818
    """The caller cancelled an in-flight directory operation."""
