"""
Typed attribute descriptors for directory models.

Each field class knows one value kind: how to turn the string values the
directory stores for an attribute into a Python value, and back.  A model's
fields are collected once, when the model class is created, into the model's
:py:class:`~ldapentity.options.Options`; the codec and the change set computer
work from that table and never inspect the model class themselves.
"""

import datetime
import enum
from collections.abc import Callable, Sequence
from functools import total_ordering
from typing import TYPE_CHECKING, Any, cast

import pytz
from django.utils.functional import cached_property

from .exceptions import MappingError

if TYPE_CHECKING:
    from .models import Model


class ValueKind(enum.Enum):
    """The value kinds a directory attribute can be mapped to."""

    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    STRING_LIST = "stringList"


class NotProvided:
    pass


#: Sentinel for "no default was given"
NOT_PROVIDED = NotProvided()


@total_ordering
class Field:
    """
    Base field class for directory models.

    Subclasses set :py:attr:`value_kind` and override :py:meth:`parse` and
    :py:meth:`format` for their kind.

    Args:
        verbose_name: The human-readable name of the field.
        name: The name of the field.  Set from the attribute name on the model
            if not given.
        required: If True, the attribute must be present on every entry of this
            model; decoding an entry without it raises
            :py:exc:`~ldapentity.exceptions.MappingError`.
        default: The default value for newly constructed records.
        editable: If False, the field is decoded but never written or diffed.
        db_column: The attribute name in the directory schema.

    """

    #: The kind of value this field holds.
    value_kind: ValueKind = ValueKind.STRING
    #: Whether the attribute may hold more than one value.
    multivalued: bool = False
    #: Counter for field creation order, used for sorting fields.
    creation_counter: int = 0

    def __init__(  # noqa: PLR0913
        self,
        verbose_name: str | None = None,
        name: str | None = None,
        required: bool = False,
        default: Any = NOT_PROVIDED,
        editable: bool = True,
        db_column: str | None = None,
    ) -> None:
        self.name = name
        self.verbose_name = verbose_name
        self.required = required
        self.default = default
        self.editable = editable
        self.db_column = db_column

        self.model: type[Model] | None = None

        self.creation_counter = Field.creation_counter
        Field.creation_counter += 1

    def __repr__(self) -> str:
        """
        Display the module, class, and name of the field.
        """
        path = f"{self.__class__.__module__}.{self.__class__.__qualname__}"
        name = getattr(self, "name", None)
        if name is not None:
            return f"<{path}: {name}>"
        return f"<{path}>"

    def __lt__(self, other: "Field") -> bool:
        if isinstance(other, Field):
            return self.creation_counter < other.creation_counter
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Field):
            return self.creation_counter == other.creation_counter
        raise NotImplementedError

    def __hash__(self) -> int:
        return hash(self.creation_counter)

    @property
    def ldap_attribute(self) -> str:
        """
        The directory attribute name for this field: ``db_column`` if set,
        otherwise the field name.
        """
        return cast("str", self.db_column or self.name)

    @property
    def zero_value(self) -> Any:
        """What an absent attribute decodes to."""
        return None

    def has_default(self) -> bool:
        return self.default is not NOT_PROVIDED

    @cached_property
    def _get_default(self) -> Callable[[], Any]:
        if self.has_default():
            if callable(self.default):
                return self.default
            return lambda: self.default
        return lambda: self.zero_value

    def get_default(self) -> Any:
        return self._get_default()

    def is_empty(self, value: Any) -> bool:
        """
        Whether ``value`` means "attribute absent" for this field.
        """
        return value is None or value == ""

    def parse(self, raw: str) -> Any:
        """
        Convert one directory string to this field's Python type.  Raise
        ``ValueError`` if the string is not valid for the kind.
        """
        return raw

    def format(self, value: Any) -> str:
        """Convert one Python value to its directory string form."""
        return str(value)

    def mapping_error(self, raw: Any, reason: str = "") -> MappingError:
        model_name = self.model.__name__ if self.model else "?"
        msg = (
            f'Field "{self.name}" ({self.__class__.__name__}) on model {model_name} '
            f'got unexpected data for attribute "{self.ldap_attribute}": {raw!r}'
        )
        if reason:
            msg = f"{msg} ({reason})"
        return MappingError(msg)

    def from_db_value(self, values: Sequence[str]) -> Any:
        """
        Decode the values the directory holds for our attribute.

        Args:
            values: the attribute's values; empty if the attribute is absent

        Raises:
            MappingError: the attribute is required but absent, or a value
                can't be parsed as our kind

        """
        if not values:
            if self.required:
                msg = (
                    f'Required attribute "{self.ldap_attribute}" is missing for '
                    f'field "{self.name}"'
                )
                raise MappingError(msg)
            return self.zero_value
        try:
            return self.parse(values[0])
        except ValueError as e:
            raise self.mapping_error(values[0], str(e)) from e

    def to_db_value(self, value: Any) -> list[str]:
        """
        Encode ``value`` as the list of strings to store for our attribute.
        Empty values encode to ``[]``.
        """
        if self.is_empty(value):
            return []
        return [self.format(value)]

    def value_from_object(self, obj: "Model") -> Any:
        return getattr(obj, cast("str", self.name))

    def set_attributes_from_name(self, name: str) -> None:
        self.name = self.name or name
        if self.verbose_name is None and self.name:
            self.verbose_name = self.name.replace("_", " ")

    def contribute_to_class(self, cls, name: str) -> None:
        """
        Register the field with the model class it belongs to.
        """
        self.set_attributes_from_name(name)
        self.model = cls
        cls._meta.add_field(self)


class CharField(Field):
    """
    A single-valued string attribute.
    """

    value_kind = ValueKind.STRING


class IntegerField(Field):
    """
    An integer, stored in the directory in decimal.
    """

    value_kind = ValueKind.INTEGER

    def parse(self, raw: str) -> int:
        return int(raw.strip())

    def format(self, value: int) -> str:
        return str(int(value))

    def is_empty(self, value: Any) -> bool:
        # 0 is a value, not an absence
        return value is None


class BooleanField(Field):
    """
    A boolean, stored as the LDAP boolean syntax tokens ``TRUE`` and ``FALSE``.
    Reading is case-insensitive; anything else is a
    :py:exc:`~ldapentity.exceptions.MappingError`.

    An absent attribute reads as ``False``.
    """

    value_kind = ValueKind.BOOLEAN

    #: The string value used to represent True in LDAP.
    LDAP_TRUE: str = "TRUE"
    #: The string value used to represent False in LDAP.
    LDAP_FALSE: str = "FALSE"

    @property
    def zero_value(self) -> bool:
        return False

    def parse(self, raw: str) -> bool:
        token = raw.strip().upper()
        if token == self.LDAP_TRUE.upper():
            return True
        if token == self.LDAP_FALSE.upper():
            return False
        msg = f"not one of {self.LDAP_TRUE}/{self.LDAP_FALSE}"
        raise ValueError(msg)

    def format(self, value: bool) -> str:
        return self.LDAP_TRUE if value else self.LDAP_FALSE

    def is_empty(self, value: Any) -> bool:
        return value is None


class DateTimeField(Field):
    """
    A timestamp, stored in the directory's generalized time form.

    Values come back as timezone-aware UTC datetimes.  Naive datetimes are
    assumed to already be in UTC when we write them.
    """

    value_kind = ValueKind.TIMESTAMP

    #: Formats we accept when reading from the directory.  ``%z`` matches both
    #: ``Z`` and numeric offsets like ``+0200``.
    LDAP_DATETIME_FORMATS: tuple[str, ...] = (
        "%Y%m%d%H%M%S%z",
        "%Y%m%d%H%M%S.%f%z",
    )
    #: The format we write.
    LDAP_DATETIME_FORMAT: str = "%Y%m%d%H%M%SZ"
    #: The format we write when the value has sub-second precision.
    LDAP_DATETIME_FORMAT_FRACTIONAL: str = "%Y%m%d%H%M%S.%fZ"

    def parse(self, raw: str) -> datetime.datetime:
        raw = raw.strip()
        # strptime would accept single-digit months and days
        if len(raw) < 15 or not raw[:14].isdigit():  # noqa: PLR2004
            msg = "not a generalized time value"
            raise ValueError(msg)
        for fmt in self.LDAP_DATETIME_FORMATS:
            try:
                dt = datetime.datetime.strptime(raw, fmt)
            except ValueError:  # noqa: PERF203
                continue
            return dt.astimezone(pytz.utc)
        msg = "not a generalized time value"
        raise ValueError(msg)

    def format(self, value: datetime.datetime) -> str:
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        value = value.astimezone(pytz.utc)
        if value.microsecond:
            return value.strftime(self.LDAP_DATETIME_FORMAT_FRACTIONAL)
        return value.strftime(self.LDAP_DATETIME_FORMAT)

    def is_empty(self, value: Any) -> bool:
        return value is None


class CharListField(Field):
    """
    A multi-valued string attribute, held as a list of strings.  An absent
    attribute reads as ``[]``.
    """

    value_kind = ValueKind.STRING_LIST
    multivalued = True

    @property
    def zero_value(self) -> list[str]:
        return []

    def get_default(self) -> list[str]:
        if not self.has_default() or self.default is None:
            return []
        return list(self._get_default())

    def is_empty(self, value: Any) -> bool:
        return not value

    def from_db_value(self, values: Sequence[str]) -> list[str]:
        if not values and self.required:
            return super().from_db_value(values)
        return list(values)

    def to_db_value(self, value: Sequence[str] | None) -> list[str]:
        if not value:
            return []
        if isinstance(value, str):
            value = value.splitlines()
        return [str(v) for v in value if v != ""]
