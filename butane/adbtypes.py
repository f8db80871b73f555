"""Type identifiers used by the abstract database schema."""

from __future__ import annotations

import functools
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from butane.sqlval import SqlType


def _single_entry(data: Any, what: str) -> tuple:
    if not isinstance(data, Mapping) or len(data) != 1:
        raise ValueError(f"malformed {what} {data!r}")
    ((tag, payload),) = data.items()
    return tag, payload


@dataclass(frozen=True)
class TypeIdentifier:
    """A column type: either a known SQL type or a custom type known only by name."""

    sqltype: Optional[SqlType] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.sqltype is None) == (self.name is None):
            raise ValueError("exactly one of sqltype or name must be given")
        if self.sqltype is not None and not isinstance(self.sqltype, SqlType):
            raise TypeError("sqltype must be a SqlType")
        if self.name is not None and not isinstance(self.name, str):
            raise TypeError("name must be a str")

    def to_json(self) -> Any:
        if self.sqltype is not None:
            return {"Ty": self.sqltype.to_json()}
        return {"Name": self.name}

    @classmethod
    def from_json(cls, data: Any) -> "TypeIdentifier":
        tag, payload = _single_entry(data, "type identifier")
        if tag == "Ty":
            return cls(sqltype=SqlType.from_json(payload))
        if tag == "Name":
            if not isinstance(payload, str):
                raise ValueError(f"malformed type name {payload!r}")
            return cls(name=payload)
        raise ValueError(f"unknown type identifier tag {tag!r}")


class TypeKeyKind(Enum):
    """What a :class:`TypeKey` refers to."""

    PK = "PK"
    CUSTOM = "CustomType"


_SERIAL_PREFIXES = {TypeKeyKind.PK: "PK:", TypeKeyKind.CUSTOM: "CT:"}


@functools.total_ordering
@dataclass(frozen=True, eq=True)
class TypeKey:
    """Key used to resolve a deferred type.

    Either the primary key type of a named table, or a custom type by name.
    Primary-key keys sort before custom-type keys.
    """

    kind: TypeKeyKind
    name: str

    @classmethod
    def pk(cls, name: str) -> "TypeKey":
        return cls(TypeKeyKind.PK, name)

    @classmethod
    def custom(cls, name: str) -> "TypeKey":
        return cls(TypeKeyKind.CUSTOM, name)

    def __str__(self) -> str:
        return f"{self.kind.value}({self.name})"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TypeKey):
            return NotImplemented
        return (self.kind is TypeKeyKind.CUSTOM, self.name) < (
            other.kind is TypeKeyKind.CUSTOM,
            other.name,
        )

    def serialize(self) -> str:
        """String form, usable as a mapping key."""
        return f"{_SERIAL_PREFIXES[self.kind]}{self.name}"

    @classmethod
    def parse(cls, text: str) -> "TypeKey":
        """Parse the string form produced by :meth:`serialize`."""
        if not isinstance(text, str):
            raise ValueError(f"malformed type key {text!r}")
        for kind, prefix in _SERIAL_PREFIXES.items():
            if text.startswith(prefix):
                return cls(kind, text[len(prefix):])
        raise ValueError("Unknown type key string")


class DeferredKind(Enum):
    """State of a :class:`DeferredSqlType`."""

    KNOWN = "Known"
    KNOWN_ID = "KnownId"
    DEFERRED = "Deferred"


@dataclass(frozen=True, eq=False)
class DeferredSqlType:
    """A column type which may not yet be known.

    ``KNOWN`` holds a :class:`SqlType` (kept for reading older data),
    ``KNOWN_ID`` a :class:`TypeIdentifier` and ``DEFERRED`` a :class:`TypeKey`.
    Known and KnownId values compare equal when they describe the same type.
    """

    kind: DeferredKind
    value: Union[SqlType, TypeIdentifier, TypeKey]

    def __post_init__(self) -> None:
        expected = {
            DeferredKind.KNOWN: SqlType,
            DeferredKind.KNOWN_ID: TypeIdentifier,
            DeferredKind.DEFERRED: TypeKey,
        }[self.kind]
        if not isinstance(self.value, expected):
            raise TypeError(f"{self.kind.value} expects a {expected.__name__}")

    @classmethod
    def known(cls, sqltype: SqlType) -> "DeferredSqlType":
        return cls(DeferredKind.KNOWN, sqltype)

    @classmethod
    def known_id(cls, typeid: TypeIdentifier) -> "DeferredSqlType":
        return cls(DeferredKind.KNOWN_ID, typeid)

    @classmethod
    def deferred(cls, key: TypeKey) -> "DeferredSqlType":
        return cls(DeferredKind.DEFERRED, key)

    def is_known(self) -> bool:
        return self.kind is not DeferredKind.DEFERRED

    def _identity(self) -> tuple:
        if self.kind is DeferredKind.KNOWN:
            return ("known", TypeIdentifier(sqltype=self.value))
        if self.kind is DeferredKind.KNOWN_ID:
            return ("known", self.value)
        return ("deferred", self.value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeferredSqlType):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def to_json(self) -> Any:
        if self.kind is DeferredKind.KNOWN:
            payload: Any = self.value.to_json()
        elif self.kind is DeferredKind.KNOWN_ID:
            payload = self.value.to_json()
        else:
            payload = self.value.serialize()
        return {self.kind.value: payload}

    @classmethod
    def from_json(cls, data: Any) -> "DeferredSqlType":
        tag, payload = _single_entry(data, "deferred sql type")
        try:
            kind = DeferredKind(tag)
        except ValueError:
            raise ValueError(f"unknown deferred sql type tag {tag!r}") from None
        if kind is DeferredKind.KNOWN:
            return cls.known(SqlType.from_json(payload))
        if kind is DeferredKind.KNOWN_ID:
            return cls.known_id(TypeIdentifier.from_json(payload))
        return cls.deferred(TypeKey.parse(payload))