"""Values that can be stored in a database column, and conversions to them."""

from __future__ import annotations

import json
import math
import types
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union, get_args, get_origin

from butane.errors import CannotConvertSqlVal

_I32_MIN, _I32_MAX = -(2**31), 2**31 - 1
_I64_MIN, _I64_MAX = -(2**63), 2**63 - 1


class SqlType(str, Enum):
    """Type of a database column."""

    BOOL = "Bool"
    INT = "Int"
    BIGINT = "BigInt"
    REAL = "Real"
    TEXT = "Text"
    TIMESTAMP = "Timestamp"
    BLOB = "Blob"
    JSON = "Json"

    def to_json(self) -> str:
        """Serialized form of this type."""
        return self.value

    @classmethod
    def from_json(cls, data: Any) -> "SqlType":
        """Parse the serialized form produced by :meth:`to_json`."""
        try:
            return cls(data)
        except (ValueError, TypeError):
            raise ValueError(f"unknown sql type {data!r}") from None


class SqlValKind(Enum):
    """Which kind of value a :class:`SqlVal` holds."""

    NULL = "Null"
    BOOL = "Bool"
    INT = "Int"
    BIGINT = "BigInt"
    REAL = "Real"
    TEXT = "Text"
    BLOB = "Blob"
    JSON = "Json"
    TIMESTAMP = "Timestamp"


def _check_range(value: int, low: int, high: int, kind: SqlValKind) -> int:
    if not low <= value <= high:
        raise ValueError(f"{value} is out of range for {kind.value}")
    return value


def _normalize(kind: SqlValKind, value: Any) -> Any:
    if kind is SqlValKind.NULL:
        if value is not None:
            raise ValueError("a Null value carries no payload")
        return None
    if kind is SqlValKind.BOOL:
        if not isinstance(value, bool):
            raise TypeError(f"Bool expects a bool, got {type(value).__name__}")
        return value
    if kind in (SqlValKind.INT, SqlValKind.BIGINT):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{kind.value} expects an int, got {type(value).__name__}")
        if kind is SqlValKind.INT:
            return _check_range(value, _I32_MIN, _I32_MAX, kind)
        return _check_range(value, _I64_MIN, _I64_MAX, kind)
    if kind is SqlValKind.REAL:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"Real expects a float, got {type(value).__name__}")
        return float(value)
    if kind is SqlValKind.TEXT:
        if not isinstance(value, str):
            raise TypeError(f"Text expects a str, got {type(value).__name__}")
        return value
    if kind is SqlValKind.BLOB:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"Blob expects bytes, got {type(value).__name__}")
        return bytes(value)
    if kind is SqlValKind.TIMESTAMP:
        if not isinstance(value, datetime) or value.tzinfo is not None:
            raise TypeError("Timestamp expects a naive datetime")
        return value
    return value  # JSON: any JSON-compatible value


def _format_real(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" and value == 0 else text


def _format_timestamp(value: datetime) -> str:
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    micros = value.microsecond
    if micros == 0:
        return text
    if micros % 1000 == 0:
        return f"{text}.{micros // 1000:03d}"
    return f"{text}.{micros:06d}"


def _parse_timestamp(text: str) -> datetime:
    date_part, dot, fraction = text.partition(".")
    if dot:
        fraction = (fraction + "000000")[:6]
        text = f"{date_part}.{fraction}"
    return datetime.fromisoformat(text)


@dataclass(frozen=True)
class SqlVal:
    """A single database value."""

    kind: SqlValKind
    value: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _normalize(self.kind, self.value))

    @classmethod
    def null(cls) -> "SqlVal":
        """The NULL value."""
        return cls(SqlValKind.NULL)

    def is_null(self) -> bool:
        return self.kind is SqlValKind.NULL

    def _expect(self, kind: SqlValKind, sqltype: SqlType) -> Any:
        if self.kind is not kind:
            raise CannotConvertSqlVal(sqltype, self)
        return self.value

    def as_bool(self) -> bool:
        return self._expect(SqlValKind.BOOL, SqlType.BOOL)

    def as_int(self) -> int:
        return self._expect(SqlValKind.INT, SqlType.INT)

    def as_bigint(self) -> int:
        """Integer payload of an Int or BigInt value."""
        if self.kind in (SqlValKind.INT, SqlValKind.BIGINT):
            return self.value
        raise CannotConvertSqlVal(SqlType.BIGINT, self)

    def as_real(self) -> float:
        return self._expect(SqlValKind.REAL, SqlType.REAL)

    def as_text(self) -> str:
        return self._expect(SqlValKind.TEXT, SqlType.TEXT)

    def as_blob(self) -> bytes:
        return self._expect(SqlValKind.BLOB, SqlType.BLOB)

    def sqltype(self) -> Optional[SqlType]:
        """The SQL type most appropriate to this value, or None for NULL."""
        if self.kind is SqlValKind.NULL:
            return None
        return SqlType(self.kind.value)

    def is_compatible(self, sqltype: SqlType, null_allowed: bool) -> bool:
        """Whether this value fits a column of ``sqltype``, without implicit conversion."""
        own = self.sqltype()
        if own is None:
            return null_allowed
        return own is sqltype

    def __str__(self) -> str:
        kind, value = self.kind, self.value
        if kind is SqlValKind.NULL:
            return "NULL"
        if kind is SqlValKind.BOOL:
            return "true" if value else "false"
        if kind is SqlValKind.REAL:
            return _format_real(value)
        if kind is SqlValKind.BLOB:
            return value.hex()
        if kind is SqlValKind.JSON:
            if isinstance(value, str):
                return value
            return json.dumps(value, separators=(",", ":"))
        if kind is SqlValKind.TIMESTAMP:
            return value.isoformat()
        return str(value)

    def to_json(self) -> Any:
        """Serialized form: ``"Null"`` or a one-key mapping of kind to payload."""
        kind, value = self.kind, self.value
        if kind is SqlValKind.NULL:
            return "Null"
        if kind is SqlValKind.BLOB:
            value = list(value)
        elif kind is SqlValKind.TIMESTAMP:
            value = _format_timestamp(value)
        return {kind.value: value}

    @classmethod
    def from_json(cls, data: Any) -> "SqlVal":
        """Parse the serialized form produced by :meth:`to_json`."""
        if data == "Null":
            return cls.null()
        if not isinstance(data, Mapping) or len(data) != 1:
            raise ValueError(f"malformed sql value {data!r}")
        ((name, payload),) = data.items()
        try:
            kind = SqlValKind(name)
        except ValueError:
            raise ValueError(f"unknown sql value kind {name!r}") from None
        if kind is SqlValKind.NULL:
            raise ValueError("Null carries no payload")
        if kind is SqlValKind.BLOB:
            payload = bytes(payload)
        elif kind is SqlValKind.TIMESTAMP:
            payload = _parse_timestamp(payload)
        return cls(kind, payload)


_SIMPLE_TYPES = {
    bool: SqlType.BOOL,
    int: SqlType.BIGINT,
    float: SqlType.REAL,
    str: SqlType.TEXT,
    bytes: SqlType.BLOB,
    datetime: SqlType.TIMESTAMP,
    dict: SqlType.JSON,
}


def _optional_inner(pytype: Any) -> Any:
    origin = get_origin(pytype)
    if origin is Union or origin is types.UnionType:
        args = get_args(pytype)
        rest = [a for a in args if a is not type(None)]
        if len(rest) == 1 and len(args) == 2:
            return rest[0]
        raise TypeError(f"unsupported union type {pytype!r}")
    return None


def to_sql(value: Any) -> SqlVal:
    """Convert a Python value to a :class:`SqlVal`.

    Python ints become BigInt values; mappings with string keys become Json.
    Objects with a ``to_sql()`` method are converted by calling it.
    """
    if isinstance(value, SqlVal):
        return value
    if value is None:
        return SqlVal.null()
    if isinstance(value, bool):
        return SqlVal(SqlValKind.BOOL, value)
    if isinstance(value, int):
        return SqlVal(SqlValKind.BIGINT, value)
    if isinstance(value, float):
        return SqlVal(SqlValKind.REAL, value)
    if isinstance(value, str):
        return SqlVal(SqlValKind.TEXT, value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return SqlVal(SqlValKind.BLOB, value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return SqlVal(SqlValKind.TIMESTAMP, value)
    if isinstance(value, Mapping):
        if not all(isinstance(k, str) for k in value):
            raise TypeError("only mappings with string keys can be stored as Json")
        return SqlVal(SqlValKind.JSON, dict(value))
    converter = getattr(value, "to_sql", None)
    if callable(converter):
        result = converter()
        if not isinstance(result, SqlVal):
            raise TypeError(f"{type(value).__name__}.to_sql() did not return a SqlVal")
        return result
    raise TypeError(f"cannot convert {type(value).__name__} to a sql value")


def from_sql(val: SqlVal, pytype: Any) -> Any:
    """Convert a :class:`SqlVal` to a value of ``pytype``.

    ``Optional[T]`` maps NULL to None and anything else as ``T``.
    """
    inner = _optional_inner(pytype)
    if inner is not None:
        return None if val.is_null() else from_sql(val, inner)
    base = get_origin(pytype) or pytype
    if base is SqlVal:
        return val
    if base is bool:
        return val.as_bool()
    if base is int:
        return val.as_bigint()
    if base is float:
        return val.as_real()
    if base is str:
        return val.as_text()
    if base is bytes:
        return val.as_blob()
    if base is datetime:
        if val.kind is SqlValKind.TIMESTAMP:
            return val.value
        raise CannotConvertSqlVal(SqlType.TIMESTAMP, val)
    if base is dict:
        if val.kind is SqlValKind.JSON and isinstance(val.value, dict):
            return dict(val.value)
        raise CannotConvertSqlVal(SqlType.JSON, val)
    converter = getattr(pytype, "from_sql", None)
    if callable(converter):
        return converter(val)
    raise TypeError(f"cannot convert a sql value to {pytype!r}")


def sqltype_of(pytype: Any) -> SqlType:
    """The column type used to store values of ``pytype``."""
    inner = _optional_inner(pytype)
    if inner is not None:
        return sqltype_of(inner)
    base = get_origin(pytype) or pytype
    if base in _SIMPLE_TYPES:
        return _SIMPLE_TYPES[base]
    declared = getattr(pytype, "SQLTYPE", None)
    if isinstance(declared, SqlType):
        return declared
    raise TypeError(f"{pytype!r} has no sql type")