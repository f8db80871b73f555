"""Storage of UUIDs as database values."""

from __future__ import annotations

import uuid

from butane.errors import CannotConvertSqlVal
from butane.sqlval import SqlType, SqlVal, SqlValKind

SQLTYPE = SqlType.BLOB


def uuid_to_sql(value: uuid.UUID) -> SqlVal:
    """Store a UUID as a 16-byte blob."""
    if not isinstance(value, uuid.UUID):
        raise TypeError(f"expected a UUID, got {type(value).__name__}")
    return SqlVal(SqlValKind.BLOB, value.bytes)


def uuid_from_sql(val: SqlVal) -> uuid.UUID:
    """Read a UUID from a 16-byte blob, or from its text form."""
    if val.kind is SqlValKind.BLOB and len(val.value) == 16:
        return uuid.UUID(bytes=val.value)
    if val.kind is SqlValKind.TEXT:
        try:
            return uuid.UUID(val.value)
        except ValueError:
            pass
    raise CannotConvertSqlVal(SqlType.BLOB, val)