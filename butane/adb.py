"""Abstract representation of a database schema and the differences between schemas."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from butane.adbtypes import (
    DeferredKind,
    DeferredSqlType,
    TypeIdentifier,
    TypeKey,
    TypeKeyKind,
)
from butane.errors import CannotResolveType, MigrationError, UnknownSqlType
from butane.sqlval import SqlType, SqlVal

MANY_SUFFIX = "_Many"
"""Suffix added to the names of many-to-many tables."""

_MAP_TYPE_NAMES = (
    "HashMap",
    "collections::HashMap",
    "std::collections::HashMap",
    "BTreeMap",
    "collections::BTreeMap",
    "std::collections::BTreeMap",
)
_STRING_TYPE_NAMES = ("String", "string::String", "std::string::String")
_JSON_MAP_PREFIXES = tuple(
    f"{map_name}<{string_name}," for map_name in _MAP_TYPE_NAMES for string_name in _STRING_TYPE_NAMES
)


def _require(data: Any, key: str, what: str) -> Any:
    if not isinstance(data, Mapping) or key not in data:
        raise ValueError(f"malformed {what}: missing {key!r}")
    return data[key]


class _TypeResolver:
    """Types learned so far while resolving deferred column types."""

    def __init__(self) -> None:
        self._types: Dict[TypeKey, TypeIdentifier] = {}

    def find_type(self, key: TypeKey) -> Optional[TypeIdentifier]:
        if key.kind is TypeKeyKind.CUSTOM and key.name.startswith(_JSON_MAP_PREFIXES):
            return TypeIdentifier(sqltype=SqlType.JSON)
        return self._types.get(key)

    def insert(self, key: TypeKey, ty: TypeIdentifier) -> bool:
        """Record ``ty`` for ``key``; return False if ``key`` was already known."""
        if key in self._types:
            return False
        self._types[key] = ty
        return True


@dataclass(frozen=True)
class ARefLiteral:
    """Reference to a literal table column."""

    table_name: str
    column_name: str

    def to_json(self) -> Any:
        return {"Literal": {"table_name": self.table_name, "column_name": self.column_name}}


@dataclass(frozen=True)
class ARefDeferred:
    """Reference whose target has not been resolved yet."""

    sqltype: DeferredSqlType

    def to_json(self) -> Any:
        return {"Deferred": self.sqltype.to_json()}


ARef = Union[ARefLiteral, ARefDeferred]


def aref_from_json(data: Any) -> ARef:
    """Parse a column reference serialized by ``to_json``."""
    if not isinstance(data, Mapping) or len(data) != 1:
        raise ValueError(f"malformed reference {data!r}")
    ((tag, payload),) = data.items()
    if tag == "Literal":
        return ARefLiteral(
            _require(payload, "table_name", "reference"),
            _require(payload, "column_name", "reference"),
        )
    if tag == "Deferred":
        return ARefDeferred(DeferredSqlType.from_json(payload))
    raise ValueError(f"unknown reference tag {tag!r}")


@dataclass
class AColumn:
    """Abstract representation of a column."""

    name: str
    sqltype: DeferredSqlType
    nullable: bool = False
    pk: bool = False
    auto: bool = False
    unique: bool = False
    default: Optional[SqlVal] = None
    reference: Optional[ARef] = None

    @classmethod
    def simple(cls, name: str, sqltype: DeferredSqlType) -> "AColumn":
        """A non-null, non-auto, non-pk, non-unique column with no default."""
        return cls(name, sqltype)

    def typeid(self) -> TypeIdentifier:
        """The column's type; raises UnknownSqlType if it is still deferred."""
        kind = self.sqltype.kind
        if kind is DeferredKind.KNOWN_ID:
            return self.sqltype.value  # type: ignore[return-value]
        if kind is DeferredKind.KNOWN:
            return TypeIdentifier(sqltype=self.sqltype.value)  # type: ignore[arg-type]
        raise UnknownSqlType(str(self.sqltype.value))

    def add_reference(self, reference: ARef) -> None:
        self.reference = reference

    def remove_reference(self) -> None:
        self.reference = None

    def _resolve_type(self, resolver: _TypeResolver) -> bool:
        """Return True if the type was unresolved and is now resolved."""
        if self.sqltype.is_known():
            return False
        found = resolver.find_type(self.sqltype.value)  # type: ignore[arg-type]
        if found is None:
            return False
        self.sqltype = DeferredSqlType.known_id(found)
        return True

    def _resolve_reference_target(
        self,
        extra_types: Mapping[TypeKey, DeferredSqlType],
        tables: Mapping[str, "ATable"],
    ) -> None:
        ref = self.reference
        if ref is None or isinstance(ref, ARefLiteral):
            return
        target = ref.sqltype
        if target.kind is not DeferredKind.DEFERRED:
            raise MigrationError("can only resolve deferred references")
        key: TypeKey = target.value  # type: ignore[assignment]
        extra = extra_types.get(key)
        if (
            extra is not None
            and extra.kind is DeferredKind.DEFERRED
            and extra.value.kind is TypeKeyKind.PK  # type: ignore[union-attr]
        ):
            table_name = extra.value.name  # type: ignore[union-attr]
        elif key.kind is TypeKeyKind.PK:
            table_name = key.name
        else:
            raise MigrationError(f"unexpected reference {ref!r}")
        table = tables.get(table_name)
        if table is None:
            return
        pk = table.pk()
        if pk is not None:
            self.reference = ARefLiteral(table_name, pk.name)

    def to_json(self) -> Any:
        data: Dict[str, Any] = {
            "name": self.name,
            "sqltype": self.sqltype.to_json(),
            "nullable": self.nullable,
            "pk": self.pk,
            "auto": self.auto,
            "unique": self.unique,
            "default": None if self.default is None else self.default.to_json(),
        }
        if self.reference is not None:
            data["reference"] = self.reference.to_json()
        return data

    @classmethod
    def from_json(cls, data: Any) -> "AColumn":
        default = data.get("default") if isinstance(data, Mapping) else None
        reference = data.get("reference") if isinstance(data, Mapping) else None
        return cls(
            name=_require(data, "name", "column"),
            sqltype=DeferredSqlType.from_json(_require(data, "sqltype", "column")),
            nullable=bool(_require(data, "nullable", "column")),
            pk=bool(_require(data, "pk", "column")),
            auto=bool(_require(data, "auto", "column")),
            unique=bool(data.get("unique", False)),
            default=None if default is None else SqlVal.from_json(default),
            reference=None if reference is None else aref_from_json(reference),
        )


@dataclass
class ATable:
    """Abstract representation of a table."""

    name: str
    columns: List[AColumn] = field(default_factory=list)

    def add_column(self, col: AColumn) -> None:
        """Add a column, replacing any existing column of the same name."""
        self.replace_column(col)

    def column(self, name: str) -> Optional[AColumn]:
        return next((c for c in self.columns if c.name == name), None)

    def replace_column(self, col: AColumn) -> None:
        for position, existing in enumerate(self.columns):
            if existing.name == col.name:
                self.columns[position] = col
                return
        self.columns.append(col)

    def remove_column(self, name: str) -> None:
        self.columns = [c for c in self.columns if c.name != name]

    def pk(self) -> Optional[AColumn]:
        """The primary key column, if any."""
        return next((c for c in self.columns if c.pk), None)

    def to_json(self) -> Any:
        return {"name": self.name, "columns": [c.to_json() for c in self.columns]}

    @classmethod
    def from_json(cls, data: Any) -> "ATable":
        return cls(
            name=_require(data, "name", "table"),
            columns=[AColumn.from_json(c) for c in _require(data, "columns", "table")],
        )


@dataclass
class AddTable:
    table: ATable


@dataclass
class AddTableIfNotExists:
    table: ATable


@dataclass
class RemoveTableConstraints:
    """Remove constraints referring to other tables, where the backend supports it."""

    table: ATable


@dataclass
class RemoveTable:
    name: str


@dataclass
class AddColumn:
    table: str
    column: AColumn


@dataclass
class RemoveColumn:
    table: str
    column: str


@dataclass
class ChangeColumn:
    table: str
    old: AColumn
    new: AColumn


@dataclass
class AddTableConstraints:
    """Add constraints referring to other tables, where the backend supports it."""

    table: ATable


Operation = Union[
    AddTable,
    AddTableIfNotExists,
    RemoveTableConstraints,
    RemoveTable,
    AddColumn,
    RemoveColumn,
    ChangeColumn,
    AddTableConstraints,
]


class ADB:
    """Abstract representation of a database schema."""

    def __init__(self) -> None:
        self._tables: Dict[str, ATable] = {}
        self._extra_types: Dict[TypeKey, DeferredSqlType] = {}

    def __repr__(self) -> str:
        return f"ADB(tables={list(self.tables())!r}, types={self.types()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ADB):
            return NotImplemented
        return self._tables == other._tables and self._extra_types == other._extra_types

    def tables(self) -> Iterator[ATable]:
        """Tables in order of name."""
        return (self._tables[name] for name in sorted(self._tables))

    def get_table(self, name: str) -> Optional[ATable]:
        return self._tables.get(name)

    def types(self) -> Dict[TypeKey, DeferredSqlType]:
        """The extra type mappings, in key order."""
        return dict(sorted(self._extra_types.items()))

    def replace_table(self, table: ATable) -> None:
        self._tables[table.name] = table

    def remove_table(self, name: str) -> None:
        self._tables.pop(name, None)

    def add_type(self, key: TypeKey, sqltype: DeferredSqlType) -> None:
        self._extra_types[key] = sqltype

    def resolve_types(self) -> None:
        """Resolve as many deferred types as possible.

        Raises CannotResolveType if any column type stays unresolved.
        """
        resolver = _TypeResolver()
        snapshot = copy.deepcopy(self._tables)
        for table in self.tables():
            for col in table.columns:
                col._resolve_reference_target(self._extra_types, snapshot)

        changed = True
        while changed:
            changed = False
            for table in self.tables():
                pk = table.pk()
                if pk is not None:
                    try:
                        pktype = pk.typeid()
                    except UnknownSqlType:
                        pass
                    else:
                        changed |= resolver.insert(TypeKey.pk(table.name), pktype)
                elif not table.name.endswith(MANY_SUFFIX):
                    raise MigrationError(f"table {table.name} has no primary key")
                for col in table.columns:
                    changed |= col._resolve_type(resolver)
            for key in sorted(self._extra_types):
                ty = self._extra_types[key]
                if ty.kind is DeferredKind.KNOWN:
                    changed |= resolver.insert(key, TypeIdentifier(sqltype=ty.value))  # type: ignore[arg-type]
                elif ty.kind is DeferredKind.KNOWN_ID:
                    changed |= resolver.insert(key, ty.value)  # type: ignore[arg-type]
                else:
                    found = resolver.find_type(ty.value)  # type: ignore[arg-type]
                    if found is not None:
                        self._extra_types[key] = DeferredSqlType.known_id(found)
                        changed = True

        for table in self.tables():
            for col in table.columns:
                if not col.sqltype.is_known():
                    raise CannotResolveType(str(col.sqltype.value))

    def transform_with(self, op: Operation) -> None:
        """Apply a single operation to this schema."""
        match op:
            case AddTable(table) | AddTableIfNotExists(table):
                self._tables[table.name] = table
            case AddTableConstraints() | RemoveTableConstraints():
                pass
            case RemoveTable(name):
                self.remove_table(name)
            case AddColumn(table_name, column):
                table = self._tables.get(table_name)
                if table is not None:
                    table.add_column(column)
            case RemoveColumn(table_name, column_name):
                table = self._tables.get(table_name)
                if table is not None:
                    table.remove_column(column_name)
            case ChangeColumn(table_name, _, new):
                table = self._tables.get(table_name)
                if table is not None:
                    table.replace_column(new)
            case _:
                raise TypeError(f"not a schema operation: {op!r}")

    def to_json(self) -> Any:
        return {
            "tables": {table.name: table.to_json() for table in self.tables()},
            "extra_types": {key.serialize(): ty.to_json() for key, ty in self.types().items()},
        }

    @classmethod
    def from_json(cls, data: Any) -> "ADB":
        db = cls()
        for table_data in _require(data, "tables", "schema").values():
            db.replace_table(ATable.from_json(table_data))
        for key, ty in _require(data, "extra_types", "schema").items():
            db.add_type(TypeKey.parse(key), DeferredSqlType.from_json(ty))
        return db


def diff(old: ADB, new: ADB) -> List[Operation]:
    """Operations needed to move a database schema from ``old`` to ``new``."""
    new_names = set(new._tables)
    old_names = set(old._tables)
    added = sorted(new_names - old_names)
    removed = sorted(old_names - new_names)

    ops: List[Operation] = [AddTable(copy.deepcopy(new._tables[name])) for name in added]
    ops.extend(RemoveTableConstraints(copy.deepcopy(old._tables[name])) for name in removed)
    ops.extend(RemoveTable(name) for name in removed)
    for name in sorted(new_names & old_names):
        ops.extend(_diff_table(old._tables[name], new._tables[name]))
    for name in added:
        table = new._tables[name]
        if any(col.reference is not None for col in table.columns):
            ops.append(AddTableConstraints(copy.deepcopy(table)))
    return ops


def _diff_table(old: ATable, new: ATable) -> List[Operation]:
    old_cols = {col.name: col for col in old.columns}
    new_cols = {col.name: col for col in new.columns}
    ops: List[Operation] = [
        AddColumn(new.name, copy.deepcopy(new_cols[name]))
        for name in sorted(new_cols.keys() - old_cols.keys())
    ]
    ops.extend(RemoveColumn(old.name, name) for name in sorted(old_cols.keys() - new_cols.keys()))
    for name in sorted(new_cols.keys() & old_cols.keys()):
        col, old_col = new_cols[name], old_cols[name]
        if col != old_col:
            ops.append(ChangeColumn(new.name, copy.deepcopy(old_col), copy.deepcopy(col)))
    return ops


def create_many_table(
    main_table_name: str,
    many_field_name: str,
    many_field_type: DeferredSqlType,
    main_table_pk_field_name: str,
    main_table_pk_field_type: DeferredSqlType,
) -> ATable:
    """Build the table backing a many-to-many field."""
    table = ATable(f"{main_table_name}_{many_field_name}{MANY_SUFFIX}")
    table.add_column(
        AColumn(
            "owner",
            main_table_pk_field_type,
            reference=ARefLiteral(main_table_name, main_table_pk_field_name),
        )
    )
    has = AColumn.simple("has", many_field_type)
    if (
        many_field_type.kind is DeferredKind.DEFERRED
        and many_field_type.value.kind is TypeKeyKind.PK  # type: ignore[union-attr]
    ):
        has.add_reference(ARefDeferred(many_field_type))
    table.add_column(has)
    return table