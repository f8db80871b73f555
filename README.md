# butane

Building blocks for an object-relational mapper: typed database values,
an abstract description of a database schema, the list of operations that
turns one schema into another, and a builder for query expressions.

The package has no runtime dependencies.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Database values

`butane.sqlval` defines `SqlType` (the type of a column), `SqlValKind` and
`SqlVal` (a single value). Python values become database values with
`to_sql` and are read back with `from_sql`:

```python
from butane.sqlval import SqlType, from_sql, to_sql

val = to_sql(42)                 # Python ints are stored as BigInt
assert val.sqltype() == SqlType.BIGINT
assert from_sql(val, int) == 42
assert from_sql(to_sql(None), int | None) is None
```

`to_sql` handles `None`, `bool`, `int`, `float`, `str`, bytes, `datetime`
(aware datetimes are converted to naive UTC) and mappings with string keys
(stored as Json); any other object is converted by calling its `to_sql()`
method. `sqltype_of(pytype)` gives the column type for a Python type.
Reading a value as an incompatible type raises
`butane.errors.CannotConvertSqlVal`. `SqlVal.to_json()` and
`SqlVal.from_json()` give a JSON-compatible form.

UUIDs are stored as 16-byte blobs with `butane.uuidval.uuid_to_sql`;
`butane.uuidval.uuid_from_sql` reads them back from a blob or from text.

All errors derive from `butane.errors.ButaneError`.

## Describing a schema

`butane.adb.ADB` holds `ATable`s, each a list of `AColumn`s. A column's type
is a `butane.adbtypes.DeferredSqlType`: known, or deferred until it can be
worked out, for example as the primary key type of another table.
`ADB.resolve_types()` fills in deferred types and raises
`CannotResolveType` for any it cannot.

```python
from butane.adb import ADB, AColumn, ATable, diff
from butane.adbtypes import DeferredSqlType, TypeKey
from butane.sqlval import SqlType

blog = ATable("blog", [
    AColumn("id", DeferredSqlType.known(SqlType.BIGINT), pk=True, auto=True),
    AColumn.simple("name", DeferredSqlType.known(SqlType.TEXT)),
])
post = ATable("post", [
    AColumn("id", DeferredSqlType.known(SqlType.BIGINT), pk=True, auto=True),
    AColumn.simple("blog", DeferredSqlType.deferred(TypeKey.pk("blog"))),
])

schema = ADB()
schema.replace_table(blog)
schema.replace_table(post)
schema.resolve_types()           # post.blog becomes BigInt

ops = diff(ADB(), schema)        # [AddTable(blog), AddTable(post)]
```

`diff(old, new)` returns operations (`AddTable`, `RemoveTableConstraints`,
`RemoveTable`, `AddColumn`, `RemoveColumn`, `ChangeColumn`,
`AddTableConstraints`) and `ADB.transform_with(op)` applies one of them.
`create_many_table` builds the table behind a many-to-many field, named
with the suffix `MANY_SUFFIX`. Schemas, tables and columns have `to_json`
and `from_json`.

## Queries

`butane.query.Query` holds a table, a filter, a limit, an offset and a sort
order. Its builder methods return a new query. Filters are made from
expression classes such as `Eq`, `Lt`, `Like`, `In`, `AllOf`, `Subquery`
and `SubqueryJoin`, combined with `&`, `|` and `~`, or with
`butane.fieldexpr.FieldExpr`:

```python
from butane.fieldexpr import FieldExpr
from butane.query import Query

likes = FieldExpr("likes")
q = Query("post").filter(likes.ge(1) & likes.lt(5)).limit(10).order_desc("id")
```

`ForeignKeyFieldExpr` filters on the row a foreign key points to, and
`ManyFieldExpr` on the members of a many-to-many relationship.

## Many-to-many relationships

`butane.many.Many` records the primary keys added to and removed from a
relationship before they are saved, and `Many.query()` builds the query for
the members already stored. `Many.columns()` describes the relationship
table.

## Other pieces

`butane.fs` defines the `Filesystem` interface and `OsFilesystem`, which
works on the real filesystem. `butane.util.OnceCell` is a slot filled at
most once until cleared.

## What this package does not do

It does not connect to a database, run queries or generate SQL: queries and
schema operations are data structures only. It does not store migrations,
in memory or on disk, and does not create or apply them. Because nothing
loads related objects, `Many.get()` raises `ValueNotLoaded`.