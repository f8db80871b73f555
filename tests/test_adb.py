import json

import pytest

from butane.adb import (
    ADB,
    MANY_SUFFIX,
    AColumn,
    AddColumn,
    AddTable,
    AddTableConstraints,
    ARefDeferred,
    ARefLiteral,
    ATable,
    ChangeColumn,
    RemoveColumn,
    RemoveTable,
    RemoveTableConstraints,
    aref_from_json,
    create_many_table,
    diff,
)
from butane.adbtypes import DeferredSqlType, TypeIdentifier, TypeKey
from butane.errors import CannotResolveType, MigrationError, UnknownSqlType
from butane.sqlval import SqlType, SqlVal, SqlValKind


def _known(sqltype):
    return DeferredSqlType.known(sqltype)


def _blog():
    table = ATable("Blog")
    table.add_column(AColumn("id", _known(SqlType.BIGINT), pk=True, auto=True))
    table.add_column(AColumn.simple("name", _known(SqlType.TEXT)))
    return table


def _post():
    table = ATable("Post")
    table.add_column(AColumn("id", _known(SqlType.BIGINT), pk=True))
    blog_key = DeferredSqlType.deferred(TypeKey.pk("Blog"))
    table.add_column(AColumn("blog", blog_key, reference=ARefDeferred(blog_key)))
    return table


def _db(*tables):
    db = ADB()
    for table in tables:
        db.replace_table(table)
    return db


def test_resolves_pk_type_and_reference():
    db = _db(_blog(), _post())
    db.resolve_types()
    col = db.get_table("Post").column("blog")
    assert col.typeid() == TypeIdentifier(sqltype=SqlType.BIGINT)
    assert col.reference == ARefLiteral("Blog", "id")


def test_unresolvable_type_raises():
    table = ATable("Post")
    table.add_column(AColumn("id", _known(SqlType.INT), pk=True))
    table.add_column(AColumn.simple("other", DeferredSqlType.deferred(TypeKey.pk("Missing"))))
    db = _db(table)
    with pytest.raises(CannotResolveType) as excinfo:
        db.resolve_types()
    assert excinfo.value.key == str(TypeKey.pk("Missing"))


def test_custom_type_from_extra_types():
    table = ATable("Account")
    table.add_column(AColumn("id", _known(SqlType.INT), pk=True))
    table.add_column(AColumn.simple("balance", DeferredSqlType.deferred(TypeKey.custom("Money"))))
    db = _db(table)
    db.add_type(TypeKey.custom("Money"), _known(SqlType.REAL))
    db.resolve_types()
    assert db.get_table("Account").column("balance").typeid() == TypeIdentifier(sqltype=SqlType.REAL)


def test_extra_type_deferred_to_pk_is_resolved():
    table = ATable("Post")
    table.add_column(AColumn("id", _known(SqlType.INT), pk=True))
    table.add_column(AColumn.simple("blog", DeferredSqlType.deferred(TypeKey.custom("BlogId"))))
    db = _db(_blog(), table)
    db.add_type(TypeKey.custom("BlogId"), DeferredSqlType.deferred(TypeKey.pk("Blog")))
    db.resolve_types()
    expected = TypeIdentifier(sqltype=SqlType.BIGINT)
    assert db.get_table("Post").column("blog").typeid() == expected
    assert db.types()[TypeKey.custom("BlogId")] == DeferredSqlType.known_id(expected)


@pytest.mark.parametrize(
    "type_name",
    ["HashMap<String, i64>", "std::collections::BTreeMap<std::string::String, bool>"],
)
def test_string_keyed_maps_resolve_to_json(type_name):
    table = ATable("Doc")
    table.add_column(AColumn("id", _known(SqlType.INT), pk=True))
    table.add_column(AColumn.simple("data", DeferredSqlType.deferred(TypeKey.custom(type_name))))
    db = _db(table)
    db.resolve_types()
    assert db.get_table("Doc").column("data").typeid() == TypeIdentifier(sqltype=SqlType.JSON)


def test_table_without_pk_is_rejected_unless_many():
    db = _db(ATable("Loose"))
    with pytest.raises(MigrationError):
        db.resolve_types()
    many = _db(create_many_table("Post", "tags", _known(SqlType.TEXT), "id", _known(SqlType.INT)))
    many.resolve_types()
    assert [t.name for t in many.tables()] == [f"Post_tags{MANY_SUFFIX}"]


def test_create_many_table_columns():
    tag_key = DeferredSqlType.deferred(TypeKey.pk("Tag"))
    table = create_many_table("Post", "tags", tag_key, "id", _known(SqlType.BIGINT))
    assert table.name == "Post_tags_Many"
    assert [c.name for c in table.columns] == ["owner", "has"]
    assert table.column("owner").reference == ARefLiteral("Post", "id")
    assert table.column("has").reference == ARefDeferred(tag_key)
    assert table.pk() is None


def test_many_table_has_no_reference_for_known_type():
    table = create_many_table("Post", "tags", _known(SqlType.TEXT), "id", _known(SqlType.BIGINT))
    assert table.column("has").reference is None


def test_diff_added_tables():
    blog, post = _blog(), _post()
    ops = diff(ADB(), _db(blog, post))
    assert ops == [AddTable(blog), AddTable(post), AddTableConstraints(post)]


def test_diff_removed_tables():
    blog = _blog()
    assert diff(_db(blog), ADB()) == [RemoveTableConstraints(blog), RemoveTable("Blog")]


def test_diff_identical_is_empty():
    assert diff(_db(_blog(), _post()), _db(_blog(), _post())) == []


def test_diff_columns():
    old = _blog()
    old.add_column(AColumn.simple("old_col", _known(SqlType.INT)))
    new = _blog()
    new_name = AColumn("name", _known(SqlType.TEXT), nullable=True)
    new.replace_column(new_name)
    title = AColumn.simple("title", _known(SqlType.TEXT))
    new.add_column(title)
    ops = diff(_db(old), _db(new))
    assert ops == [
        AddColumn("Blog", title),
        RemoveColumn("Blog", "old_col"),
        ChangeColumn("Blog", old.column("name"), new_name),
    ]


def test_applying_diff_reaches_target():
    old_blog = _blog()
    old_blog.add_column(AColumn.simple("gone", _known(SqlType.INT)))
    old = _db(old_blog, ATable("Obsolete", [AColumn("id", _known(SqlType.INT), pk=True)]))
    new_blog = _blog()
    new_blog.replace_column(AColumn("name", _known(SqlType.TEXT), unique=True))
    new_blog.add_column(AColumn.simple("extra", _known(SqlType.BLOB)))
    new = _db(new_blog, _post())
    for op in diff(old, new):
        old.transform_with(op)
    assert [t.name for t in old.tables()] == [t.name for t in new.tables()]
    for table in new.tables():
        got = {c.name: c for c in old.get_table(table.name).columns}
        assert got == {c.name: c for c in table.columns}
    assert diff(old, new) == []


def test_table_column_management():
    table = _blog()
    replacement = AColumn("name", _known(SqlType.TEXT), unique=True)
    table.replace_column(replacement)
    assert [c.name for c in table.columns] == ["id", "name"]
    assert table.column("name") is replacement
    table.remove_column("name")
    assert table.column("name") is None
    assert table.pk().name == "id"


def test_deferred_typeid_raises():
    col = AColumn.simple("x", DeferredSqlType.deferred(TypeKey.custom("Thing")))
    with pytest.raises(UnknownSqlType):
        col.typeid()


def test_known_typeid_matches_known_id():
    col = AColumn.simple("x", _known(SqlType.TEXT))
    assert col.typeid() == TypeIdentifier(sqltype=SqlType.TEXT)


def test_add_and_remove_reference():
    col = AColumn.simple("x", _known(SqlType.INT))
    ref = ARefLiteral("Blog", "id")
    col.add_reference(ref)
    assert col.reference == ref
    col.remove_reference()
    assert col.reference is None


def test_column_json_round_trip():
    col = AColumn(
        "likes",
        _known(SqlType.INT),
        nullable=True,
        unique=True,
        default=SqlVal(SqlValKind.INT, 3),
        reference=ARefLiteral("Blog", "id"),
    )
    assert AColumn.from_json(json.loads(json.dumps(col.to_json()))) == col


def test_column_json_omits_missing_reference_and_defaults_optional_fields():
    col = AColumn.simple("name", _known(SqlType.TEXT))
    data = col.to_json()
    assert "reference" not in data
    del data["unique"]
    restored = AColumn.from_json(data)
    assert restored.unique is False
    assert restored == col


def test_column_json_missing_field_raises():
    data = AColumn.simple("name", _known(SqlType.TEXT)).to_json()
    del data["sqltype"]
    with pytest.raises(ValueError):
        AColumn.from_json(data)


@pytest.mark.parametrize(
    "ref",
    [ARefLiteral("Blog", "id"), ARefDeferred(DeferredSqlType.deferred(TypeKey.pk("Blog")))],
)
def test_reference_json_round_trip(ref):
    assert aref_from_json(ref.to_json()) == ref


def test_reference_json_unknown_tag():
    with pytest.raises(ValueError):
        aref_from_json({"Other": {}})


def test_table_json_round_trip():
    table = _post()
    assert ATable.from_json(table.to_json()) == table


def test_adb_json_round_trip():
    db = _db(_blog(), _post())
    db.add_type(TypeKey.custom("Money"), _known(SqlType.REAL))
    db.resolve_types()
    restored = ADB.from_json(json.loads(json.dumps(db.to_json())))
    assert restored == db
    assert restored.to_json() == db.to_json()


def test_remove_table():
    db = _db(_blog())
    db.remove_table("Blog")
    db.remove_table("Blog")
    assert db.get_table("Blog") is None
    assert list(db.tables()) == []