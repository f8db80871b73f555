import json

import pytest

from butane.adbtypes import (
    DeferredKind,
    DeferredSqlType,
    TypeIdentifier,
    TypeKey,
    TypeKeyKind,
)
from butane.sqlval import SqlType


def test_type_identifier_round_trip():
    for tid in (TypeIdentifier(sqltype=SqlType.TEXT), TypeIdentifier(name="Point")):
        assert TypeIdentifier.from_json(json.loads(json.dumps(tid.to_json()))) == tid


def test_type_identifier_ty_form():
    assert TypeIdentifier(sqltype=SqlType.TEXT).to_json() == {"Ty": SqlType.TEXT.value}


def test_type_identifier_requires_exactly_one():
    with pytest.raises(ValueError):
        TypeIdentifier()
    with pytest.raises(ValueError):
        TypeIdentifier(sqltype=SqlType.INT, name="x")


def test_type_identifier_bad_tag():
    with pytest.raises(ValueError):
        TypeIdentifier.from_json({"Other": "x"})


def test_type_key_serialize_forms():
    assert TypeKey.pk("Foo").serialize() == "PK:Foo"
    assert TypeKey.custom("Bar").serialize() == "CT:Bar"


def test_type_key_display():
    assert str(TypeKey.pk("Foo")) == "PK(Foo)"


def test_type_key_parse_round_trip():
    for key in (TypeKey.pk("Blog"), TypeKey.custom("HashMap<String, i32>"), TypeKey.pk("")):
        assert TypeKey.parse(key.serialize()) == key


def test_type_key_parse_unknown():
    with pytest.raises(ValueError):
        TypeKey.parse("XX:Foo")


def test_type_key_ordering_pk_first():
    keys = [TypeKey.custom("a"), TypeKey.pk("z"), TypeKey.pk("b"), TypeKey.custom("0")]
    ordered = sorted(keys)
    assert [k.kind for k in ordered] == [
        TypeKeyKind.PK,
        TypeKeyKind.PK,
        TypeKeyKind.CUSTOM,
        TypeKeyKind.CUSTOM,
    ]
    assert [k.name for k in ordered] == ["b", "z", "0", "a"]


def test_type_key_hashable():
    mapping = {TypeKey.pk("A"): 1}
    assert mapping[TypeKey.pk("A")] == 1
    assert TypeKey.custom("A") not in mapping


def test_deferred_known_equals_known_id():
    a = DeferredSqlType.known(SqlType.INT)
    b = DeferredSqlType.known_id(TypeIdentifier(sqltype=SqlType.INT))
    assert a == b
    assert b == a
    assert hash(a) == hash(b)


def test_deferred_differs_from_known():
    a = DeferredSqlType.known(SqlType.INT)
    b = DeferredSqlType.known(SqlType.BIGINT)
    c = DeferredSqlType.deferred(TypeKey.pk("Int"))
    assert not a == b
    assert not a == c


def test_is_known():
    assert DeferredSqlType.known(SqlType.TEXT).is_known() is True
    assert DeferredSqlType.known_id(TypeIdentifier(name="x")).is_known() is True
    assert DeferredSqlType.deferred(TypeKey.pk("T")).is_known() is False


def test_deferred_json_round_trip():
    values = [
        DeferredSqlType.known(SqlType.BLOB),
        DeferredSqlType.known_id(TypeIdentifier(name="Geo")),
        DeferredSqlType.deferred(TypeKey.custom("Thing")),
    ]
    for v in values:
        back = DeferredSqlType.from_json(json.loads(json.dumps(v.to_json())))
        assert back == v
        assert back.kind is v.kind


def test_deferred_json_uses_serialized_key():
    key = TypeKey.pk("Blog")
    data = DeferredSqlType.deferred(key).to_json()
    assert data == {DeferredKind.DEFERRED.value: key.serialize()}


def test_deferred_wrong_payload_type():
    with pytest.raises(TypeError):
        DeferredSqlType(DeferredKind.KNOWN, "Int")


def test_deferred_from_json_bad_tag():
    with pytest.raises(ValueError):
        DeferredSqlType.from_json({"Maybe": "Int"})