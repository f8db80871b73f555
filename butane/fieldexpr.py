"""Typed helpers for building filter expressions on model fields."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from butane.query import (
    BoolExpr,
    Column,
    Eq,
    Ge,
    Gt,
    InnerJoin,
    Le,
    Like,
    Lt,
    Ne,
    Subquery,
    SubqueryJoin,
    Val,
)
from butane.sqlval import to_sql


@dataclass(frozen=True)
class FieldExpr:
    """A model field, used to build comparisons against values."""

    name: str

    def _val(self, val: Any) -> Val:
        return Val(to_sql(val))

    def eq(self, val: Any) -> BoolExpr:
        return Eq(self.name, self._val(val))

    def ne(self, val: Any) -> BoolExpr:
        return Ne(self.name, self._val(val))

    def lt(self, val: Any) -> BoolExpr:
        return Lt(self.name, self._val(val))

    def gt(self, val: Any) -> BoolExpr:
        return Gt(self.name, self._val(val))

    def le(self, val: Any) -> BoolExpr:
        return Le(self.name, self._val(val))

    def ge(self, val: Any) -> BoolExpr:
        return Ge(self.name, self._val(val))

    def like(self, val: Any) -> BoolExpr:
        return Like(self.name, self._val(val))


@dataclass(frozen=True)
class ForeignKeyFieldExpr(FieldExpr):
    """A foreign-key field referring to rows of ``table`` by ``pkcol``."""

    table: str = ""
    pkcol: str = ""

    def subfilter(self, q: BoolExpr) -> BoolExpr:
        """True where the referenced row matches ``q``."""
        return Subquery(col=self.name, tbl2=self.table, tbl2_col=self.pkcol, expr=q)

    def subfilterpk(self, pk: Any) -> BoolExpr:
        """True where the referenced row has primary key ``pk``."""
        return self.subfilter(Eq(self.pkcol, Val(to_sql(pk))))


@dataclass(frozen=True)
class ManyFieldExpr:
    """A many-to-many field stored in ``many_table``.

    ``owner_pkcol`` is the owner model's primary key column; ``item_table`` and
    ``item_pkcol`` describe the related model.
    """

    many_table: str
    owner_pkcol: str
    item_table: str
    item_pkcol: str

    def contains(self, q: BoolExpr) -> BoolExpr:
        """True where any related row matches ``q``."""
        return SubqueryJoin(
            col=self.owner_pkcol,
            tbl2=self.item_table,
            col2=Column(self.many_table, "owner"),
            joins=(
                InnerJoin(
                    join_table=self.many_table,
                    col1=Column(self.many_table, "has"),
                    col2=Column(self.item_table, self.item_pkcol),
                ),
            ),
            expr=q,
        )

    def containspk(self, pk: Any) -> BoolExpr:
        """True where a related row has primary key ``pk``."""
        return self.contains(Eq(self.item_pkcol, Val(to_sql(pk))))