"""Abstract representation of database queries and expressions."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

from butane.sqlval import SqlVal, to_sql


@dataclass(frozen=True)
class ColumnRef:
    """An expression naming a column."""

    name: str


@dataclass(frozen=True)
class Val:
    """An expression holding a value; plain Python values are converted."""

    value: SqlVal

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", to_sql(self.value))


@dataclass(frozen=True)
class Placeholder:
    """A placeholder for a value bound later."""


@dataclass(frozen=True)
class Condition:
    """A boolean condition used as a value expression."""

    expr: "BoolExpr"


Expr = Union[ColumnRef, Val, Placeholder, Condition]
_EXPR_TYPES = (ColumnRef, Val, Placeholder, Condition)


class _BoolExprBase:
    """Operators shared by boolean expressions: ``&``, ``|`` and ``~``."""

    __slots__ = ()

    def __and__(self, other: "BoolExpr") -> "And":
        return And(self, other)  # type: ignore[arg-type]

    def __or__(self, other: "BoolExpr") -> "Or":
        return Or(self, other)  # type: ignore[arg-type]

    def __invert__(self) -> "Not":
        return Not(self)  # type: ignore[arg-type]


@dataclass(frozen=True)
class TrueExpr(_BoolExprBase):
    """Always true."""


@dataclass(frozen=True)
class _Comparison(_BoolExprBase):
    col: str
    expr: Expr

    def __post_init__(self) -> None:
        if not isinstance(self.expr, _EXPR_TYPES):
            object.__setattr__(self, "expr", Val(self.expr))


@dataclass(frozen=True)
class Eq(_Comparison):
    """``col = expr``"""


@dataclass(frozen=True)
class Ne(_Comparison):
    """``col <> expr``"""


@dataclass(frozen=True)
class Lt(_Comparison):
    """``col < expr``"""


@dataclass(frozen=True)
class Gt(_Comparison):
    """``col > expr``"""


@dataclass(frozen=True)
class Le(_Comparison):
    """``col <= expr``"""


@dataclass(frozen=True)
class Ge(_Comparison):
    """``col >= expr``"""


@dataclass(frozen=True)
class Like(_Comparison):
    """``col LIKE expr``"""


@dataclass(frozen=True)
class AllOf(_BoolExprBase):
    """True if every one of ``exprs`` is true."""

    exprs: Tuple["BoolExpr", ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "exprs", tuple(self.exprs))


@dataclass(frozen=True)
class And(_BoolExprBase):
    left: "BoolExpr"
    right: "BoolExpr"


@dataclass(frozen=True)
class Or(_BoolExprBase):
    left: "BoolExpr"
    right: "BoolExpr"


@dataclass(frozen=True)
class Not(_BoolExprBase):
    expr: "BoolExpr"


@dataclass(frozen=True)
class Subquery(_BoolExprBase):
    """True if ``col`` is among the values of ``tbl2_col`` in rows of ``tbl2`` where ``expr`` holds."""

    col: str
    tbl2: str
    tbl2_col: str
    expr: "BoolExpr"


@dataclass(frozen=True)
class In(_BoolExprBase):
    """True if ``col`` equals one of ``values``."""

    col: str
    values: Tuple[SqlVal, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(to_sql(v) for v in self.values))


@dataclass(frozen=True)
class Column:
    """A column, optionally qualified by its table."""

    table: Optional[str]
    name: str

    @classmethod
    def unqualified(cls, name: str) -> "Column":
        return cls(None, name)


@dataclass(frozen=True)
class InnerJoin:
    """Inner join of ``join_table`` where ``col1`` equals ``col2``."""

    join_table: str
    col1: Column
    col2: Column


@dataclass(frozen=True)
class SubqueryJoin(_BoolExprBase):
    """True if ``col`` is among the values of ``col2`` in rows of ``tbl2``,
    joined as given, where ``expr`` holds."""

    col: str
    tbl2: str
    col2: Column
    joins: Tuple[InnerJoin, ...]
    expr: "BoolExpr"

    def __post_init__(self) -> None:
        object.__setattr__(self, "joins", tuple(self.joins))


BoolExpr = Union[
    TrueExpr, Eq, Ne, Lt, Gt, Le, Ge, Like, AllOf, And, Or, Not, Subquery, In, SubqueryJoin
]


class OrderDirection(Enum):
    ASCENDING = "Ascending"
    DESCENDING = "Descending"


@dataclass(frozen=True)
class Order:
    """A sort term."""

    direction: OrderDirection
    column: str


def _check_count(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{what} must be an int")
    return value


@dataclass(frozen=True)
class Query:
    """A query over ``table``. Builder methods return a new query."""

    table: str
    condition: Optional[BoolExpr] = None
    row_limit: Optional[int] = None
    row_offset: Optional[int] = None
    sort: Tuple[Order, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "sort", tuple(self.sort))

    def filter(self, expr: BoolExpr) -> "Query":
        """Match only rows for which ``expr`` is true, replacing any earlier filter."""
        return dataclasses.replace(self, condition=expr)

    def limit(self, lim: int) -> "Query":
        """Match at most the first ``lim`` rows."""
        return dataclasses.replace(self, row_limit=_check_count(lim, "limit"))

    def offset(self, off: int) -> "Query":
        """Skip the first ``off`` rows."""
        return dataclasses.replace(self, row_offset=_check_count(off, "offset"))

    def order(self, column: str, direction: OrderDirection) -> "Query":
        """Sort by ``column``; earlier sort terms take precedence."""
        return dataclasses.replace(self, sort=self.sort + (Order(direction, column),))

    def order_asc(self, column: str) -> "Query":
        return self.order(column, OrderDirection.ASCENDING)

    def order_desc(self, column: str) -> "Query":
        return self.order(column, OrderDirection.DESCENDING)