"""Many-to-many relationships between models."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterator, List, Optional, Tuple

from butane.errors import NotInitialized, ValueNotLoaded, ValueNotSaved
from butane.query import Eq, Query, Subquery, Val
from butane.sqlval import SqlType, SqlVal, sqltype_of, to_sql
from butane.util import OnceCell

UNINITIALIZED_TABLE = "not_initialized"


def _pk_is_valid(pk: Any) -> bool:
    if pk is None:
        return False
    check = getattr(pk, "is_valid", None)
    return True if check is None else bool(check())


class Many:
    """A many-to-many relationship from an owner model to ``item_type``.

    The relationship lives in a table with columns ``owner`` and ``has``.
    ``item_type`` must provide ``TABLE``, ``PKCOL`` and ``PKTYPE`` class
    attributes, and its instances a ``pk()`` method.
    """

    __hash__ = None  # type: ignore[assignment]

    def __init__(self, item_type: Any) -> None:
        self.item_type = item_type
        self._item_table = UNINITIALIZED_TABLE
        self._owner: Optional[SqlVal] = None
        self._owner_type = SqlType.INT
        self._new_values: List[SqlVal] = []
        self._removed_values: List[SqlVal] = []
        self._all_values: OnceCell[Tuple[Any, ...]] = OnceCell()

    def __repr__(self) -> str:
        return (
            f"Many({getattr(self.item_type, '__name__', self.item_type)}, "
            f"item_table={self._item_table!r}, owner={self._owner!r})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Many):
            return NotImplemented
        return self._owner == other._owner and self._item_table == other._item_table

    @property
    def item_table(self) -> str:
        return self._item_table

    @property
    def owner(self) -> Optional[SqlVal]:
        return self._owner

    @property
    def owner_type(self) -> SqlType:
        return self._owner_type

    @property
    def new_values(self) -> Tuple[SqlVal, ...]:
        """Primary keys added but not yet saved."""
        return tuple(self._new_values)

    @property
    def removed_values(self) -> Tuple[SqlVal, ...]:
        """Primary keys removed but not yet saved."""
        return tuple(self._removed_values)

    def ensure_init(self, item_table: str, owner: Any, owner_type: SqlType) -> None:
        """Bind the relationship to its table and owner; no-op if already bound."""
        if self._owner is not None:
            return
        self._item_table = item_table
        self._owner = to_sql(owner)
        self._owner_type = owner_type
        self._all_values.clear()

    def add(self, value: Any) -> None:
        """Add a related object; raises ValueNotSaved if its primary key is not valid yet."""
        pk = value.pk()
        if not _pk_is_valid(pk):
            raise ValueNotSaved()
        self._all_values.clear()
        self._new_values.append(to_sql(pk))

    def remove(self, value: Any) -> None:
        """Remove a related object."""
        self._all_values.clear()
        self._removed_values.append(to_sql(value.pk()))

    def get(self) -> Iterator[Any]:
        """The loaded related objects; raises ValueNotLoaded if not loaded."""
        if not self._all_values.is_set():
            raise ValueNotLoaded()
        return iter(self._all_values.get())

    def query(self) -> Query:
        """Query for the related objects already saved to the database."""
        if self._owner is None:
            raise NotInitialized()
        return Query(self.item_type.TABLE).filter(
            Subquery(
                col=self.item_type.PKCOL,
                tbl2=self._item_table,
                tbl2_col="has",
                expr=Eq("owner", Val(self._owner)),
            )
        )

    def columns(self) -> List[Tuple[str, SqlType]]:
        """Name and type of each column of the relationship table."""
        return [
            ("owner", self._owner_type),
            ("has", sqltype_of(self.item_type.PKTYPE)),
        ]

    def to_json(self) -> Any:
        return {
            "item_table": self._item_table,
            "owner": None if self._owner is None else self._owner.to_json(),
            "owner_type": self._owner_type.to_json(),
        }

    @classmethod
    def from_json(cls, data: Any, item_type: Any) -> "Many":
        if not isinstance(data, Mapping):
            raise ValueError(f"malformed many relationship {data!r}")
        try:
            item_table = data["item_table"]
            owner = data["owner"]
            owner_type = data["owner_type"]
        except KeyError as exc:
            raise ValueError(f"malformed many relationship: missing {exc.args[0]!r}") from None
        if not isinstance(item_table, str):
            raise ValueError("malformed many relationship: item_table must be a string")
        many = cls(item_type)
        many._item_table = item_table
        many._owner = None if owner is None else SqlVal.from_json(owner)
        many._owner_type = SqlType.from_json(owner_type)
        return many