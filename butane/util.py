"""Small helpers shared across the package."""

from __future__ import annotations

from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

_UNSET = object()


class OnceCell(Generic[T]):
    """A slot that is filled at most once, until it is cleared."""

    __slots__ = ("_value",)

    def __init__(self) -> None:
        self._value = _UNSET

    def __repr__(self) -> str:
        if self._value is _UNSET:
            return "OnceCell(<unset>)"
        return f"OnceCell({self._value!r})"

    def is_set(self) -> bool:
        """Return True if the cell holds a value."""
        return self._value is not _UNSET

    def get(self) -> Optional[T]:
        """Return the stored value, or None if the cell is empty."""
        if self._value is _UNSET:
            return None
        return self._value  # type: ignore[return-value]

    def get_or_init(self, factory: Callable[[], T]) -> T:
        """Return the stored value, computing and storing it first if needed.

        If ``factory`` raises, the exception propagates and the cell stays empty.
        """
        if self._value is _UNSET:
            self._value = factory()
        return self._value  # type: ignore[return-value]

    def clear(self) -> None:
        """Empty the cell."""
        self._value = _UNSET