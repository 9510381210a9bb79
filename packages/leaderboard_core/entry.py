"""Immutable leaderboard entries and value helpers shared by every backend."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional
import math


FieldValue = int | float | str
_SCALAR_TYPES = (int, float, str)


class ConversionError(TypeError):
    def __init__(self, field: str, value: Any, target_type: type) -> None:
        super().__init__(
            f"Cannot convert '{field}' from {type(value).__name__} to {target_type.__name__}"
        )
        self.field = field
        self.value = value
        self.target_type = target_type


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def numeric_value(value: Any) -> int | float:
    """Numeric value of a field, with absent/non-numeric values counted as 0."""
    if not is_number(value):
        return 0
    if isinstance(value, float) and math.isnan(value):
        return 0
    return value


def sort_score(value: Any) -> float:
    number = numeric_value(value)
    try:
        return float(number)
    except OverflowError:
        # ints beyond float range still order above or below every float
        return math.inf if number > 0 else -math.inf


def values_equal(left: Any, right: Any) -> bool:
    """Field equality used by lookups: 5 == 5.0, but "5" != 5 and None matches nothing."""
    if left is None or right is None:
        return False
    if is_number(left) and is_number(right):
        return left == right
    if is_number(left) or is_number(right):
        return False
    return left == right


def _check_value(name: str, value: Any) -> FieldValue:
    if not isinstance(name, str) or not name:
        raise TypeError("Entry field names must be non-empty strings")
    if isinstance(value, bool) or not isinstance(value, _SCALAR_TYPES):
        raise TypeError(
            f"Field '{name}' must be an int, float or str, got {type(value).__name__}"
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Field '{name}' must be a finite number, got {value!r}")
    return value


class EntryBuilder:
    def __init__(self) -> None:
        self._data: dict[str, FieldValue] = {}

    def field(self, name: str, value: FieldValue) -> "EntryBuilder":
        self._data[name] = _check_value(name, value)
        return self

    def fields(self, values: Mapping[str, FieldValue]) -> "EntryBuilder":
        for name, value in values.items():
            self.field(name, value)
        return self

    def build(self) -> "Entry":
        return Entry(self._data)


class Entry:
    """One ranked record: an ordered, read-only bag of scalar fields.

    Field order follows insertion order and only matters for serialization.
    Values are restricted to ``int``, ``float`` and ``str``.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, FieldValue]) -> None:
        copied = {name: _check_value(name, value) for name, value in data.items()}
        self._data = MappingProxyType(copied)

    @staticmethod
    def builder() -> EntryBuilder:
        return EntryBuilder()

    @classmethod
    def of(cls, values: Mapping[str, FieldValue]) -> "Entry":
        if isinstance(values, Entry):
            return values
        return cls(values)

    def get(self, name: str, target_type: Optional[type] = None) -> Any:
        value = self._data.get(name)
        if value is None or target_type is None:
            return value
        if target_type is str:
            return value if isinstance(value, str) else str(value)
        if isinstance(value, target_type) and not isinstance(value, bool):
            return value
        if target_type in (int, float) and is_number(value):
            return target_type(value)
        raise ConversionError(name, value, target_type)

    def as_map(self) -> Mapping[str, FieldValue]:
        return self._data

    def to_dict(self) -> dict[str, FieldValue]:
        return dict(self._data)

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entry):
            return NotImplemented
        return dict(self._data) == dict(other._data)

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._data.items(), key=lambda item: item[0])))

    def __repr__(self) -> str:
        return f"Entry({dict(self._data)!r})"
