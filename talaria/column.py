"""Appendable, null-aware columns and sets of named columns."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from itertools import accumulate
from typing import Any, ClassVar, Mapping

from talaria.typeof import Type

MAX_NULL_COUNT = 25000

_VALID_NAME = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)


def is_valid_name(name: str) -> bool:
    """Whether the name is usable as a column name."""
    return _VALID_NAME.fullmatch(name) is not None


def _int_in_range(value: Any, bits: int) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    limit = 1 << (bits - 1)
    return value if -limit <= value < limit else None


class Column(ABC):
    """A column of values of one type where any entry may be null.

    Appending a value of the wrong type appends a null. len() gives the row count.
    """

    kind: ClassVar[Type] = Type.UNSUPPORTED

    nulls: list[bool]

    def __len__(self) -> int:
        return len(self.nulls)

    @abstractmethod
    def append(self, value: Any) -> int:
        """Append a value (None for null) and return the bytes it added."""

    @abstractmethod
    def at(self, index: int) -> Any:
        """Return the value at the index, or None if it is null."""

    def last(self) -> Any:
        """Return the last value, or None if the column is empty or the value is null."""
        return self.at(len(self) - 1) if len(self) else None

    def min(self) -> Any:
        """Return the smallest non-null value, or None where there is none or no ordering."""
        return None

    @abstractmethod
    def size(self) -> int:
        """Return the space taken by the column, in bytes."""


@dataclass
class _FixedColumn(Column):
    nulls: list[bool] = field(default_factory=list)
    values: list[Any] = field(default_factory=list)

    _width: ClassVar[int] = 8
    _zero: ClassVar[Any] = 0

    @abstractmethod
    def _coerce(self, value: Any) -> Any:
        """Return the stored form of value, or None if it does not fit the column."""

    def append(self, value: Any) -> int:
        coerced = None if value is None else self._coerce(value)
        if coerced is None:
            self.nulls.append(True)
            self.values.append(self._zero)
        else:
            self.nulls.append(False)
            self.values.append(coerced)
        return self._width

    def at(self, index: int) -> Any:
        return None if self.nulls[index] else self.values[index]

    def min(self) -> Any:
        return min((v for v, null in zip(self.values, self.nulls) if not null), default=None)

    def size(self) -> int:
        return self._width * len(self.nulls)


class IntegerColumn(_FixedColumn):
    """A column of 32-bit integers."""

    kind = Type.INT32
    _width = 4

    def _coerce(self, value: Any) -> Any:
        return _int_in_range(value, 32)


class BigintColumn(_FixedColumn):
    """A column of 64-bit integers."""

    kind = Type.INT64

    def _coerce(self, value: Any) -> Any:
        return _int_in_range(value, 64)


class DoubleColumn(_FixedColumn):
    """A column of double-precision floats."""

    kind = Type.FLOAT64
    _zero = 0.0

    def _coerce(self, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)


class BooleanColumn(_FixedColumn):
    """A column of booleans."""

    kind = Type.BOOL
    _width = 1
    _zero = False

    def _coerce(self, value: Any) -> Any:
        return value if isinstance(value, bool) else None

    def min(self) -> Any:
        return None


class TimestampColumn(_FixedColumn):
    """A column of timestamps stored as unix milliseconds."""

    kind = Type.TIMESTAMP

    def _coerce(self, value: Any) -> Any:
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.astimezone()
            return (value - _EPOCH) // _MILLISECOND
        return _int_in_range(value, 64)


@dataclass
class _BytesColumn(Column):
    nulls: list[bool] = field(default_factory=list)
    sizes: list[int] = field(default_factory=list)
    data: bytearray = field(default_factory=bytearray)
    _ends: list[int] = field(default_factory=list, init=False, repr=False, compare=False)

    @abstractmethod
    def _decode(self, raw: bytes) -> Any:
        """Return the value form of stored bytes."""

    @staticmethod
    def _encode(value: Any) -> bytes | None:
        if isinstance(value, str):
            return value.encode("utf-8")
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        return None

    def _offsets(self) -> list[int]:
        done = len(self._ends)
        if done > len(self.sizes):
            self._ends, done = [], 0
        if done < len(self.sizes):
            start = self._ends[-1] if done else 0
            self._ends.extend(list(accumulate(self.sizes[done:], initial=start))[1:])
        return self._ends

    def append(self, value: Any) -> int:
        encoded = None if value is None else self._encode(value)
        if encoded is None:
            self.nulls.append(True)
            self.sizes.append(0)
            return 0
        self.nulls.append(False)
        self.sizes.append(len(encoded))
        self.data.extend(encoded)
        return len(encoded)

    def at(self, index: int) -> Any:
        index = range(len(self.nulls))[index]
        if self.nulls[index]:
            return None
        end = self._offsets()[index]
        return self._decode(bytes(self.data[end - self.sizes[index]:end]))

    def size(self) -> int:
        return len(self.data)


class VarcharColumn(_BytesColumn):
    """A column of strings."""

    kind = Type.STRING

    def _decode(self, raw: bytes) -> Any:
        return raw.decode("utf-8", errors="replace")


class JsonColumn(_BytesColumn):
    """A column of raw JSON documents, returned as bytes."""

    kind = Type.JSON

    def _decode(self, raw: bytes) -> Any:
        return raw


_COLUMN_TYPES: dict[Type, type] = {
    Type.STRING: VarcharColumn,
    Type.INT32: IntegerColumn,
    Type.INT64: BigintColumn,
    Type.FLOAT64: DoubleColumn,
    Type.BOOL: BooleanColumn,
    Type.TIMESTAMP: TimestampColumn,
    Type.JSON: JsonColumn,
}


def _column_class(typ: Type) -> type:
    try:
        return _COLUMN_TYPES[typ]
    except KeyError:
        raise ValueError(f"presto: unknown type {typ}") from None


def new_column(typ: Type) -> Column:
    """Create an empty column of the given type."""
    return _column_class(typ)()


def null_column(typ: Type, count: int) -> Column:
    """Create a column of the given type holding count nulls."""
    if count > MAX_NULL_COUNT:
        raise ValueError("presto: null column exceeds the max limit")
    if count < 0:
        raise ValueError("presto: null column count must not be negative")
    cls = _column_class(typ)
    if issubclass(cls, _BytesColumn):
        return cls(nulls=[True] * count, sizes=[0] * count)
    return cls(nulls=[True] * count, values=[cls._zero] * count)


class Columns(dict):
    """A set of columns by name, kept level by filling with nulls."""

    def append(self, name: str, value: Any, typ: Type) -> int:
        """Append a value to the named column, creating it if needed; return the bytes added."""
        if not is_valid_name(name):
            return 0

        existing = self.get(name)
        if existing is not None:
            return existing.append(value)

        if typ == Type.UNSUPPORTED:
            return 0

        column = new_column(typ)
        added = sum(column.append(None) for _ in range(self.max() - 1))
        self[name] = column
        return added + column.append(value)

    def max(self) -> int:
        """Return the largest row count among the columns."""
        return max((len(column) for column in self.values()), default=0)

    def last_row(self) -> dict[str, Any]:
        """Return the last value of every column."""
        return {name: column.last() for name, column in self.items()}

    def fill_nulls(self) -> int:
        """Pad every shorter column with nulls up to the longest; return the bytes added."""
        longest = self.max()
        return sum(
            column.append(None)
            for column in self.values()
            for _ in range(longest - len(column))
        )

    def size(self) -> int:
        """Return the space taken by all the columns, in bytes."""
        return sum(column.size() for column in self.values())

    def any(self) -> Column | None:
        """Return some column of the set, or None if it is empty."""
        return next(iter(self.values()), None)


def make_columns(schema: Mapping[str, Type] | None) -> Columns:
    """Create a column set, with an empty column for each entry of the schema if given."""
    if schema is None:
        return Columns()
    return Columns((name, new_column(typ)) for name, typ in schema.items())