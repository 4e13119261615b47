"""Column types supported by the store, and parsing of text into them."""

from __future__ import annotations

import json
import math
import re
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any

_SQL_NAMES = {
    1: "INTEGER",
    2: "BIGINT",
    3: "DOUBLE",
    4: "VARCHAR",
    5: "BOOLEAN",
    6: "TIMESTAMP",
    7: "JSON",
}

_ORC_CATEGORIES = {
    1: "int",
    2: "bigint",
    3: "double",
    4: "string",
    5: "boolean",
    6: "timestamp",
    7: "string",
}

_NAMES = {
    1: "int32",
    2: "int64",
    3: "float64",
    4: "string",
    5: "bool",
    6: "timestamp",
    7: "json",
}

_TEXT_ALIASES = {
    "int32": 1, "integer": 1, "uint32": 1,
    "int64": 2, "bigint": 2, "long": 2, "uint64": 2,
    "float64": 3, "double": 3,
    "string": 4, "text": 4, "varchar": 4,
    "bool": 5, "boolean": 5,
    "timestamp": 6, "time": 6,
    "json": 7, "map": 7,
}


class Type(IntEnum):
    """The type of a column."""

    UNSUPPORTED = 0
    INT32 = 1
    INT64 = 2
    FLOAT64 = 3
    STRING = 4
    BOOL = 5
    TIMESTAMP = 6
    JSON = 7

    def __str__(self) -> str:
        return _NAMES.get(self.value, "unsupported")

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)

    def sql(self) -> str:
        """Return the SQL name of the type."""
        try:
            return _SQL_NAMES[self.value]
        except KeyError:
            raise ValueError(f"typeof: sql type for {self} is not found") from None

    def orc_category(self) -> str:
        """Return the ORC category name used in ORC schema descriptions."""
        try:
            return _ORC_CATEGORIES[self.value]
        except KeyError:
            raise ValueError(f"typeof: orc type for {self} is not found") from None

    @classmethod
    def from_text(cls, text: str | bytes) -> "Type":
        """Parse a type name; unknown names map to UNSUPPORTED."""
        if isinstance(text, (bytes, bytearray)):
            text = bytes(text).decode("utf-8", errors="replace")
        return cls(_TEXT_ALIASES.get(text.lower(), 0))

    def to_json(self) -> str:
        """Encode the type as a JSON string."""
        return json.dumps(str(self))

    @classmethod
    def from_json(cls, data: str | bytes) -> "Type":
        """Decode a JSON-encoded type name."""
        text = json.loads(data)
        if not isinstance(text, str):
            raise ValueError(f"typeof: expected a JSON string, got {type(text).__name__}")
        return cls.from_text(text)


def from_value(value: Any) -> Type:
    """Infer the column type of a Python value, or UNSUPPORTED."""
    if isinstance(value, bool):
        return Type.BOOL
    if isinstance(value, int):
        return Type.INT64
    if isinstance(value, float):
        return Type.FLOAT64
    if isinstance(value, str):
        return Type.STRING
    if isinstance(value, datetime):
        return Type.TIMESTAMP
    if isinstance(value, (bytes, bytearray)):
        return Type.JSON
    return Type.UNSUPPORTED


_INT_PATTERN = re.compile(r"[+-]?[0-9]+", re.ASCII)
_BOOL_VALUES = {
    "1": True, "t": True, "T": True, "TRUE": True, "true": True, "True": True,
    "0": False, "f": False, "F": False, "FALSE": False, "false": False, "False": False,
}
_RFC3339 = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})"
    r"(?:\.([0-9]+))?(Z|[+-][0-9]{2}:[0-9]{2})",
    re.ASCII,
)


def _parse_int(text: str, bits: int) -> int:
    if not _INT_PATTERN.fullmatch(text):
        raise ValueError(f"invalid integer {text!r}")
    value = int(text)
    limit = 1 << (bits - 1)
    if not -limit <= value < limit:
        raise ValueError(f"integer {text!r} out of range for {bits} bits")
    return value


def _parse_float(text: str) -> float:
    if not text or text != text.strip() or "_" in text:
        raise ValueError(f"invalid float {text!r}")
    try:
        value = float(text)
    except ValueError:
        if "x" not in text.lower():
            raise
        value = float.fromhex(text)
    if math.isinf(value) and "inf" not in text.lower():
        raise ValueError(f"float {text!r} out of range")
    return value


def _parse_timestamp(text: str) -> datetime:
    match = _RFC3339.fullmatch(text)
    if not match:
        raise ValueError(f"invalid RFC 3339 timestamp {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micros = int((fraction or "")[:6].ljust(6, "0"))
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        if hours >= 24 or minutes >= 60:
            raise ValueError(f"invalid time zone offset in {text!r}")
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micros, tzinfo=tz
    )


def parse(text: str, typ: Type) -> Any:
    """Parse text into a value of the given type; raise ValueError if it does not fit."""
    if typ in (Type.STRING, Type.JSON):
        return text
    if typ == Type.BOOL:
        try:
            return _BOOL_VALUES[text]
        except KeyError:
            raise ValueError(f"invalid boolean {text!r}") from None
    if typ == Type.INT32:
        return _parse_int(text, 32)
    if typ == Type.INT64:
        return _parse_int(text, 64)
    if typ == Type.FLOAT64:
        return _parse_float(text)
    if typ == Type.TIMESTAMP:
        return _parse_timestamp(text)
    raise ValueError(f"cannot parse into type {typ}")