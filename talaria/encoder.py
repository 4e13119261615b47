"""Encoding of events into interned-string batches for ingestion."""

from __future__ import annotations

import enum
import json
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


class ValueKind(enum.Enum):
    """The kind of an encoded value."""

    INT32 = "int32"
    INT64 = "int64"
    FLOAT64 = "float64"
    STRING = "string"
    BOOL = "bool"
    TIME = "time"
    JSON = "json"


@dataclass(frozen=True)
class Value:
    """An encoded value; STRING and JSON values hold a reference into the batch strings."""

    kind: ValueKind
    value: Any


@dataclass
class Batch:
    """A batch of events whose keys and strings refer to an interned dictionary."""

    events: list[dict[int, Value]] = field(default_factory=list)
    strings: dict[int, bytes] = field(default_factory=dict)


class _Dictionary:
    def __init__(self) -> None:
        self._refs: dict[str, int] = {}

    def intern(self, text: str) -> int:
        ref = self._refs.get(text)
        if ref is None:
            ref = len(self._refs) + 1
            self._refs[text] = ref
        return ref

    def strings(self) -> dict[int, bytes]:
        return {ref: text.encode("utf-8") for text, ref in self._refs.items()}


def _encode_value(value: Any, dictionary: _Dictionary) -> Value | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return Value(ValueKind.BOOL, value)
    if isinstance(value, int) and _INT64_MIN <= value <= _INT64_MAX:
        return Value(ValueKind.INT64, value)
    if isinstance(value, float):
        return Value(ValueKind.FLOAT64, value)
    if isinstance(value, str):
        return Value(ValueKind.STRING, dictionary.intern(value))
    if isinstance(value, datetime):
        return Value(ValueKind.TIME, math.floor(value.timestamp()))
    if isinstance(value, (bytes, bytearray)):
        text = bytes(value).decode("utf-8", errors="replace")
        return Value(ValueKind.JSON, dictionary.intern(text))
    if isinstance(value, Mapping):
        text = json.dumps(value, sort_keys=True, separators=(",", ":"))
        return Value(ValueKind.JSON, dictionary.intern(text))
    return Value(ValueKind.STRING, dictionary.intern(str(value)))


class Encoder:
    """Encodes events (mappings of field name to value) into a Batch."""

    def encode(self, events: Iterable[Mapping[str, Any]]) -> Batch:
        """Encode the events; field names and string values are interned from 1 upward."""
        dictionary = _Dictionary()
        encoded_events = []
        for event in events:
            encoded: dict[int, Value] = {}
            for name, value in event.items():
                ref = dictionary.intern(name)
                try:
                    encoded_value = _encode_value(value, dictionary)
                except (TypeError, ValueError):
                    continue
                if encoded_value is not None:
                    encoded[ref] = encoded_value
            encoded_events.append(encoded)
        return Batch(events=encoded_events, strings=dictionary.strings())