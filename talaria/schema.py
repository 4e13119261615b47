"""Mapping of column names to column types."""

from __future__ import annotations

import json
import re
from typing import Mapping

from talaria.typeof import Type

_CONVERTIBLE: dict[Type, frozenset[Type]] = {
    Type.STRING: frozenset(
        {Type.STRING, Type.JSON, Type.BOOL, Type.INT32, Type.INT64, Type.FLOAT64, Type.TIMESTAMP}
    ),
    Type.JSON: frozenset({Type.STRING, Type.JSON}),
}

_VALID_NAME = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")


class Schema(dict):
    """A mapping between column names and their types."""

    def __str__(self) -> str:
        columns = [{"column": name, "type": self[name].sql()} for name in self.columns()]
        return json.dumps(columns, separators=(",", ":"))

    def columns(self) -> list[str]:
        """Return the column names, sorted."""
        return sorted(self)

    def compare(self, desired: Mapping[str, Type]) -> "Schema":
        """Return the desired columns that are missing here or have another type."""
        return Schema(
            (name, typ) for name, typ in desired.items() if self.get(name) != typ or name not in self
        )

    def except_(self, other: Mapping[str, Type]) -> "Schema":
        """Return the part of the schema whose columns are not in other."""
        return Schema((name, typ) for name, typ in self.items() if name not in other)

    def union(self, other: Mapping[str, Type]) -> tuple["Schema", bool]:
        """Combine two schemas; on a type mismatch return this schema and False."""
        combined = Schema(self)
        for name, typ in other.items():
            if name in self and combined[name] != typ:
                return self, False
            combined[name] = typ
        return combined, True

    def contains(self, key: str, typ: Type) -> bool:
        """Whether the schema has the column with exactly this type."""
        return key in self and self[key] == typ

    def has_convertible(self, key: str, typ: Type) -> bool:
        """Whether the column has this type, or a value of typ converts to its type."""
        current = self.get(key, Type.UNSUPPORTED)
        if key in self and current == typ:
            return True
        return current in _CONVERTIBLE.get(typ, frozenset())

    def clone(self) -> "Schema":
        """Return a copy of the schema."""
        return Schema(self)


def clone_schema(schema: Mapping[str, Type] | None) -> Schema:
    """Copy a schema, treating None as an empty one."""
    return Schema() if schema is None else Schema(schema)


def orc_schema_for(schema: Mapping[str, Type]) -> str:
    """Describe the schema as an ORC struct type, skipping invalid column names."""
    fields = [
        f"{name}:{schema[name].orc_category()}"
        for name in sorted(schema)
        if _VALID_NAME.fullmatch(name)
    ]
    return "struct<" + ",".join(fields) + ">"