# talaria

Building blocks for a columnar time-series event store: a small type system
for columns, schemas over it, sortable 16-byte storage keys, an encoder that
packs events into batches with interned strings, null-aware column sets, and
a configuration tree that can be assembled from defaults, environment
variables and remote YAML documents and reloaded in the background.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `talaria.typeof` | `Type`, an `IntEnum` of column types (`INT32`, `INT64`, `FLOAT64`, `STRING`, `BOOL`, `TIMESTAMP`, `JSON`, `UNSUPPORTED`) with `sql()`, `orc_category()`, `from_text()`, `to_json()` and `from_json()`. There is also `from_value()`, which infers a type from a Python value, and `parse()`, which turns text into a value of a given type and raises `ValueError` when the text does not fit. |
| `talaria.schema` | `Schema`, a `dict` of column name to `Type`, with `columns()`, `compare()`, `except_()`, `union()`, `contains()`, `has_convertible()` and `clone()`. `str(schema)` gives a JSON list sorted by column. `clone_schema()` treats `None` as an empty schema. `orc_schema_for()` renders an ORC `struct<...>` description and skips invalid column names. |
| `talaria.key` | 16-byte keys: `new_key(event_name, tsi)` is made of a MurmurHash3 of the name, the unix seconds and a sequence number. Also `hash_of`, `clone`, `prefix_of`, `first`, `last`, and the `murmur3_32` hash itself. |
| `talaria.encoder` | `Encoder.encode(events)` turns mappings into a `Batch`. Field names and string values are interned into `Batch.strings`, numbered from 1, and each event becomes a dict of name reference to `Value(kind, value)`, where `kind` is a `ValueKind`. |
| `talaria.column` | `Column` and its typed subclasses `IntegerColumn`, `BigintColumn`, `DoubleColumn`, `BooleanColumn`, `TimestampColumn`, `VarcharColumn` and `JsonColumn`. `Columns` is a name-to-column set that back-fills new columns with nulls and offers `fill_nulls()`, `max()`, `last_row()`, `size()` and `any()`. The module also has `new_column`, `null_column`, `make_columns` and `is_valid_name`. |
| `talaria.config` | The `Config` dataclass tree: readers, writers, storage, tables, sinks, StatsD, computed column specs and K8s probes. `Config.merge()` applies a YAML document or a mapping on top of it. The module also has the `Configurer` protocol, `ConfigStore`, `load()` and `ConfigError`. |
| `talaria.configurers` | `StaticConfigurer` for the built-in defaults, `EnvConfigurer` for environment variables and `RemoteConfigurer` for a YAML document fetched from `config.uri`. |

## Examples

Encode events into a batch:

```python
from talaria.encoder import Encoder, Value, ValueKind

batch = Encoder().encode([{"event": "abc"}, {"value": 123}])
assert batch.strings == {1: b"event", 2: b"abc", 3: b"value"}
assert batch.events[0] == {1: Value(ValueKind.STRING, 2)}
assert batch.events[1] == {3: Value(ValueKind.INT64, 123)}
```

Build a level column set:

```python
from talaria.column import Columns
from talaria.typeof import Type

cols = Columns()
cols.append("a", 1, Type.INT32)
cols.append("a", 2, Type.INT32)
cols.append("c", "hi", Type.STRING)   # new column, back-filled with one null
cols.fill_nulls()
print(cols.max(), cols["c"].at(0), cols.last_row())
```

Work with schemas:

```python
from talaria.schema import Schema, orc_schema_for
from talaria.typeof import Type

s = Schema({"b": Type.STRING, "a": Type.INT32})
print(s)                  # [{"column":"a","type":"INTEGER"},{"column":"b","type":"VARCHAR"}]
print(orc_schema_for(s))  # struct<a:int,b:string>
```

Load configuration from the defaults overlaid with `TALARIA_*` environment
variables, and reload it every 30 seconds:

```python
from talaria.config import load
from talaria.configurers import EnvConfigurer, StaticConfigurer

store = load(30.0, StaticConfigurer(), EnvConfigurer("TALARIA"))
print(store().storage.directory)
store.stop()
```

A variable such as `TALARIA_STORAGE_DIR=data/` or
`TALARIA_READERS_PRESTO_PORT=8042` sets a single field. A sub-section such as
`writers.s3sqs` is created when any variable with its prefix is set. When the
variable `TALARIA` itself is set, its value is read as a YAML document and
merged on top of the configuration instead. `ConfigStore` also works as a
context manager that starts and stops the background reload.

`RemoteConfigurer` takes a callable that is given the URI and returns the
document. A failed download is logged and skipped.

## What the package does not do

The package has no server, no command-line program and no persistent
storage. It does not pack columns into compressed blocks or read them back,
and it does not evaluate computed columns or scripts. It does not ingest CSV,
ORC or Parquet files, URLs or batches into partitioned column sets, and it
has no network client for sending batches. The configuration tree describes
sinks, readers and writers, but nothing in the package connects to them.