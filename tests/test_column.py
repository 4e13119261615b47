from datetime import datetime, timezone

import pytest

from talaria.column import (
    BigintColumn,
    BooleanColumn,
    Columns,
    DoubleColumn,
    IntegerColumn,
    JsonColumn,
    TimestampColumn,
    VarcharColumn,
    is_valid_name,
    make_columns,
    new_column,
    null_column,
)
from talaria.typeof import Type, from_value


def test_columns():
    nc = Columns()
    assert nc.any() is None

    # Level 1
    assert nc.append("a", 1, Type.INT32) > 0
    assert nc.append("b", 2, Type.INT32) > 0
    assert nc.append("123", 2, Type.INT32) == 0
    assert nc.append("x", complex(1), Type.UNSUPPORTED) == 0
    assert nc.max() == 1
    assert len(nc.last_row()) == 2
    nc.fill_nulls()
    assert isinstance(nc.any(), IntegerColumn)

    # Level 2
    assert nc.append("a", 1, Type.INT32) > 0
    assert nc.append("c", "hi", Type.STRING) > 0
    assert nc.max() == 2
    nc.fill_nulls()

    # Level 3
    assert nc.append("b", 1, Type.INT32) > 0
    assert nc.append("c", "hi", Type.STRING) > 0
    assert nc.append("d", 1.5, Type.FLOAT64) > 0
    assert nc.max() == 3
    nc.fill_nulls()

    assert nc["a"].values == [1, 1, 0]
    assert nc["a"].nulls == [False, False, True]
    assert nc["b"].values == [2, 0, 1]
    assert nc["b"].nulls == [False, True, False]
    assert bytes(nc["c"].data) == b"hihi"
    assert nc["c"].sizes == [0, 2, 2]
    assert nc["c"].nulls == [True, False, False]
    assert nc["d"].values == [0.0, 0.0, 1.5]
    assert nc["d"].nulls == [True, True, False]
    assert len(nc.last_row()) == 4
    assert nc.last_row()["c"] == "hi"


def test_make_columns():
    columns = make_columns({"a": Type.INT64, "b": Type.TIMESTAMP})
    assert columns == Columns({"a": new_column(Type.INT64), "b": new_column(Type.TIMESTAMP)})
    assert make_columns(None) == Columns()


@pytest.mark.parametrize(
    "value, expected",
    [
        ("hi", VarcharColumn()),
        (1, BigintColumn()),
        (1.0, DoubleColumn()),
        (True, BooleanColumn()),
        (datetime.fromtimestamp(1, timezone.utc), TimestampColumn()),
        (b"", JsonColumn()),
    ],
)
def test_new_column(value, expected):
    column = new_column(from_value(value))
    assert column == expected
    assert column.size() == 0
    assert len(column) == 0


def test_new_column_unknown_type():
    with pytest.raises(ValueError):
        new_column(Type.UNSUPPORTED)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("hi", True),
        ("/api/v1/eta/nearby/", False),
        ("15ffe3ca0ba2bef00000010955e2d54c", False),
        ("b3802fb30f58430ca7fa8c6e04cb8c76", True),
        ("server", True),
    ],
)
def test_is_valid_name(name, expected):
    assert is_valid_name(name) is expected


@pytest.mark.parametrize(
    "typ",
    [Type.INT32, Type.BOOL, Type.INT64, Type.FLOAT64, Type.TIMESTAMP, Type.STRING, Type.JSON],
)
def test_null_column(typ):
    column = null_column(typ, 100)
    assert len(column) == 100
    assert column.last() is None
    assert column.kind == typ


def test_null_column_limits():
    with pytest.raises(ValueError):
        null_column(Type.INT32, 25001)
    with pytest.raises(ValueError):
        null_column(Type.UNSUPPORTED, 10)


def test_fixed_column_values():
    column = IntegerColumn()
    assert column.append(5) == 4
    column.append(None)
    column.append(3)
    assert column.at(1) is None
    assert column.last() == 3
    assert column.min() == 3
    assert column.size() == 12


def test_wrong_type_appends_null():
    column = IntegerColumn()
    column.append("nope")
    column.append(1 << 40)
    assert column.nulls == [True, True]
    assert column.min() is None


def test_timestamp_column_stores_milliseconds():
    column = TimestampColumn()
    column.append(datetime.fromtimestamp(1585549847, timezone.utc))
    assert column.last() == 1585549847000


def test_varchar_and_json_at():
    text = VarcharColumn()
    for value in ("ab", None, "cde"):
        text.append(value)
    assert text.at(0) == "ab"
    assert text.at(1) is None
    assert text.at(2) == "cde"
    assert text.size() == 5

    doc = JsonColumn()
    doc.append('{"a":1}')
    assert doc.last() == b'{"a":1}'


def test_boolean_min_is_none():
    column = BooleanColumn()
    column.append(True)
    assert column.min() is None
    assert column.last() is True