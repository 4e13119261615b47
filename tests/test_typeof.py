from datetime import datetime, timezone

import pytest

from talaria.typeof import Type, from_value, parse


@pytest.mark.parametrize(
    "value, expected",
    [
        (1, Type.INT64),
        (1.5, Type.FLOAT64),
        ("hi", Type.STRING),
        (True, Type.BOOL),
        (datetime(2020, 1, 1, tzinfo=timezone.utc), Type.TIMESTAMP),
        (b'{"a":1}', Type.JSON),
        (complex(1, 0), Type.UNSUPPORTED),
        (None, Type.UNSUPPORTED),
    ],
)
def test_from_value(value, expected):
    assert from_value(value) == expected


def test_sql():
    assert Type.INT32.sql() == "INTEGER"
    assert Type.INT64.sql() == "BIGINT"
    assert Type.FLOAT64.sql() == "DOUBLE"
    assert Type.STRING.sql() == "VARCHAR"
    assert Type.BOOL.sql() == "BOOLEAN"
    assert Type.TIMESTAMP.sql() == "TIMESTAMP"
    assert Type.JSON.sql() == "JSON"
    with pytest.raises(ValueError):
        Type.UNSUPPORTED.sql()


def test_orc_category():
    assert Type.INT32.orc_category() == "int"
    assert Type.INT64.orc_category() == "bigint"
    assert Type.FLOAT64.orc_category() == "double"
    assert Type.STRING.orc_category() == "string"
    assert Type.BOOL.orc_category() == "boolean"
    assert Type.TIMESTAMP.orc_category() == "timestamp"
    assert Type.JSON.orc_category() == "string"
    with pytest.raises(ValueError):
        Type.UNSUPPORTED.orc_category()


def test_name():
    assert str(Type.from_text("int32")) == "int32"
    assert f"{Type.from_text('json')}" == "json"
    assert str(Type.from_text("whatever")) == "unsupported"


@pytest.mark.parametrize(
    "typ", [Type.INT32, Type.INT64, Type.FLOAT64, Type.BOOL, Type.STRING, Type.TIMESTAMP, Type.JSON]
)
def test_json_round_trip(typ):
    assert Type.from_json(typ.to_json()) == typ


def test_to_json_value():
    assert Type.INT64.to_json() == '"int64"'


def test_from_json_rejects_non_string():
    with pytest.raises(ValueError):
        Type.from_json("12")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("integer", Type.INT32),
        ("BIGINT", Type.INT64),
        ("double", Type.FLOAT64),
        ("varchar", Type.STRING),
        ("boolean", Type.BOOL),
        ("time", Type.TIMESTAMP),
        ("map", Type.JSON),
        ("whatever", Type.UNSUPPORTED),
    ],
)
def test_from_text(text, expected):
    assert Type.from_text(text) == expected


def test_parse_int64():
    assert parse("1234", Type.INT64) == 1234


def test_parse_int32():
    assert parse("1234", Type.INT32) == 1234


def test_parse_invalid_int32():
    with pytest.raises(ValueError):
        parse("1234XX", Type.INT32)


def test_parse_int32_overflow():
    with pytest.raises(ValueError):
        parse("2147483648", Type.INT32)
    assert parse("2147483648", Type.INT64) == 2147483648


def test_parse_float():
    assert parse("1234.00", Type.FLOAT64) == 1234.0


def test_parse_timestamp():
    value = parse("1985-04-12T23:20:50.00Z", Type.TIMESTAMP)
    assert value == datetime(1985, 4, 12, 23, 20, 50, tzinfo=timezone.utc)
    assert value.timestamp() == 482196050


def test_parse_timestamp_invalid():
    with pytest.raises(ValueError):
        parse("1985-04-12 23:20:50", Type.TIMESTAMP)


def test_parse_bool_and_strings():
    assert parse("t", Type.BOOL) is True
    assert parse("FALSE", Type.BOOL) is False
    assert parse("{}", Type.JSON) == "{}"
    with pytest.raises(ValueError):
        parse("yes", Type.BOOL)