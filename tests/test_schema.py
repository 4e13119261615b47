import pytest

from talaria.schema import Schema, clone_schema, orc_schema_for
from talaria.typeof import Type


def test_schema_string():
    s = Schema({"b": Type.STRING, "a": Type.INT32, "c": Type.JSON})

    assert s.contains("b", Type.STRING)
    assert not s.contains("b", Type.INT32)
    assert not s.contains("x", Type.STRING)
    assert not s.contains("b", Type.JSON)

    assert s.has_convertible("b", Type.JSON)

    assert len(s.columns()) == 3
    assert s.columns() == ["a", "b", "c"]
    assert str(s) == (
        '[{"column":"a","type":"INTEGER"},{"column":"b","type":"VARCHAR"},'
        '{"column":"c","type":"JSON"}]'
    )


def test_has_convertible_missing_column():
    s = Schema({"a": Type.INT32})
    assert not s.has_convertible("x", Type.STRING)
    assert not s.has_convertible("a", Type.INT64)
    assert s.has_convertible("a", Type.INT32)


def test_schema_compare():
    s1 = Schema({"b": Type.STRING, "a": Type.INT32})
    s2 = Schema({"b": Type.STRING, "a": Type.INT64, "c": Type.JSON})

    delta = s1.compare(s2)
    assert delta
    assert str(delta) == '[{"column":"a","type":"BIGINT"},{"column":"c","type":"JSON"}]'

    subset = s1.except_(delta)
    assert str(subset) == '[{"column":"b","type":"VARCHAR"}]'


def test_schema_compare_match():
    s = Schema({"a": Type.INT32, "b": Type.STRING})
    assert s.compare({"a": Type.INT32}) == {}


def test_schema_union():
    s1 = Schema({"b": Type.STRING, "a": Type.INT32})
    s2 = Schema({"a": Type.INT32, "c": Type.JSON})

    merged, clean = s1.union(s2)
    assert clean
    assert str(merged) == (
        '[{"column":"a","type":"INTEGER"},{"column":"b","type":"VARCHAR"},'
        '{"column":"c","type":"JSON"}]'
    )


def test_schema_union_mismatch():
    s1 = Schema({"b": Type.STRING, "a": Type.INT32})
    s2 = Schema({"b": Type.STRING, "a": Type.INT64, "c": Type.JSON})

    merged, clean = s1.union(s2)
    assert not clean
    assert str(merged) == '[{"column":"a","type":"INTEGER"},{"column":"b","type":"VARCHAR"}]'


def test_schema_clone():
    s = Schema({"b": Type.STRING, "a": Type.INT64, "c": Type.JSON})
    c = s.clone()
    assert c == s
    c["d"] = Type.BOOL
    assert "d" not in s


def test_clone_schema_none():
    assert clone_schema(None) == Schema()
    assert clone_schema({"a": Type.BOOL}) == {"a": Type.BOOL}


def test_orc_schema_for():
    s = Schema(
        {
            "a": Type.INT32,
            "b": Type.STRING,
            "c": Type.INT64,
            "d": Type.STRING,
            "/invalid": Type.STRING,
            "123": Type.STRING,
        }
    )
    assert orc_schema_for(s) == "struct<a:int,b:string,c:bigint,d:string>"


def test_orc_schema_for_unsupported():
    with pytest.raises(ValueError):
        orc_schema_for({"a": Type.UNSUPPORTED})