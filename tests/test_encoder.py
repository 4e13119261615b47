from dataclasses import dataclass
from datetime import datetime, timezone

from talaria.encoder import Batch, Encoder, Value, ValueKind


@dataclass
class A:
    name: str


TEST_TIME = datetime(2020, 3, 30, 6, 30, 47, 250000, tzinfo=timezone.utc)


def _events():
    return [
        {"event": "abc"},
        {"value": 123},
        {"mutable": True},
        {"time": TEST_TIME},
        {"misc": b"{1:2}"},
        {"misc": A(name="test")},
        {"event": "xyz", "time": 456, "color": "yellow", "topic": "movie"},
        {
            "event": "abc",
            "nested": {
                "level0": 0,
                "level1": {"test": 1, "level2": [1, 2, 3]},
            },
        },
    ]


def test_encoder():
    res = Encoder().encode(_events())
    assert len(res.events) == 8
    assert len(res.strings) == 15
    assert res.events[0] == {1: Value(ValueKind.STRING, 2)}
    assert res.events[1] == {3: Value(ValueKind.INT64, 123)}
    assert res.events[2] == {4: Value(ValueKind.BOOL, True)}
    assert res.events[3] == {5: Value(ValueKind.TIME, 1585549847)}
    assert res.events[4] == {6: Value(ValueKind.JSON, 7)}
    assert res.events[5] == {6: Value(ValueKind.STRING, 8)}
    assert res.events[7] == {1: Value(ValueKind.STRING, 2), 14: Value(ValueKind.JSON, 15)}


def test_encoder_strings():
    res = Encoder().encode(_events())
    assert res.strings[1] == b"event"
    assert res.strings[2] == b"abc"
    assert res.strings[7] == b"{1:2}"
    assert res.strings[14] == b"nested"
    assert res.strings[15] == b'{"level0":0,"level1":{"level2":[1,2,3],"test":1}}'


def test_encoder_resets_between_calls():
    encoder = Encoder()
    first = encoder.encode([{"a": "b"}])
    second = encoder.encode([{"a": "b"}])
    assert first == second
    assert second == Batch(events=[{1: Value(ValueKind.STRING, 2)}], strings={1: b"a", 2: b"b"})


def test_encoder_none_value_skipped_but_key_interned():
    res = Encoder().encode([{"x": None}])
    assert res.events == [{}]
    assert res.strings == {1: b"x"}


def test_encoder_float_and_large_int():
    res = Encoder().encode([{"f": 1.5, "big": 2**70}])
    assert res.events[0][1] == Value(ValueKind.FLOAT64, 1.5)
    assert res.events[0][2] == Value(ValueKind.STRING, 3)
    assert res.strings[3] == str(2**70).encode()


def test_encoder_unserialisable_map_is_skipped():
    res = Encoder().encode([{"m": {"k": object()}, "ok": 1}])
    assert res.events == [{2: Value(ValueKind.INT64, 1)}]
    assert res.strings == {1: b"m", 2: b"ok"}