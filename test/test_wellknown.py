# coding=utf-8
from datetime import datetime, timedelta, timezone

import pytest
from proto_runtime import (
    BoolValue,
    BytesValue,
    Duration,
    Empty,
    FieldMask,
    Int32Value,
    ListValue,
    NullValue,
    StringValue,
    Struct,
    Timestamp,
    UInt64Value,
    Value,
    WELL_KNOWN_TYPES,
)

# suppress 'not found' linting
pytest.raises = pytest.raises


def test_well_known_names():
    names = sorted(t.full_name for t in WELL_KNOWN_TYPES)
    assert names == [
        'google.protobuf.Any',
        'google.protobuf.BoolValue',
        'google.protobuf.BytesValue',
        'google.protobuf.DoubleValue',
        'google.protobuf.Duration',
        'google.protobuf.Empty',
        'google.protobuf.FieldMask',
        'google.protobuf.FloatValue',
        'google.protobuf.Int32Value',
        'google.protobuf.Int64Value',
        'google.protobuf.ListValue',
        'google.protobuf.StringValue',
        'google.protobuf.Struct',
        'google.protobuf.Timestamp',
        'google.protobuf.UInt32Value',
        'google.protobuf.UInt64Value',
        'google.protobuf.Value',
    ]


def test_duration_timedelta():
    duration = Duration.from_timedelta(timedelta(seconds=1.5))
    assert (duration.seconds, duration.nanos) == (1, 500_000_000)
    assert duration.to_timedelta() == timedelta(seconds=1.5)
    negative = Duration.from_timedelta(timedelta(seconds=-1.5))
    assert (negative.seconds, negative.nanos) == (-1, -500_000_000)
    assert negative.to_timedelta() == timedelta(seconds=-1.5)
    assert Duration.parse(negative.serialize()) == negative


def test_duration_nanoseconds():
    duration = Duration.from_nanoseconds(-1)
    assert (duration.seconds, duration.nanos) == (0, -1)
    assert duration.to_nanoseconds() == -1
    with pytest.raises(ValueError):
        Duration.from_nanoseconds(10 ** 21)


def test_timestamp_datetime():
    dt = datetime(2020, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc)
    timestamp = Timestamp.from_datetime(dt)
    assert timestamp.seconds == 1577836800
    assert timestamp.nanos == 123_456_000
    assert timestamp.to_datetime() == dt
    assert Timestamp.from_datetime(dt.replace(tzinfo=None)) == timestamp


def test_timestamp_before_epoch():
    dt = datetime(1969, 12, 31, 23, 59, 59, 500000, tzinfo=timezone.utc)
    timestamp = Timestamp.from_datetime(dt)
    assert (timestamp.seconds, timestamp.nanos) == (-1, 500_000_000)
    assert timestamp.to_datetime() == dt


def test_timestamp_now():
    before = datetime.now(timezone.utc)
    now = Timestamp.now().to_datetime()
    assert before <= now <= datetime.now(timezone.utc)


def test_struct_round_trip():
    data = {
        'number': 1.5,
        'list': [True, None, 'x', [2.0]],
        'nested': {'empty': {}, 'flag': False},
    }
    struct = Struct.from_dict(data)
    parsed = Struct.parse(struct.serialize())
    assert parsed == struct
    assert parsed.to_dict() == data


def test_value_kinds():
    assert Value.from_python(None).null_value is NullValue.NULL_VALUE
    assert Value.from_python(None).which_oneof('kind') == 'null_value'
    assert Value.from_python(True).which_oneof('kind') == 'bool_value'
    assert Value.from_python(3).number_value == 3.0
    assert Value.from_python('s').string_value == 's'
    assert Value.from_python((1, 2)).list_value == ListValue.from_list([1, 2])
    assert Value().to_python() is None
    with pytest.raises(TypeError):
        Value.from_python(object())


def test_wrappers():
    assert Int32Value(value=5).serialize() == b'\x08\x05'
    assert BoolValue.parse(b'\x08\x01').value is True
    assert StringValue(value='x') == StringValue.parse(b'\x0a\x01x')
    assert BytesValue().value == b''
    assert UInt64Value(value=2 ** 64 - 1).serialize() == (
        b'\x08' + b'\xff' * 9 + b'\x01'
    )
    assert Int32Value.full_name == 'google.protobuf.Int32Value'


def test_field_mask_and_empty():
    mask = FieldMask(paths=['a.b', 'c'])
    assert FieldMask.parse(mask.serialize()).paths == ('a.b', 'c')
    assert Empty().serialize() == b''
