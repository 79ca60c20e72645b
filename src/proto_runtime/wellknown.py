# coding=utf-8
import enum
from datetime import datetime, timedelta, timezone

from .anycodec import Any
from .fields import Field, MapField, Repeated
from .message import Message

__doc__ = """
The google.protobuf well-known types, with conversions to and from the
matching Python values where there is one:

    Duration    <-> datetime.timedelta
    Timestamp   <-> datetime.datetime
    Struct      <-> dict
    ListValue   <-> list
    Value       <-> None, bool, float, str, dict, list
"""

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MICROSECOND = 1000
# Duration seconds are bounded to about +-10,000 years.
MAX_DURATION_SECONDS = 315_576_000_000
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _split_nanos(total):
    """Split nanoseconds into seconds and nanos sharing the sign of total."""
    seconds, nanos = divmod(abs(total), NANOS_PER_SECOND)
    if total < 0:
        return -seconds, -nanos
    return seconds, nanos


class Duration(Message):
    full_name = 'google.protobuf.Duration'
    proto_fields = (
        Field(1, 'seconds', 'int64'),
        Field(2, 'nanos', 'int32'),
    )

    @classmethod
    def from_nanoseconds(cls, total):
        seconds, nanos = _split_nanos(total)
        if abs(seconds) > MAX_DURATION_SECONDS:
            raise ValueError(f'Duration of {seconds} seconds is out of range')
        return cls(seconds=seconds, nanos=nanos)

    @classmethod
    def from_timedelta(cls, delta):
        return cls.from_nanoseconds(
            (delta // timedelta(microseconds=1)) * NANOS_PER_MICROSECOND
        )

    def to_nanoseconds(self):
        return self.seconds * NANOS_PER_SECOND + self.nanos

    def to_timedelta(self):
        """Convert to a timedelta, truncating below microsecond precision."""
        micros = int(self.nanos / NANOS_PER_MICROSECOND)
        return timedelta(seconds=self.seconds, microseconds=micros)


class Timestamp(Message):
    full_name = 'google.protobuf.Timestamp'
    proto_fields = (
        Field(1, 'seconds', 'int64'),
        Field(2, 'nanos', 'int32'),
    )

    @classmethod
    def from_datetime(cls, dt):
        """Naive datetimes are taken to be UTC."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        micros = (dt - EPOCH) // timedelta(microseconds=1)
        seconds, micros = divmod(micros, 1_000_000)
        return cls(seconds=seconds, nanos=micros * NANOS_PER_MICROSECOND)

    @classmethod
    def now(cls):
        return cls.from_datetime(datetime.now(timezone.utc))

    def to_datetime(self, tz=timezone.utc):
        dt = EPOCH + timedelta(
            seconds=self.seconds,
            microseconds=self.nanos // NANOS_PER_MICROSECOND,
        )
        return dt.astimezone(tz)


class NullValue(enum.IntEnum):
    NULL_VALUE = 0


class Struct(Message):
    full_name = 'google.protobuf.Struct'
    proto_fields = (
        MapField(1, 'fields', 'string', lambda: Value),
    )

    @classmethod
    def from_dict(cls, mapping):
        return cls(fields={
            key: Value.from_python(value) for key, value in mapping.items()
        })

    def to_dict(self):
        return {key: value.to_python() for key, value in self.fields.items()}


class ListValue(Message):
    full_name = 'google.protobuf.ListValue'
    proto_fields = (
        Repeated(1, 'values', lambda: Value),
    )

    @classmethod
    def from_list(cls, items):
        return cls(values=[Value.from_python(item) for item in items])

    def to_list(self):
        return [value.to_python() for value in self.values]


class Value(Message):
    full_name = 'google.protobuf.Value'
    proto_fields = (
        Field(1, 'null_value', NullValue, oneof='kind'),
        Field(2, 'number_value', 'double', oneof='kind'),
        Field(3, 'string_value', 'string', oneof='kind'),
        Field(4, 'bool_value', 'bool', oneof='kind'),
        Field(5, 'struct_value', Struct, oneof='kind'),
        Field(6, 'list_value', ListValue, oneof='kind'),
    )

    @classmethod
    def from_python(cls, obj):
        if obj is None:
            return cls(null_value=NullValue.NULL_VALUE)
        # bool first, it is also an int
        if isinstance(obj, bool):
            return cls(bool_value=obj)
        if isinstance(obj, (int, float)):
            return cls(number_value=float(obj))
        if isinstance(obj, str):
            return cls(string_value=obj)
        if isinstance(obj, dict):
            return cls(struct_value=Struct.from_dict(obj))
        if isinstance(obj, (list, tuple)):
            return cls(list_value=ListValue.from_list(obj))
        raise TypeError(
            f'Cannot represent {type(obj).__name__!r} as a Value'
        )

    def to_python(self):
        kind = self.which_oneof('kind')
        if kind is None or kind == 'null_value':
            return None
        if kind == 'struct_value':
            return self.struct_value.to_dict()
        if kind == 'list_value':
            return self.list_value.to_list()
        return getattr(self, kind)


class FieldMask(Message):
    full_name = 'google.protobuf.FieldMask'
    proto_fields = (
        Repeated(1, 'paths', 'string'),
    )


class Empty(Message):
    full_name = 'google.protobuf.Empty'


def _wrapper(name, value_type):
    return type(name, (Message,), {
        '__module__': __name__,
        '__doc__': f'Wrapper message for {value_type}.',
        'full_name': f'google.protobuf.{name}',
        'proto_fields': (Field(1, 'value', value_type),),
    })


DoubleValue = _wrapper('DoubleValue', 'double')
FloatValue = _wrapper('FloatValue', 'float')
Int64Value = _wrapper('Int64Value', 'int64')
UInt64Value = _wrapper('UInt64Value', 'uint64')
Int32Value = _wrapper('Int32Value', 'int32')
UInt32Value = _wrapper('UInt32Value', 'uint32')
BoolValue = _wrapper('BoolValue', 'bool')
StringValue = _wrapper('StringValue', 'string')
BytesValue = _wrapper('BytesValue', 'bytes')

WELL_KNOWN_TYPES = (
    Any,
    BoolValue,
    BytesValue,
    DoubleValue,
    Duration,
    Empty,
    FieldMask,
    FloatValue,
    Int32Value,
    Int64Value,
    ListValue,
    StringValue,
    Struct,
    Timestamp,
    UInt32Value,
    UInt64Value,
    Value,
)

__all__ = (
    'Duration',
    'Timestamp',
    'NullValue',
    'Struct',
    'ListValue',
    'Value',
    'FieldMask',
    'Empty',
    'DoubleValue',
    'FloatValue',
    'Int64Value',
    'UInt64Value',
    'Int32Value',
    'UInt32Value',
    'BoolValue',
    'StringValue',
    'BytesValue',
    'WELL_KNOWN_TYPES',
)
