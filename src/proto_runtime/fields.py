# coding=utf-8
import enum
import numbers
from copy import copy
from struct import pack, unpack

from .errors import InvalidUTF8Error, MalformedProtobufError
from .wire import (
    MAX_FIELD_NUMBER,
    MIN_FIELD_NUMBER,
    SIGNED_32_BIT_RANGE,
    SIGNED_64_BIT_RANGE,
    UINT64_MASK,
    UNSIGNED_32_BIT_RANGE,
    UNSIGNED_64_BIT_RANGE,
    WireType,
    bytes_to_encode_tag,
    bytes_to_encode_varint,
    signed_to_uint,
    uint_to_signed,
)

__doc__ = """
Field types and field descriptors.

A message schema is a sequence of Field descriptors. Each Field has a type:
one of the scalar types registered by proto type name in SCALAR_TYPES
("int32", "string", ...), an EnumType, a MessageType, or a GroupType. Types
know their wire type, their default, how to validate an assigned Python
value, and how to read, write and size a single value. Fields add the label
(optional, required, repeated, map) and the per-field decoding rules.
"""

OPTIONAL = 'optional'
REQUIRED = 'required'
REPEATED = 'repeated'
MAP = 'map'

# Scalar field types by proto type name (e.g., int64, string, double etc.)
SCALAR_TYPES = {}


def _register_scalar_type(klass):
    instance = klass()
    SCALAR_TYPES[instance.name] = instance
    return klass


def _to_int32(n):
    n &= 0xffff_ffff
    if n & 0x8000_0000:
        n -= 0x1_0000_0000
    return n


def _to_int64(n):
    n &= UINT64_MASK
    if n & 0x8000_0000_0000_0000:
        n -= 0x1_0000_0000_0000_0000
    return n


def _check_integer(value, value_range, type_name):
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise TypeError(
            f'Expected an integer for {type_name}, '
            f'got {type(value).__name__!r}'
        )
    value = int(value)
    if value not in value_range:
        raise ValueError(f'Value out of range for {type_name}: {value}')
    return value


class FieldType:
    """Base for the types a Field can hold."""
    __slots__ = ()
    name = None
    wire_type = None
    packable = False
    is_message = False
    is_enum = False
    # Allowed as a map key.
    is_key_type = False

    def __repr__(self):
        return f'<{type(self).__name__} {self.name}>'

    def default(self):
        raise NotImplementedError

    def check(self, value):
        """Validate (and normalize) a value assigned to a field."""
        raise NotImplementedError

    def read(self, reader):
        raise NotImplementedError

    def write(self, writer, value):
        raise NotImplementedError

    def size(self, value):
        raise NotImplementedError


class _VarintType(FieldType):
    __slots__ = ()
    wire_type = WireType.VARINT
    packable = True
    is_key_type = True
    value_range = None

    def default(self):
        return 0

    def check(self, value):
        return _check_integer(value, self.value_range, self.name)

    def to_wire(self, value):
        raise NotImplementedError

    def from_wire(self, n):
        raise NotImplementedError

    def read(self, reader):
        return self.from_wire(reader.read_varint())

    def write(self, writer, value):
        writer.write_varint(self.to_wire(value))

    def size(self, value):
        return bytes_to_encode_varint(self.to_wire(value))


@_register_scalar_type
class Int32Type(_VarintType):
    __slots__ = ()
    name = 'int32'
    value_range = SIGNED_32_BIT_RANGE

    def to_wire(self, value):
        # Negative values are sign-extended to ten bytes.
        return value & UINT64_MASK

    def from_wire(self, n):
        return _to_int32(n)


@_register_scalar_type
class Int64Type(_VarintType):
    __slots__ = ()
    name = 'int64'
    value_range = SIGNED_64_BIT_RANGE

    def to_wire(self, value):
        return value & UINT64_MASK

    def from_wire(self, n):
        return _to_int64(n)


@_register_scalar_type
class UInt32Type(_VarintType):
    __slots__ = ()
    name = 'uint32'
    value_range = UNSIGNED_32_BIT_RANGE

    def to_wire(self, value):
        return value

    def from_wire(self, n):
        return n & 0xffff_ffff


@_register_scalar_type
class UInt64Type(_VarintType):
    __slots__ = ()
    name = 'uint64'
    value_range = UNSIGNED_64_BIT_RANGE

    def to_wire(self, value):
        return value

    def from_wire(self, n):
        return n


@_register_scalar_type
class SInt32Type(_VarintType):
    __slots__ = ()
    name = 'sint32'
    value_range = SIGNED_32_BIT_RANGE

    def to_wire(self, value):
        return signed_to_uint(value)

    def from_wire(self, n):
        return uint_to_signed(n & 0xffff_ffff)


@_register_scalar_type
class SInt64Type(_VarintType):
    __slots__ = ()
    name = 'sint64'
    value_range = SIGNED_64_BIT_RANGE

    def to_wire(self, value):
        return signed_to_uint(value)

    def from_wire(self, n):
        return uint_to_signed(n)


@_register_scalar_type
class BoolType(_VarintType):
    __slots__ = ()
    name = 'bool'

    def default(self):
        return False

    def check(self, value):
        if not isinstance(value, (bool, numbers.Integral)):
            raise TypeError(
                f'Expected a bool, got {type(value).__name__!r}'
            )
        return bool(value)

    def to_wire(self, value):
        return int(value)

    def from_wire(self, n):
        return n != 0


class _FixedType(FieldType):
    __slots__ = ()
    packable = True
    fmt = None
    width = None

    def read(self, reader):
        return reader.read_struct(self.fmt, self.width)

    def write(self, writer, value):
        writer.write_struct(self.fmt, value)

    def size(self, value):
        return self.width


class _FixedIntType(_FixedType):
    __slots__ = ()
    is_key_type = True
    value_range = None

    def default(self):
        return 0

    def check(self, value):
        return _check_integer(value, self.value_range, self.name)


@_register_scalar_type
class Fixed32Type(_FixedIntType):
    __slots__ = ()
    name = 'fixed32'
    wire_type = WireType.FIXED32
    fmt, width = '<L', 4
    value_range = UNSIGNED_32_BIT_RANGE


@_register_scalar_type
class SFixed32Type(_FixedIntType):
    __slots__ = ()
    name = 'sfixed32'
    wire_type = WireType.FIXED32
    fmt, width = '<l', 4
    value_range = SIGNED_32_BIT_RANGE


@_register_scalar_type
class Fixed64Type(_FixedIntType):
    __slots__ = ()
    name = 'fixed64'
    wire_type = WireType.FIXED64
    fmt, width = '<Q', 8
    value_range = UNSIGNED_64_BIT_RANGE


@_register_scalar_type
class SFixed64Type(_FixedIntType):
    __slots__ = ()
    name = 'sfixed64'
    wire_type = WireType.FIXED64
    fmt, width = '<q', 8
    value_range = SIGNED_64_BIT_RANGE


class _FloatingType(_FixedType):
    __slots__ = ()

    def default(self):
        return 0.0

    def check(self, value):
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise TypeError(
                f'Expected a number for {self.name}, '
                f'got {type(value).__name__!r}'
            )
        try:
            # Round to the representable value so that decode(encode(m))
            # compares equal to m.
            result, = unpack(self.fmt, pack(self.fmt, float(value)))
        except OverflowError:
            raise ValueError(f'Value out of range for {self.name}: {value}')
        return result


@_register_scalar_type
class FloatType(_FloatingType):
    __slots__ = ()
    name = 'float'
    wire_type = WireType.FIXED32
    fmt, width = '<f', 4


@_register_scalar_type
class DoubleType(_FloatingType):
    __slots__ = ()
    name = 'double'
    wire_type = WireType.FIXED64
    fmt, width = '<d', 8


@_register_scalar_type
class StringType(FieldType):
    __slots__ = ()
    name = 'string'
    wire_type = WireType.LENGTH_DELIMITED
    is_key_type = True

    def default(self):
        return ''

    def check(self, value):
        if not isinstance(value, str):
            raise TypeError(
                f'Expected a str, got {type(value).__name__!r}'
            )
        return value

    def read(self, reader):
        start = reader.pos
        data = reader.read_length_delimited()
        try:
            return data.decode('utf-8')
        except UnicodeDecodeError:
            raise InvalidUTF8Error(
                f'Invalid UTF-8 in string beginning at position {start}'
            )

    def write(self, writer, value):
        writer.write_length_delimited(value.encode('utf-8'))

    def size(self, value):
        length = len(value.encode('utf-8'))
        return bytes_to_encode_varint(length) + length


@_register_scalar_type
class BytesType(FieldType):
    __slots__ = ()
    name = 'bytes'
    wire_type = WireType.LENGTH_DELIMITED

    def default(self):
        return b''

    def check(self, value):
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(
                f'Expected a bytes-like object, got {type(value).__name__!r}'
            )
        return bytes(value)

    def read(self, reader):
        return reader.read_length_delimited()

    def write(self, writer, value):
        writer.write_length_delimited(value)

    def size(self, value):
        return bytes_to_encode_varint(len(value)) + len(value)


class EnumType(FieldType):
    """
    An enum field type backed by an IntEnum class.

    Open enums (proto3) keep values that have no member as plain ints.
    Closed enums (proto2) refuse such values on assignment, and during decode
    the field they arrived in is kept in the unknown fields instead. When
    closed is None it is decided by the syntax of the message using the
    field.
    """
    __slots__ = ('enum_class', 'closed',)
    wire_type = WireType.VARINT
    packable = True
    is_enum = True

    def __init__(self, enum_class, *, closed=None):
        if not (isinstance(enum_class, type) and
                issubclass(enum_class, enum.IntEnum)):
            raise TypeError(f'{enum_class!r} is not an IntEnum class')
        self.enum_class = enum_class
        self.closed = closed

    def __repr__(self):
        return f'<{type(self).__name__} {self.enum_class.__name__}>'

    @property
    def name(self):
        return self.enum_class.__name__

    def default(self):
        members = list(self.enum_class)
        if not members:
            return 0
        for member in members:
            if member.value == 0:
                return member
        return members[0]

    def is_known(self, n):
        return n in self.enum_class._value2member_map_

    def from_int(self, n):
        if self.is_known(n):
            return self.enum_class(n)
        return n

    def check(self, value):
        if isinstance(value, self.enum_class):
            return value
        n = _check_integer(value, SIGNED_32_BIT_RANGE, self.name)
        if self.is_known(n):
            return self.enum_class(n)
        if self.closed:
            raise ValueError(
                f'{n} is not a valid value for closed enum {self.name}'
            )
        return n

    def read(self, reader):
        return self.from_int(_to_int32(reader.read_varint()))

    def read_raw(self, reader):
        return _to_int32(reader.read_varint())

    def write(self, writer, value):
        writer.write_varint(int(value) & UINT64_MASK)

    def size(self, value):
        return bytes_to_encode_varint(int(value) & UINT64_MASK)


class MessageType(FieldType):
    """
    A sub-message field type. Accepts the message class, or a zero-argument
    callable returning it so that schemas can refer to classes defined later
    (or to themselves).
    """
    __slots__ = ('_target', '_message_class',)
    wire_type = WireType.LENGTH_DELIMITED
    is_message = True

    def __init__(self, target):
        if not callable(target):
            raise TypeError(f'{target!r} is not a message class')
        self._target = target
        self._message_class = None

    def __repr__(self):
        return f'<{type(self).__name__} {self.name}>'

    @property
    def message_class(self):
        if self._message_class is None:
            target = self._target
            if not isinstance(target, type):
                target = target()
            self._message_class = target
        return self._message_class

    @property
    def name(self):
        return getattr(self.message_class, 'full_name', None)

    def default(self):
        return None

    def check(self, value):
        if not isinstance(value, self.message_class):
            raise TypeError(
                f'Expected {self.message_class.__name__}, '
                f'got {type(value).__name__!r}'
            )
        return value.copy()


class GroupType(MessageType):
    """A proto2 group: a sub-message delimited by start/end group tags."""
    __slots__ = ()
    wire_type = WireType.START_GROUP


def resolve_field_type(field_type):
    """
    Resolve the various spellings of a field type to a FieldType instance: a
    proto scalar type name, an IntEnum class, a message class, a zero-arg
    callable returning a message class, or a FieldType.
    """
    if isinstance(field_type, FieldType):
        return field_type
    if isinstance(field_type, str):
        try:
            return SCALAR_TYPES[field_type]
        except KeyError:
            raise ValueError(f'Unknown field type {field_type!r}')
    if isinstance(field_type, type) and issubclass(field_type, enum.Enum):
        return EnumType(field_type)
    if callable(field_type):
        return MessageType(field_type)
    raise TypeError(f'Cannot use {field_type!r} as a field type')


class Field:
    """
    Describes one field of a message: its number, attribute name, type and
    label.

    packed=None packs repeated packable fields in proto3 and not in proto2.
    presence=None gives proto2 fields, message fields and oneof members
    explicit presence, and proto3 singular scalars implicit presence (the
    default value is indistinguishable from unset).
    """
    __slots__ = (
        'number',
        'name',
        'type',
        'label',
        'packed',
        'oneof',
        'presence',
        'default',
        'key_type',
    )

    def __init__(
            self,
            number,
            name,
            field_type,
            *,
            label=OPTIONAL,
            packed=None,
            oneof=None,
            presence=None,
            default=None,
            key_type=None,
    ):
        if label not in (OPTIONAL, REQUIRED, REPEATED, MAP):
            raise ValueError(f'Invalid field label {label!r}')
        if not isinstance(number, int) or not (
                MIN_FIELD_NUMBER <= number <= MAX_FIELD_NUMBER):
            raise ValueError(
                f'Field number {number!r} for {name!r} is out of range '
                f'{MIN_FIELD_NUMBER}..{MAX_FIELD_NUMBER}'
            )
        self.number = number
        self.name = name
        self.type = resolve_field_type(field_type)
        self.label = label
        self.packed = packed
        self.oneof = oneof
        self.presence = presence
        self.default = default
        self.key_type = None
        if label == MAP:
            if key_type is None:
                raise ValueError(f'Map field {name!r} needs a key type')
            self.key_type = resolve_field_type(key_type)
            if not self.key_type.is_key_type:
                raise ValueError(
                    f'Type {self.key_type.name} cannot be a map key'
                )
            if isinstance(self.type, GroupType):
                raise ValueError('Map values cannot be groups')
        elif key_type is not None:
            raise ValueError('Only map fields take a key type')
        if packed and not (label == REPEATED and self.type.packable):
            raise ValueError(
                f'Field {name!r} is not a repeated scalar and cannot be packed'
            )
        if oneof is not None and label != OPTIONAL:
            raise ValueError('Only singular fields can be part of a oneof')

    def __repr__(self):
        return (
            f'{type(self).__name__}('
            f'{self.number!r}, '
            f'{self.name!r}, '
            f'{self.type!r}, '
            f'label={self.label!r})'
        )

    def bind(self, syntax):
        """
        Return a copy of this field with the syntax-dependent options settled
        for the owning message (or extendee). The field itself is left
        untouched, so one Field can be declared in several messages.
        """
        proto2 = syntax == 'proto2'
        bound = copy(self)
        if bound.packed is None:
            bound.packed = (
                    not proto2 and
                    bound.label == REPEATED and
                    bound.type.packable
            )
        if isinstance(bound.type, EnumType) and bound.type.closed is None:
            bound.type = EnumType(bound.type.enum_class, closed=proto2)
        if bound.presence is None:
            bound.presence = (
                    proto2 or
                    bound.type.is_message or
                    bound.oneof is not None
            )
        if bound.label == MAP and isinstance(bound.type, EnumType) and \
                bound.type.closed:
            raise ValueError('Map values cannot be closed enums')
        if bound.default is not None:
            if bound.label != OPTIONAL and bound.label != REQUIRED:
                raise ValueError('Only singular fields take a default')
            bound.default = bound.type.check(bound.default)
        return bound

    @property
    def is_repeated(self):
        return self.label == REPEATED

    @property
    def is_map(self):
        return self.label == MAP

    @property
    def is_required(self):
        return self.label == REQUIRED

    def default_value(self):
        """The value a reader sees when the field is not set."""
        if self.label == REPEATED:
            return ()
        if self.label == MAP:
            return {}
        if self.default is not None:
            return self.default
        return self.type.default()

    def empty_value(self):
        """A fresh mutable container for repeated and map fields."""
        if self.label == REPEATED:
            return []
        if self.label == MAP:
            return {}
        return None

    def check(self, value):
        if self.label == REPEATED:
            if isinstance(value, (str, bytes)) or not hasattr(
                    value, '__iter__'):
                raise TypeError(
                    f'Repeated field {self.name!r} needs an iterable'
                )
            return [self.type.check(item) for item in value]
        if self.label == MAP:
            return {
                self.key_type.check(k): self.type.check(v)
                for k, v in dict(value).items()
            }
        return self.type.check(value)

    def is_populated(self, value):
        """Whether a stored value will be emitted when encoding."""
        if self.label in (REPEATED, MAP):
            return bool(value)
        if self.presence:
            return value is not None
        return value != self.type.default()

    def copy_value(self, value):
        """Copy a stored value so two storages never share a container."""
        if self.label == REPEATED:
            return list(value)
        if self.label == MAP:
            return dict(value)
        return value

    # Encoding

    def traverse(self, visitor, value):
        """Invoke exactly one visitor method for this populated field."""
        field_type = self.type
        if self.label == REPEATED:
            if isinstance(field_type, GroupType):
                visitor.visit_repeated_group(self, value)
            elif field_type.is_message:
                visitor.visit_repeated_message(self, value)
            elif field_type.is_enum:
                if self.packed:
                    visitor.visit_packed_enum(self, value)
                else:
                    visitor.visit_repeated_enum(self, value)
            elif self.packed:
                visitor.visit_packed_scalar(self, value)
            else:
                visitor.visit_repeated_scalar(self, value)
        elif self.label == MAP:
            visitor.visit_map(self, value)
        elif isinstance(field_type, GroupType):
            visitor.visit_singular_group(self, value)
        elif field_type.is_message:
            visitor.visit_singular_message(self, value)
        elif field_type.is_enum:
            visitor.visit_singular_enum(self, value)
        else:
            visitor.visit_singular_scalar(self, value)

    def tag_size(self):
        return bytes_to_encode_tag(self.number)

    # Decoding

    def _mismatch(self, wire_type):
        return MalformedProtobufError(
            f'Wire type {int(wire_type)} does not match field '
            f'{self.name!r} ({self.number}) of type {self.type.name}'
        )

    def decode(self, decoder, wire_type, current):
        """
        Decode the payload of this field (whose tag was just read) and
        return the field's new value, given its current one.
        """
        reader = decoder.reader
        field_type = self.type
        if self.label == MAP:
            if wire_type != WireType.LENGTH_DELIMITED:
                raise self._mismatch(wire_type)
            result = current if current is not None else {}
            key, value = self._decode_map_entry(decoder, reader.sub_reader())
            result[key] = value
            return result

        if field_type.is_message:
            if wire_type != field_type.wire_type:
                raise self._mismatch(wire_type)
            if self.label == REPEATED or current is None:
                message = field_type.message_class()
            else:
                message = current.copy()
            if isinstance(field_type, GroupType):
                decoder.merge_group(message, self.number)
            else:
                decoder.merge_message(message, reader.sub_reader())
            if self.label == REPEATED:
                result = current if current is not None else []
                result.append(message)
                return result
            return message

        if self.label == REPEATED:
            result = current if current is not None else []
            if (
                    wire_type == WireType.LENGTH_DELIMITED and
                    field_type.packable
            ):
                self._decode_packed(decoder, reader.sub_reader(), result)
            elif wire_type == field_type.wire_type:
                value = self._read_one(decoder)
                if value is not None:
                    result.append(value)
            else:
                raise self._mismatch(wire_type)
            return result

        if wire_type != field_type.wire_type:
            raise self._mismatch(wire_type)
        value = self._read_one(decoder)
        return current if value is None else value

    def _read_one(self, decoder):
        """
        Read one value; returns None for a closed enum value with no member,
        after routing its field to the unknown fields.
        """
        field_type = self.type
        if field_type.is_enum and field_type.closed:
            n = field_type.read_raw(decoder.reader)
            if field_type.is_known(n):
                return field_type.enum_class(n)
            decoder.keep_current_field_as_unknown()
            return None
        return field_type.read(decoder.reader)

    def _decode_packed(self, decoder, sub, result):
        field_type = self.type
        closed_enum = field_type.is_enum and field_type.closed
        unknown_values = []
        while not sub.complete:
            if closed_enum:
                n = field_type.read_raw(sub)
                if field_type.is_known(n):
                    result.append(field_type.enum_class(n))
                else:
                    unknown_values.append(n)
            else:
                result.append(field_type.read(sub))
        if unknown_values:
            decoder.add_unknown_packed(self.number, field_type, unknown_values)

    def _decode_map_entry(self, decoder, sub):
        key = self.key_type.default()
        value = None
        while True:
            tag = sub.read_tag()
            if tag is None:
                break
            number, wire_type = tag
            if number == 1:
                if wire_type != self.key_type.wire_type:
                    raise self._mismatch(wire_type)
                key = self.key_type.read(sub)
            elif number == 2:
                if wire_type != self.type.wire_type:
                    raise self._mismatch(wire_type)
                if self.type.is_message:
                    value = self.type.message_class()
                    decoder.merge_message(value, sub.sub_reader())
                else:
                    value = self.type.read(sub)
            else:
                # Unknown fields inside map entries are dropped.
                sub.skip_field(number, wire_type)
        if value is None:
            if self.type.is_message:
                value = self.type.message_class()
            else:
                value = self.type.default()
        return key, value


def Repeated(number, name, field_type, **kwargs):
    return Field(number, name, field_type, label=REPEATED, **kwargs)


def Required(number, name, field_type, **kwargs):
    return Field(number, name, field_type, label=REQUIRED, **kwargs)


def MapField(number, name, key_type, value_type):
    return Field(number, name, value_type, label=MAP, key_type=key_type)


__all__ = (
    'OPTIONAL',
    'REQUIRED',
    'REPEATED',
    'MAP',
    'SCALAR_TYPES',
    'FieldType',
    'EnumType',
    'MessageType',
    'GroupType',
    'Field',
    'Repeated',
    'Required',
    'MapField',
    'resolve_field_type',
)
