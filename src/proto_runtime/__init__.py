# coding=utf-8
from .anycodec import (
    DEFAULT_TYPE_PREFIX,
    Any,
    build_type_url,
    type_name_from_url,
)
from .errors import (
    AnyUnpackError,
    DecodeError,
    EncodeError,
    InvalidUTF8Error,
    MalformedProtobufError,
    MessageDepthLimitError,
    MissingRequiredFieldsError,
    ProtobufError,
    TooLargeError,
    TruncatedError,
    TypeMismatchError,
    UnknownTypeError,
)
from .extensions import Extension, ExtensionFieldStore, ExtensionMap
from .fields import (
    MAP,
    OPTIONAL,
    REPEATED,
    REQUIRED,
    EnumType,
    Field,
    GroupType,
    MapField,
    MessageType,
    Repeated,
    Required,
)
from .framing import (
    AsyncMessageSequence,
    FrameDecoder,
    FrameState,
    StreamDecodingIterator,
    iter_delimited,
    parse_delimited,
    serialize_delimited,
    write_delimited,
)
from .message import Message
from .options import DecodingOptions, EncodingOptions
from .registry import DEFAULT_REGISTRY, TypeRegistry
from .unknown import UnknownField, UnknownFieldSet
from .visitor import BinaryEncodingVisitor, SizeVisitor, Visitor
from .wellknown import (
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
    NullValue,
    StringValue,
    Struct,
    Timestamp,
    UInt32Value,
    UInt64Value,
    Value,
    WELL_KNOWN_TYPES,
)
from .wire import WireType

__doc__ = """
Pure python protobuf message runtime. Written for py3.7+.

License: MIT

Messages are declared as Python classes listing their fields; there is no
code generation step:

    class Person(Message):
        full_name = 'example.Person'
        proto_fields = (
            Field(1, 'name', 'string'),
            Field(2, 'id', 'int32'),
            Repeated(3, 'emails', 'string'),
            Field(4, 'manager', lambda: Person),
        )

Parsing and serializing:

    Person.parse(data, extensions=None, partial=False, options=None)
        Decodes a whole message. Fields the class does not know are kept
        byte-for-byte and written back out by serialize(). Extensions are
        only recognized when an ExtensionMap is passed. Required fields
        (proto2) are checked unless partial is true.

    person.merge_from_bytes(data, ...)
        Decodes data into an existing message. If decoding fails, the
        message is unchanged.

    person.serialize(partial=False, options=None)
        Encodes the message. EncodingOptions(use_deterministic_ordering=True)
        sorts map entries.

    person.byte_size()
        The exact length of serialize() without encoding anything.

Messages are values: copy() is cheap, storage is shared until one side
changes, and reading a sub-message returns a copy that can be changed
without affecting its parent.

Other pieces:

    Any, pack(), unpack(), is_a()
        google.protobuf.Any. Type URLs are compared by the name after their
        last "/", so any prefix works.

    TypeRegistry, DEFAULT_REGISTRY
        Message classes by full name, for unpacking an Any of unknown type.
        Pre-loaded with the well-known types.

    FrameDecoder, StreamDecodingIterator, AsyncMessageSequence
        Length-delimited streams of messages, from blocking files or from
        asyncio readers.

    Visitor
        Message.traverse(visitor) walks every set field in field number
        order, which is how encoding and sizing are implemented.
"""

__all__ = (
    'DEFAULT_TYPE_PREFIX',
    'Any',
    'build_type_url',
    'type_name_from_url',
    'AnyUnpackError',
    'DecodeError',
    'EncodeError',
    'InvalidUTF8Error',
    'MalformedProtobufError',
    'MessageDepthLimitError',
    'MissingRequiredFieldsError',
    'ProtobufError',
    'TooLargeError',
    'TruncatedError',
    'TypeMismatchError',
    'UnknownTypeError',
    'Extension',
    'ExtensionFieldStore',
    'ExtensionMap',
    'MAP',
    'OPTIONAL',
    'REPEATED',
    'REQUIRED',
    'EnumType',
    'Field',
    'GroupType',
    'MapField',
    'MessageType',
    'Repeated',
    'Required',
    'AsyncMessageSequence',
    'FrameDecoder',
    'FrameState',
    'StreamDecodingIterator',
    'iter_delimited',
    'parse_delimited',
    'serialize_delimited',
    'write_delimited',
    'Message',
    'DecodingOptions',
    'EncodingOptions',
    'DEFAULT_REGISTRY',
    'TypeRegistry',
    'UnknownField',
    'UnknownFieldSet',
    'BinaryEncodingVisitor',
    'SizeVisitor',
    'Visitor',
    'BoolValue',
    'BytesValue',
    'DoubleValue',
    'Duration',
    'Empty',
    'FieldMask',
    'FloatValue',
    'Int32Value',
    'Int64Value',
    'ListValue',
    'NullValue',
    'StringValue',
    'Struct',
    'Timestamp',
    'UInt32Value',
    'UInt64Value',
    'Value',
    'WELL_KNOWN_TYPES',
    'WireType',
)
