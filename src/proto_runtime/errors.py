# coding=utf-8
"""
Exception hierarchy for the runtime.

Decoding and encoding failures are ValueErrors, so callers that only care
whether some bytes were acceptable can catch ValueError like they would for
any other parser.
"""


class ProtobufError(Exception):
    """Root of every error raised by proto_runtime."""


class DecodeError(ProtobufError, ValueError):
    """The binary data could not be decoded."""


class MalformedProtobufError(DecodeError):
    """
    The data is not valid protobuf: a bad varint, an invalid tag, a wire type
    that does not match a known field or extension, an orphaned group end.
    """


class TruncatedError(DecodeError):
    """The data ended before a declared length or value was satisfied."""


class TooLargeError(DecodeError):
    """A declared length or size exceeds the configured bounds."""


class InvalidUTF8Error(DecodeError):
    """A string field contained bytes that are not valid UTF-8."""


class MessageDepthLimitError(MalformedProtobufError):
    """Messages, groups or Any containers were nested too deeply."""


class EncodeError(ProtobufError, ValueError):
    """The message could not be encoded."""


class MissingRequiredFieldsError(DecodeError, EncodeError):
    """A proto2 required field was not set."""


class AnyUnpackError(ProtobufError, ValueError):
    """An Any container could not be unpacked."""


class TypeMismatchError(AnyUnpackError):
    """The Any holds a different message type than the one requested."""


class UnknownTypeError(AnyUnpackError, LookupError):
    """The Any holds a type name that is not in the type registry."""


__all__ = (
    'ProtobufError',
    'DecodeError',
    'MalformedProtobufError',
    'TruncatedError',
    'TooLargeError',
    'InvalidUTF8Error',
    'MessageDepthLimitError',
    'EncodeError',
    'MissingRequiredFieldsError',
    'AnyUnpackError',
    'TypeMismatchError',
    'UnknownTypeError',
)
