# coding=utf-8
from .errors import MessageDepthLimitError, TypeMismatchError
from .fields import Field
from .message import Message

__doc__ = """
google.protobuf.Any and the operations on it.

An Any holds a type URL and the serialized bytes of some other message. The
URL is an optional prefix followed by the message's full name; only the part
after the last "/" identifies the type, so two URLs that differ only in
their prefix name the same type.

    any_msg = Any.pack(person)
    any_msg.type_url    # 'type.googleapis.com/example.Person'
    any_msg.is_a(Person)    # True
    any_msg.unpack(Person) == person    # True

Packing never validates anything beyond what serialize() does, and an Any
constructed by hand is never checked until it is unpacked.
"""

DEFAULT_TYPE_PREFIX = 'type.googleapis.com'
DEFAULT_UNWRAP_DEPTH = 100


def build_type_url(full_name, prefix=DEFAULT_TYPE_PREFIX):
    if prefix.endswith('/'):
        return f'{prefix}{full_name}'
    return f'{prefix}/{full_name}'


def type_name_from_url(type_url):
    """Return the full message name a type URL refers to."""
    _, _, name = type_url.rpartition('/')
    return name


class Any(Message):
    full_name = 'google.protobuf.Any'
    proto_fields = (
        Field(1, 'type_url', 'string'),
        Field(2, 'value', 'bytes'),
    )

    @classmethod
    def pack(
            cls,
            message,
            type_prefix=DEFAULT_TYPE_PREFIX,
            *,
            partial=False,
            options=None,
    ):
        return pack(
            message,
            type_prefix,
            partial=partial,
            options=options,
        )

    @property
    def type_name(self):
        return type_name_from_url(self.type_url)

    def is_a(self, message_type):
        return is_a(self, message_type)

    def unpack(
            self,
            message_type,
            *,
            extensions=None,
            partial=False,
            options=None,
    ):
        return unpack(
            self,
            message_type,
            extensions=extensions,
            partial=partial,
            options=options,
        )


def pack(message, type_prefix=DEFAULT_TYPE_PREFIX, *, partial=False,
         options=None):
    """Serialize message into a new Any."""
    message_type = type(message)
    if not message_type.full_name:
        raise TypeError(f'{message_type.__name__} has no full_name to pack')
    return Any(
        type_url=build_type_url(message_type.full_name, type_prefix),
        value=message.serialize(partial=partial, options=options),
    )


def is_a(any_msg, message_type):
    """Whether any_msg holds a message_type, whatever its URL prefix."""
    return (
            message_type.full_name is not None and
            type_name_from_url(any_msg.type_url) == message_type.full_name
    )


def unpack(
        any_msg,
        message_type,
        *,
        extensions=None,
        partial=False,
        options=None,
):
    """
    Decode the payload of any_msg as message_type. Raises TypeMismatchError
    if the Any holds some other type (or has no type URL), and the usual
    decode errors if its bytes are not a valid message_type.
    """
    if not is_a(any_msg, message_type):
        raise TypeMismatchError(
            f'Any holds {any_msg.type_url!r}, not {message_type.full_name!r}'
        )
    return message_type.parse(
        any_msg.value,
        extensions=extensions,
        partial=partial,
        options=options,
    )


def unwrap(any_msg, *, max_depth=DEFAULT_UNWRAP_DEPTH, options=None):
    """
    Peel away Any layers packed inside any_msg and return the innermost Any,
    the one holding something other than an Any. More than max_depth layers
    raise MessageDepthLimitError.
    """
    current = any_msg
    depth = 0
    while is_a(current, Any):
        depth += 1
        if depth > max_depth:
            raise MessageDepthLimitError(
                f'Any nesting exceeds the depth limit of {max_depth}'
            )
        current = Any.parse(current.value, options=options)
    return current


__all__ = (
    'DEFAULT_TYPE_PREFIX',
    'Any',
    'build_type_url',
    'type_name_from_url',
    'pack',
    'unpack',
    'is_a',
    'unwrap',
)
