# coding=utf-8
from .errors import MalformedProtobufError
from .wire import WireReader, make_tag, read_varint, split_tag, write_varint

__doc__ = """
Fields a message's schema does not recognize.

Decoding keeps each one as the exact span of bytes it occupied, tag and all,
in an UnknownFieldSet on the message. Serializing writes those spans back
after the known fields in the order they were read, so data written by a
newer schema passes through an older one unchanged.

Each record is an UnknownField; field_list(number) picks out the records of
one field number. The whole set can be replaced or cleared through the
message.
"""


class UnknownField:
    """
    One field the active schema did not recognize, kept as the exact bytes it
    occupied on the wire (tag included, so even a non-minimal tag varint is
    reproduced). Group fields span from their start tag through the matching
    end tag.
    """
    __slots__ = ('field_number', 'wire_type', 'data',)

    def __init__(self, field_number, wire_type, data):
        self.field_number = field_number
        self.wire_type = wire_type
        self.data = bytes(data)

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return other.data == self.data

    def __hash__(self):
        return hash(self.data)

    def __repr__(self):
        return (
            f'{type(self).__name__}('
            f'{self.field_number!r}, '
            f'{self.wire_type!r}, '
            f'{self.data!r})'
        )

    @property
    def tag(self):
        return make_tag(self.field_number, self.wire_type)

    @property
    def payload(self):
        """The bytes following the tag."""
        _, tag_bytes = read_varint(self.data)
        return self.data[tag_bytes:]

    @classmethod
    def parse(cls, data, *, offset=0):
        """
        Parse a single field starting at offset, returning the field and the
        number of bytes consumed.
        """
        reader = WireReader(data, offset=offset)
        tag = reader.read_tag()
        if tag is None:
            raise MalformedProtobufError(
                f'No field to parse at position {offset}'
            )
        field_number, wire_type = tag
        reader.skip_field(field_number, wire_type)
        return (
            cls(field_number, wire_type, reader.slice(offset)),
            reader.pos - offset
        )

    def byte_size(self):
        return len(self.data)


class UnknownFieldSet:
    """
    Ordered record of unknown fields. Insertion order is preserved and
    equality is exact byte-sequence equality.
    """
    __slots__ = ('fields',)

    def __init__(self, fields=()):
        self.fields = list(fields)

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return other.bytes == self.bytes

    def __len__(self):
        return len(self.fields)

    def __iter__(self):
        yield from self.fields

    def __repr__(self):
        return f'{type(self).__name__}({self.fields!r})'

    @classmethod
    def parse(cls, data):
        """Split a complete run of serialized fields into records."""
        result = cls()
        offset = 0
        while offset < len(data):
            field, bytes_read = UnknownField.parse(data, offset=offset)
            result.fields.append(field)
            offset += bytes_read
        return result

    @property
    def bytes(self):
        return b''.join(field.data for field in self.fields)

    def append(self, tag, payload):
        """
        Append a field given its raw tag value and the bytes that follow the
        tag on the wire.
        """
        field_number, wire_type = split_tag(tag)
        self.fields.append(
            UnknownField(field_number, wire_type, write_varint(tag) + payload)
        )

    def append_raw(self, field_number, wire_type, data):
        """Append the exact wire bytes of a field, tag included."""
        self.fields.append(UnknownField(field_number, wire_type, data))

    def merge(self, other):
        self.fields.extend(other.fields)

    def field_list(self, field_number):
        return [
            field for field in self.fields
            if field.field_number == field_number
        ]

    def clear(self):
        self.fields = []

    def copy(self):
        # Records are immutable, so a new list is enough.
        return type(self)(self.fields)
    __copy__ = copy

    def __deepcopy__(self, memo):
        return self.copy()

    def byte_size(self):
        return sum(field.byte_size() for field in self.fields)

    def traverse(self, visitor):
        """Replays the stored bytes verbatim."""
        if self.fields:
            visitor.visit_unknown(self.bytes)
