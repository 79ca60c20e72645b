# coding=utf-8
from .options import DEFAULT_ENCODING_OPTIONS
from .wire import (
    WireType,
    WireWriter,
    bytes_to_encode_tag,
    bytes_to_encode_varint,
)

__doc__ = """
The field visitor protocol.

Message.traverse(visitor) calls exactly one visit_* method for each populated
field, in field-number order, with extension ranges interleaved at their
position and unknown fields replayed last. Visitors implement one method per
wire-level category; the enum methods fall back to the scalar ones.
"""


class Visitor:
    """Base visitor. Subclasses implement the categories they care about."""

    def visit_singular_scalar(self, field, value):
        raise NotImplementedError

    def visit_repeated_scalar(self, field, values):
        raise NotImplementedError

    def visit_packed_scalar(self, field, values):
        raise NotImplementedError

    def visit_singular_enum(self, field, value):
        self.visit_singular_scalar(field, value)

    def visit_repeated_enum(self, field, values):
        self.visit_repeated_scalar(field, values)

    def visit_packed_enum(self, field, values):
        self.visit_packed_scalar(field, values)

    def visit_singular_message(self, field, value):
        raise NotImplementedError

    def visit_repeated_message(self, field, values):
        for value in values:
            self.visit_singular_message(field, value)

    def visit_singular_group(self, field, value):
        raise NotImplementedError

    def visit_repeated_group(self, field, values):
        for value in values:
            self.visit_singular_group(field, value)

    def visit_map(self, field, mapping):
        raise NotImplementedError

    def visit_extension_fields(self, store, start, end):
        store.traverse(self, start, end)

    def visit_unknown(self, data):
        raise NotImplementedError


def _map_items(mapping, options):
    if options.use_deterministic_ordering:
        return sorted(mapping.items())
    return mapping.items()


class BinaryEncodingVisitor(Visitor):
    """Writes each visited field in wire format to a WireWriter."""

    def __init__(self, writer=None, *, options=DEFAULT_ENCODING_OPTIONS):
        self.writer = WireWriter() if writer is None else writer
        self.options = options

    def _encode_message(self, message):
        nested = BinaryEncodingVisitor(options=self.options)
        message.traverse(nested)
        return nested.writer.buffer

    def visit_singular_scalar(self, field, value):
        self.writer.write_tag(field.number, field.type.wire_type)
        field.type.write(self.writer, value)

    def visit_repeated_scalar(self, field, values):
        for value in values:
            self.visit_singular_scalar(field, value)

    def visit_packed_scalar(self, field, values):
        field_type = field.type
        writer = self.writer
        writer.write_tag(field.number, WireType.LENGTH_DELIMITED)
        writer.write_varint(sum(field_type.size(value) for value in values))
        for value in values:
            field_type.write(writer, value)

    def visit_singular_message(self, field, value):
        self.writer.write_tag(field.number, WireType.LENGTH_DELIMITED)
        self.writer.write_length_delimited(self._encode_message(value))

    def visit_singular_group(self, field, value):
        self.writer.write_tag(field.number, WireType.START_GROUP)
        value.traverse(self)
        self.writer.write_tag(field.number, WireType.END_GROUP)

    def visit_map(self, field, mapping):
        key_type = field.key_type
        value_type = field.type
        for key, value in _map_items(mapping, self.options):
            entry = WireWriter()
            entry.write_tag(1, key_type.wire_type)
            key_type.write(entry, key)
            entry.write_tag(2, value_type.wire_type)
            if value_type.is_message:
                entry.write_length_delimited(self._encode_message(value))
            else:
                value_type.write(entry, value)
            self.writer.write_tag(field.number, WireType.LENGTH_DELIMITED)
            self.writer.write_length_delimited(entry.buffer)

    def visit_unknown(self, data):
        self.writer.write_raw(data)


class SizeVisitor(Visitor):
    """Totals the exact encoded size of the visited fields."""

    def __init__(self):
        self.total = 0

    @staticmethod
    def message_size(message):
        visitor = SizeVisitor()
        message.traverse(visitor)
        return visitor.total

    def visit_singular_scalar(self, field, value):
        self.total += bytes_to_encode_tag(field.number)
        self.total += field.type.size(value)

    def visit_repeated_scalar(self, field, values):
        tag_size = bytes_to_encode_tag(field.number)
        self.total += sum(
            tag_size + field.type.size(value) for value in values
        )

    def visit_packed_scalar(self, field, values):
        length = sum(field.type.size(value) for value in values)
        self.total += (
                bytes_to_encode_tag(field.number) +
                bytes_to_encode_varint(length) +
                length
        )

    def visit_singular_message(self, field, value):
        length = self.message_size(value)
        self.total += (
                bytes_to_encode_tag(field.number) +
                bytes_to_encode_varint(length) +
                length
        )

    def visit_singular_group(self, field, value):
        # Start and end tags have the same size.
        self.total += 2 * bytes_to_encode_tag(field.number)
        value.traverse(self)

    def visit_map(self, field, mapping):
        tag_size = bytes_to_encode_tag(field.number)
        for key, value in mapping.items():
            if field.type.is_message:
                value_length = self.message_size(value)
                value_size = bytes_to_encode_varint(value_length) + value_length
            else:
                value_size = field.type.size(value)
            length = 2 + field.key_type.size(key) + value_size
            self.total += tag_size + bytes_to_encode_varint(length) + length

    def visit_unknown(self, data):
        self.total += len(data)
