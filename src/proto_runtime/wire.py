# coding=utf-8
from enum import IntEnum
from struct import pack, unpack_from

from .errors import MalformedProtobufError, TooLargeError, TruncatedError

__doc__ = """
Wire-level primitives: varints, zig-zag, fixed-width little-endian numbers,
tags, and a cursor (WireReader) and accumulator (WireWriter) built on them.

The free functions follow the (value, bytes_read) convention: reading
functions take a bytes-like object and an offset and return the decoded value
together with the number of bytes they consumed.
"""

UNSIGNED_64_BIT_RANGE = range(0x1_0000_0000_0000_0000)
SIGNED_64_BIT_RANGE = range(-0x8000_0000_0000_0000, 0x8000_0000_0000_0000)
UNSIGNED_32_BIT_RANGE = range(0x1_0000_0000)
SIGNED_32_BIT_RANGE = range(-0x8000_0000, 0x8000_0000)

UINT64_MASK = 0xffff_ffff_ffff_ffff

MIN_FIELD_NUMBER = 1
MAX_FIELD_NUMBER = 0x1fff_ffff  # 536,870,911
MAX_VARINT_BYTES = 10
# Largest length prefix accepted anywhere (2 GiB - 1).
MAX_LENGTH = 0x7fff_ffff


class WireType(IntEnum):
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    FIXED32 = 5


def uint_to_signed(n):
    """
    Convert a non-negative integer to the signed value with zig-zag decoding.
    """
    return (n >> 1) ^ (0 - (n & 1))


def signed_to_uint(n):
    """
    Convert a signed integer to the non-negative value with zig-zag encoding.

    For values in the signed 64 bit range this is (n << 1) ^ (n >> 63).
    """
    if n < 0:
        return ((n ^ -1) << 1) | 1
    else:
        return n << 1


zigzag_encode = signed_to_uint
zigzag_decode = uint_to_signed


def write_varint(value, *, excess_bytes=0):
    """
    Converts an unsigned varint to bytes.

    excess_bytes pads the representation with that many redundant
    continuation bytes; the result still decodes to the same value.
    """

    def varint_bytes(n):
        while n:
            more_bytes = (n > 0x7f) or (excess_bytes > 0)
            yield (0x80 * more_bytes) | (n & 0x7f)
            n >>= 7
        if excess_bytes > 0:
            for _ in range(excess_bytes - 1):
                yield 0x80
            yield 0x00

    if value < 0:
        raise ValueError('Encoded varint must be non-negative')
    elif value == 0 and not excess_bytes:
        return b'\0'
    elif value == 0:
        return bytes([0x80] * excess_bytes + [0x00])
    else:
        return bytes(varint_bytes(value))


def read_varint(data, *, offset=0, limit=None):
    """
    Read a varint from the given offset in the given byte data.

    Returns a tuple containing the numeric value of the varint and
    the number of bytes consumed.

    If the varint representation does not end before the end of the data (or
    the given limit), a TruncatedError is raised. If it runs on for more than
    ten bytes it cannot be a 64 bit value and MalformedProtobufError is raised.
    """
    if limit is None:
        limit = len(data)
    result = 0
    bytes_read = 0
    while True:
        if offset + bytes_read >= limit:
            raise TruncatedError(
                f'Data truncated in varint at position {offset}'
            )
        if bytes_read == MAX_VARINT_BYTES:
            raise MalformedProtobufError(
                f'Varint longer than {MAX_VARINT_BYTES} bytes '
                f'at position {offset}'
            )
        byte = data[offset + bytes_read]
        result |= (byte & 0x7f) << (7 * bytes_read)
        bytes_read += 1
        if byte & 0x80 == 0:
            break
    return result & UINT64_MASK, bytes_read


def bytes_to_encode_varint(n):
    """
    Return the minimum number of bytes needed to represent a number in varint
    encoding.
    """
    if n < 0:
        raise ValueError('Encoded varint must be non-negative')
    return max(1, (n.bit_length() + 6) // 7)


def bytes_to_encode_tag(field_number):
    """
    Return the minimum number of bytes needed to represent a tag with a given
    field number.
    """
    return (field_number.bit_length() + 9) // 7


def make_tag(field_number, wire_type):
    return (field_number << 3) | wire_type


def split_tag(tag):
    """Returns (field_number, wire_type) for a raw tag value."""
    return tag >> 3, tag & 0b111


def encode_tag(field_number, wire_type):
    return write_varint(make_tag(field_number, wire_type))


def _check_remaining(data, offset, limit, size, what):
    if offset + size > limit:
        raise TruncatedError(
            f'Data truncated in {what} beginning at position {offset}'
        )


def decode_fixed32(data, *, offset=0):
    _check_remaining(data, offset, len(data), 4, 'fixed32 value')
    return unpack_from('<L', data, offset)[0], 4


def decode_fixed64(data, *, offset=0):
    _check_remaining(data, offset, len(data), 8, 'fixed64 value')
    return unpack_from('<Q', data, offset)[0], 8


def encode_fixed32(value):
    return pack('<L', value)


def encode_fixed64(value):
    return pack('<Q', value)


class WireReader:
    """
    A cursor over a bytes-like object, bounded by an optional limit.

    All read methods advance the cursor and raise a DecodeError subclass when
    the data does not hold what was asked for.
    """
    __slots__ = ('data', 'pos', 'end')

    def __init__(self, data, *, offset=0, limit=None):
        self.data = data if isinstance(data, memoryview) else memoryview(data)
        self.pos = offset
        self.end = len(self.data) if limit is None else limit

    def __repr__(self):
        return f'{type(self).__name__}(pos={self.pos}, end={self.end})'

    @property
    def complete(self):
        return self.pos >= self.end

    def remaining(self):
        return self.end - self.pos

    def read_varint(self):
        value, bytes_read = read_varint(
            self.data, offset=self.pos, limit=self.end
        )
        self.pos += bytes_read
        return value

    def read_tag(self):
        """
        Read a field tag, returning (field_number, wire_type), or None if the
        reader is exhausted.
        """
        if self.pos >= self.end:
            return None
        start = self.pos
        try:
            tag = self.read_varint()
        except TruncatedError:
            raise MalformedProtobufError(
                f'Data truncated in field tag at position {start}'
            )
        if tag > 0xffff_ffff:
            raise MalformedProtobufError(
                f'Field tag too large at position {start}'
            )
        field_number, wire_type = split_tag(tag)
        if wire_type > WireType.FIXED32:
            raise MalformedProtobufError(
                f'Invalid wire type {wire_type} in tag at position {start}'
            )
        if field_number < MIN_FIELD_NUMBER:
            raise MalformedProtobufError(
                f'Invalid field number 0 in tag at position {start}'
            )
        return field_number, WireType(wire_type)

    def _take(self, size, what):
        _check_remaining(self.data, self.pos, self.end, size, what)
        start = self.pos
        self.pos += size
        return start

    def read_fixed32(self):
        start = self._take(4, 'fixed32 value')
        return unpack_from('<L', self.data, start)[0]

    def read_fixed64(self):
        start = self._take(8, 'fixed64 value')
        return unpack_from('<Q', self.data, start)[0]

    def read_struct(self, fmt, size):
        start = self._take(size, 'fixed-width value')
        return unpack_from(fmt, self.data, start)[0]

    def read_length(self):
        """
        Read a length prefix and check it against the remaining data without
        allocating anything.
        """
        start = self.pos
        length = self.read_varint()
        if length > MAX_LENGTH:
            raise TooLargeError(
                f'Declared length {length} at position {start} exceeds '
                f'the maximum of {MAX_LENGTH}'
            )
        if length > self.end - self.pos:
            raise TruncatedError(
                f'Data truncated in length-delimited data beginning at '
                f'position {self.pos} (was {length} long)'
            )
        return length

    def read_length_delimited(self):
        length = self.read_length()
        start = self.pos
        self.pos += length
        return bytes(self.data[start:self.pos])

    def sub_reader(self):
        """
        Read a length prefix and return a reader bounded to that many bytes,
        advancing this reader past them.
        """
        length = self.read_length()
        sub = WireReader(self.data, offset=self.pos, limit=self.pos + length)
        self.pos += length
        return sub

    def skip_field(self, field_number, wire_type):
        """
        Advance past the payload of a field whose tag was just read. Groups are
        skipped up to and including their matching end tag, however deeply
        nested, using an explicit stack rather than recursion.
        """
        if wire_type == WireType.VARINT:
            self.read_varint()
        elif wire_type == WireType.FIXED64:
            self._take(8, 'fixed64 value')
        elif wire_type == WireType.LENGTH_DELIMITED:
            length = self.read_length()
            self.pos += length
        elif wire_type == WireType.FIXED32:
            self._take(4, 'fixed32 value')
        elif wire_type == WireType.START_GROUP:
            open_groups = [field_number]
            while open_groups:
                tag = self.read_tag()
                if tag is None:
                    raise TruncatedError(
                        f'Data truncated in group with id {open_groups[-1]}'
                    )
                inner_number, inner_type = tag
                if inner_type == WireType.END_GROUP:
                    if inner_number != open_groups[-1]:
                        raise MalformedProtobufError(
                            f'Non-matching group end with id {inner_number} '
                            f'in group with id {open_groups[-1]}'
                        )
                    open_groups.pop()
                elif inner_type == WireType.START_GROUP:
                    open_groups.append(inner_number)
                else:
                    self.skip_field(inner_number, inner_type)
        else:
            raise MalformedProtobufError(
                f'Orphaned group end with id {field_number} '
                f'at position {self.pos}'
            )

    def slice(self, start, stop=None):
        return bytes(self.data[start:self.pos if stop is None else stop])


class WireWriter:
    """Accumulates encoded wire data in a bytearray."""
    __slots__ = ('buffer',)

    def __init__(self):
        self.buffer = bytearray()

    def __len__(self):
        return len(self.buffer)

    def getvalue(self):
        return bytes(self.buffer)

    def write_raw(self, data):
        self.buffer += data

    def write_varint(self, value):
        buffer = self.buffer
        while value > 0x7f:
            buffer.append(0x80 | (value & 0x7f))
            value >>= 7
        buffer.append(value)

    def write_tag(self, field_number, wire_type):
        self.write_varint(make_tag(field_number, wire_type))

    def write_fixed32(self, value):
        self.buffer += pack('<L', value)

    def write_fixed64(self, value):
        self.buffer += pack('<Q', value)

    def write_struct(self, fmt, value):
        self.buffer += pack(fmt, value)

    def write_length_delimited(self, data):
        self.write_varint(len(data))
        self.buffer += data


__all__ = (
    'WireType',
    'WireReader',
    'WireWriter',
    'MAX_FIELD_NUMBER',
    'MAX_LENGTH',
    'read_varint',
    'write_varint',
    'signed_to_uint',
    'uint_to_signed',
    'zigzag_encode',
    'zigzag_decode',
    'bytes_to_encode_varint',
    'bytes_to_encode_tag',
    'make_tag',
    'split_tag',
    'encode_tag',
    'encode_fixed32',
    'encode_fixed64',
    'decode_fixed32',
    'decode_fixed64',
)
