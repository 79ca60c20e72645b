# coding=utf-8
import enum
import logging

from .errors import (
    MalformedProtobufError,
    ProtobufError,
    TooLargeError,
    TruncatedError,
)
from .wire import MAX_LENGTH, MAX_VARINT_BYTES, UINT64_MASK, write_varint

__doc__ = """
Length-delimited message streams: each message is preceded by its byte length
as a varint.

FrameDecoder is the sans-IO core, splitting whatever bytes it is fed into
frames. StreamDecodingIterator drives it from a blocking binary stream and
AsyncMessageSequence from an asyncio reader or an async iterable of chunks.

    with open('people.bin', 'wb') as f:
        for person in people:
            write_delimited(person, f)

    with open('people.bin', 'rb') as f:
        for person in iter_delimited(f, Person):
            ...
"""

logger = logging.getLogger(__name__)

MAX_MESSAGE_SIZE = MAX_LENGTH
DEFAULT_BUFFER_SIZE = 32768


class FrameState(enum.Enum):
    AWAITING_LENGTH = 'awaiting length'
    READING_LENGTH = 'reading length'
    AWAITING_BODY = 'awaiting body'
    READING_BODY = 'reading body'


class FrameDecoder:
    """
    Incremental splitter for a length-delimited stream. Feed it bytes in
    chunks of any size and call next_frame() until it returns None; at the
    end of the input call finish() to detect a truncated final frame.

    A length larger than max_size raises TooLargeError as soon as its varint
    is complete, before any of the body is buffered.
    """
    __slots__ = (
        'max_size',
        '_buffer',
        '_pos',
        '_length',
        '_length_value',
        '_length_bytes',
    )

    def __init__(self, max_size=MAX_MESSAGE_SIZE):
        self.max_size = max_size
        self._buffer = bytearray()
        # Bytes before _pos are the already-parsed length varint.
        self._pos = 0
        self._length = None
        self._length_value = 0
        self._length_bytes = 0

    def __repr__(self):
        return (
            f'<{type(self).__name__} {self.state.value}, '
            f'{len(self._buffer)} bytes buffered>'
        )

    @property
    def state(self):
        if self._length is None:
            if self._length_bytes:
                return FrameState.READING_LENGTH
            return FrameState.AWAITING_LENGTH
        if len(self._buffer) > self._pos:
            return FrameState.READING_BODY
        return FrameState.AWAITING_BODY

    def feed(self, data):
        self._buffer += data

    def bytes_needed(self):
        """
        The number of bytes that must still be fed before next_frame() can
        make progress: at least 1 while reading a length, otherwise the rest
        of the current body.
        """
        available = len(self._buffer) - self._pos
        if self._length is None:
            return 0 if available else 1
        return max(self._length - available, 0)

    def _read_length(self):
        buffer = self._buffer
        while self._pos < len(buffer):
            byte = buffer[self._pos]
            self._pos += 1
            self._length_value |= (byte & 0x7f) << (7 * self._length_bytes)
            self._length_bytes += 1
            if byte & 0x80:
                if self._length_bytes >= MAX_VARINT_BYTES:
                    raise MalformedProtobufError(
                        'Frame length varint is longer than '
                        f'{MAX_VARINT_BYTES} bytes'
                    )
                continue
            length = self._length_value & UINT64_MASK
            self._length_value = 0
            self._length_bytes = 0
            if length > self.max_size:
                raise TooLargeError(
                    f'Frame length {length} exceeds the limit of '
                    f'{self.max_size} bytes'
                )
            self._length = length
            return True
        return False

    def next_frame(self):
        """Return the next complete frame body, or None if more is needed."""
        if self._length is None and not self._read_length():
            # The partial varint has been absorbed into the accumulator.
            del self._buffer[:self._pos]
            self._pos = 0
            return None
        end = self._pos + self._length
        if len(self._buffer) < end:
            return None
        frame = bytes(self._buffer[self._pos:end])
        del self._buffer[:end]
        self._pos = 0
        self._length = None
        return frame

    def finish(self):
        """Signal the end of input. Raises TruncatedError mid-frame."""
        if self.state is not FrameState.AWAITING_LENGTH or self._buffer:
            raise TruncatedError(
                f'Stream ended while {self.state.value} of a frame'
            )


def serialize_delimited(message, *, partial=False, options=None):
    body = message.serialize(partial=partial, options=options)
    return write_varint(len(body)) + body


def write_delimited(message, stream, *, partial=False, options=None):
    """Write one length-prefixed message; returns the bytes written."""
    data = serialize_delimited(message, partial=partial, options=options)
    stream.write(data)
    return len(data)


def parse_delimited(
        message_type,
        stream,
        *,
        extensions=None,
        partial=False,
        options=None,
        max_size=MAX_MESSAGE_SIZE,
):
    """
    Read exactly one length-prefixed message from a blocking binary stream.
    Returns None if the stream is already at its end. Reads never ask for
    more than DEFAULT_BUFFER_SIZE bytes at once, whatever length is declared.
    """
    decoder = FrameDecoder(max_size)
    while True:
        frame = decoder.next_frame()
        if frame is not None:
            return message_type.parse(
                frame,
                extensions=extensions,
                partial=partial,
                options=options,
            )
        chunk = stream.read(
            min(decoder.bytes_needed(), DEFAULT_BUFFER_SIZE)
        )
        if not chunk:
            decoder.finish()
            return None
        decoder.feed(chunk)


class StreamDecodingIterator:
    """
    Iterates the messages of a length-delimited blocking binary stream,
    reading through one reusable scratch buffer.

    The first error (bad data, a truncated last frame or an I/O error) ends
    the iteration. It is passed to error_delegate when one is given, and
    otherwise raised from next(); either way it is reported only once.
    """

    def __init__(
            self,
            stream,
            message_type,
            *,
            buffer_size=DEFAULT_BUFFER_SIZE,
            extensions=None,
            partial=False,
            options=None,
            error_delegate=None,
            max_size=MAX_MESSAGE_SIZE,
    ):
        if buffer_size < 1:
            raise ValueError('buffer_size must be positive')
        self.stream = stream
        self.message_type = message_type
        self.extensions = extensions
        self.partial = partial
        self.options = options
        self.error_delegate = error_delegate
        self._decoder = FrameDecoder(max_size)
        self._scratch = memoryview(bytearray(buffer_size))
        self._done = False

    def __iter__(self):
        return self

    def __next__(self):
        if self._done:
            raise StopIteration
        try:
            return self._next_message()
        except StopIteration:
            self._done = True
            raise
        except (ProtobufError, OSError) as exc:
            self._done = True
            if self.error_delegate is None:
                raise
            logger.debug('Delimited stream ended with an error: %s', exc)
            self.error_delegate(exc)
        raise StopIteration

    def _fill(self):
        readinto = getattr(self.stream, 'readinto', None)
        if readinto is None:
            chunk = self.stream.read(len(self._scratch)) or b''
            self._decoder.feed(chunk)
            return len(chunk)
        count = readinto(self._scratch)
        if count:
            self._decoder.feed(self._scratch[:count])
        return count or 0

    def _next_message(self):
        decoder = self._decoder
        while True:
            frame = decoder.next_frame()
            if frame is not None:
                return self.message_type.parse(
                    frame,
                    extensions=self.extensions,
                    partial=self.partial,
                    options=self.options,
                )
            if not self._fill():
                decoder.finish()
                raise StopIteration


def iter_delimited(stream, message_type, **kwargs):
    return StreamDecodingIterator(stream, message_type, **kwargs)


class AsyncMessageSequence:
    """
    Async iterator over the messages of a length-delimited byte source.

    The source is either an object with a coroutine read(n), such as an
    asyncio.StreamReader, or an async iterable of byte chunks. Reader sources
    are only ever asked for the bytes the current frame still needs, so the
    reader is left positioned right after the last message pulled.

    An error fails the pull during which it happened; the sequence is over
    after that.
    """

    def __init__(
            self,
            source,
            message_type,
            *,
            extensions=None,
            partial=False,
            options=None,
            max_size=MAX_MESSAGE_SIZE,
    ):
        self.message_type = message_type
        self.extensions = extensions
        self.partial = partial
        self.options = options
        if hasattr(source, 'read'):
            self._read = source.read
            self._chunks = None
        else:
            self._read = None
            self._chunks = source.__aiter__()
        self._decoder = FrameDecoder(max_size)
        self._done = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._done:
            raise StopAsyncIteration
        try:
            return await self._next_message()
        except StopAsyncIteration:
            self._done = True
            raise
        except (ProtobufError, OSError) as exc:
            self._done = True
            logger.debug('Delimited stream ended with an error: %s', exc)
            raise

    async def _pull(self, size):
        if self._read is not None:
            return await self._read(size)
        while True:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                return b''
            if chunk:
                return chunk

    async def _next_message(self):
        decoder = self._decoder
        while True:
            frame = decoder.next_frame()
            if frame is not None:
                return self.message_type.parse(
                    frame,
                    extensions=self.extensions,
                    partial=self.partial,
                    options=self.options,
                )
            chunk = await self._pull(
                min(decoder.bytes_needed(), DEFAULT_BUFFER_SIZE)
            )
            if not chunk:
                decoder.finish()
                raise StopAsyncIteration
            decoder.feed(chunk)


__all__ = (
    'MAX_MESSAGE_SIZE',
    'DEFAULT_BUFFER_SIZE',
    'FrameState',
    'FrameDecoder',
    'serialize_delimited',
    'write_delimited',
    'parse_delimited',
    'StreamDecodingIterator',
    'iter_delimited',
    'AsyncMessageSequence',
)
