# coding=utf-8
import asyncio
import io

import pytest
from proto_runtime import (
    AsyncMessageSequence,
    FrameDecoder,
    FrameState,
    MalformedProtobufError,
    StreamDecodingIterator,
    TooLargeError,
    TruncatedError,
    iter_delimited,
    parse_delimited,
    serialize_delimited,
    write_delimited,
)
from proto_runtime.framing import DEFAULT_BUFFER_SIZE

from sample_protos import Person

# suppress 'not found' linting
pytest.raises = pytest.raises


PEOPLE = [
    Person(name='Ada', id=1),
    Person(),
    Person(name='Grace', emails=['g@example.com'], lucky_numbers=[7] * 100),
    Person(manager=Person(name='x' * 300)),
]


def delimited_stream(messages=PEOPLE):
    return b''.join(serialize_delimited(message) for message in messages)


class ReadOnlyStream:
    """A stream offering read() but not readinto()."""

    def __init__(self, data):
        self._data = io.BytesIO(data)

    def read(self, size=-1):
        return self._data.read(size)


class RecordingStream(ReadOnlyStream):
    """Remembers the size of every read request."""

    def __init__(self, data):
        super().__init__(data)
        self.requests = []

    def read(self, size=-1):
        self.requests.append(size)
        return super().read(size)


class RecordingReader(RecordingStream):
    async def read(self, size=-1):
        return RecordingStream.read(self, size)


class FailingStream:
    def readinto(self, buffer):
        raise OSError('disk on fire')


async def chunked(data, size):
    for i in range(0, len(data), size):
        yield data[i:i + size]
        yield b''


def test_empty_stream():
    assert list(iter_delimited(io.BytesIO(b''), Person)) == []


def test_zero_length_frame():
    assert list(iter_delimited(io.BytesIO(b'\x00'), Person)) == [Person()]


def test_truncated_body():
    messages = iter_delimited(io.BytesIO(b'\x96\x01'), Person)
    with pytest.raises(TruncatedError):
        next(messages)
    # Errors are reported once; the iterator is finished afterwards.
    assert list(messages) == []


def test_too_large():
    with pytest.raises(TooLargeError):
        list(iter_delimited(io.BytesIO(b'\x80\x80\x80\x80\x08'), Person))


def test_many_messages_in_order():
    data = delimited_stream()
    assert list(iter_delimited(io.BytesIO(data), Person)) == PEOPLE


@pytest.mark.parametrize('buffer_size', [1, 2, 3, 7, 64, 32768])
def test_buffer_boundaries(buffer_size):
    data = delimited_stream() * 3
    messages = StreamDecodingIterator(
        io.BytesIO(data), Person, buffer_size=buffer_size
    )
    assert list(messages) == PEOPLE * 3


def test_stream_without_readinto():
    data = delimited_stream()
    assert list(iter_delimited(ReadOnlyStream(data), Person)) == PEOPLE


def test_error_delegate():
    errors = []
    data = delimited_stream(PEOPLE[:2]) + b'\x05\x08'
    messages = iter_delimited(
        io.BytesIO(data), Person, error_delegate=errors.append
    )
    assert list(messages) == PEOPLE[:2]
    assert len(errors) == 1
    assert isinstance(errors[0], TruncatedError)
    assert list(messages) == []
    assert len(errors) == 1


def test_io_errors_are_delegated():
    errors = []
    messages = iter_delimited(
        FailingStream(), Person, error_delegate=errors.append
    )
    assert list(messages) == []
    assert isinstance(errors[0], OSError)


def test_bad_message_in_frame():
    messages = iter_delimited(io.BytesIO(b'\x02\x12\x00'), Person)
    with pytest.raises(MalformedProtobufError):
        next(messages)


def test_write_and_parse_delimited():
    stream = io.BytesIO()
    written = sum(write_delimited(message, stream) for message in PEOPLE)
    assert written == len(stream.getvalue())
    stream.seek(0)
    for person in PEOPLE:
        assert parse_delimited(Person, stream) == person
    assert parse_delimited(Person, stream) is None
    with pytest.raises(TruncatedError):
        parse_delimited(Person, io.BytesIO(b'\x03ab'))
    with pytest.raises(TruncatedError):
        parse_delimited(Person, io.BytesIO(b'\x80'))


def test_parse_delimited_reads_no_further():
    stream = io.BytesIO(delimited_stream(PEOPLE[:1]) + b'rest')
    assert parse_delimited(Person, stream) == PEOPLE[0]
    assert stream.read() == b'rest'


def test_frame_decoder_states():
    decoder = FrameDecoder()
    assert decoder.state is FrameState.AWAITING_LENGTH
    assert decoder.bytes_needed() == 1
    decoder.feed(b'\x96')
    assert decoder.next_frame() is None
    assert decoder.state is FrameState.READING_LENGTH
    decoder.feed(b'\x01')
    assert decoder.next_frame() is None
    assert decoder.state is FrameState.AWAITING_BODY
    assert decoder.bytes_needed() == 150
    decoder.feed(b'x' * 100)
    assert decoder.next_frame() is None
    assert decoder.state is FrameState.READING_BODY
    assert decoder.bytes_needed() == 50
    with pytest.raises(TruncatedError):
        decoder.finish()
    decoder.feed(b'y' * 50 + b'\x00')
    assert decoder.next_frame() == b'x' * 100 + b'y' * 50
    assert decoder.next_frame() == b''
    assert decoder.next_frame() is None
    assert decoder.state is FrameState.AWAITING_LENGTH
    decoder.finish()


def test_frame_decoder_limits():
    decoder = FrameDecoder(max_size=10)
    decoder.feed(b'\x0a' + b'x' * 10)
    assert decoder.next_frame() == b'x' * 10
    decoder.feed(b'\x0b')
    with pytest.raises(TooLargeError):
        decoder.next_frame()
    decoder = FrameDecoder()
    decoder.feed(b'\xff' * 10 + b'\x01')
    with pytest.raises(MalformedProtobufError):
        decoder.next_frame()


@pytest.mark.asyncio
async def test_async_stream_reader():
    reader = asyncio.StreamReader()
    reader.feed_data(delimited_stream())
    reader.feed_eof()
    messages = [m async for m in AsyncMessageSequence(reader, Person)]
    assert messages == PEOPLE


@pytest.mark.asyncio
async def test_async_reader_not_read_ahead():
    reader = asyncio.StreamReader()
    reader.feed_data(delimited_stream(PEOPLE[:2]) + b'trailer')
    reader.feed_eof()
    sequence = AsyncMessageSequence(reader, Person)
    assert await sequence.__anext__() == PEOPLE[0]
    assert await sequence.__anext__() == PEOPLE[1]
    assert await reader.read() == b'trailer'


@pytest.mark.asyncio
@pytest.mark.parametrize('chunk_size', [1, 5, 1000])
async def test_async_chunks(chunk_size):
    data = delimited_stream()
    sequence = AsyncMessageSequence(chunked(data, chunk_size), Person)
    assert [m async for m in sequence] == PEOPLE


@pytest.mark.asyncio
async def test_async_empty_and_zero_length():
    assert [m async for m in AsyncMessageSequence(chunked(b'', 1), Person)] \
        == []
    assert [
        m async for m in AsyncMessageSequence(chunked(b'\x00', 1), Person)
    ] == [Person()]


@pytest.mark.asyncio
async def test_async_error_ends_sequence():
    data = delimited_stream(PEOPLE[:1]) + b'\x96\x01'
    sequence = AsyncMessageSequence(chunked(data, 3), Person)
    assert await sequence.__anext__() == PEOPLE[0]
    with pytest.raises(TruncatedError):
        await sequence.__anext__()
    with pytest.raises(StopAsyncIteration):
        await sequence.__anext__()


@pytest.mark.asyncio
async def test_async_too_large():
    sequence = AsyncMessageSequence(
        chunked(b'\x80\x80\x80\x80\x08', 2), Person
    )
    with pytest.raises(TooLargeError):
        await sequence.__anext__()


HUGE_CLAIM = b'\xfe\xff\xff\xff\x07' + b'x' * 10


def test_parse_delimited_reads_in_bounded_chunks():
    stream = RecordingStream(HUGE_CLAIM)
    with pytest.raises(TruncatedError):
        parse_delimited(Person, stream)
    assert max(stream.requests) == DEFAULT_BUFFER_SIZE


@pytest.mark.asyncio
async def test_async_reads_in_bounded_chunks():
    reader = RecordingReader(HUGE_CLAIM)
    with pytest.raises(TruncatedError):
        await AsyncMessageSequence(reader, Person).__anext__()
    assert max(reader.requests) == DEFAULT_BUFFER_SIZE
