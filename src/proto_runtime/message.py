# coding=utf-8
import threading
from operator import attrgetter

from .errors import (
    MalformedProtobufError,
    MessageDepthLimitError,
    MissingRequiredFieldsError,
    TruncatedError,
)
from .extensions import ExtensionFieldStore
from .fields import MAP, OPTIONAL, REPEATED, REQUIRED, Field, GroupType
from .options import DEFAULT_DECODING_OPTIONS, DEFAULT_ENCODING_OPTIONS
from .unknown import UnknownFieldSet
from .visitor import BinaryEncodingVisitor, SizeVisitor
from .wire import (
    MAX_FIELD_NUMBER,
    WireReader,
    WireType,
    WireWriter,
)

__doc__ = """
The Message base class.

Subclasses describe their schema with class attributes and get attribute
access to their fields:

    class Person(Message):
        full_name = 'example.Person'
        proto_fields = (
            Field(1, 'name', 'string'),
            Field(2, 'id', 'int32'),
            Repeated(3, 'emails', 'string'),
        )

    p = Person(name='Ada', id=7)
    data = p.serialize()
    assert Person.parse(data) == p

Messages are values. Copies (msg.copy(), copy.copy, copy.deepcopy) are O(1)
and share storage until one of them is mutated, at which point only the
mutated copy clones its storage. Getters hand out copies too: reading a
sub-message or a repeated field and then mutating the result never changes
the message it came from; assign the result back to update it.
"""

# Guards the share counts of every storage, so that deciding to clone and
# the clone itself happen atomically with respect to other sharers. Reentrant
# because a message collected mid-clone releases its share from __del__.
_SHARE_LOCK = threading.RLock()


class _Storage:
    __slots__ = ('values', 'unknown_fields', 'extensions', 'shares',)

    def __init__(self, values=None, unknown_fields=None, extensions=None):
        # field number -> value; only populated fields are present
        self.values = {} if values is None else values
        self.unknown_fields = (
            UnknownFieldSet() if unknown_fields is None else unknown_fields
        )
        self.extensions = (
            ExtensionFieldStore() if extensions is None else extensions
        )
        # number of other messages sharing this storage
        self.shares = 0

    def clone(self, fields_by_number):
        return _Storage(
            {
                number: fields_by_number[number].copy_value(value)
                for number, value in self.values.items()
            },
            self.unknown_fields.copy(),
            self.extensions.copy(),
        )


def _release(storage):
    """Give up one holder's claim on storage."""
    if storage.shares:
        with _SHARE_LOCK:
            if storage.shares:
                storage.shares -= 1


class _FieldAccessor:
    """Data descriptor exposing one field as an attribute."""
    __slots__ = ('field',)

    def __init__(self, field):
        self.field = field

    def __get__(self, instance, owner):
        if instance is None:
            return self.field
        return instance._get_field(self.field)

    def __set__(self, instance, value):
        instance._set_field(self.field, value)

    def __delete__(self, instance):
        instance._clear_field(self.field)


def _store(values, field, value):
    if value is None or not field.is_populated(value):
        values.pop(field.number, None)
    else:
        values[field.number] = value


class BinaryDecoder:
    """
    Drives decoding of one message (or group) body from a WireReader:
    reads tags until the reader or the enclosing group ends and routes each
    field to its descriptor, to an extension, or to the unknown fields.
    """
    __slots__ = (
        'reader',
        'options',
        'extensions',
        'depth',
        'end_group',
        '_keep_current',
        '_extra_unknown',
    )

    def __init__(
            self,
            reader,
            *,
            options=DEFAULT_DECODING_OPTIONS,
            extensions=None,
            depth=0,
            end_group=None,
    ):
        self.reader = reader
        self.options = options
        self.extensions = extensions
        self.depth = depth
        self.end_group = end_group
        self._keep_current = False
        self._extra_unknown = None

    def _child(self, reader, end_group=None):
        depth = self.depth + 1
        if depth > self.options.message_depth_limit:
            raise MessageDepthLimitError(
                f'Message nesting exceeds the depth limit of '
                f'{self.options.message_depth_limit}'
            )
        return BinaryDecoder(
            reader,
            options=self.options,
            extensions=self.extensions,
            depth=depth,
            end_group=end_group,
        )

    def merge_message(self, message, reader):
        """Merge a length-delimited sub-message body into message."""
        message.merge_from_decoder(self._child(reader))

    def merge_group(self, message, field_number):
        """Merge a group body, up to its matching end tag, into message."""
        message.merge_from_decoder(
            self._child(self.reader, end_group=field_number)
        )

    def keep_current_field_as_unknown(self):
        self._keep_current = True

    def add_unknown_packed(self, field_number, field_type, values):
        entry = WireWriter()
        for value in values:
            field_type.write(entry, value)
        writer = WireWriter()
        writer.write_tag(field_number, WireType.LENGTH_DELIMITED)
        writer.write_length_delimited(entry.buffer)
        self._extra_unknown = (field_number, writer.getvalue())

    def decode_into(self, message_class, storage):
        reader = self.reader
        fields = message_class._fields_by_number
        keep_unknown = (
                message_class.preserve_unknown_fields and
                not self.options.discard_unknown_fields
        )
        while True:
            start = reader.pos
            tag = reader.read_tag()
            if tag is None:
                if self.end_group is not None:
                    raise TruncatedError(
                        f'Data truncated in group with id {self.end_group}'
                    )
                return
            number, wire_type = tag
            if wire_type == WireType.END_GROUP:
                if number == self.end_group:
                    return
                raise MalformedProtobufError(
                    f'Orphaned group end with id {number} '
                    f'at position {start}'
                )
            field = fields.get(number)
            extension = None
            if field is None and self.extensions is not None and \
                    message_class.in_extension_range(number):
                extension = self.extensions.get(message_class, number)

            if field is not None:
                value = field.decode(
                    self, wire_type, storage.values.get(number)
                )
                _store(storage.values, field, value)
                if field.oneof is not None and number in storage.values:
                    message_class._clear_oneof_siblings(storage, field)
            elif extension is not None:
                storage.extensions.decode(extension, self, wire_type)
            else:
                reader.skip_field(number, wire_type)
                if keep_unknown:
                    storage.unknown_fields.append_raw(
                        number, wire_type, reader.slice(start)
                    )
                continue

            if self._keep_current:
                self._keep_current = False
                if keep_unknown:
                    storage.unknown_fields.append_raw(
                        number, wire_type, reader.slice(start)
                    )
            if self._extra_unknown is not None:
                extra_number, data = self._extra_unknown
                self._extra_unknown = None
                if keep_unknown:
                    storage.unknown_fields.append_raw(
                        extra_number, WireType.LENGTH_DELIMITED, data
                    )


class Message:
    """
    Base class of all messages. See the module documentation for how to
    declare a schema.

    Class attributes:
        full_name: the full proto name, e.g. "google.protobuf.Duration"
        proto_fields: sequence of Field descriptors
        syntax: "proto2" or "proto3"
        extension_ranges: inclusive (low, high) pairs open to extensions
        reserved: inclusive (low, high) pairs no field may use
        preserve_unknown_fields: whether binary decoding keeps unrecognized
            fields
    """
    __slots__ = ('_storage',)

    full_name = None
    proto_fields = ()
    syntax = 'proto3'
    extension_ranges = ()
    reserved = ()
    preserve_unknown_fields = True

    _fields_by_number = {}
    _fields_by_name = {}
    _sorted_fields = ()
    _oneofs = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls._build_schema()

    @classmethod
    def _build_schema(cls):
        if cls.syntax not in ('proto2', 'proto3'):
            raise ValueError(f'Unknown syntax {cls.syntax!r}')
        by_number = {}
        by_name = {}
        oneofs = {}
        for field in cls.proto_fields:
            if not isinstance(field, Field):
                raise TypeError(f'{field!r} is not a Field')
            field = field.bind(cls.syntax)
            if field.number in by_number:
                raise ValueError(
                    f'Duplicate field number {field.number} in {cls.__name__}'
                )
            if field.name in by_name:
                raise ValueError(
                    f'Duplicate field name {field.name!r} in {cls.__name__}'
                )
            if field.name.startswith('_') or hasattr(Message, field.name):
                raise ValueError(
                    f'Field name {field.name!r} is not usable as an attribute'
                )
            for low, high in cls.reserved:
                if low <= field.number <= high:
                    raise ValueError(
                        f'Field number {field.number} of {cls.__name__} '
                        f'is reserved'
                    )
            for low, high in cls.extension_ranges:
                if low <= field.number <= high:
                    raise ValueError(
                        f'Field number {field.number} of {cls.__name__} '
                        f'overlaps an extension range'
                    )
            if cls.syntax == 'proto3' and isinstance(field.type, GroupType):
                raise ValueError('Groups are not allowed in proto3')
            by_number[field.number] = field
            by_name[field.name] = field
            if field.oneof is not None:
                oneofs.setdefault(field.oneof, []).append(field)
        for low, high in cls.extension_ranges:
            if not (1 <= low <= high <= MAX_FIELD_NUMBER):
                raise ValueError(f'Invalid extension range {(low, high)!r}')
        cls._fields_by_number = by_number
        cls._fields_by_name = by_name
        cls._sorted_fields = tuple(
            sorted(by_number.values(), key=attrgetter('number'))
        )
        cls._oneofs = {
            name: tuple(members) for name, members in oneofs.items()
        }
        for field in cls._sorted_fields:
            setattr(cls, field.name, _FieldAccessor(field))

    def __init__(self, **field_values):
        object.__setattr__(self, '_storage', _Storage())
        for name, value in field_values.items():
            setattr(self, name, value)

    def __setattr__(self, name, value):
        if name in type(self)._fields_by_name:
            object.__setattr__(self, name, value)
        else:
            raise AttributeError(
                f'{type(self).__name__} has no field {name!r}'
            )

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        mine = self._storage
        theirs = other._storage
        if mine is theirs:
            return True
        return (
                mine.values == theirs.values and
                mine.extensions == theirs.extensions and
                mine.unknown_fields == theirs.unknown_fields
        )

    def __repr__(self):
        args = ', '.join(
            f'{field.name}={value!r}'
            for field, value in self.list_fields()
        )
        return f'{type(self).__name__}({args})'

    def iter_pretty(self, indent, depth):
        items = list(self.list_fields())
        if not items:
            yield repr(self)
            return
        yield f'{type(self).__name__}(\n'
        for field, value in items:
            yield f'{indent * (depth + 1)}{field.name}='
            if field.type.is_message and field.label == REPEATED:
                yield '[\n'
                for item in value:
                    yield indent * (depth + 2)
                    yield from item.iter_pretty(indent, depth + 2)
                    yield ',\n'
                yield f'{indent * (depth + 1)}]'
            elif field.type.is_message and field.label != MAP:
                yield from value.iter_pretty(indent, depth + 1)
            else:
                yield repr(value)
            yield ',\n'
        yield f'{indent * depth})'

    def repr_pretty(self, indent=4):
        return ''.join(self.iter_pretty(' ' * indent, 0))

    def pretty_print(self, *args, **kwargs):
        print(self.repr_pretty(*args, **kwargs))

    # Copy-on-write storage

    def copy(self):
        """Return an O(1) copy sharing storage until either is mutated."""
        storage = self._storage
        with _SHARE_LOCK:
            storage.shares += 1
        clone = object.__new__(type(self))
        object.__setattr__(clone, '_storage', storage)
        return clone
    __copy__ = copy

    def __deepcopy__(self, memo):
        return self.copy()

    def _mutable_storage(self):
        storage = self._storage
        if storage.shares:
            with _SHARE_LOCK:
                if storage.shares:
                    storage.shares -= 1
                    storage = storage.clone(type(self)._fields_by_number)
                    object.__setattr__(self, '_storage', storage)
        return storage

    def _replace_storage(self, storage):
        _release(self._storage)
        object.__setattr__(self, '_storage', storage)

    def __del__(self):
        storage = getattr(self, '_storage', None)
        if storage is not None:
            _release(storage)

    # Field access

    @classmethod
    def _field(cls, name):
        try:
            return cls._fields_by_name[name]
        except KeyError:
            raise AttributeError(f'{cls.__name__} has no field {name!r}')

    def _get_field(self, field):
        value = self._storage.values.get(field.number)
        if value is None:
            if field.type.is_message and field.label in (OPTIONAL, REQUIRED):
                return field.type.message_class()
            return field.default_value()
        if field.label == REPEATED:
            if field.type.is_message:
                return tuple(item.copy() for item in value)
            return tuple(value)
        if field.label == MAP:
            if field.type.is_message:
                return {key: item.copy() for key, item in value.items()}
            return dict(value)
        if field.type.is_message:
            return value.copy()
        return value

    def _set_field(self, field, value):
        if value is None:
            self._clear_field(field)
            return
        value = field.check(value)
        storage = self._mutable_storage()
        _store(storage.values, field, value)
        if field.oneof is not None:
            type(self)._clear_oneof_siblings(storage, field)

    def _clear_field(self, field):
        if field.number in self._storage.values:
            self._mutable_storage().values.pop(field.number, None)

    @classmethod
    def _clear_oneof_siblings(cls, storage, field):
        for sibling in cls._oneofs[field.oneof]:
            if sibling is not field:
                storage.values.pop(sibling.number, None)

    @classmethod
    def in_extension_range(cls, number):
        return any(low <= number <= high for low, high in cls.extension_ranges)

    def has(self, name):
        """
        Whether the field is set. For fields without explicit presence this
        means "holds a non-default value".
        """
        field = self._field(name)
        return field.number in self._storage.values

    def clear(self, name=None):
        """Clear one field, or the whole message when no name is given."""
        if name is None:
            self._replace_storage(_Storage())
        else:
            self._clear_field(self._field(name))

    def which_oneof(self, oneof_name):
        try:
            members = type(self)._oneofs[oneof_name]
        except KeyError:
            raise ValueError(
                f'{type(self).__name__} has no oneof {oneof_name!r}'
            )
        for field in members:
            if field.number in self._storage.values:
                return field.name
        return None

    def add(self, name, *values):
        """Append values to a repeated field."""
        field = self._field(name)
        if field.label != REPEATED:
            raise TypeError(f'Field {name!r} is not repeated')
        checked = field.check(values)
        if not checked:
            return
        storage = self._mutable_storage()
        storage.values.setdefault(field.number, []).extend(checked)

    def put(self, name, key, value):
        """Set one entry of a map field."""
        field = self._field(name)
        if field.label != MAP:
            raise TypeError(f'Field {name!r} is not a map')
        key = field.key_type.check(key)
        value = field.type.check(value)
        storage = self._mutable_storage()
        storage.values.setdefault(field.number, {})[key] = value

    def list_fields(self):
        """Yields (field, value) for every populated field in number order."""
        values = self._storage.values
        for field in type(self)._sorted_fields:
            if field.number in values:
                yield field, self._get_field(field)

    # Extensions

    def get_extension(self, extension):
        return self._storage.extensions.get(extension, type(self))

    def set_extension(self, extension, value):
        if value is None:
            self.clear_extension(extension)
            return
        self._mutable_storage().extensions.set(extension, type(self), value)

    def add_extension(self, extension, *values):
        self._mutable_storage().extensions.add(extension, type(self), *values)

    def has_extension(self, extension):
        return self._storage.extensions.has(extension, type(self))

    def clear_extension(self, extension):
        if self.has_extension(extension):
            self._mutable_storage().extensions.clear(extension, type(self))

    # Unknown fields

    @property
    def unknown_fields(self):
        """A copy of the unknown fields retained by decoding."""
        return self._storage.unknown_fields.copy()

    def set_unknown_fields(self, unknown_fields):
        storage = self._mutable_storage()
        storage.unknown_fields = unknown_fields.copy()

    def clear_unknown_fields(self):
        if len(self._storage.unknown_fields):
            self._mutable_storage().unknown_fields.clear()

    # Traversal and encoding

    def traverse(self, visitor):
        """
        Visit every populated field in field-number order, extension ranges
        at their position, then the unknown fields.
        """
        storage = self._storage
        values = storage.values
        cls = type(self)
        ranges = iter(sorted(cls.extension_ranges) if storage.extensions
                      else ())
        next_range = next(ranges, None)
        for field in cls._sorted_fields:
            while next_range is not None and next_range[0] < field.number:
                visitor.visit_extension_fields(storage.extensions, *next_range)
                next_range = next(ranges, None)
            value = values.get(field.number)
            if value is not None and field.is_populated(value):
                field.traverse(visitor, value)
        while next_range is not None:
            visitor.visit_extension_fields(storage.extensions, *next_range)
            next_range = next(ranges, None)
        storage.unknown_fields.traverse(visitor)

    def is_initialized(self):
        """Whether every required field, recursively, is set."""
        values = self._storage.values
        for field in type(self)._sorted_fields:
            value = values.get(field.number)
            if value is None:
                if field.is_required:
                    return False
                continue
            if not field.type.is_message:
                continue
            if field.label == REPEATED:
                items = value
            elif field.label == MAP:
                items = value.values()
            else:
                items = (value,)
            if not all(item.is_initialized() for item in items):
                return False
        return self._storage.extensions.is_initialized()

    def _check_initialized(self):
        if not self.is_initialized():
            raise MissingRequiredFieldsError(
                f'{type(self).__name__} is missing required fields'
            )

    def serialize(self, *, partial=False, options=None):
        if not partial:
            self._check_initialized()
        visitor = BinaryEncodingVisitor(
            options=DEFAULT_ENCODING_OPTIONS if options is None else options
        )
        self.traverse(visitor)
        return visitor.writer.getvalue()

    def byte_size(self):
        """Return the exact number of bytes serialize() produces."""
        return SizeVisitor.message_size(self)

    # Decoding

    def merge_from_decoder(self, decoder):
        decoder.decode_into(type(self), self._mutable_storage())

    def merge_from_bytes(
            self,
            data,
            *,
            extensions=None,
            partial=False,
            options=None,
    ):
        """
        Decode data and merge it into this message. On error the message is
        left exactly as it was.
        """
        cls = type(self)
        storage = self._storage.clone(cls._fields_by_number)
        decoder = BinaryDecoder(
            WireReader(data),
            options=DEFAULT_DECODING_OPTIONS if options is None else options,
            extensions=extensions,
        )
        decoder.decode_into(cls, storage)
        if not partial:
            merged = object.__new__(cls)
            object.__setattr__(merged, '_storage', storage)
            merged._check_initialized()
        self._replace_storage(storage)

    @classmethod
    def parse(cls, data, *, extensions=None, partial=False, options=None):
        message = cls()
        message.merge_from_bytes(
            data,
            extensions=extensions,
            partial=partial,
            options=options,
        )
        return message

    def merge_from(self, other):
        """
        Merge another message of the same type into this one: set singular
        fields overwrite, repeated fields append, sub-messages merge
        recursively, maps update, unknown fields append.
        """
        if type(other) is not type(self):
            raise TypeError(
                f'Cannot merge {type(other).__name__} '
                f'into {type(self).__name__}'
            )
        source = other._storage
        storage = self._mutable_storage()
        fields = type(self)._fields_by_number
        for number, value in source.values.items():
            field = fields[number]
            if field.label == REPEATED:
                storage.values.setdefault(number, []).extend(value)
            elif field.label == MAP:
                storage.values.setdefault(number, {}).update(value)
            elif field.type.is_message and number in storage.values:
                merged = storage.values[number].copy()
                merged.merge_from(value)
                storage.values[number] = merged
            else:
                storage.values[number] = value
                if field.oneof is not None:
                    type(self)._clear_oneof_siblings(storage, field)
        storage.unknown_fields.merge(source.unknown_fields)
        for box in source.extensions:
            field = box.extension.field
            current = storage.extensions.values.get(box.extension.number)
            if current is not None and field.label == REPEATED:
                current.value.extend(box.value)
            elif current is not None and field.type.is_message:
                merged = current.value.copy()
                merged.merge_from(box.value)
                current.value = merged
            else:
                storage.extensions.values[box.extension.number] = box.copy()

