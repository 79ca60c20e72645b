# coding=utf-8
from .fields import MAP, REPEATED

__doc__ = """
Proto2 extensions.

An Extension pairs the message class it extends (the extendee) with a Field
descriptor whose number lies inside one of the extendee's extension ranges.
Extensions are only recognized while decoding when an ExtensionMap holding
them is supplied; otherwise their bytes are kept as unknown fields and can be
recovered later by re-parsing with a map.

Values live in an ExtensionFieldStore owned by the message's storage, boxed
in ExtensionValue objects so that fields of any type can share one store.
"""


class Extension:
    __slots__ = ('extendee', 'field', 'full_name',)

    def __init__(self, extendee, field, *, full_name=None):
        ranges = getattr(extendee, 'extension_ranges', ())
        if not any(low <= field.number <= high for low, high in ranges):
            raise ValueError(
                f'Field number {field.number} is not in an extension range '
                f'of {extendee.__name__}'
            )
        if field.label == MAP:
            raise ValueError('Extensions cannot be map fields')
        if field.oneof is not None:
            raise ValueError('Extensions cannot be part of a oneof')
        self.extendee = extendee
        self.field = field.bind(extendee.syntax)
        self.full_name = field.name if full_name is None else full_name

    def __repr__(self):
        return (
            f'{type(self).__name__}('
            f'{self.extendee.__name__}, '
            f'{self.field!r}, '
            f'full_name={self.full_name!r})'
        )

    @property
    def number(self):
        return self.field.number

    @property
    def name(self):
        return self.field.name


class ExtensionValue:
    """Type-erased box holding the current value of one extension."""
    __slots__ = ('extension', 'value',)

    def __init__(self, extension, value):
        self.extension = extension
        self.value = value

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return (
                other.extension.number == self.extension.number and
                other.value == self.value
        )

    def __repr__(self):
        return (
            f'{type(self).__name__}('
            f'{self.extension.full_name!r}, '
            f'{self.value!r})'
        )

    def copy(self):
        return type(self)(
            self.extension,
            self.extension.field.copy_value(self.value)
        )


class ExtensionMap:
    """
    Lookup table from (extendee class, field number) to Extension.

    Two extensions may share a field number only when they extend different
    messages; inserting an extension for an (extendee, number) pair that is
    already present replaces the old one.
    """
    __slots__ = ('_fields',)

    def __init__(self, extensions=()):
        self._fields = {}
        self.update(extensions)

    def __repr__(self):
        return f'{type(self).__name__}({list(self)!r})'

    def __len__(self):
        return sum(len(group) for group in self._fields.values())

    def __iter__(self):
        for group in self._fields.values():
            yield from group

    def __contains__(self, extension):
        return self.get(extension.extendee, extension.number) is extension

    def __getitem__(self, key):
        message_type, number = key
        result = self.get(message_type, number)
        if result is None:
            raise KeyError(key)
        return result

    def get(self, message_type, number, default=None):
        for extension in self._fields.get(number, ()):
            if extension.extendee is message_type:
                return extension
        return default

    def by_name(self, message_type, name):
        """Find an extension of message_type by its name or full name."""
        for extension in self:
            if extension.extendee is message_type and (
                    name == extension.full_name or name == extension.name):
                return extension
        return None

    def insert(self, extension):
        group = [
            existing for existing in self._fields.get(extension.number, ())
            if existing.extendee is not extension.extendee
        ]
        group.append(extension)
        self._fields[extension.number] = group

    def update(self, extensions):
        if isinstance(extensions, ExtensionMap):
            extensions = list(extensions)
        for extension in extensions:
            self.insert(extension)

    def union(self, other):
        result = type(self)(self)
        result.update(other)
        return result

    __or__ = union


class ExtensionFieldStore:
    """
    Extension values of one message, keyed by field number. Every access
    names the owning message class, and an extension of a different class is
    refused, so unrelated extensions sharing a number never collide.
    """
    __slots__ = ('values',)

    def __init__(self, values=None):
        self.values = {} if values is None else values

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._populated() == other._populated()

    def __len__(self):
        return len(self.values)

    def __iter__(self):
        for number in sorted(self.values):
            yield self.values[number]

    def __repr__(self):
        return f'{type(self).__name__}({list(self)!r})'

    def _populated(self):
        return {
            number: box.value for number, box in self.values.items()
            if box.extension.field.is_populated(box.value)
        }

    @staticmethod
    def _check_owner(extension, owner):
        if extension.extendee is not owner:
            raise TypeError(
                f'Extension {extension.full_name!r} extends '
                f'{extension.extendee.__name__}, not {owner.__name__}'
            )

    def copy(self):
        return type(self)({
            number: box.copy() for number, box in self.values.items()
        })

    def has(self, extension, owner):
        self._check_owner(extension, owner)
        box = self.values.get(extension.number)
        return (
                box is not None and
                extension.field.is_populated(box.value)
        )

    def get(self, extension, owner):
        self._check_owner(extension, owner)
        field = extension.field
        box = self.values.get(extension.number)
        if box is None or not field.is_populated(box.value):
            if field.type.is_message and field.label != REPEATED:
                return field.type.message_class()
            return field.default_value()
        if field.label == REPEATED:
            if field.type.is_message:
                return tuple(value.copy() for value in box.value)
            return tuple(box.value)
        if field.type.is_message:
            return box.value.copy()
        return box.value

    def set(self, extension, owner, value):
        self._check_owner(extension, owner)
        self.values[extension.number] = ExtensionValue(
            extension,
            extension.field.check(value)
        )

    def add(self, extension, owner, *values):
        self._check_owner(extension, owner)
        field = extension.field
        if field.label != REPEATED:
            raise TypeError(
                f'Extension {extension.full_name!r} is not repeated'
            )
        box = self.values.get(extension.number)
        if box is None:
            box = self.values[extension.number] = ExtensionValue(
                extension, []
            )
        box.value.extend(field.check(values))

    def clear(self, extension, owner):
        self._check_owner(extension, owner)
        self.values.pop(extension.number, None)

    def decode(self, extension, decoder, wire_type):
        """Decode one occurrence of an extension field into the store."""
        box = self.values.get(extension.number)
        current = None if box is None else box.value
        value = extension.field.decode(decoder, wire_type, current)
        if value is not None:
            self.values[extension.number] = ExtensionValue(extension, value)

    def is_initialized(self):
        for box in self.values.values():
            field = box.extension.field
            if not field.type.is_message or box.value is None:
                continue
            if field.label == REPEATED:
                if not all(value.is_initialized() for value in box.value):
                    return False
            elif not box.value.is_initialized():
                return False
        return True

    def traverse(self, visitor, start, end):
        """Visit the populated extensions numbered start..end inclusive."""
        for number in sorted(self.values):
            if start <= number <= end:
                box = self.values[number]
                if box.extension.field.is_populated(box.value):
                    box.extension.field.traverse(visitor, box.value)
