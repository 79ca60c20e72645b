# coding=utf-8
import logging
import threading

from .anycodec import type_name_from_url
from .errors import UnknownTypeError
from .wellknown import WELL_KNOWN_TYPES

__doc__ = """
Registry of message classes by full proto name, used to turn an Any back into
a message when the caller does not know its type in advance.

Registration is first-wins: once a name is taken, registering a different
class under it is refused (and logged) rather than overwriting it, so a late
import can never change what existing data decodes to.
"""

logger = logging.getLogger(__name__)


class TypeRegistry:
    """Thread-safe map from full message name to message class."""
    __slots__ = ('_types', '_lock',)

    def __init__(self, types=()):
        """Start with the well-known types plus any extra types given."""
        self._types = {}
        self._lock = threading.Lock()
        self.register_all(WELL_KNOWN_TYPES)
        self.register_all(types)

    def __repr__(self):
        return f'<{type(self).__name__} with {len(self)} types>'

    def __len__(self):
        with self._lock:
            return len(self._types)

    def __contains__(self, name):
        with self._lock:
            return name in self._types

    def names(self):
        with self._lock:
            return sorted(self._types)

    def register(self, message_type):
        """
        Register message_type under its full_name. Returns True if it is now
        registered (including when it already was), and False if the name
        already belongs to a different class.
        """
        name = message_type.full_name
        if not name:
            raise ValueError(
                f'{message_type.__name__} has no full_name to register'
            )
        with self._lock:
            existing = self._types.get(name)
            if existing is None:
                self._types[name] = message_type
                registered = True
            else:
                registered = existing is message_type
        if not registered:
            logger.warning(
                'Not registering %s.%s as %r: already registered to %s.%s',
                message_type.__module__,
                message_type.__qualname__,
                name,
                existing.__module__,
                existing.__qualname__,
            )
        return registered

    def register_all(self, message_types):
        """Register each type; True only if every one succeeded."""
        results = [self.register(message_type)
                   for message_type in message_types]
        return all(results)

    def lookup(self, name):
        """Return the class registered under name, or None."""
        with self._lock:
            return self._types.get(name)

    def lookup_url(self, type_url):
        return self.lookup(type_name_from_url(type_url))

    def unpack(self, any_msg, *, extensions=None, partial=False,
               options=None):
        """Decode an Any into an instance of whatever class it names."""
        message_type = self.lookup_url(any_msg.type_url)
        if message_type is None:
            raise UnknownTypeError(
                f'No message type registered for {any_msg.type_url!r}'
            )
        return message_type.parse(
            any_msg.value,
            extensions=extensions,
            partial=partial,
            options=options,
        )


DEFAULT_REGISTRY = TypeRegistry()


def register(message_type):
    return DEFAULT_REGISTRY.register(message_type)


def lookup(name):
    return DEFAULT_REGISTRY.lookup(name)


__all__ = (
    'TypeRegistry',
    'DEFAULT_REGISTRY',
    'register',
    'lookup',
)
