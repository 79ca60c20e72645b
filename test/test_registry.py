# coding=utf-8
import logging
import threading

import pytest
from proto_runtime import (
    DEFAULT_REGISTRY,
    Any,
    Duration,
    Message,
    Struct,
    TypeRegistry,
    UnknownTypeError,
    WELL_KNOWN_TYPES,
)
from proto_runtime.registry import lookup, register

from sample_protos import Person

# suppress 'not found' linting
pytest.raises = pytest.raises


def make_type(full_name):
    return type(full_name.rpartition('.')[2], (Message,), {
        'full_name': full_name,
    })


def test_well_known_types_preloaded():
    names = DEFAULT_REGISTRY.names()
    assert len(names) >= len(WELL_KNOWN_TYPES)
    for message_type in WELL_KNOWN_TYPES:
        assert message_type.full_name in DEFAULT_REGISTRY
        assert lookup(message_type.full_name) is message_type
    assert lookup('google.protobuf.Duration') is Duration
    registry = TypeRegistry(types=[Person])
    assert len(registry) == len(WELL_KNOWN_TYPES) + 1
    assert registry.lookup('google.protobuf.Struct') is Struct
    assert len(TypeRegistry()) == len(WELL_KNOWN_TYPES)


def test_register_idempotent_and_first_wins(caplog):
    registry = TypeRegistry()
    assert registry.register(Person)
    assert registry.register(Person)
    impostor = make_type('test.Person')
    with caplog.at_level(logging.WARNING, logger='proto_runtime.registry'):
        assert not registry.register(impostor)
    assert 'test.Person' in caplog.text
    assert registry.lookup('test.Person') is Person


def test_register_all():
    registry = TypeRegistry()
    first = make_type('test.First')
    assert registry.register_all([first, make_type('test.Second')])
    assert not registry.register_all([make_type('test.First')])
    assert registry.lookup('test.First') is first
    assert [
        name for name in registry.names() if name.startswith('test.')
    ] == ['test.First', 'test.Second']


def test_register_needs_a_name():
    with pytest.raises(ValueError):
        TypeRegistry().register(make_type(''))


def test_lookup_missing():
    assert TypeRegistry().lookup('test.Missing') is None


@pytest.mark.parametrize('url', [
    'type.googleapis.com/test.Person',
    'X/Y/test.Person',
    '/test.Person',
    'test.Person',
])
def test_lookup_url_ignores_prefix(url):
    registry = TypeRegistry(types=[Person])
    assert registry.lookup_url(url) is Person


def test_dynamic_unpack():
    registry = TypeRegistry(types=[Person])
    person = Person(name='Ada')
    assert registry.unpack(Any.pack(person)) == person
    assert registry.unpack(Any.pack(Struct.from_dict({}))) == Struct()
    with pytest.raises(UnknownTypeError):
        registry.unpack(Any(type_url='type.googleapis.com/test.Nope'))
    with pytest.raises(LookupError):
        registry.unpack(Any())


def test_default_registry_shortcuts():
    message_type = make_type('test.registry.Shortcut')
    assert register(message_type)
    assert lookup('test.registry.Shortcut') is message_type
    assert DEFAULT_REGISTRY.unpack(Any.pack(Duration(seconds=3))) == Duration(
        seconds=3
    )


def test_concurrent_registration():
    registry = TypeRegistry()
    types = [make_type(f'test.concurrent.T{i}') for i in range(50)]
    contenders = [make_type('test.concurrent.Contested') for _ in range(8)]
    results = {}
    barrier = threading.Barrier(8)

    def worker(n):
        barrier.wait()
        for message_type in types:
            assert registry.register(message_type)
        results[n] = registry.register(contenders[n])

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == len(WELL_KNOWN_TYPES) + 51
    assert sorted(results.values()) == [False] * 7 + [True]
    winner = registry.lookup('test.concurrent.Contested')
    assert winner is contenders[
        [n for n, won in results.items() if won][0]
    ]
