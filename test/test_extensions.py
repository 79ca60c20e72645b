# coding=utf-8
import pytest
from proto_runtime import (
    Extension,
    ExtensionMap,
    Field,
    MalformedProtobufError,
    MapField,
)

from sample_protos import (
    EXTENSIONS,
    EXTRA_ITEM,
    NOTE,
    OTHER_NOTE,
    PLAIN_ON_B,
    SCORES,
    SIGNED_ON_A,
    ExtendableA,
    ExtendableB,
    Item,
    Legacy,
    Other,
)

# suppress 'not found' linting
pytest.raises = pytest.raises


def extended_legacy():
    legacy = Legacy(key='k')
    legacy.set_extension(NOTE, 'hi')
    legacy.add_extension(SCORES, 1, 2)
    legacy.set_extension(EXTRA_ITEM, Item(label='x'))
    return legacy


def test_extension_encoding():
    assert extended_legacy().serialize() == (
        b'\n\x01k'
        b'\xa2\x06\x02hi'
        b'\xa8\x06\x01\xa8\x06\x02'
        b'\xb3\x06\x0a\x01x\xb4\x06'
    )


def test_extensions_round_trip():
    legacy = extended_legacy()
    data = legacy.serialize()
    parsed = Legacy.parse(data, extensions=EXTENSIONS)
    assert parsed == legacy
    assert parsed.get_extension(NOTE) == 'hi'
    assert parsed.get_extension(SCORES) == (1, 2)
    assert parsed.get_extension(EXTRA_ITEM) == Item(label='x')
    assert len(parsed.unknown_fields) == 0
    assert parsed.byte_size() == len(data)


def test_extensions_without_map_are_unknown():
    data = extended_legacy().serialize()
    parsed = Legacy.parse(data)
    assert not parsed.has_extension(NOTE)
    assert [f.field_number for f in parsed.unknown_fields] == [
        100, 101, 101, 102
    ]
    assert parsed.serialize() == data
    # Re-parsing with the map recovers them.
    recovered = Legacy.parse(parsed.serialize(), extensions=EXTENSIONS)
    assert recovered == extended_legacy()


def test_extensions_in_nested_messages():
    child = extended_legacy()
    parent = Legacy(key='p', child=child)
    parsed = Legacy.parse(parent.serialize(), extensions=EXTENSIONS)
    assert parsed.child.get_extension(NOTE) == 'hi'


def test_extension_defaults():
    legacy = Legacy()
    assert legacy.get_extension(NOTE) == ''
    assert legacy.get_extension(SCORES) == ()
    assert legacy.get_extension(EXTRA_ITEM) == Item()
    assert not legacy.has_extension(EXTRA_ITEM)


def test_set_and_clear_extension():
    legacy = extended_legacy()
    copied = legacy.copy()
    legacy.clear_extension(NOTE)
    assert not legacy.has_extension(NOTE)
    assert copied.get_extension(NOTE) == 'hi'
    legacy.set_extension(SCORES, None)
    assert not legacy.has_extension(SCORES)
    with pytest.raises(TypeError):
        legacy.set_extension(NOTE, 5)
    with pytest.raises(TypeError):
        legacy.add_extension(NOTE, 'x')


def test_extension_owner_checked():
    with pytest.raises(TypeError):
        Other().get_extension(NOTE)
    with pytest.raises(TypeError):
        Legacy().set_extension(OTHER_NOTE, 1)


def test_extension_wire_type_mismatch():
    data = b'\n\x01k\xa0\x06\x01'  # field 100 as a varint
    with pytest.raises(MalformedProtobufError):
        Legacy.parse(data, extensions=EXTENSIONS)
    parsed = Legacy.parse(data)
    assert parsed.unknown_fields.bytes == b'\xa0\x06\x01'


def test_same_bytes_different_owner():
    extensions = ExtensionMap([SIGNED_ON_A, PLAIN_ON_B])
    a = ExtendableA.parse(b'\x28\x01', extensions=extensions)
    b = ExtendableB.parse(b'\x28\x01', extensions=extensions)
    assert a.get_extension(SIGNED_ON_A) == -1
    assert b.get_extension(PLAIN_ON_B) == 1


def test_extension_map():
    assert len(EXTENSIONS) == 4
    assert EXTENSIONS[Legacy, 100] is NOTE
    assert EXTENSIONS[Other, 100] is OTHER_NOTE
    assert EXTENSIONS.get(Other, 101) is None
    with pytest.raises(KeyError):
        EXTENSIONS[Other, 101]
    assert NOTE in EXTENSIONS
    assert EXTENSIONS.by_name(Legacy, 'test.scores') is SCORES
    assert EXTENSIONS.by_name(Legacy, 'scores') is SCORES
    assert EXTENSIONS.by_name(Other, 'scores') is None

    replacement = Extension(Legacy, Field(100, 'renamed', 'string'))
    replaced = EXTENSIONS | ExtensionMap([replacement])
    assert replaced[Legacy, 100] is replacement
    assert replaced[Other, 100] is OTHER_NOTE
    assert len(replaced) == 4
    # the original is untouched
    assert EXTENSIONS[Legacy, 100] is NOTE


def test_extension_validation():
    with pytest.raises(ValueError):
        Extension(Legacy, Field(5, 'inside_fields', 'int32'))
    with pytest.raises(ValueError):
        Extension(Legacy, Field(300, 'out_of_range', 'int32'))
    with pytest.raises(ValueError):
        Extension(Legacy, MapField(110, 'mapped', 'string', 'string'))
    with pytest.raises(ValueError):
        Extension(Legacy, Field(111, 'in_oneof', 'string', oneof='x'))
