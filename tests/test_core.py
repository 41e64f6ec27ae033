import struct

import pytest

from vnarc.core import Chunk
from vnarc.enum import Compliant
from vnarc.exceptions import ChunkUnpackException, MagicException
from vnarc.fields import StructField, StringField
from vnarc.properties import Dependency
from vnarc.streams import Stream


def test_chunk():
    """Check that building a Chunk from fields behaves correctly."""
    class Dummy(Chunk):
        a = StructField('I', default=0xbad)
        b = StringField(0x10)
        c = StructField('I', default=0xdeadbeef)

    dummy = Dummy()

    assert dummy.a.size == 4
    assert dummy.a.raw == b'\xad\x0b\x00\x00'
    assert dummy.a.value == 0xbad
    assert dummy.a.offset == 0x00
    assert dummy.a.father == dummy

    assert dummy.b.size == 0x10
    assert dummy.b.raw == b'\x00' * 0x10
    assert dummy.b.offset == 0x04

    assert dummy.c.size == 0x4
    assert dummy.c.raw == b'\xef\xbe\xad\xde'
    assert dummy.c.offset == 0x14

    assert dummy.size == 0x18
    assert len(dummy.raw) == dummy.size
    assert dummy.pack() == (
        b'\xad\x0b\x00\x00' +
        b'\x00' * 0x10 +
        b'\xef\xbe\xad\xde'
    )


def test_chunk_w_dependencies():
    class Record(Chunk):
        name_length = StructField('B')
        file_name = StringField(Dependency('.name_length'))
        entry_size = StructField('I')

    record = Record()

    assert list(record.get_dependencies().keys()) == [
        'file_name.length',
    ]

    record = Record(b'\x05kebab\x10\x00\x00\x00')

    assert record.file_name.father == record
    assert record.file_name.value == b'kebab'
    assert record.entry_size.value == 0x10
    assert record.layout == {
        'name_length': (0, 1),
        'file_name': (1, 5),
        'entry_size': (6, 4),
    }


def test_proxy_like_format():
    """Check that a format having sub-components referring to overlapping data
    behaves gently."""

    class Proxy(Chunk):
        off = StructField('I')
        sz = StructField('I')

    class Experiment(Chunk):
        proxy_a = Proxy()
        proxy_b = Proxy()

        contents = StringField(0x100)

    experiment = Experiment()

    assert experiment.layout == {
        'proxy_a': (0, 8),
        'proxy_b': (8, 8),
        'contents': (16, 256),
    }

    assert experiment.size == 0x100 + 2 * (4 + 4)
    assert experiment.raw == b'\x00' * experiment.size


def test_unpack_from_stream_position():
    class Header(Chunk):
        magic = StringField(4, default=b'CATF', is_magic=True)
        count = StructField('i')

    stream = Stream(b'junk' + b'CATF' + struct.pack('<i', 3))
    stream.seek(4)
    header = Header(stream)

    assert header.offset == 4
    assert header.count.offset == 8
    assert header.count.value == 3
    assert stream.tell() == 12


def test_magic_mismatch():
    class Header(Chunk):
        magic = StringField(4, default=b'CATF', is_magic=True)
        count = StructField('i')

    with pytest.raises(MagicException):
        Header(b'FTAC\x00\x00\x00\x00')

    # without the compliance the mismatch is only logged
    header = Header(Stream(b'FTAC\x01\x00\x00\x00'), compliant=Compliant.NONE)
    assert header.magic.value == b'FTAC'


def test_truncated_chunk_has_the_chain():
    class Inner(Chunk):
        value_a = StructField('I')
        value_b = StructField('I')

    class Outer(Chunk):
        tag = StructField('H')
        inner = Inner()

    with pytest.raises(ChunkUnpackException) as excinfo:
        Outer(b'\x01\x00\x02\x00\x00\x00\x03')

    assert excinfo.value.chain == ['value_b', 'inner']


def test_validate_hook():
    class Positive(Chunk):
        width = StructField('i')

        def validate(self):
            return self.width.value > 0

    assert Positive(b'\x01\x00\x00\x00').width.value == 1

    with pytest.raises(MagicException):
        Positive(b'\xff\xff\xff\xff')
