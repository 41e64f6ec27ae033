'''
# Seraphim (and Archangel) SCNPAC.DAT

There is no signature, the archive is recognized by its name.

The Seraphim flavour starts with the number of scripts followed by count + 1
offsets, the size of an entry is the distance to the next offset.

The Archangel flavour starts with the offset of the data, the index in
between is made of the sizes: each entry is preceded by 4 bytes.

A script can be stored as is, deflated, compressed with a small LZ
(unpacked size, then control bytes) or both; nothing says which one, so
the payload is guessed from its first word.
'''
import struct

from ..compression import Codec, Inflate
from ..entry import Entry, Resolved
from ..enum import EntryType
from ..exceptions import DecodeFailure, MalformedIndex
from ..images.codecs import copy_overlapped
from ..registry import ArchiveFormat
from ..validate import check_implicit_offsets, require_placement, require_sane_count


ZLIB_MAGIC = 0x78


class SeraphimLz(Codec):
    '''A control byte with the high bit set is a back reference: with the
    following byte it gives a 10 bits distance and a 5 bits count (both
    minus one). Otherwise it's the number of literals minus one.'''

    def _decode(self, stream, unpacked_size):
        header = stream.read(4)
        if len(header) != 4:
            raise DecodeFailure(message='missing unpacked size')
        declared = struct.unpack('<i', header)[0]
        if declared < 0 or (unpacked_size is not None and declared != unpacked_size):
            raise DecodeFailure(message=f'unexpected unpacked size {declared}')

        output = bytearray()
        while len(output) < declared:
            ctl = stream.read_byte()
            if ctl is None:
                raise DecodeFailure(message='LZ stream is truncated', offset=stream.tell())

            if ctl & 0x80:
                lo = stream.read_byte()
                if lo is None:
                    raise DecodeFailure(message='LZ reference is truncated', offset=stream.tell())
                distance = ((ctl << 3 | lo >> 5) & 0x3FF) + 1
                count = (lo & 0x1F) + 1
                if distance > len(output):
                    raise DecodeFailure(message=f'back reference at distance {distance} outside of the output')
                copy_overlapped(output, len(output) - distance, count)
            else:
                count = ctl + 1
                literals = stream.read(count)
                if len(literals) != count:
                    raise DecodeFailure(message='literals are truncated', offset=stream.tell())
                output += literals

        if len(output) != declared:
            raise DecodeFailure(message=f'LZ stream overflows the {declared} bytes of output')

        return output


class ScriptPayload(Codec):
    '''Guess the encoding of a script from its first word; when the LZ
    stream turns out to be garbage the stored bytes are returned.'''

    def __init__(self, allow_deflate=True):
        super().__init__()
        self.allow_deflate = allow_deflate

    def unpack(self, raw):
        if len(raw) < 4:
            return raw

        signature = struct.unpack_from('<I', raw)[0]
        if self.allow_deflate and signature == 1 and len(raw) > 4 and raw[4] == ZLIB_MAGIC:
            return Inflate().decode(raw[4:])

        is_deflated = False
        if signature < 4 or signature & 0xFF000000:
            if not self.allow_deflate or signature & 0xFF != ZLIB_MAGIC:
                return raw
            is_deflated = True

        try:
            packed = Inflate().decode(raw) if is_deflated else raw
            return SeraphimLz().decode(packed)
        except DecodeFailure as e:
            self.logger.debug('not an LZ stream (%s), using the stored bytes', e)
            return raw

    def measure(self, raw):
        '''Size of the decoded script, the garbage LZ streams count as stored.'''
        return len(self.unpack(raw))

    def _decode(self, stream, unpacked_size):
        return self.unpack(stream.read())


class ScnFormat(ArchiveFormat):
    '''The scripts are sized by unpacking them the first time they are read.'''

    def peek(self, stream, entry):
        raw = stream.read_at(entry.offset, entry.size)

        return Resolved(unpacked_size=entry.codec.measure(raw))


class SeraphScnFormat(ScnFormat):
    tag = 'SERAPH/SCN'
    description = 'Seraphim engine scripts archive'
    extensions = ('dat',)
    names = ('SCNPAC.DAT',)
    implicit_size = True

    def try_open(self, stream, name_hint=None, resolver=None):
        count = struct.unpack('<i', stream.read_exact_at(0, 4))[0]
        require_sane_count(count, 4, stream.length - 4, tag=self.tag)

        table = stream.read_exact_at(4, 4 * (count + 1))
        offsets = struct.unpack(f'<{count + 1}I', table)
        sizes = check_implicit_offsets(offsets, stream.length, data_start=4 + 4 * count)

        entries = [
            Entry(f'{idx:05d}', offset, size, type=EntryType.SCRIPT, is_packed=True, codec=ScriptPayload())
            for idx, (offset, size) in enumerate(zip(offsets, sizes))
        ]

        return self.make_index(stream, entries, name_hint)


class ArchangelScnFormat(ScnFormat):
    tag = 'SCN/ARCH'
    description = 'Archangel engine scripts archive'
    extensions = ('dat',)
    names = ('SCNPAC.DAT',)

    def try_open(self, stream, name_hint=None, resolver=None):
        offset = stream.read_u32_at(0)
        if offset >= stream.length:
            self.reject('data beyond the end of file')
        count = require_sane_count(offset // 4, 4, stream.length - 4, tag=self.tag)

        sizes = struct.unpack(f'<{count}I', stream.read_exact_at(4, 4 * count))
        entries = []
        for idx, size in enumerate(sizes):
            name = f'{idx:05d}'
            if size == 0:
                raise MalformedIndex(message='empty entry', tag=self.tag, entry=name)
            require_placement(offset + 4, size, stream.length, tag=self.tag, entry=name)
            entries.append(Entry(
                name, offset + 4, size, type=EntryType.SCRIPT, is_packed=True,
                codec=ScriptPayload(allow_deflate=False)))
            offset += size

        return self.make_index(stream, entries, name_hint)
