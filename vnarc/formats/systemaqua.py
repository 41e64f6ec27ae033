'''
# SystemAQUA engine CATF

The header gives the number of entries and the position of an index of
(size, offset) couples, the entries have no names.

An entry starting with 'LZe4' is compressed:

    +0x00  'LZe4'
    +0x08  unpacked size
    +0x0C  type, 3 bytes complemented and nibble rotated ('BMP', 'WAV', 'MID')
    +0x40  bit oriented LZSS stream

The bitmaps lose their headers: 16 bytes scrambled in front of the stream
are enough to rebuild them.
'''
import struct

from ..core import Chunk
from .. import fields
from ..common.bits import rotate_left
from ..compression import BitLzss, Codec
from ..entry import Entry, Resolved
from ..enum import EntryType
from ..exceptions import DecodeFailure
from ..images.bmp import build_bitmap_header
from ..registry import ArchiveFormat, base_name
from ..validate import require_placement, require_sane_count


LZE_MAGIC = b'LZe4'
LZE_DATA_OFFSET = 0x40
BITMAP_HEADER_SIZE = 54

PLAIN_SIGNATURES = {
    b'BM': EntryType.IMAGE,
    b'RIFF': EntryType.AUDIO,
    b'OggS': EntryType.AUDIO,
    b'MThd': EntryType.AUDIO,
}


class CatfHeader(Chunk):
    magic        = fields.StringField(4, default=b'CATF', is_magic=True)
    reserved     = fields.StructField('I')
    index_offset = fields.StructField('I')
    reserved2    = fields.StructField('I')
    count        = fields.StructField('i')


class CatfRecord(Chunk):
    entry_size   = fields.StructField('I')
    entry_offset = fields.StructField('I')


def decrypt_type(raw):
    return bytes(rotate_left(~b & 0xFF, 4) for b in raw)


class LzeBitmap(Codec):
    '''Rebuild the headers of a bitmap, then decompress the pixels after them.'''

    def build_header(self, scrambled, total_size):
        h1, h2, h3 = (~_ & 0xFFFFFFFF for _ in struct.unpack('<3I', scrambled))
        # the size is stored big endian
        width, height = struct.unpack('>HH', struct.pack('<HH', h1 & 0xFFFF, h1 >> 16))

        return build_bitmap_header(
            width, height, rotate_left(h2 & 0xFF, 4), rotate_left(h3, 16, width=32),
            colors=rotate_left((h2 >> 16) & 0xFF, 4), important_colors=rotate_left(h2 >> 24, 4),
            pixels_per_meter=0xB12, file_size=total_size)

    def _decode(self, stream, unpacked_size):
        if unpacked_size is None or unpacked_size < BITMAP_HEADER_SIZE:
            raise DecodeFailure(message=f'bitmap of {unpacked_size} bytes')

        prefix = stream.read(16)
        if len(prefix) != 16:
            raise DecodeFailure(message='truncated bitmap header')

        header = self.build_header(prefix[4:], unpacked_size)

        return header + BitLzss().decode(stream, unpacked_size - BITMAP_HEADER_SIZE)


class CatfFormat(ArchiveFormat):
    tag = 'DAT/CATF'
    description = 'SystemAQUA engine resource archive'
    signatures = (0x46544143,)
    extensions = ('dat',)

    def peek(self, stream, entry):
        head = stream.read_at(entry.offset, 0x10)
        if head[:4] != LZE_MAGIC:
            for magic, entry_type in PLAIN_SIGNATURES.items():
                if head.startswith(magic):
                    return Resolved(type=entry_type)
            return None

        if entry.size <= LZE_DATA_OFFSET:
            return None

        unpacked_size = struct.unpack_from('<I', head, 8)[0]
        raw_type = head[0xC:0xF]
        if raw_type == b'000':
            return Resolved(BitLzss(), unpacked_size, LZE_DATA_OFFSET, EntryType.AUDIO)

        file_type = decrypt_type(raw_type)
        if file_type == b'BMP':
            return Resolved(LzeBitmap(), unpacked_size, LZE_DATA_OFFSET, EntryType.IMAGE)
        if file_type in (b'WAV', b'MID'):
            return Resolved(BitLzss(), unpacked_size, LZE_DATA_OFFSET, EntryType.AUDIO)

        return Resolved(BitLzss(), unpacked_size, LZE_DATA_OFFSET)

    def try_open(self, stream, name_hint=None, resolver=None):
        header = CatfHeader(stream)
        count = header.count.value
        index_offset = header.index_offset.value
        if index_offset >= stream.length:
            self.reject('index beyond the end of file')
        require_sane_count(count, CatfRecord().size, stream.length - index_offset, tag=self.tag)

        stem = base_name(name_hint or stream.name).rsplit('.', 1)[0] or 'catf'
        stream.seek(index_offset)
        entries = []
        for idx in range(count):
            record = CatfRecord(stream)
            name = f'{stem}#{idx:04d}'
            require_placement(
                record.entry_offset.value, record.entry_size.value, stream.length, tag=self.tag, entry=name)
            entries.append(Entry(name, record.entry_offset.value, record.entry_size.value))

        # the kind of every entry is known only looking at its data
        for entry in entries:
            entry.resolve(lambda _: self.peek(stream, _))
            if entry.is_packed and decrypt_type(stream.read_at(entry.offset + 0xC, 3)) == b'MID':
                entry.name = f'{entry.name}.mid'

        return self.make_index(stream, entries, name_hint)
