'''
# NeXAS engine PAC

    .-------------------------------.
    | 'PAC\\0' | count | pack type  |
    | entries data                  |
    | index (complemented, huffman) |
    | index size (u32)              |
    '-------------------------------'

The index is at the end of the file: once complemented it's a Huffman
stream expanding to "count" records of 0x4C bytes. The pack type of the
header says how the packed entries are compressed.
'''
from enum import IntEnum

from ..core import Chunk
from .. import fields
from ..compression import Huffman, Inflate, Lzss, Not, PassThrough
from ..entry import Entry
from ..exceptions import DecodeFailure, MalformedIndex
from ..registry import ArchiveFormat
from ..streams import Stream
from ..validate import require_placement, require_sane_count


RECORD_SIZE = 0x4C


class PacCompression(IntEnum):
    NONE            = 0
    LZSS            = 1
    HUFFMAN         = 2
    DEFLATE         = 3
    DEFLATE_OR_NONE = 4


class PacHeader(Chunk):
    magic     = fields.StringField(4, default=b'PAC\x00', is_magic=True)
    count     = fields.StructField('i')
    pack_type = fields.StructField('i')


class PacRecord(Chunk):
    file_name     = fields.StringField(0x40)
    entry_offset  = fields.StructField('I')
    unpacked_size = fields.StructField('I')
    entry_size    = fields.StructField('I')


class PacFormat(ArchiveFormat):
    tag = 'PAC'
    description = 'NeXAS engine resource archive'
    signatures = (0x00434150,)
    extensions = ('pac',)

    def read_index(self, stream, count):
        length = stream.length
        if length < PacHeader().size + 4:
            self.reject('no room for the index')

        index_size = stream.read_u32_at(length - 4)
        index_offset = length - 4 - index_size if index_size <= length - 4 else -1
        require_placement(index_offset, index_size, length, data_start=PacHeader().size, tag=self.tag)
        # every record needs at least one bit per byte
        require_sane_count(count, RECORD_SIZE, index_size * 8, tag=self.tag)

        packed = Not().decode(stream.view(index_offset, index_size))
        try:
            return Huffman().decode(packed, count * RECORD_SIZE)
        except DecodeFailure as e:
            raise MalformedIndex(message=f'index can\'t be decoded: {e.message}', tag=self.tag) from e

    def try_open(self, stream, name_hint=None, resolver=None):
        header = PacHeader(stream)
        count = header.count.value
        require_sane_count(count, 1, stream.length, tag=self.tag)

        try:
            pack_type = PacCompression(header.pack_type.value)
        except ValueError:
            self.logger.warning('unknown pack type %d, assuming deflate', header.pack_type.value)
            pack_type = PacCompression.DEFLATE

        index = Stream(self.read_index(stream, count))

        entries = []
        for _ in range(count):
            record = PacRecord(index)
            name = record.file_name.text()
            if not name:
                continue
            offset, size = record.entry_offset.value, record.entry_size.value
            require_placement(offset, size, stream.length, data_start=header.size, tag=self.tag, entry=name)

            unpacked_size = record.unpacked_size.value
            is_packed = pack_type is not PacCompression.NONE and unpacked_size != size
            entries.append(Entry(
                name, offset, size, unpacked_size=unpacked_size if is_packed else None, is_packed=is_packed))

        return self.make_index(stream, entries, name_hint, base_offset=header.size, params={'pack_type': pack_type})

    def codec_for(self, index, entry):
        if not entry.is_packed:
            return PassThrough()

        pack_type = index.param('pack_type')
        if pack_type is PacCompression.LZSS:
            return Lzss()
        if pack_type is PacCompression.HUFFMAN:
            return Huffman()

        return Inflate()
