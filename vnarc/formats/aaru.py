'''
# Aaru FL4

    0x00  'FL4.0'
    0x08  data offset (u16)
    0x0A  index size
    0x0E  index offset
    0x16  key
    0x18  flags

The index starts with the position of the first record inside the index
itself; the records are (offset, size, name length, name) and the list
ends with an offset of 0xffffffff or with the index. The offsets are
relative to the data offset of the header.

The entries are self-describing:

 - 'PD2A' LZSS from +16, unpacked size at +12
 - 'PD' LZSS from +10, unpacked size at +6
 - 'RD1.0' chunked RLE, the data offset is at +6 (u16) and the number of
   chunks at +0xA
'''
import struct

from ..core import Chunk
from .. import fields
from ..compression import ChunkRle, Lzss
from ..entry import Entry, Resolved
from ..exceptions import DecodeFailure
from ..properties import Dependency
from ..registry import ArchiveFormat
from ..streams import Stream
from ..validate import require_placement


END_OF_INDEX = 0xFFFFFFFF
# magic, offset of the unpacked size, offset of the LZSS stream
LZ_HEADERS = (
    ('PD2A', 12, 16),
    ('PD', 6, 10),
)


class Fl4Header(Chunk):
    magic        = fields.StringField(4, default=b'FL4.', is_magic=True)
    version      = fields.StringField(1, default=b'0', is_magic=True)
    reserved     = fields.StringField(3)
    data_offset  = fields.StructField('H')
    index_size   = fields.StructField('I')
    index_offset = fields.StructField('I')
    reserved2    = fields.StringField(4)
    key          = fields.StructField('H')
    flags        = fields.StructField('H')


class Fl4Record(Chunk):
    entry_offset = fields.StructField('I')
    entry_size   = fields.StructField('I')
    name_length  = fields.StructField('B')
    file_name    = fields.StringField(Dependency('.name_length'))


class Fl4Format(ArchiveFormat):
    tag = 'FL4/AARU'
    description = 'Aaru resource archive'
    signatures = (0x2E344C46,)
    extensions = ('fl4',)

    def peek(self, stream, entry):
        for magic, size_offset, data_offset in LZ_HEADERS:
            if not stream.ascii_equal(entry.offset, magic):
                continue
            if entry.size < data_offset:
                raise DecodeFailure(message=f'{magic} entry smaller than its header', offset=entry.offset)
            return Resolved(Lzss(), stream.read_u32_at(entry.offset + size_offset), data_offset)

        if not stream.ascii_equal(entry.offset, 'RD1.0'):
            return None
        if entry.size < 0xE:
            raise DecodeFailure(message='RD1.0 entry smaller than its header', offset=entry.offset)

        data_offset = stream.read_u16_at(entry.offset + 6)
        chunks = struct.unpack('<i', stream.read_exact_at(entry.offset + 0xA, 4))[0]
        if data_offset > entry.size or chunks < 0:
            raise DecodeFailure(message='invalid RLE header', offset=entry.offset)

        codec = ChunkRle(chunks)
        unpacked_size = codec.measure(stream.read_at(entry.offset + data_offset, entry.size - data_offset))

        return Resolved(codec, unpacked_size, data_offset)

    def try_open(self, stream, name_hint=None, resolver=None):
        header = Fl4Header(stream)
        data_offset = header.data_offset.value
        index_offset, index_size = header.index_offset.value, header.index_size.value
        if index_offset > stream.length or index_size > stream.length - index_offset:
            self.reject('index beyond the end of file')

        index = Stream(stream.read_exact_at(index_offset, index_size))
        if index_size < 4:
            self.reject('no room for the index')
        position = index.read_i32()
        if position <= 0:
            self.reject(f'invalid index start {position}')

        self.logger.debug('key 0x%04x flags 0x%04x', header.key.value, header.flags.value)

        entries = []
        index.seek(position)
        while index.tell() < index.length:
            if index.remaining >= 4 and index.read_u32_at(index.tell()) == END_OF_INDEX:
                break
            record = Fl4Record(index)
            name = record.file_name.text()
            offset = record.entry_offset.value + data_offset
            require_placement(offset, record.entry_size.value, stream.length, tag=self.tag, entry=name)
            entries.append(Entry(name, offset, record.entry_size.value))

        if not entries:
            self.reject('empty index')

        return self.make_index(stream, entries, name_hint, base_offset=data_offset)
