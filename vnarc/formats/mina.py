'''
# Mina PAK

Three flavours without signature, all of them are a plain sequence of
records up to the end of the file:

    bitmaps   name\\0  width(u16) height(u16) flags(u8) size(u32)  pixels
    audio     size(u32) name\\0  fmt size(u32) WAVEFORMAT  samples
    scripts   name\\0  size(u32)  lines

The names are at most 16 characters long. The flavour is told by the
extension of the first name (and by the name of the archive for the
scripts).

A bitmap with bit 0 of the flags set is run length encoded with alpha,
otherwise it's plain RGB. The audio entries are bare PCM that is
given back with a RIFF header; every script line is nibble rotated.
'''
import struct

from ..core import Chunk
from .. import fields
from ..common.riff import wave_header
from ..compression import Codec, NibbleSwap
from ..entry import Entry, Resolved
from ..enum import EntryType
from ..exceptions import DecodeFailure, MalformedIndex
from ..images import ImageData, ImageDescriptor
from ..images.codecs import unpack_alpha_rle
from ..images.reconstruct import reconstruct
from ..registry import ArchiveFormat
from ..validate import require_placement


MAX_NAME_LENGTH = 0x10
# header of the riff, fmt and data chunks
WAVE_HEADERS_SIZE = 12 + 8 + 8


class MinaName(Chunk):
    file_name = fields.CStringField(MAX_NAME_LENGTH)


class MinaBitmapHeader(Chunk):
    width     = fields.StructField('H')
    height    = fields.StructField('H')
    flags     = fields.StructField('B')
    data_size = fields.StructField('I')

    @property
    def is_compressed(self):
        return bool(self.flags.value & 1)


class MinaWaveRecord(Chunk):
    data_size = fields.StructField('I')
    file_name = fields.CStringField(MAX_NAME_LENGTH)
    fmt_size  = fields.StructField('I')


class MinaScriptRecord(Chunk):
    file_name  = fields.CStringField(MAX_NAME_LENGTH)
    entry_size = fields.StructField('I')


def first_name_has_extension(stream, extension, start):
    '''The first name of the archive, starting at "start", ends with
    "extension" within the maximum length of a name.'''
    head = stream.read_at(0, start + MAX_NAME_LENGTH)
    position = head.find(b'\x00', start)
    if position < 0:
        return False

    return position > start + len(extension) and head[position - len(extension):position] == extension


class MinaWave(Codec):
    '''Prepend the RIFF header to the fmt block and the samples of an entry.'''

    def _decode(self, stream, unpacked_size):
        header = stream.read(4)
        if len(header) != 4:
            raise DecodeFailure(message='missing format size')
        fmt_size = struct.unpack('<I', header)[0]
        fmt = stream.read(fmt_size)
        if len(fmt) != fmt_size:
            raise DecodeFailure(message='truncated format block', offset=stream.tell())

        samples = stream.read()

        return wave_header(fmt, len(samples)) + samples


class MinaScript(Codec):
    '''Each line is preceded by its length minus one and by a 16 bits word;
    the lines are given back terminated by CRLF.'''

    @staticmethod
    def lines(data):
        '''Yield (start, length) of the stored lines.'''
        position = 0
        while position < len(data):
            length = data[position] + 1
            position += 3
            if position + length > len(data):
                raise DecodeFailure(message='script line is truncated', offset=position)
            yield position, length
            position += length

    def measure(self, data):
        return sum(length + 2 for _, length in self.lines(data))

    def _decode(self, stream, unpacked_size):
        data = stream.read()
        rotate = NibbleSwap()
        output = bytearray()
        for start, length in self.lines(data):
            output += rotate.transform(data[start:start + length])
            output += b'\r\n'

        return output


class MinaBitmapFormat(ArchiveFormat):
    tag = 'PAK/MINA/BMP'
    description = 'Mina bitmap archive'
    extensions = ('pak',)

    def try_open(self, stream, name_hint=None, resolver=None):
        if not first_name_has_extension(stream, b'.BMP', 0):
            self.reject('the first entry is not a bitmap')

        entries = []
        while stream.peek_byte() is not None:
            name = MinaName(stream).file_name.text()
            offset = stream.tell()
            header = MinaBitmapHeader(stream)
            size = header.data_size.value + header.size
            require_placement(offset, size, stream.length, tag=self.tag, entry=name)
            entries.append(Entry(name, offset, size, type=EntryType.IMAGE))
            stream.seek(offset + size)

        return self.make_index(stream, entries, name_hint)

    def open_image(self, stream, index, entry):
        view = stream.view(entry.offset, entry.size, name=entry.name)
        header = MinaBitmapHeader(view)
        width, height = header.width.value, header.height.value
        if not width or not height:
            raise DecodeFailure(message=f'invalid bitmap size {width}x{height}', tag=self.tag, entry=entry.name)

        if header.is_compressed:
            return ImageData(unpack_alpha_rle(view, width * height), width, height, 'BGRA')

        return reconstruct(view.read(width * height * 3), ImageDescriptor(width, height, channel_order='RGB'))


class MinaWaveFormat(ArchiveFormat):
    tag = 'PAK/MINA/WAV'
    description = 'Mina audio archive'
    extensions = ('pak',)

    def try_open(self, stream, name_hint=None, resolver=None):
        if not first_name_has_extension(stream, b'.WAV', 4):
            self.reject('the first entry is not a wave')

        entries = []
        while stream.peek_byte() is not None:
            record = MinaWaveRecord(stream)
            name = record.file_name.text()
            fmt_size = record.fmt_size.value
            if fmt_size < 0x10:
                raise MalformedIndex(message=f'format block of {fmt_size} bytes', tag=self.tag, entry=name)

            offset = record.fmt_size.offset
            size = record.data_size.value + fmt_size + 4
            require_placement(offset, size, stream.length, tag=self.tag, entry=name)
            entries.append(Entry(
                name, offset, size, unpacked_size=size + WAVE_HEADERS_SIZE - 4,
                type=EntryType.AUDIO, is_packed=True, codec=MinaWave()))
            stream.seek(offset + size)

        return self.make_index(stream, entries, name_hint)


class MinaScriptFormat(ArchiveFormat):
    tag = 'PAK/MINA/SPT'
    description = 'Mina scripts archive'
    extensions = ('pak',)
    names = ('SCRIPT.PAK',)

    def peek(self, stream, entry):
        return Resolved(unpacked_size=entry.codec.measure(stream.read_at(entry.offset, entry.size)))

    def try_open(self, stream, name_hint=None, resolver=None):
        entries = []
        while stream.peek_byte() is not None:
            record = MinaScriptRecord(stream)
            name = record.file_name.text()
            offset, size = stream.tell(), record.entry_size.value
            require_placement(offset, size, stream.length, tag=self.tag, entry=name)
            entries.append(Entry(name, offset, size, type=EntryType.SCRIPT, is_packed=True, codec=MinaScript()))
            stream.seek(offset + size)

        if not entries:
            self.reject('empty archive')

        return self.make_index(stream, entries, name_hint)
