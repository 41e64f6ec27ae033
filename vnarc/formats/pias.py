'''
# Pias DAT

The archives have no header and no index: each resource starts with its
size (u32) followed by the data, so the entries can be found following
the chain from the start of the file. The images have 4 more bytes of
header (width and height).

The order of the resources as the scripts know it is written in
'text.dat', next to the archives, as a sequence of records

    0x68  resource type (varint)  count (varint)  count offsets (u32)

where the resource type is 1 for 'graph.dat' and 2 for 'sound.dat'. The
entries listed there come first, the others found on the chain follow.

The sounds are bare 8 bits PCM at 22050Hz, the images are 15 bits pixels
compressed with back references.

In the encrypted variant text.dat starts with the seed of its key, and each
image is preceded by the seed of its own key. The key bytes are the low
bytes of a 32 bits state advanced as

    a = x + state * y
    state = a >> 1 | (bit 22 ^ bit 10 ^ bit 0 of a) << 31

with (x, y) depending on the file. Its sounds are 16 bits PCM in clear.
'''
import struct

from ..core import Chunk
from .. import fields
from ..common.riff import pcm_format, wave_header
from ..compression import Codec
from ..compression.scramble import Xor
from ..entry import Entry
from ..enum import EntryType
from ..exceptions import DecodeFailure, MagicException, UnpackException
from ..fields import Field
from ..images import ImageDescriptor
from ..images.codecs import unpack_masked_backref, unpack_word_backref
from ..images.reconstruct import reconstruct
from ..properties import Dependency
from ..registry import ArchiveFormat, base_name
from ..streams import Stream
from ..validate import require_placement


TEXT_INDEX_NAME = 'text.dat'
RESOURCE_OPCODE = 0x68
SAMPLE_RATE = 22050
# header of the riff, fmt and data chunks with a plain PCM format
WAVE_HEADERS_SIZE = 12 + 8 + 16 + 8

# (x, y) of the key generators
GRAPH_KEY = (0xD22, 0x849)
TEXT_KEY = (0xF43, 0x356B)
# first u32 of an encrypted text.dat
ENCRYPTED_SEEDS = (0x02F3A62B, 0)

# archive name -> (resource type inside text.dat, kind of entries)
ARCHIVES = {
    'graph.dat': (1, EntryType.IMAGE),
    'sound.dat': (2, EntryType.AUDIO),
    'voice.dat': (None, EntryType.AUDIO),
    'music.dat': (None, EntryType.AUDIO),
}


class VarIntField(Field):
    '''Big endian integer of one to four bytes: the two high bits of the
    first byte are the number of bytes that follow.'''

    def __init__(self, default=0, **kw):
        super().__init__(default=default, **kw)

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, hex(self.value))

    def _get_size(self):
        for size, limit in enumerate((0x40, 0x4000, 0x400000), 1):
            if self.value < limit:
                return size

        return 4

    def _get_raw(self):
        size = self.size
        encoded = self.value | (size - 1) << (8 * size - 2)

        return encoded.to_bytes(size, 'big')

    def unpack(self, stream):
        first = stream.read_byte()
        if first is None:
            raise UnpackException(chain=[], message=f'missing integer \'{self.name}\'')
        extra = stream.read(first >> 6)
        if len(extra) != first >> 6:
            raise UnpackException(chain=[], message=f'truncated integer \'{self.name}\'')

        self.value = int.from_bytes(bytes([first & 0x3F]) + extra, 'big')


class ResourceList(Chunk):
    opcode        = fields.StructField('B', default=RESOURCE_OPCODE, is_magic=True)
    resource_type = VarIntField()
    count         = VarIntField()
    offsets       = fields.ArrayField(fields.StructField('I'), n=Dependency('.count'))


class PiasWave(Codec):
    '''Replace the size in front of the samples with a RIFF header.'''

    def __init__(self, channels, bits=8):
        super().__init__()
        self.channels = channels
        self.bits = bits

    def __repr__(self):
        return f'<{self.__class__.__name__}(channels={self.channels}, bits={self.bits})>'

    def _decode(self, stream, unpacked_size):
        header = stream.read(4)
        if len(header) != 4:
            raise DecodeFailure(message='missing sound size')
        samples = stream.read(struct.unpack('<I', header)[0])

        return wave_header(pcm_format(self.channels, SAMPLE_RATE, self.bits), len(samples)) + samples


def key_bytes(seed, count, key):
    '''The first "count" bytes of the key stream of a seed; key is one of
    GRAPH_KEY, TEXT_KEY.'''
    x, y = key
    output = bytearray(count)
    for idx in range(count):
        a = (x + seed * y) & 0xFFFFFFFF
        feedback = (a >> 22 ^ a >> 10 ^ a) & 1
        seed = a >> 1 | feedback << 31
        output[idx] = seed & 0xFF

    return bytes(output)


def decrypt(data, seed, key):
    if not data:
        return b''

    return Xor(key_bytes(seed, len(data), key)).transform(data)


class PiasDecrypt(Codec):
    '''A seed (u32) followed by data encrypted with the key of graph.dat.'''

    def _decode(self, stream, unpacked_size):
        header = stream.read(4)
        if len(header) != 4:
            raise DecodeFailure(message='missing key seed')
        data = stream.read() if unpacked_size is None else stream.read(unpacked_size)

        return decrypt(data, struct.unpack('<I', header)[0], GRAPH_KEY)


class PiasFormat(ArchiveFormat):
    tag = 'DAT/PIAS'
    description = 'Pias resource archive'
    extensions = ('dat',)
    names = tuple(ARCHIVES)

    def read_resource_offsets(self, text, resource_type):
        '''Offsets of the resources of the given type listed by text.dat,
        None if the file contains something unexpected.'''
        text.seek(0)
        while text.peek_byte() is not None:
            opcode = text.peek_byte()
            try:
                resources = ResourceList(text)
            except MagicException:
                self.logger.warning('unknown opcode 0x%02x in %s', opcode, TEXT_INDEX_NAME)
                return None
            if resources.resource_type.value == resource_type:
                return [_.value for _ in resources.offsets]

        return None

    def load_text(self, text):
        '''The content of text.dat the resource lists are read from.'''
        return text

    def wave_codec(self, archive_name):
        return PiasWave(2 if archive_name == 'sound.dat' else 1)

    def stored_size(self, stream, offset, entry_type):
        '''Size of the resource at offset, its header included.'''
        require_placement(offset, 4, stream.length, tag=self.tag)

        return stream.read_u32_at(offset) + (8 if entry_type is EntryType.IMAGE else 4)

    def entry_at(self, stream, name, offset, entry_type, archive_name):
        size = self.stored_size(stream, offset, entry_type)
        require_placement(offset, size, stream.length, tag=self.tag, entry=name)
        if entry_type is EntryType.IMAGE:
            return Entry(name, offset, size, type=entry_type)

        return Entry(
            name, offset, size, unpacked_size=size - 4 + WAVE_HEADERS_SIZE,
            type=entry_type, is_packed=True, codec=self.wave_codec(archive_name))

    def unlisted_name(self, count):
        return f'{count:04d}'

    def try_open(self, stream, name_hint=None, resolver=None):
        archive_name = base_name(name_hint).lower()
        resource_type, entry_type = ARCHIVES[archive_name]

        offsets = None
        if resource_type is not None:
            text = resolver(TEXT_INDEX_NAME) if resolver is not None else None
            if text is None:
                self.reject(f'missing {TEXT_INDEX_NAME}')
            with text:
                offsets = self.read_resource_offsets(self.load_text(text), resource_type)

        entries = [
            self.entry_at(stream, f'{idx:04d}', offset, entry_type, archive_name)
            for idx, offset in enumerate(offsets or ())
        ]

        known_offsets = set(_.offset for _ in entries)
        offset = 0
        while offset < stream.length:
            if offset not in known_offsets:
                entries.append(self.entry_at(stream, self.unlisted_name(len(entries)), offset, entry_type, archive_name))
            offset += self.stored_size(stream, offset, entry_type)

        return self.make_index(stream, entries, name_hint)

    def read_image_size(self, view):
        view.seek(4)

        return view.read_u16(), view.read_u16()

    def unpack_image(self, view, width, height):
        return unpack_word_backref(view, width * height)

    def image_view(self, stream, index, entry):
        return stream.view(entry.offset, entry.size, name=entry.name)

    def open_image(self, stream, index, entry):
        view = self.image_view(stream, index, entry)
        try:
            width, height = self.read_image_size(view)
        except UnpackException as e:
            raise DecodeFailure(message='truncated image header', tag=self.tag, entry=entry.name) from e
        if not width or not height:
            raise DecodeFailure(message=f'invalid image size {width}x{height}', tag=self.tag, entry=entry.name)

        pixels = self.unpack_image(view, width, height)

        return reconstruct(pixels, ImageDescriptor(width, height, bpp=16))


class PiasEncryptedFormat(PiasFormat):
    '''The text.dat starts with the seed of its key and is encrypted from
    the 5th byte on. Each image of graph.dat is preceded by the seed of its
    own key, its pixels use a different scheme. The sounds are 16 bits and
    are not encrypted.'''
    tag = 'DAT/PIAS/ENC'
    description = 'Pias encrypted resource archive'
    names = ('graph.dat', 'sound.dat')

    def load_text(self, text):
        seed = text.read_u32_at(0) if text.length >= 4 else None
        if seed not in ENCRYPTED_SEEDS:
            self.reject(f'{TEXT_INDEX_NAME} is not encrypted')

        return Stream(decrypt(text.read_at(4, text.length - 4), seed, TEXT_KEY), name=TEXT_INDEX_NAME)

    def wave_codec(self, archive_name):
        return PiasWave(2, bits=16)

    def stored_size(self, stream, offset, entry_type):
        if entry_type is not EntryType.IMAGE:
            return super().stored_size(stream, offset, entry_type)

        require_placement(offset, 8, stream.length, tag=self.tag)
        size = decrypt(stream.read_at(offset + 4, 4), stream.read_u32_at(offset), GRAPH_KEY)

        return (struct.unpack('<I', size)[0] & 0xFFFFF) + 8 + 4

    def entry_at(self, stream, name, offset, entry_type, archive_name):
        if entry_type is not EntryType.IMAGE:
            return super().entry_at(stream, name, offset, entry_type, archive_name)

        size = self.stored_size(stream, offset, entry_type)
        require_placement(offset, size, stream.length, tag=self.tag, entry=name)

        return Entry(name, offset, size, unpacked_size=size - 4, type=entry_type, is_packed=True, codec=PiasDecrypt())

    def unlisted_name(self, count):
        return f'{count:04d}_'

    def image_view(self, stream, index, entry):
        return Stream(self.open_entry(stream, index, entry), name=entry.name)

    def read_image_size(self, view):
        width, height = super().read_image_size(view)

        return width & 0x3FF, height & 0x3FF

    def unpack_image(self, view, width, height):
        return unpack_masked_backref(view, width, height)
