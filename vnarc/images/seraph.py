'''
# Seraphim images

    0x00  kind: 'CF', 'CT', 'CX' then two zero bytes, or 'CB' and the
          number of colors (u16)
    0x04  position on screen, x and y (i16)
    0x08  width, height (u16)
    0x0C  size of the packed pixels (i32)
    0x10  palette (CB only, RGB entries), packed pixels

CF are 24 bits and CX 32 bits pixels; CB are 8 bits indices in the
palette. CT is a CF followed, 4 bytes after its packed pixels, by a packed
plane of transparency ranging 0..100. All of them store the rows bottom up.
'''
import logging

from ..core import Chunk
from .. import fields
from ..enum import RowOrder
from ..exceptions import ChunkUnpackException, DecodeFailure, MagicException, UnpackException
from ..streams import Stream
from . import ImageDescriptor
from .codecs import unpack_seraph_bytes, unpack_seraph_pixels
from .reconstruct import merge_alpha, read_palette, reconstruct, scale_alpha


logger = logging.getLogger(__name__)

KINDS = (b'CF', b'CT', b'CB', b'CX')
# transparency of the CT images at its maximum
CT_OPAQUE = 100


class SeraphHeader(Chunk):
    kind        = fields.StringField(2)
    colors      = fields.StructField('H')
    offset_x    = fields.StructField('h')
    offset_y    = fields.StructField('h')
    width       = fields.StructField('H')
    height      = fields.StructField('H')
    packed_size = fields.StructField('i')

    def validate(self):
        kind = self.kind.value
        if kind not in KINDS or (kind != b'CB' and self.colors.value):
            return False

        return self.width.value > 0 and self.height.value > 0 and self.packed_size.value > 0


class SeraphDecoder(object):

    @classmethod
    def matches(cls, data):
        return bytes(data[:2]) in KINDS

    def __init__(self, source):
        self.stream = source if isinstance(source, Stream) else Stream(source)
        try:
            self.header = SeraphHeader(self.stream)
        except (MagicException, UnpackException, ChunkUnpackException) as e:
            raise DecodeFailure(message=f'invalid Seraphim image header: {e}', offset=e.offset) from e

        self.data_offset = self.header.size
        if self.header.packed_size.value > self.stream.length - self.data_offset:
            raise DecodeFailure(
                message=f'{self.header.packed_size.value} bytes of pixels in a file of {self.stream.length}')

    @property
    def kind(self):
        return self.header.kind.value.decode('ascii')

    @property
    def width(self):
        return self.header.width.value

    @property
    def height(self):
        return self.header.height.value

    def decode(self):
        self.stream.seek(self.data_offset)
        logger.debug('%s image %dx%d', self.kind, self.width, self.height)

        return getattr(self, f'decode_{self.kind.lower()}')()

    def decode_cf(self):
        pixels = unpack_seraph_pixels(self.stream, self.width, self.height, 3)

        return reconstruct(pixels, ImageDescriptor(self.width, self.height, row_order=RowOrder.BOTTOM_UP))

    def decode_cx(self):
        pixels = unpack_seraph_pixels(self.stream, self.width, self.height, 4)

        return reconstruct(pixels, ImageDescriptor(
            self.width, self.height, bpp=32, has_alpha=True, row_order=RowOrder.BOTTOM_UP,
            channel_order='BGRA'))

    def decode_ct(self):
        pixels = unpack_seraph_pixels(self.stream, self.width, self.height, 3)
        self.stream.seek(self.data_offset + self.header.packed_size.value + 4)
        transparency = unpack_seraph_bytes(self.stream, self.width, self.height)

        alpha = scale_alpha(transparency, CT_OPAQUE)
        merged = merge_alpha(pixels, alpha, self.width, self.height, inverted=True)

        return reconstruct(merged, ImageDescriptor(
            self.width, self.height, bpp=32, has_alpha=True, row_order=RowOrder.BOTTOM_UP,
            channel_order='BGRA'))

    def decode_cb(self):
        colors = min(self.header.colors.value, 0x100)
        palette = read_palette(self.stream, colors, 'RGB') if colors else None
        indices = unpack_seraph_bytes(self.stream, self.width, self.height)

        return reconstruct(indices, ImageDescriptor(
            self.width, self.height, bpp=8, palette=palette, row_order=RowOrder.BOTTOM_UP,
            channel_order='BGR' if palette is not None else 'L'))
