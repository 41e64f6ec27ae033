'''
# Windows bitmap

    .---------------------------.
    | BITMAPFILEHEADER          |
    | BITMAPINFOHEADER          |
    | palette (8 bpp only)      |
    | rows, bottom up, padded   |
    '---------------------------'

Rows are padded to a multiple of four bytes; a negative height means the
rows are stored top down.
'''
import logging
from enum import Enum

from ..core import Chunk
from .. import fields
from ..enum import Compliant, RowOrder
from ..exceptions import ChunkUnpackException, DecodeFailure, MagicException, UnpackException
from ..streams import Stream
from . import ImageDescriptor
from .reconstruct import read_palette, reconstruct


logger = logging.getLogger(__name__)


class BitmapCompression(Enum):
    BI_RGB       = 0
    BI_RLE8      = 1
    BI_RLE4      = 2
    BI_BITFIELDS = 3


class BitmapFileHeader(Chunk):
    magic        = fields.StringField(0x02, default=b'BM', is_magic=True)
    file_size    = fields.StructField('I')
    reserved1    = fields.StructField('H')
    reserved2    = fields.StructField('H')
    pixel_offset = fields.StructField('I')


class BitmapInfoHeader(Chunk):
    header_size      = fields.StructField('I', default=40)
    width            = fields.StructField('i')
    height           = fields.StructField('i')
    planes           = fields.StructField('H', default=1)
    bpp              = fields.StructField('H', default=24)
    compression      = fields.StructField('I', enum=BitmapCompression, compliant=Compliant.ENUM)
    image_size       = fields.StructField('I')
    x_pixels_per_m   = fields.StructField('i')
    y_pixels_per_m   = fields.StructField('i')
    colors_used      = fields.StructField('I')
    colors_important = fields.StructField('I')

    def validate(self):
        return self.header_size.value >= 40 and self.width.value > 0 and self.height.value != 0


class BmpDecoder(object):
    '''Decode a bitmap with 8 (palette), 24 or 32 bits per pixel.'''

    SUPPORTED_BPP = (8, 24, 32)

    @classmethod
    def matches(cls, data):
        return bytes(data[:2]) == b'BM'


    def __init__(self, source):
        self.stream = source if isinstance(source, Stream) else Stream(source)
        try:
            self.file_header = BitmapFileHeader(self.stream)
            self.info = BitmapInfoHeader(self.stream)
        except (MagicException, UnpackException, ChunkUnpackException) as e:
            raise DecodeFailure(message=f'invalid bitmap header: {e}', offset=e.offset) from e

        if self.info.bpp.value not in self.SUPPORTED_BPP:
            raise DecodeFailure(message=f'unsupported bitmap depth {self.info.bpp.value}')
        if self.info.compression.value is not BitmapCompression.BI_RGB:
            raise DecodeFailure(message=f'unsupported bitmap compression {self.info.compression.value!r}')

    @property
    def width(self):
        return self.info.width.value

    @property
    def height(self):
        return abs(self.info.height.value)

    @property
    def descriptor(self):
        bpp = self.info.bpp.value
        stride = (self.width * bpp // 8 + 3) & ~3
        row_order = RowOrder.BOTTOM_UP if self.info.height.value > 0 else RowOrder.TOP_DOWN

        palette = None
        if bpp == 8:
            # the palette follows the info header, whatever its size
            self.stream.seek(self.file_header.size + self.info.header_size.value)
            palette = read_palette(self.stream, self.info.colors_used.value or 0x100, 'BGRX')

        return ImageDescriptor(
            self.width, self.height, bpp=bpp, stride=stride, palette=palette,
            has_alpha=bpp == 32, row_order=row_order,
            channel_order='BGRA' if bpp == 32 else 'BGR')

    def decode(self):
        try:
            descriptor = self.descriptor
        except ValueError as e:
            raise DecodeFailure(message=f'invalid bitmap: {e}') from e
        self.stream.seek(self.file_header.pixel_offset.value)
        raw = self.stream.read(descriptor.stride * descriptor.height)
        logger.debug('bitmap %dx%d, %d bytes of pixels', self.width, self.height, len(raw))

        return reconstruct(raw, descriptor)


def build_bitmap_header(width, height, bpp, data_size, pixel_offset=54, colors=0,
                        important_colors=0, pixels_per_meter=0, file_size=None):
    '''Return the 54 bytes of the headers of a bottom up BI_RGB bitmap.

    The file size defaults to the headers plus the pixels.'''
    file_header = BitmapFileHeader()
    file_header.file_size = file_size if file_size is not None else pixel_offset + data_size
    file_header.pixel_offset = pixel_offset

    info = BitmapInfoHeader()
    info.width = width
    info.height = height
    info.bpp = bpp
    info.image_size = data_size
    info.x_pixels_per_m = pixels_per_meter
    info.y_pixels_per_m = pixels_per_meter
    info.colors_used = colors
    info.colors_important = important_colors

    return file_header.pack() + info.pack()
