'''
Rules that bring the stored pixels to the canonical layout.

They work on whole buffers through numpy and they are combined by
reconstruct() according to an ImageDescriptor.
'''
import logging

import numpy as np

from . import ImageData, CHANNELS
from ..enum import PlaneLayout, RowOrder
from ..exceptions import DecodeFailure


logger = logging.getLogger(__name__)


def _require(data, size, what):
    if len(data) < size:
        raise DecodeFailure(message=f'{what}: needed {size} bytes, got {len(data)}')


def flip_rows(data, stride, height):
    '''Reverse the order of the rows: they are moved as blocks of "stride"
    bytes, the pixels inside a row are untouched.'''
    _require(data, stride * height, 'flip rows')
    rows = np.frombuffer(data, dtype=np.uint8, count=stride * height).reshape(height, stride)

    return rows[::-1].tobytes()


def strip_padding(data, row_size, stride, height):
    '''Remove the bytes at the end of each row exceeding "row_size".'''
    if stride == row_size:
        _require(data, row_size * height, 'rows')
        return bytes(data[:row_size * height])

    if stride < row_size:
        raise DecodeFailure(message=f'stride {stride} is smaller than the row ({row_size})')

    # the last row can lack its padding
    _require(data, stride * (height - 1) + row_size, 'padded rows')
    padded = bytes(data) + b'\x00' * (stride * height - len(data)) if len(data) < stride * height else data
    rows = np.frombuffer(padded, dtype=np.uint8, count=stride * height).reshape(height, stride)

    return rows[:, :row_size].tobytes()


def deinterleave_planes(data, width, height, planes, order=None):
    '''Scatter "planes" contiguous planes of width * height bytes into an
    interleaved buffer; order[i] is the channel slot of the i-th plane.'''
    plane_size = width * height
    _require(data, plane_size * planes, 'planes')

    stored = np.frombuffer(data, dtype=np.uint8, count=plane_size * planes).reshape(planes, plane_size)
    output = np.empty((plane_size, planes), dtype=np.uint8)
    slots = order if order is not None else range(planes)
    for idx, slot in enumerate(slots):
        output[:, slot] = stored[idx]

    return output.tobytes()


def merge_alpha(pixels, alpha, width, height, inverted=False):
    '''Append an alpha plane as the 4th channel of 24 bits pixels.

    An inverted alpha is stored as 255 - alpha.'''
    plane_size = width * height
    _require(pixels, plane_size * 3, 'pixels')
    _require(alpha, plane_size, 'alpha plane')

    colors = np.frombuffer(pixels, dtype=np.uint8, count=plane_size * 3).reshape(plane_size, 3)
    transparency = np.frombuffer(alpha, dtype=np.uint8, count=plane_size)
    if inverted:
        transparency = 0xFF - transparency

    return np.column_stack((colors, transparency)).tobytes()


def scale_alpha(alpha, maximum):
    '''Stretch an alpha plane ranging 0..maximum to 0..255, saturating.'''
    values = np.frombuffer(bytes(alpha), dtype=np.uint8).astype(np.uint32)

    return np.minimum(values * 0xFF // maximum, 0xFF).astype(np.uint8).tobytes()


def read_palette(stream, colors=0x100, fmt='BGRX'):
    '''Read a palette of "colors" entries; the result has BGR or BGRA entries.

    fmt describes a stored entry, X is a padding byte.'''
    size = len(fmt) * colors
    data = stream.read(size)
    _require(data, size, 'palette')

    table = np.frombuffer(data, dtype=np.uint8).reshape(colors, len(fmt))
    target = 'BGRA' if 'A' in fmt else 'BGR'

    return np.ascontiguousarray(table[:, [fmt.index(_) for _ in target]])


def apply_palette(indices, palette):
    '''Map 8 bits indices through the palette (an array or a sequence of colors).'''
    table = np.asarray(palette, dtype=np.uint8)
    if table.ndim != 2:
        raise ValueError('the palette must be a sequence of colors')

    values = np.frombuffer(bytes(indices), dtype=np.uint8)
    if len(values) and values.max() >= len(table):
        raise DecodeFailure(message=f'index {values.max()} outside of a palette of {len(table)} colors')

    return table[values].tobytes()


def bgr555_to_bgr(data, pixel_count):
    '''Expand 15 bits pixels (little endian words) to BGR bytes.'''
    _require(data, pixel_count * 2, 'BGR555 pixels')
    words = np.frombuffer(data, dtype='<u2', count=pixel_count)
    blue = (words & 0x1F).astype(np.uint8)
    green = ((words >> 5) & 0x1F).astype(np.uint8)
    red = ((words >> 10) & 0x1F).astype(np.uint8)
    channels = np.column_stack((blue, green, red))

    # scale 0-31 to 0-255 replicating the high bits
    return ((channels << 3) | (channels >> 2)).tobytes()


def reconstruct(raw, descriptor):
    '''Combine the rules above following the descriptor.'''
    width, height = descriptor.width, descriptor.height
    channel_order = descriptor.channel_order
    data = bytes(raw)

    if descriptor.planes is PlaneLayout.PLANAR:
        planes = CHANNELS[channel_order]
        data = deinterleave_planes(data, width, height, planes)
        row_size, stride = width * planes, width * planes
    else:
        row_size, stride = descriptor.row_size, descriptor.stride

    data = strip_padding(data, row_size, stride, height)

    if descriptor.row_order is RowOrder.BOTTOM_UP:
        data = flip_rows(data, row_size, height)

    if descriptor.palette is not None:
        data = apply_palette(data, descriptor.palette)
        channel_order = 'BGRA' if np.asarray(descriptor.palette).shape[1] == 4 else 'BGR'
    elif descriptor.bpp == 16:
        data = bgr555_to_bgr(data, width * height)
        channel_order = 'BGR'

    if descriptor.has_alpha and descriptor.alpha_inverted and CHANNELS[channel_order] == 4:
        pixels = np.frombuffer(data, dtype=np.uint8).reshape(-1, 4).copy()
        pixels[:, 3] = 0xFF - pixels[:, 3]
        data = pixels.tobytes()

    logger.debug('reconstructed %r as %s', descriptor, channel_order)

    return ImageData(data, width, height, channel_order, descriptor=descriptor)
