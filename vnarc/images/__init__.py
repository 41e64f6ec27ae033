'''
Pixel data recovered from the entries.

An ImageDescriptor tells how the decoded bytes of an entry are laid out,
reconstruct() (in images.reconstruct) turns them into an ImageData: a top
down, row major buffer without padding, in a declared channel order.
'''
import logging

import numpy as np
from PIL import Image

from ..enum import PlaneLayout, RowOrder


logger = logging.getLogger(__name__)


# number of bytes per pixel for each channel order
CHANNELS = {
    'L': 1,
    'BGR': 3,
    'RGB': 3,
    'BGRA': 4,
    'RGBA': 4,
}


class ImageDescriptor(object):
    '''Layout of the pixels of an entry.

    bpp is the depth of the stored pixels (8 with a palette, 16 for BGR555,
    24 or 32), stride is the size of a stored row including the padding.'''

    def __init__(self, width, height, bpp=24, stride=None, palette=None,
                 planes=PlaneLayout.INTERLEAVED, has_alpha=False, alpha_inverted=False,
                 row_order=RowOrder.TOP_DOWN, channel_order='BGR'):
        if width <= 0 or height <= 0:
            raise ValueError(f'invalid image size {width}x{height}')
        if channel_order not in CHANNELS:
            raise ValueError(f'unknown channel order \'{channel_order}\'')

        self.width = width
        self.height = height
        self.bpp = bpp
        self.palette = palette
        self.planes = planes
        self.has_alpha = has_alpha
        self.alpha_inverted = alpha_inverted
        self.row_order = row_order
        self.channel_order = channel_order
        self.stride = stride if stride is not None else self.row_size

    def __repr__(self):
        return '<%s(%dx%d, bpp=%d, %s)>' % (
            self.__class__.__name__, self.width, self.height, self.bpp, self.channel_order)

    @property
    def bytes_per_pixel(self):
        return (self.bpp + 7) // 8

    @property
    def row_size(self):
        '''Size of a stored row without padding.'''
        return self.width * self.bytes_per_pixel


class ImageData(object):
    '''Top down, row major pixels in the declared channel order.'''

    def __init__(self, pixels, width, height, channel_order='BGR', descriptor=None):
        expected = width * height * CHANNELS[channel_order]
        if len(pixels) != expected:
            raise ValueError(f'{len(pixels)} bytes of pixels for a {width}x{height} {channel_order} image')

        self.pixels = bytes(pixels)
        self.width = width
        self.height = height
        self.channel_order = channel_order
        self.descriptor = descriptor

    def __repr__(self):
        return '<%s(%dx%d, %s)>' % (self.__class__.__name__, self.width, self.height, self.channel_order)

    @property
    def stride(self):
        return self.width * CHANNELS[self.channel_order]

    def to_array(self):
        '''Pixels as an array of shape (height, width, channels).'''
        array = np.frombuffer(self.pixels, dtype=np.uint8)

        return array.reshape(self.height, self.width, CHANNELS[self.channel_order])

    def to_pil(self):
        array = self.to_array()
        if self.channel_order == 'L':
            array = array[:, :, 0]
        elif self.channel_order.startswith('BGR'):
            # swap blue and red, alpha stays where it is
            array = array[:, :, [2, 1, 0] + ([3] if array.shape[2] == 4 else [])]

        return Image.fromarray(np.ascontiguousarray(array))
