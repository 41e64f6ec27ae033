import logging

from bitstring import Bits

from ..exceptions import DecodeFailure


logger = logging.getLogger(__name__)


class MsbBitReader(object):
    '''Read integers of arbitrary width from a byte buffer, most significant
    bit first.'''

    def __init__(self, data):
        self._bits = Bits(bytes=bytes(data))
        self._pos = 0

    @property
    def remaining(self):
        return len(self._bits) - self._pos

    @property
    def byte_position(self):
        '''Index of the first byte not completely consumed.'''
        return (self._pos + 7) // 8

    def get_bits(self, count):
        if count == 0:
            return 0
        if count > self.remaining:
            raise DecodeFailure(message=f'bit stream exhausted reading {count} bits', offset=self._pos // 8)

        value = self._bits[self._pos:self._pos + count].uint
        self._pos += count

        return value

    def get_bit(self):
        return self.get_bits(1)

    def get_byte(self):
        return self.get_bits(8)


def rotate_left(value, count, width=8):
    mask = (1 << width) - 1
    count %= width
    return ((value << count) | (value >> (width - count))) & mask


def rotate_right(value, count, width=8):
    return rotate_left(value, width - (count % width), width)
