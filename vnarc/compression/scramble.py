'''
Byte-wise descramblers.

They don't change the length of the data, they only transform each byte,
possibly with a key depending on the position of the byte.
'''
import numpy as np

from . import Codec
from ..common.bits import rotate_right


class ByteTransform(Codec):
    '''Base class for the codecs working byte by byte.'''

    def transform(self, data, position):
        raise NotImplementedError('you need to implement this in the subclass')

    def _decode(self, stream, unpacked_size):
        position = stream.tell()
        data = stream.read() if unpacked_size is None else stream.read(unpacked_size)

        return self.transform(data, position)


class Xor(ByteTransform):
    '''XOR with a key table that cycles, an int is a one byte table.'''

    def __init__(self, key):
        super().__init__()
        self.key = bytes([key & 0xFF]) if isinstance(key, int) else bytes(key)
        if not self.key:
            raise ValueError('empty key')

    def transform(self, data, position=0):
        buffer = np.frombuffer(data, dtype=np.uint8)
        key = np.frombuffer(self.key, dtype=np.uint8)
        key = np.roll(key, -(position % len(key)))
        key = np.resize(key, len(buffer))

        return (buffer ^ key).tobytes()

    scramble = transform


class RotateComplement(ByteTransform):
    '''Stored bytes become ~(b - k); "key" is an int or a callable of the
    position of the byte inside the payload.'''

    def __init__(self, key=0):
        super().__init__()
        self.key = key

    def _key_at(self, position, count):
        if callable(self.key):
            return np.array([self.key(position + _) & 0xFF for _ in range(count)], dtype=np.uint8)

        return np.full(count, self.key & 0xFF, dtype=np.uint8)

    def transform(self, data, position=0):
        buffer = np.frombuffer(data, dtype=np.uint8)
        key = self._key_at(position, len(buffer))

        return (~(buffer - key)).tobytes()

    def scramble(self, data, position=0):
        buffer = np.frombuffer(data, dtype=np.uint8)
        key = self._key_at(position, len(buffer))

        return (~buffer + key).tobytes()


class NibbleSwap(ByteTransform):
    '''Rotate each byte by four bits.'''

    def transform(self, data, position=0):
        buffer = np.frombuffer(data, dtype=np.uint8)

        return ((buffer << 4) | (buffer >> 4)).tobytes()

    scramble = transform


class Not(ByteTransform):

    def transform(self, data, position=0):
        return (~np.frombuffer(data, dtype=np.uint8)).tobytes()

    scramble = transform


KEY_MASK = 0xFFFFFFFF


def advance_key(key, steps):
    '''Apply "key = 5 * key - 3" for "steps" times (32 bits arithmetic).'''
    # 5^n - 1 is always a multiple of 4, two more bits keep the division exact
    power = pow(5, steps, 1 << 34)
    return (power * key - 3 * ((power - 1) // 4)) & KEY_MASK


class KeyStream(ByteTransform):
    '''Rolling key: each byte is rotated right by one bit and the key is
    subtracted from it, then the key becomes 5 * key - 3.

    The key stream starts at the beginning of the container, so a payload
    at "start" has the key advanced accordingly.'''

    def __init__(self, key, start=0):
        super().__init__()
        self.key = key & KEY_MASK
        self.start = start

    def __repr__(self):
        return f'<{self.__class__.__name__}(key={self.key}, start=0x{self.start:x})>'

    def transform(self, data, position=0):
        key = advance_key(self.key, self.start + position)
        out = bytearray(len(data))
        for idx, b in enumerate(data):
            out[idx] = (rotate_right(b, 1) - key) & 0xFF
            key = (5 * key - 3) & KEY_MASK

        return bytes(out)
