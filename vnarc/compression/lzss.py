'''
LZSS with a ring buffer ("frame").

The byte oriented flavour has a control byte every eight tokens, read from
the least significant bit: a set bit is a literal, a clear one is a two
bytes reference (lo, hi) with a 12 bits position inside the frame and a 4
bits length.

The bit oriented flavour reads everything from an MSB-first bit stream:
a 1 flag is followed by an 8 bits literal, a 0 flag by a position and a
length of configurable widths.
'''
from . import Codec
from ..common.bits import MsbBitReader
from ..exceptions import DecodeFailure


class Lzss(Codec):

    def __init__(self, frame_size=0x1000, frame_fill=0, init_pos=0xFEE, min_match=3):
        super().__init__()
        if frame_size & (frame_size - 1):
            raise ValueError('the frame size must be a power of two')
        self.frame_size = frame_size
        self.frame_fill = frame_fill
        self.init_pos = init_pos
        self.min_match = min_match

    def __repr__(self):
        return f'<{self.__class__.__name__}(frame=0x{self.frame_size:x}, pos=0x{self.init_pos:x})>'

    def _decode(self, stream, unpacked_size):
        data = stream.read()
        frame = bytearray([self.frame_fill]) * self.frame_size
        frame_pos = self.init_pos
        frame_mask = self.frame_size - 1
        limit = unpacked_size if unpacked_size is not None else -1
        out = bytearray()
        src = 0
        size = len(data)

        while len(out) != limit and src < size:
            ctl = data[src]
            src += 1
            bit = 1
            while bit != 0x100 and len(out) != limit:
                if ctl & bit:
                    if src >= size:
                        break
                    b = data[src]
                    src += 1
                    frame[frame_pos] = b
                    frame_pos = (frame_pos + 1) & frame_mask
                    out.append(b)
                else:
                    if src + 1 >= size:
                        break
                    lo, hi = data[src], data[src + 1]
                    src += 2
                    offset = (hi & 0xF0) << 4 | lo
                    for _ in range(self.min_match + (hi & 0x0F)):
                        v = frame[offset & frame_mask]
                        offset += 1
                        frame[frame_pos] = v
                        frame_pos = (frame_pos + 1) & frame_mask
                        out.append(v)
                        if len(out) == limit:
                            break
                bit <<= 1

        # the decoder consumed only what it needed
        stream.seek(stream.tell() - (size - src))

        return out


class BitLzss(Codec):

    def __init__(self, frame_size=0x4000, init_pos=1, offset_bits=14, count_bits=4, min_match=3):
        super().__init__()
        if frame_size & (frame_size - 1):
            raise ValueError('the frame size must be a power of two')
        self.frame_size = frame_size
        self.init_pos = init_pos
        self.offset_bits = offset_bits
        self.count_bits = count_bits
        self.min_match = min_match

    def __repr__(self):
        return f'<{self.__class__.__name__}(frame=0x{self.frame_size:x}, bits={self.offset_bits}/{self.count_bits})>'

    def _decode(self, stream, unpacked_size):
        bits = MsbBitReader(stream.read())
        frame = bytearray(self.frame_size)
        frame_pos = self.init_pos
        frame_mask = self.frame_size - 1
        limit = unpacked_size if unpacked_size is not None else -1
        out = bytearray()

        try:
            while len(out) != limit:
                if unpacked_size is None and bits.remaining < 9:
                    break
                if bits.get_bit():
                    v = bits.get_byte()
                    out.append(v)
                    frame[frame_pos] = v
                    frame_pos = (frame_pos + 1) & frame_mask
                else:
                    offset = bits.get_bits(self.offset_bits)
                    count = bits.get_bits(self.count_bits) + self.min_match
                    for _ in range(count):
                        v = frame[offset & frame_mask]
                        offset += 1
                        out.append(v)
                        frame[frame_pos] = v
                        frame_pos = (frame_pos + 1) & frame_mask
                        if len(out) == limit:
                            break
        except DecodeFailure:
            if unpacked_size is not None:
                raise
            # open ended decoding stops at the padding bits

        return out
