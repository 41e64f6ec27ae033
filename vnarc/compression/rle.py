import struct

from . import Codec
from ..exceptions import DecodeFailure


class Rle16(Codec):
    '''Run length encoding over 16 bits words.

    The stream starts with the number of words (i32) and the marker word;
    a marker is followed by the word to repeat and by the number of
    repetitions (u16).'''

    HEADER = struct.Struct('<iH')

    @classmethod
    def unpacked_size_of(cls, header):
        '''Size declared by the first bytes of a packed stream.'''
        if len(header) < 4:
            raise DecodeFailure(message='truncated RLE header')
        size = struct.unpack_from('<i', header)[0]
        if size < 0:
            raise DecodeFailure(message=f'negative RLE size {size}')

        return size * 2

    def _decode(self, stream, unpacked_size):
        header = stream.read(self.HEADER.size)
        if len(header) != self.HEADER.size:
            raise DecodeFailure(message='truncated RLE header')
        _, marker = self.HEADER.unpack(header)
        total = self.unpacked_size_of(header)

        if unpacked_size is not None and total != unpacked_size:
            raise DecodeFailure(message=f'RLE stream declares {total} bytes, expected {unpacked_size}')

        data = stream.read()
        src = 0
        out = bytearray()
        while len(out) < total:
            if src + 2 > len(data):
                raise DecodeFailure(message='RLE stream is truncated', offset=src)
            word = data[src:src + 2]
            src += 2
            if struct.unpack('<H', word)[0] != marker:
                out += word
                continue

            if src + 4 > len(data):
                raise DecodeFailure(message='RLE run is truncated', offset=src)
            value = data[src:src + 2]
            count = struct.unpack_from('<H', data, src + 2)[0]
            src += 4
            # a zero count still emits the word itself
            out += value * max(count, 1)

        if len(out) != total:
            raise DecodeFailure(message=f'RLE run overflows the {total} bytes of output')

        return out


class ChunkRle(Codec):
    '''Byte run length encoding made of a fixed number of chunks.

    Each chunk starts with a control byte: 0 is followed by a one byte
    count of literals, 1 means 256 literals, 3 is followed by a u16 count
    of repetitions, any other value is the count itself; a repetition is
    followed by the byte to repeat.'''

    def __init__(self, chunks):
        super().__init__()
        self.chunks = chunks

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.chunks})>'

    def _iter_chunks(self, data):
        '''Yield (position, count, is_literal) for each chunk.'''
        src = 0
        for idx in range(self.chunks):
            if src >= len(data):
                raise DecodeFailure(message=f'missing chunk #{idx}', offset=src)
            ctl = data[src]
            src += 1
            if ctl <= 1:
                if ctl == 0:
                    if src >= len(data):
                        raise DecodeFailure(message='truncated literal count', offset=src)
                    count = data[src]
                    src += 1
                else:
                    count = 0x100
                if src + count > len(data):
                    raise DecodeFailure(message='truncated literals', offset=src)
                yield src, count, True
                src += count
            else:
                if ctl == 3:
                    if src + 2 > len(data):
                        raise DecodeFailure(message='truncated repeat count', offset=src)
                    count = struct.unpack_from('<H', data, src)[0]
                    src += 2
                else:
                    count = ctl
                if src >= len(data):
                    raise DecodeFailure(message='missing repeated byte', offset=src)
                yield src, count, False
                src += 1

    def measure(self, data):
        '''Number of bytes the chunks expand to.'''
        return sum(count for _, count, _ in self._iter_chunks(data))

    def _decode(self, stream, unpacked_size):
        data = stream.read()
        out = bytearray()
        for src, count, is_literal in self._iter_chunks(data):
            if is_literal:
                out += data[src:src + count]
            else:
                out += bytes([data[src]]) * count
            if unpacked_size is not None and len(out) >= unpacked_size:
                break

        return out if unpacked_size is None else out[:unpacked_size]
