'''
Codecs used to get the payload of an entry.

Every codec reads from the cursor of a Stream and returns exactly
"unpacked_size" bytes: if the input runs out before, or the data is
inconsistent, DecodeFailure is raised. An unpacked_size of None means
"decode until the input ends" and it's used for the intermediate stages of
a Chain.
'''
import logging

from ..streams import Stream
from ..exceptions import DecodeFailure


logger = logging.getLogger(__name__)


def as_stream(source):
    return source if isinstance(source, Stream) else Stream(source)


class Codec(object):
    '''Base class: subclasses implement _decode().'''

    def __init__(self):
        self.logger = logging.getLogger(f'{self.__module__}.{self.__class__.__name__}')

    def __repr__(self):
        return f'<{self.__class__.__name__}>'

    def _decode(self, stream, unpacked_size):
        raise NotImplementedError('you need to implement this in the subclass')

    def decode(self, source, unpacked_size=None):
        stream = as_stream(source)
        if unpacked_size is not None and unpacked_size < 0:
            raise DecodeFailure(message=f'negative unpacked size {unpacked_size}')

        data = self._decode(stream, unpacked_size)

        if unpacked_size is not None and len(data) != unpacked_size:
            raise DecodeFailure(
                message=f'{self!r} produced {len(data)} bytes instead of {unpacked_size}',
                offset=stream.tell())

        return bytes(data)

    def __or__(self, other):
        '''codec_a | codec_b is the chain feeding a into b'''
        return Chain(self, other)


class PassThrough(Codec):

    def _decode(self, stream, unpacked_size):
        return stream.read() if unpacked_size is None else stream.read(unpacked_size)


class Skip(Codec):
    '''Drop a fixed prefix, then pass through.'''

    def __init__(self, count):
        super().__init__()
        self.count = count

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.count})>'

    def _decode(self, stream, unpacked_size):
        if len(stream.read(self.count)) != self.count:
            raise DecodeFailure(message=f'cannot skip {self.count} bytes')

        return stream.read() if unpacked_size is None else stream.read(unpacked_size)


class Chain(Codec):
    '''Feed the output of each stage into the next one.

    "sizes" gives the output size of the intermediate stages, when omitted
    they run until the end of their input. The last stage produces the
    unpacked size passed to decode().'''

    def __init__(self, *stages, sizes=None):
        super().__init__()
        flat = []
        for stage in stages:
            flat.extend(stage.stages if isinstance(stage, Chain) and stage.sizes is None else [stage])
        if not flat:
            raise ValueError('a Chain needs at least one stage')

        self.stages = tuple(flat)
        self.sizes = tuple(sizes) if sizes is not None else None

        if self.sizes is not None and len(self.sizes) != len(self.stages) - 1:
            raise ValueError('sizes must be given for each intermediate stage')

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, ' | '.join(repr(_) for _ in self.stages))

    def _decode(self, stream, unpacked_size):
        data = stream
        last = len(self.stages) - 1
        for idx, stage in enumerate(self.stages):
            size = unpacked_size if idx == last else (self.sizes[idx] if self.sizes else None)
            self.logger.debug('stage %d %r (size %s)', idx, stage, size)
            data = stage.decode(data, size)

        return data


from .lzss import Lzss, BitLzss
from .huffman import Huffman
from .deflate import Inflate
from .scramble import Xor, RotateComplement, NibbleSwap, Not, KeyStream
from .rle import Rle16, ChunkRle


__all__ = [
    'Codec', 'PassThrough', 'Skip', 'Chain', 'as_stream',
    'Lzss', 'BitLzss', 'Huffman', 'Inflate',
    'Xor', 'RotateComplement', 'NibbleSwap', 'Not', 'KeyStream',
    'Rle16', 'ChunkRle',
]
