import zlib

from . import Codec
from ..exceptions import DecodeFailure


class Inflate(Codec):
    '''zlib wrapped deflate stream; use wbits=-15 for a raw one.'''

    def __init__(self, wbits=zlib.MAX_WBITS):
        super().__init__()
        self.wbits = wbits

    def _decode(self, stream, unpacked_size):
        decompressor = zlib.decompressobj(self.wbits)
        try:
            if unpacked_size is None:
                data = decompressor.decompress(stream.read())
                data += decompressor.flush()
            else:
                # one byte more so that an oversized stream is detected
                data = decompressor.decompress(stream.read(), unpacked_size + 1)
        except zlib.error as e:
            raise DecodeFailure(message=f'inflate failed: {e}') from e

        if unpacked_size is not None and len(data) < unpacked_size and not decompressor.eof:
            raise DecodeFailure(message='deflate stream is truncated')

        return data


def looks_like_zlib(header):
    '''True if the two bytes are a valid zlib header (CMF, FLG).'''
    if len(header) < 2:
        return False
    cmf, flg = header[0], header[1]

    return cmf & 0x0F == 8 and (cmf << 8 | flg) % 31 == 0
