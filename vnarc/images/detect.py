'''
Image formats recognized by their content inside the entries.
'''
from ..exceptions import DecodeFailure
from .bmp import BmpDecoder
from .seraph import SeraphDecoder


DECODERS = (
    BmpDecoder,
    SeraphDecoder,
)


def decoder_for(data):
    '''Return the decoder of the image contained in data.'''
    for decoder in DECODERS:
        if decoder.matches(data):
            return decoder(data)

    raise DecodeFailure(message=f'unknown image format {bytes(data[:4])!r}')
