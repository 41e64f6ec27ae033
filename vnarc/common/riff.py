'''
RIFF/WAVE headers for the containers storing bare PCM data.

    'RIFF' size 'WAVE'
    'fmt ' size WAVEFORMAT
    'data' size samples...
'''
from ..core import Chunk
from .. import fields


class RiffHeader(Chunk):
    magic     = fields.StringField(4, default=b'RIFF', is_magic=True)
    riff_size = fields.StructField('I')
    form_type = fields.StringField(4, default=b'WAVE', is_magic=True)


class RiffChunkHeader(Chunk):
    chunk_id   = fields.StringField(4)
    chunk_size = fields.StructField('I')


class PcmFormat(Chunk):
    format_tag               = fields.StructField('H', default=1)
    channels                 = fields.StructField('H', default=1)
    samples_per_second       = fields.StructField('I', default=22050)
    average_bytes_per_second = fields.StructField('I')
    block_align              = fields.StructField('H')
    bits_per_sample          = fields.StructField('H', default=8)


def pcm_format(channels, sample_rate, bits_per_sample):
    '''Return the packed WAVEFORMAT of plain PCM data.'''
    fmt = PcmFormat()
    block_align = channels * bits_per_sample // 8
    fmt.channels = channels
    fmt.samples_per_second = sample_rate
    fmt.bits_per_sample = bits_per_sample
    fmt.block_align = block_align
    fmt.average_bytes_per_second = sample_rate * block_align

    return fmt.pack()


def wave_header(fmt, data_size):
    '''Headers preceding "data_size" bytes of samples described by "fmt".'''
    riff = RiffHeader()
    riff.riff_size = 4 + 8 + len(fmt) + 8 + data_size

    fmt_header = RiffChunkHeader()
    fmt_header.chunk_id = b'fmt '
    fmt_header.chunk_size = len(fmt)

    data_header = RiffChunkHeader()
    data_header.chunk_id = b'data'
    data_header.chunk_size = data_size

    return riff.pack() + fmt_header.pack() + bytes(fmt) + data_header.pack()
