'''
Every format is exercised with a small container built in memory and
opened through the default registry, like a user would do.
'''
import struct
import zlib

import pytest

from vnarc import archive
from vnarc.common.riff import pcm_format
from vnarc.compression import NibbleSwap
from vnarc.enum import EntryType
from vnarc.exceptions import DecodeFailure, MalformedIndex
from vnarc.formats import FORMATS
from vnarc.formats.omi import DEFAULT_KEY
from vnarc.formats.pias import GRAPH_KEY, TEXT_KEY, decrypt, key_bytes
from vnarc.formats.seraphim import ArchangelScnFormat
from vnarc.registry import Registry
from vnarc.streams import Stream

from encoders import (
    bit_lzss_literals,
    complement,
    huffman_identity,
    lzss_literals,
    omi_encrypt,
    pias_encrypt,
    rle16,
    rotl8,
    seraph_literals,
)


def open_archive(data, name_hint, resolver=None):
    stream = Stream(data, name=name_hint)
    index = archive.open_container(None, stream, name_hint, resolver=resolver)
    assert index is not None

    return stream, index


def decode_all(stream, index):
    return {entry.name: archive.decode_entry(stream, index, entry) for entry in index}


# NeXAS PAC

def build_pac(files, pack_type=1):
    '''files is a list of (name, stored bytes, unpacked size).'''
    header = b'PAC\x00' + struct.pack('<ii', len(files), pack_type)
    data, records = bytearray(), bytearray()
    for name, stored, unpacked_size in files:
        offset = len(header) + len(data)
        records += name.encode('ascii').ljust(0x40, b'\x00') + struct.pack('<3I', offset, unpacked_size, len(stored))
        data += stored
    index = complement(huffman_identity(bytes(records)))

    return header + bytes(data) + index + struct.pack('<I', len(index))


def test_pac():
    text = b'stored as it is'
    packed = b'compressed with lzss'
    data = build_pac([
        ('plain.txt', text, len(text)),
        ('packed.txt', lzss_literals(packed), len(packed)),
    ])

    stream, index = open_archive(data, 'data.pac')

    assert index.format.tag == 'PAC'
    assert [_.name for _ in index] == ['plain.txt', 'packed.txt']
    assert not index[0].is_packed
    assert index[1].is_packed
    assert decode_all(stream, index) == {'plain.txt': text, 'packed.txt': packed}
    assert [_.size for _ in archive.list_entries(index)] == [len(text), len(packed)]


def test_pac_without_name():
    data = build_pac([('a.txt', b'a', 1)])

    assert archive.probe(data).format.tag == 'PAC'


def test_pac_broken_index():
    data = build_pac([('a.txt', b'a', 1)])
    broken = data[:-4] + struct.pack('<I', 0xFFFFFF)

    with pytest.raises(MalformedIndex):
        archive.open_container(None, broken, 'data.pac')


def test_pac_decode_failure_names_the_entry():
    data = build_pac([('bad.bin', lzss_literals(b'short'), 50)])
    stream, index = open_archive(data, 'data.pac')

    with pytest.raises(DecodeFailure) as excinfo:
        archive.decode_entry(stream, index, index[0])

    assert excinfo.value.tag == 'PAC'
    assert excinfo.value.entry == 'bad.bin'


# SystemAQUA CATF

def encrypt_type(text):
    return complement(bytes(rotl8(_, 4) for _ in text))


def lze(file_type, payload, prefix=b''):
    head = b'LZe4' + b'\x00' * 4 + struct.pack('<I', len(payload)) + encrypt_type(file_type)

    return head.ljust(0x40, b'\x00') + prefix + bit_lzss_literals(payload)


def swap16(value):
    return struct.unpack('>H', struct.pack('<H', value))[0]


def rotl32(value, count):
    return ((value << count) | (value >> (32 - count))) & 0xFFFFFFFF


def lze_bitmap(width, height, pixels):
    h1 = swap16(width) | swap16(height) << 16
    # 24 bits per pixel, nibble rotated
    h2 = 0x81
    h3 = rotl32(len(pixels), 16)
    prefix = b'\x00' * 4 + struct.pack('<3I', *(~_ & 0xFFFFFFFF for _ in (h1, h2, h3)))
    head = b'LZe4' + b'\x00' * 4 + struct.pack('<I', 54 + len(pixels)) + encrypt_type(b'BMP')

    return head.ljust(0x40, b'\x00') + prefix + bit_lzss_literals(pixels)


def build_catf(entries):
    header_size = 0x14
    data = bytearray()
    records = bytearray()
    for payload in entries:
        records += struct.pack('<2I', len(payload), header_size + len(data))
        data += payload
    index_offset = header_size + len(data)

    return b'CATF' + struct.pack('<3Ii', 0, index_offset, 0, len(entries)) + bytes(data) + bytes(records)


# bottom up row of two pixels padded to 8 bytes
BITMAP_ROW = b'\x01\x02\x03\x04\x05\x06\x00\x00'


def test_catf():
    riff = b'RIFF' + b'\x00' * 12
    wave = b'RIFF packed wave'
    midi = b'MThd packed midi'
    data = build_catf([riff, lze(b'WAV', wave), lze(b'MID', midi), lze_bitmap(2, 1, BITMAP_ROW)])

    stream, index = open_archive(data, 'data.dat')

    assert index.format.tag == 'DAT/CATF'
    assert [_.name for _ in index] == ['data#0000', 'data#0001', 'data#0002.mid', 'data#0003']
    assert [_.type for _ in index] == [EntryType.AUDIO] * 3 + [EntryType.IMAGE]
    assert not index[0].is_packed
    assert index[1].unpacked_size == len(wave)

    assert archive.decode_entry(stream, index, index[0]) == riff
    assert archive.decode_entry(stream, index, index[1]) == wave
    assert archive.decode_entry(stream, index, index[2]) == midi

    bitmap = archive.decode_entry(stream, index, index[3])
    assert bitmap[:2] == b'BM'
    assert len(bitmap) == 54 + len(BITMAP_ROW)

    image = archive.decode_image(stream, index, index[3])
    assert (image.width, image.height) == (2, 1)
    assert image.pixels == BITMAP_ROW[:6]


def test_catf_index_out_of_bounds():
    data = build_catf([b'RIFF' + b'\x00' * 12])
    broken = data[:8] + struct.pack('<I', len(data) + 0x100) + data[12:]

    assert archive.probe(broken, 'data.dat') is None


# Aaru FL4

FL4_DATA_OFFSET = 0x20


def build_fl4(files):
    data = bytearray()
    records = bytearray()
    for name, payload in files:
        encoded = name.encode('ascii')
        records += struct.pack('<2IB', len(data), len(payload), len(encoded)) + encoded
        data += payload
    index = struct.pack('<i', 4) + bytes(records) + struct.pack('<I', 0xFFFFFFFF)
    index_offset = FL4_DATA_OFFSET + len(data)

    header = b'FL4.0' + b'\x00' * 3 + struct.pack('<HII', FL4_DATA_OFFSET, len(index), index_offset)
    header += b'\x00' * 4 + struct.pack('<HH', 0x1234, 0)

    return header.ljust(FL4_DATA_OFFSET, b'\x00') + bytes(data) + index


def test_fl4():
    plain = b'plain entry'
    packed = b'lzss packed entry'
    rle_header = b'RD1.0\x00' + struct.pack('<HHi', 0x0E, 0, 3)
    rle_chunks = b'\x00\x03abc' + b'\x04z' + b'\x03\x05\x00q'
    data = build_fl4([
        ('plain.txt', plain),
        ('packed.txt', b'PD' + b'\x00' * 4 + struct.pack('<I', len(packed)) + lzss_literals(packed)),
        ('rle.bin', rle_header + rle_chunks),
    ])

    stream, index = open_archive(data, 'data.fl4')

    assert index.format.tag == 'FL4/AARU'
    assert index.base_offset == FL4_DATA_OFFSET
    assert index.find('plain.txt').offset == FL4_DATA_OFFSET
    assert decode_all(stream, index) == {
        'plain.txt': plain,
        'packed.txt': packed,
        'rle.bin': b'abczzzzqqqqq',
    }
    assert index.find('rle.bin').unpacked_size == 12
    assert index.find('packed.txt').is_resolved


def test_fl4_entry_out_of_bounds():
    data = build_fl4([('plain.txt', b'plain entry')])
    # grow the size of the only record
    position = data.index(b'plain.txt') - 5
    broken = data[:position] + struct.pack('<I', 0x1000) + data[position + 4:]

    with pytest.raises(MalformedIndex):
        archive.open_container(None, broken, 'data.fl4')


# Seraphim and Archangel SCNPAC.DAT

LZ_SCRIPT = struct.pack('<i', 6) + b'\x02abc' + b'\x80\x42'


def test_seraphim_scripts():
    deflated = struct.pack('<I', 1) + zlib.compress(b'deflated script')
    stored = struct.pack('<I', 2) + b'text'
    payloads = [LZ_SCRIPT, deflated, stored]

    offsets = [20]
    for payload in payloads:
        offsets.append(offsets[-1] + len(payload))
    data = struct.pack('<i', 3) + struct.pack('<4I', *offsets) + b''.join(payloads)

    stream, index = open_archive(data, 'SCNPAC.DAT')

    assert index.format.tag == 'SERAPH/SCN'
    assert [_.name for _ in index] == ['00000', '00001', '00002']
    assert all(_.type is EntryType.SCRIPT for _ in index)
    assert decode_all(stream, index) == {
        '00000': b'abcabc',
        '00001': b'deflated script',
        '00002': stored,
    }


def test_seraphim_needs_the_name():
    data = struct.pack('<i', 1) + struct.pack('<2I', 12, 16) + b'text'

    assert archive.probe(data, 'other.dat') is None
    assert archive.probe(data, 'scnpac.dat').format.tag == 'SERAPH/SCN'


def test_seraphim_garbage_lz_is_stored():
    # declares 100 bytes but ends early
    garbage = struct.pack('<i', 100) + b'\x02abc'
    data = struct.pack('<i', 1) + struct.pack('<2I', 12, 12 + len(garbage)) + garbage
    stream, index = open_archive(data, 'SCNPAC.DAT')

    assert archive.decode_entry(stream, index, index[0]) == garbage


def test_archangel_scripts():
    stored = struct.pack('<I', 2) + b'text'
    # two sizes: the data starts right after them
    data = struct.pack('<3I', 8, len(stored), len(LZ_SCRIPT)) + stored + LZ_SCRIPT
    registry = Registry([ArchangelScnFormat()])

    index = archive.open_container(registry, data, 'SCNPAC.DAT')

    assert index.format.tag == 'SCN/ARCH'
    assert [_.offset for _ in index] == [12, 12 + len(stored)]
    assert archive.decode_entry(data, index, index[0]) == stored
    assert archive.decode_entry(data, index, index[1]) == b'abcabc'


def test_archangel_empty_entry():
    data = struct.pack('<3I', 8, 0, 4) + b'text'

    with pytest.raises(MalformedIndex):
        archive.open_container(Registry([ArchangelScnFormat()]), data, 'SCNPAC.DAT')


# Mina PAK

def test_mina_bitmaps():
    plain = struct.pack('<HHBI', 2, 1, 0, 6) + b'\x10\x20\x30\x40\x50\x60'
    # one opaque pixel and one transparent
    alpha = b'\xff\x01\x10\x20\x30\x00\x01'
    packed = struct.pack('<HHBI', 2, 1, 1, len(alpha)) + alpha
    data = b'A.BMP\x00' + plain + b'B.BMP\x00' + packed

    stream, index = open_archive(data, 'GRAPH.PAK')

    assert index.format.tag == 'PAK/MINA/BMP'
    assert [(_.name, _.offset, _.size) for _ in index] == [('A.BMP', 6, 15), ('B.BMP', 27, 16)]
    assert archive.decode_entry(stream, index, index[0]) == plain

    image = archive.decode_image(stream, index, index[0])
    assert image.channel_order == 'RGB'
    assert image.pixels == b'\x10\x20\x30\x40\x50\x60'

    image = archive.decode_image(stream, index, index[1])
    assert image.channel_order == 'BGRA'
    assert image.pixels == b'\x30\x20\x10\xff\x00\x00\x00\x00'


def test_mina_waves():
    fmt = pcm_format(1, 22050, 8)
    samples = b'\x80\x81\x82\x83'
    record = struct.pack('<I', len(samples)) + b'SE01.WAV\x00' + struct.pack('<I', len(fmt)) + fmt + samples
    data = record + record.replace(b'SE01', b'SE02')

    stream, index = open_archive(data, 'VOICE.PAK')

    assert index.format.tag == 'PAK/MINA/WAV'
    assert [_.name for _ in index] == ['SE01.WAV', 'SE02.WAV']

    wave = archive.decode_entry(stream, index, index[1])
    assert wave[:4] == b'RIFF' and wave[8:16] == b'WAVEfmt '
    assert struct.unpack_from('<I', wave, 4)[0] == len(wave) - 8
    assert wave[20:36] == fmt
    assert wave[36:44] == b'data' + struct.pack('<I', len(samples))
    assert wave[44:] == samples
    assert len(wave) == index[1].unpacked_size


def test_mina_scripts():
    lines = [b'hello', b'mina']
    body = b''.join(bytes([len(_) - 1, 0, 0]) + NibbleSwap().scramble(_) for _ in lines)
    data = b'START.SPT\x00' + struct.pack('<I', len(body)) + body

    stream, index = open_archive(data, 'SCRIPT.PAK')

    assert index.format.tag == 'PAK/MINA/SPT'
    assert archive.decode_entry(stream, index, index[0]) == b'hello\r\nmina\r\n'


def test_mina_unknown_flavour():
    data = b'A.TXT\x00' + struct.pack('<I', 4) + b'text'

    assert archive.probe(data, 'DATA.PAK') is None


# Pias DAT

def pias_image(width, height, words):
    pixels = struct.pack(f'<{len(words)}H', *words)

    return struct.pack('<IHH', len(pixels), width, height) + pixels


def test_pias_graph(make_resolver):
    # a red pixel repeated by a back reference, then a blue one
    first = pias_image(2, 1, [0x7C00, 0x8001])
    second = pias_image(1, 1, [0x001F])
    data = first + second
    text = b'\x68\x02\x01' + struct.pack('<I', 99) + b'\x68\x01\x01' + struct.pack('<I', len(first))

    stream, index = open_archive(data, 'graph.dat', resolver=make_resolver({'TEXT.DAT': text}))

    assert index.format.tag == 'DAT/PIAS'
    assert [(_.name, _.offset) for _ in index] == [('0000', len(first)), ('0001', 0)]
    assert all(_.type is EntryType.IMAGE for _ in index)

    image = archive.decode_image(stream, index, index.find('0001'))
    assert image.pixels == b'\x00\x00\xff' * 2
    assert archive.decode_image(stream, index, index.find('0000')).pixels == b'\xff\x00\x00'


def test_pias_graph_needs_the_text_index(make_resolver):
    data = pias_image(1, 1, [0x001F])

    assert archive.probe(data, 'graph.dat') is None
    assert archive.probe(data, 'graph.dat', resolver=make_resolver({})) is None


def test_pias_unknown_opcode(make_resolver):
    data = pias_image(1, 1, [0x001F])
    stream, index = open_archive(data, 'graph.dat', resolver=make_resolver({'text.dat': b'\x01\x02\x03'}))

    assert [(_.name, _.offset) for _ in index] == [('0000', 0)]


def test_pias_voices():
    data = struct.pack('<I', 3) + b'abc' + struct.pack('<I', 2) + b'de'

    stream, index = open_archive(data, 'voice.dat')

    assert [_.type for _ in index] == [EntryType.AUDIO] * 2
    wave = archive.decode_entry(stream, index, index[0])
    assert wave[:4] == b'RIFF'
    assert struct.unpack_from('<HI', wave, 22) == (1, 22050)
    assert wave[44:] == b'abc'
    assert len(wave) == index[0].unpacked_size


def test_pias_sounds_are_stereo(make_resolver):
    data = struct.pack('<I', 2) + b'ab'
    text = b'\x68\x02\x01' + struct.pack('<I', 0)

    stream, index = open_archive(data, 'SOUND.DAT', resolver=make_resolver({'text.dat': text}))

    wave = archive.decode_entry(stream, index, index[0])
    assert struct.unpack_from('<H', wave, 22)[0] == 2


# OMI scrdat

def test_omi():
    picture = rle16([0x4241, (0x4443, 3)])
    readme = b'hello'
    plain = b'2\npic.bmp\n%d\nreadme.txt\n%d\n' % (len(picture), len(readme)) + picture + readme
    data = omi_encrypt(plain, DEFAULT_KEY)

    stream, index = open_archive(data, 'scrdat')

    assert index.format.tag == 'DAT/OMI'
    assert [_.name for _ in index] == ['pic.bmp', 'readme.txt']
    assert index.find('pic.bmp').type is EntryType.IMAGE
    assert index.find('pic.bmp').offset == index.base_offset == 26

    assert decode_all(stream, index) == {'pic.bmp': b'ABCDCDCD', 'readme.txt': readme}
    assert index.find('pic.bmp').unpacked_size == 8


def test_omi_not_an_index():
    data = omi_encrypt(b'not a count\n', DEFAULT_KEY)

    assert archive.probe(data, 'scrdat') is None


def test_omi_truncated_index():
    data = omi_encrypt(b'2\npic.bmp\n14\n', DEFAULT_KEY)

    with pytest.raises(MalformedIndex):
        archive.open_container(None, data, 'scrdat')


def test_pac_insane_count():
    data = build_pac([('a.txt', b'a', 1)])
    bogus = data[:4] + struct.pack('<i', 0x7FFFFFFF) + data[8:]

    assert archive.probe(bogus, 'data.pac') is None


def test_seraphim_script_of_a_single_word():
    script = b'\x01\x00\x00\x00'
    data = struct.pack('<i', 1) + struct.pack('<2I', 12, 12 + len(script)) + script
    stream, index = open_archive(data, 'SCNPAC.DAT')

    assert archive.decode_entry(stream, index, index[0]) == script
    assert index[0].unpacked_size == 4


def test_fl4_entry_smaller_than_its_header():
    data = build_fl4([
        ('short.pd2', b'PD2A' + b'\x00' * 4),
        ('short.pd', b'PD\x00\x00'),
        ('short.rd', b'RD1.0\x00\x00\x00'),
    ])
    stream, index = open_archive(data, 'data.fl4')

    for entry in index:
        with pytest.raises(DecodeFailure) as excinfo:
            archive.decode_entry(stream, index, entry)
        assert excinfo.value.entry == entry.name


def test_seraph_image_inside_an_archive():
    picture = b'CX' + struct.pack('<HhhHHi', 0, 0, 0, 1, 1, 5) + seraph_literals(b'\x01\x02\x03\x04')
    stream, index = open_archive(build_pac([('title.cts', picture, len(picture))]), 'data.pac')

    assert index[0].type is EntryType.IMAGE

    image = archive.decode_image(stream, index, index[0])
    assert image.channel_order == 'BGRA'
    assert image.pixels == b'\x01\x02\x03\x04'


def test_image_entry_of_unknown_format():
    stream, index = open_archive(build_pac([('title.bmp', b'GIF89a', 6)]), 'data.pac')

    with pytest.raises(DecodeFailure) as excinfo:
        archive.decode_image(stream, index, index[0])

    assert excinfo.value.tag == 'PAC'
    assert excinfo.value.entry == 'title.bmp'


def test_truncated_bitmap_entry():
    stream, index = open_archive(build_pac([('title.bmp', b'BM\x00\x00', 4)]), 'data.pac')

    with pytest.raises(DecodeFailure) as excinfo:
        archive.decode_image(stream, index, index[0])

    assert excinfo.value.entry == 'title.bmp'


def test_pias_closes_the_text_index(tmp_path):
    (tmp_path / 'text.dat').write_bytes(b'\x68\x01\x01' + struct.pack('<I', 0))
    opened = []

    def resolver(name):
        path = tmp_path / name.lower()
        if not path.exists():
            return None
        opened.append(Stream(str(path)))
        return opened[-1]

    stream, index = open_archive(pias_image(1, 1, [0x001F]), 'graph.dat', resolver=resolver)

    assert index.format.tag == 'DAT/PIAS'
    assert opened
    assert all(_.obj.closed for _ in opened)


# Pias encrypted DAT

TEXT_SEED = 0x02F3A62B


def pias_encrypted_image(seed, width, height, words):
    return struct.pack('<I', seed) + pias_encrypt(pias_image(width, height, words), seed, *GRAPH_KEY)


def pias_encrypted_text(plain, seed=TEXT_SEED):
    return struct.pack('<I', seed) + pias_encrypt(plain, seed, *TEXT_KEY)


def test_pias_key_stream():
    assert key_bytes(0, 4, GRAPH_KEY) == bytes.fromhex('913d431e')
    assert key_bytes(0, 4, TEXT_KEY) == bytes.fromhex('a147f875')
    assert decrypt(bytes.fromhex('913d431e'), 0, GRAPH_KEY) == b'\x00' * 4
    assert decrypt(b'', 0, GRAPH_KEY) == b''


def test_pias_encrypted_graph(make_resolver):
    # blue, red, then references to the pixel 2 back and to the one above
    words = [0x001F, 0xDC00, 0x2002, 0x2020]
    first = pias_encrypted_image(0x1234, 2, 2, words)
    second = pias_encrypted_image(0, 1, 1, [0xDC00])
    third = pias_encrypted_image(0xCAFEBABE, 1, 1, [0x001F])
    data = first + second + third
    text = pias_encrypted_text(b'\x68\x01\x02' + struct.pack('<2I', len(first), 0))

    stream, index = open_archive(data, 'graph.dat', resolver=make_resolver({'text.dat': text}))

    assert index.format.tag == 'DAT/PIAS/ENC'
    assert [(_.name, _.offset) for _ in index] == [
        ('0000', len(first)), ('0001', 0), ('0002_', len(first) + len(second))]
    assert all(_.type is EntryType.IMAGE for _ in index)
    assert archive.decode_entry(stream, index, index.find('0001')) == pias_image(2, 2, words)

    image = archive.decode_image(stream, index, index.find('0001'))
    assert (image.width, image.height) == (2, 2)
    assert image.pixels == (b'\xff\x00\x00' + b'\x00\x00\xff') * 2
    assert archive.decode_image(stream, index, index.find('0000')).pixels == b'\x00\x00\xff'
    assert archive.decode_image(stream, index, index.find('0002_')).pixels == b'\xff\x00\x00'


def test_pias_encrypted_sounds(make_resolver):
    data = struct.pack('<I', 4) + b'abcd'
    text = pias_encrypted_text(b'\x68\x02\x01' + struct.pack('<I', 0), seed=0)

    stream, index = open_archive(data, 'sound.dat', resolver=make_resolver({'text.dat': text}))

    assert index.format.tag == 'DAT/PIAS/ENC'
    wave = archive.decode_entry(stream, index, index[0])
    # 16 bits stereo
    assert struct.unpack_from('<HHIIHH', wave, 20) == (1, 2, 22050, 88200, 4, 16)
    assert wave[44:] == b'abcd'
    assert len(wave) == index[0].unpacked_size


def test_pias_plain_text_index_is_not_encrypted(make_resolver):
    text = b'\x68\x02\x01' + struct.pack('<I', 0)
    stream, index = open_archive(struct.pack('<I', 2) + b'ab', 'sound.dat', resolver=make_resolver({'text.dat': text}))

    assert index.format.tag == 'DAT/PIAS'


# decoded sizes

def sample_containers():
    '''(data, name, auxiliary files, registry) of one container per format.'''
    scripts = [
        LZ_SCRIPT,
        struct.pack('<i', 12) + b'\x0b' + b'abcdefghijkl',
        struct.pack('<I', 1) + zlib.compress(b'deflated script'),
        struct.pack('<I', 2) + b'text',
        b'\x01\x00\x00\x00',
        struct.pack('<i', 100) + b'\x02abc',
    ]
    offsets = [4 + 4 * (len(scripts) + 1)]
    for script in scripts:
        offsets.append(offsets[-1] + len(script))
    seraphim = struct.pack('<i', len(scripts)) + struct.pack(f'<{len(offsets)}I', *offsets) + b''.join(scripts)

    archangel = [struct.pack('<I', 2) + b'text', LZ_SCRIPT, b'\x01\x00\x00\x00']
    archangel = struct.pack('<4I', 12, *(len(_) for _ in archangel)) + b''.join(archangel)

    fmt = pcm_format(1, 22050, 8)
    wave = struct.pack('<I', 4) + b'SE01.WAV\x00' + struct.pack('<I', len(fmt)) + fmt + b'\x80\x81\x82\x83'
    script = bytes([4, 0, 0]) + NibbleSwap().scramble(b'hello')

    picture = rle16([0x4241, (0x4443, 3)])
    omi = b'2\npic.bmp\n%d\nreadme.txt\n%d\n' % (len(picture), 5) + picture + b'hello'

    first = pias_image(2, 1, [0x7C00, 0x8001])
    encrypted = pias_encrypted_image(7, 1, 1, [0x001F])

    return [
        (build_pac([('plain.txt', b'stored', 6), ('packed.txt', lzss_literals(b'compressed'), 10)]),
         'data.pac', {}, None),
        (build_catf([b'RIFF' + b'\x00' * 12, lze(b'WAV', b'RIFF packed wave'), lze_bitmap(2, 1, BITMAP_ROW)]),
         'data.dat', {}, None),
        (build_fl4([
            ('plain.txt', b'plain entry'),
            ('packed.txt', b'PD' + b'\x00' * 4 + struct.pack('<I', 6) + lzss_literals(b'packed')),
            ('rle.bin', b'RD1.0\x00' + struct.pack('<HHi', 0x0E, 0, 1) + b'\x04z'),
         ]), 'data.fl4', {}, None),
        (seraphim, 'SCNPAC.DAT', {}, None),
        (archangel, 'SCNPAC.DAT', {}, Registry([ArchangelScnFormat()])),
        (b'A.BMP\x00' + struct.pack('<HHBI', 1, 1, 0, 3) + b'\x10\x20\x30', 'GRAPH.PAK', {}, None),
        (wave, 'VOICE.PAK', {}, None),
        (b'START.SPT\x00' + struct.pack('<I', len(script)) + script, 'SCRIPT.PAK', {}, None),
        (encrypted, 'graph.dat', {'text.dat': pias_encrypted_text(b'\x68\x01\x01' + struct.pack('<I', 0))}, None),
        (first + pias_image(1, 1, [0x001F]), 'graph.dat',
         {'text.dat': b'\x68\x01\x01' + struct.pack('<I', len(first))}, None),
        (struct.pack('<I', 3) + b'abc', 'voice.dat', {}, None),
        (omi_encrypt(omi, DEFAULT_KEY), 'scrdat', {}, None),
    ]


def test_decoded_sizes_match_the_entries(make_resolver):
    tags = set()
    for data, name_hint, files, registry in sample_containers():
        stream = Stream(data, name=name_hint)
        index = archive.open_container(registry, stream, name_hint, resolver=make_resolver(files))
        tags.add(index.format.tag)

        summaries = archive.list_entries(index, stream)
        for entry, summary in zip(index, summaries):
            decoded = archive.decode_entry(stream, index, entry)
            assert len(decoded) == entry.unpacked_size == summary.size, (index.format.tag, entry.name)

    assert tags == set(_.tag for _ in FORMATS)


def test_listing_resolves_the_script_sizes():
    script = bytes([4, 0, 0]) + NibbleSwap().scramble(b'hello')
    data = b'START.SPT\x00' + struct.pack('<I', len(script)) + script
    stream, index = open_archive(data, 'SCRIPT.PAK')

    assert [_.size for _ in archive.list_entries(index, stream)] == [7]
    assert archive.decode_entry(stream, index, index[0]) == b'hello\r\n'
