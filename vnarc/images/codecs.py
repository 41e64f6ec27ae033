'''
Compression schemes that only appear inside pixel payloads.

All of them read from the cursor of a Stream and build the output a byte
at a time: the back references can overlap the bytes being written, so
a block copy would read stale data.
'''
import logging
import struct

from ..exceptions import DecodeFailure


logger = logging.getLogger(__name__)


def _read_byte(stream):
    b = stream.read_byte()
    if b is None:
        raise DecodeFailure(message='pixel stream is truncated', offset=stream.tell())

    return b


def _read_exact(stream, size):
    data = stream.read(size)
    if len(data) != size:
        raise DecodeFailure(message=f'pixel stream is truncated, needed {size} bytes', offset=stream.tell())

    return data


def copy_overlapped(output, src, count):
    '''Append "count" bytes starting from output[src], the source can
    reach the bytes appended by this same copy.'''
    for idx in range(count):
        output.append(output[src + idx])


def unpack_peek_rle(stream, size):
    '''A byte equal to the following one starts a run: the second copy is
    consumed, then a count byte says how many times (count + 1) the value
    is emitted. Any other byte is emitted once.'''
    output = bytearray()
    while len(output) < size:
        value = _read_byte(stream)
        if stream.peek_byte() == value:
            stream.read_byte()
            count = _read_byte(stream) + 1
            if len(output) + count > size:
                raise DecodeFailure(message=f'run of {count} bytes overflows the output', offset=stream.tell())
            output += bytes([value]) * count
        else:
            output.append(value)

    return bytes(output)


def unpack_overlapped(stream, pixel_count, pixel_size=3):
    '''Bit flags (MSB first, a new flag byte every 8 flags) select between
    a literal pixel (0) and a back reference (1).

    A back reference is a little endian word: the low 4 bits are the count
    minus one, the remaining bits the distance, both in pixels.'''
    output = bytearray()
    size = pixel_count * pixel_size
    flags = 0
    remaining_flags = 0

    while len(output) < size:
        if remaining_flags == 0:
            flags = _read_byte(stream)
            remaining_flags = 8
        flag = flags & 0x80
        flags = (flags << 1) & 0xFF
        remaining_flags -= 1

        if not flag:
            output += _read_exact(stream, pixel_size)
            continue

        code = struct.unpack('<H', _read_exact(stream, 2))[0]
        count = ((code & 0x0F) + 1) * pixel_size
        distance = (code >> 4) * pixel_size
        if distance == 0 or distance > len(output):
            raise DecodeFailure(message=f'back reference at distance {code >> 4} outside of the output', offset=stream.tell())
        if len(output) + count > size:
            raise DecodeFailure(message='back reference overflows the output', offset=stream.tell())

        copy_overlapped(output, len(output) - distance, count)

    return bytes(output)


def unpack_word_backref(stream, pixel_count):
    '''16 bits pixels: a word with the high bit set is a back reference
    with ((word >> 12) & 7) + 2 pixels at a distance of (word & 0xFFF)
    pixels, otherwise it's a literal pixel.'''
    output = bytearray()
    size = pixel_count * 2

    while len(output) < size:
        word_raw = _read_exact(stream, 2)
        word = struct.unpack('<H', word_raw)[0]
        if not word & 0x8000:
            output += word_raw
            continue

        count = (((word >> 12) & 7) + 2) * 2
        distance = (word & 0xFFF) * 2
        if distance == 0 or distance > len(output):
            raise DecodeFailure(message=f'back reference at distance {word & 0xFFF} outside of the output', offset=stream.tell())

        # the last run is clipped to the image
        copy_overlapped(output, len(output) - distance, min(count, size - len(output)))

    return bytes(output)


def expand_bitmask(stream, width, height, rgb_map, alpha_map, alpha=None):
    '''Pixels are present only where the masks have a bit set (LSB first).

    Without an alpha table the result is BGR and a pixel is read when the
    rgb bit is set and the alpha one is clear. With it the result is BGRA:
    a pixel is read when any of the two bits is set, its alpha comes from
    the table (one value every three bytes) when the alpha bit is set,
    otherwise it's opaque.'''
    plane_size = width * height
    masks = (plane_size + 7) // 8
    if len(rgb_map) < masks or len(alpha_map) < masks:
        raise DecodeFailure(message=f'bit masks shorter than {masks} bytes')

    pixel_size = 3 if alpha is None else 4
    output = bytearray(plane_size * pixel_size)
    alpha_src = 0

    for idx in range(plane_size):
        bit = 1 << (idx & 7)
        has_alpha = alpha_map[idx >> 3] & bit
        has_rgb = rgb_map[idx >> 3] & bit
        dst = idx * pixel_size

        if alpha is None:
            if not has_alpha and has_rgb:
                output[dst:dst + 3] = _read_exact(stream, 3)
            continue

        if has_alpha or has_rgb:
            output[dst:dst + 3] = _read_exact(stream, 3)
            if has_alpha:
                if alpha_src >= len(alpha):
                    raise DecodeFailure(message='alpha table exhausted')
                output[dst + 3] = alpha[alpha_src]
                alpha_src += 3
            else:
                output[dst + 3] = 0xFF

    return bytes(output)


def unpack_alpha_rle(stream, pixel_count):
    '''Runs of (alpha, count): a pixel with non zero alpha is followed by
    its R, G, B bytes, a transparent one has no data. The result is BGRA.'''
    output = bytearray(pixel_count * 4)
    alpha = 0
    count = 0

    for idx in range(pixel_count):
        count -= 1
        if count <= 0:
            alpha = _read_byte(stream)
            count = _read_byte(stream)
        if alpha:
            red, green, blue = _read_exact(stream, 3)
            dst = idx * 4
            output[dst:dst + 4] = bytes((blue, green, red, alpha))

    return bytes(output)


# distance in rows of the row copies of the Seraphim schemes, by mode
SERAPH_ROWS = (0, 1, 2, 4)


def _put(output, dst, data):
    if dst + len(data) > len(output):
        raise DecodeFailure(message=f'{len(data)} bytes at {dst} overflow the output')
    output[dst:dst + len(data)] = data


def copy_within(output, src, dst, count):
    '''Forward copy inside a buffer of fixed size: the source can reach the
    bytes written by this same copy.'''
    if src < 0 or dst + count > len(output):
        raise DecodeFailure(message=f'copy of {count} bytes from {src} to {dst} outside of the output')
    for idx in range(count):
        output[dst + idx] = output[src + idx]


def _seraph_common(stream, output, dst, ctl, row):
    '''Opcodes below 0xC0, shared by the two Seraphim schemes: literals,
    runs of a value and copies from 1, 2 or 4 rows above. Returns the
    number of bytes written.'''
    if not ctl & 0x80:
        if ctl & 0x40:
            count = (ctl & 0x3F) + 2
            _put(output, dst, bytes([_read_byte(stream)]) * count)
        else:
            count = (ctl & 0x3F) + 1
            _put(output, dst, _read_exact(stream, count))
        return count

    count = _read_byte(stream) | (ctl & 0xF) << 8
    mode = (ctl >> 4) & 3
    if mode == 0:
        count += 2
        _put(output, dst, bytes([_read_byte(stream)]) * count)
    else:
        count += 1
        copy_within(output, dst - row * SERAPH_ROWS[mode], dst, count)

    return count


def _check_control(stream, ctl):
    if ctl & 0xF0 == 0xF0:
        raise DecodeFailure(message=f'invalid control byte 0x{ctl:02x}', offset=stream.tell())


def unpack_seraph_pixels(stream, width, height, pixel_size=3):
    '''Seraphim 24/32 bits scheme.

    Beyond the common opcodes: 0xC0-0xCF repeats a group of one or two
    pixels, 0xD0-0xDF copies whole pixels from a distance in pixels and
    0xE0-0xEF copies bytes from a distance in bytes.'''
    stride = width * pixel_size
    output = bytearray(stride * height)
    dst = 0

    while dst < len(output):
        ctl = _read_byte(stream)
        _check_control(stream, ctl)

        if ctl < 0xC0:
            count = _seraph_common(stream, output, dst, ctl, stride)
        elif not ctl & 0x30:
            repeat = _read_byte(stream) + ((ctl & 7) << 8) + 1
            unit = pixel_size * (2 if ctl & 8 else 1)
            _put(output, dst, _read_exact(stream, unit))
            copy_within(output, dst, dst + unit, repeat * unit)
            count = (repeat + 1) * unit
        elif not ctl & 0x20:
            distance = _read_byte(stream) + ((ctl & 0xF) << 8) + 1
            count = (_read_byte(stream) + 1) * pixel_size
            copy_within(output, dst - distance * pixel_size, dst, count)
        else:
            distance = _read_byte(stream) + ((ctl & 0xF) << 8) + 1
            count = _read_byte(stream) + 1
            copy_within(output, dst - distance, dst, count)

        dst += count

    return bytes(output)


def unpack_seraph_bytes(stream, width, height):
    '''Seraphim scheme for a plane of bytes (indices or alpha).

    Beyond the common opcodes: 0xC0-0xDF repeats a group of 2, 4, 8 or 16
    bytes and 0xE0-0xEF copies bytes from a distance.'''
    output = bytearray(width * height)
    dst = 0

    while dst < len(output):
        ctl = _read_byte(stream)
        _check_control(stream, ctl)

        if ctl < 0xC0:
            count = _seraph_common(stream, output, dst, ctl, width)
        elif not ctl & 0x20:
            repeat = _read_byte(stream) + ((ctl & 7) << 8) + 1
            unit = 2 << ((ctl >> 3) & 3)
            _put(output, dst, _read_exact(stream, unit))
            copy_within(output, dst, dst + unit, repeat * unit)
            count = (repeat + 1) * unit
        else:
            distance = (_read_byte(stream) | (ctl & 0xF) << 8) + 1
            count = _read_byte(stream) + 1
            copy_within(output, dst - distance, dst, count)

        dst += count

    return bytes(output)


# per table index (0..18) the bits of the 12 bits argument of a masked
# reference: the three offset masks, the "backward" bit and the "vertical" bit
MASKED_OFFSET0 = (
    0x3FF, 0x1FF, 0x0FF, 7, 0x0FF, 3, 0x1F, 0, 3, 3, 0, 0, 0x0F, 0x1F, 3, 7, 0x0FF, 7, 0x0F)
MASKED_OFFSET1 = (
    0, 0, 0, 0x0F0, 0x200, 0x18, 0x7C0, 0x7E, 0, 0, 0x1FE, 0x7E, 0x3E0, 0x0C0, 0x78, 0x1F0, 0, 0x30, 0x7E0)
MASKED_OFFSET2 = (
    0, 0x800, 0x0C00, 0x0E00, 0x800, 0x0FC0, 0, 0x0F00, 0x0FF0, 0x0FF0, 0x0C00, 0x0F00, 0x800, 0x0E00,
    0x0F00, 0x0C00, 0x0C00, 0x0F80, 0)
MASKED_BACKWARD = (
    0x800, 0x400, 0x100, 8, 0x400, 0x20, 0x20, 0x80, 4, 8, 0x200, 1, 0x10, 0x100, 4, 0x200, 0x100, 0x40, 0x800)
MASKED_VERTICAL = (
    0x400, 0x200, 0x200, 0x100, 0x100, 4, 0x800, 1, 8, 4, 1, 0x80, 0x400, 0x20, 0x80, 8, 0x200, 8, 0x10)


def unpack_masked_backref(stream, width, height):
    '''16 bits pixels of the encrypted Pias images.

    A word with bit 13 clear is a literal BGR555 pixel (bits 14-15 moved
    to 13-14). Otherwise bits 12, 14 and 15 are the count minus one and the
    low 12 bits an argument decoded through one of 19 tables, chosen in
    turn for each count: it gives the source as a displacement of
    (16 - dx, -dy) pixels and the direction in which it moves, one pixel
    left or right, or one row up or down.'''
    pixel_count = width * height
    pixels = [0] * pixel_count
    table_use = [0] * 8
    dst = 0

    while dst < pixel_count:
        word = struct.unpack('<H', _read_exact(stream, 2))[0]
        if not word & 0x2000:
            pixels[dst] = (word >> 1) & 0x6000 | word & 0x1FFF
            dst += 1
            continue

        count = (((word >> 1) & 0x6000 | word & 0x1000) >> 12) + 1
        idx = table_use[count - 1] % 19
        table_use[count - 1] += 1

        argument = word & 0xFFF
        backward = argument & MASKED_BACKWARD[idx]
        vertical = argument & MASKED_VERTICAL[idx]
        m = (argument & MASKED_OFFSET0[idx]
             | (argument >> 1) & (MASKED_OFFSET1[idx] >> 1)
             | (argument >> 2) & (MASKED_OFFSET2[idx] >> 2))
        rows, column = divmod(m + 16, 32)
        src = dst - width * rows + 16 - column

        step = width if vertical else 1
        if backward:
            step = -step

        for _ in range(min(count, pixel_count - dst)):
            if not 0 <= src < pixel_count:
                raise DecodeFailure(message=f'reference to pixel {src} outside of the image', offset=stream.tell())
            pixels[dst] = pixels[src]
            dst += 1
            src += step

    return struct.pack(f'<{pixel_count}H', *pixels)
