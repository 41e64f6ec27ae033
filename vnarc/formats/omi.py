'''
# OMI script engine 'scrdat'

The whole file is encrypted with a rolling key starting from its first
byte. Once decrypted it begins with a textual index

    count\\n
    name\\n
    size\\n
    ...

and the entries follow one after the other in the same order. The
images are compressed with a run length encoding over 16 bits words.
'''
from ..compression import Chain, KeyStream, Rle16
from ..entry import Entry, Resolved, type_from_name
from ..enum import EntryType
from ..exceptions import MalformedIndex
from ..registry import ArchiveFormat
from ..validate import require_placement, require_sane_count


DEFAULT_KEY = 7654321
# the shortest record is a one character name with its size
MIN_RECORD_SIZE = 4
MAX_LINE_LENGTH = 0x100


class DecryptedLines(object):
    '''Read the lines at the start of a stream decrypting a block at a time.'''

    BLOCK_SIZE = 0x1000

    def __init__(self, stream, key):
        self.stream = stream
        self.cipher = KeyStream(key)
        self.data = bytearray()
        self.position = 0

    def _fill(self):
        block = self.stream.read_at(len(self.data), self.BLOCK_SIZE)
        self.data += self.cipher.transform(block, len(self.data))

        return len(block) > 0

    def readline(self, limit=MAX_LINE_LENGTH, encoding='cp932'):
        '''Return the next line without its terminator, None at the end of
        the stream or when the line is longer than "limit".'''
        while True:
            end = self.data.find(b'\n', self.position)
            if end >= 0:
                break
            if len(self.data) - self.position > limit:
                return None
            if not self._fill():
                if self.position >= len(self.data):
                    return None
                end = len(self.data)
                break

        line = bytes(self.data[self.position:end])
        self.position = min(end + 1, len(self.data))

        return line.rstrip(b'\r').decode(encoding, errors='replace')


class OmiFormat(ArchiveFormat):
    tag = 'DAT/OMI'
    description = 'OMI script engine resource archive'
    names = ('scrdat',)

    def peek(self, stream, entry):
        if entry.type is not EntryType.IMAGE:
            return None

        head = KeyStream(DEFAULT_KEY, start=entry.offset).transform(stream.read_at(entry.offset, 4))

        return Resolved(unpacked_size=Rle16.unpacked_size_of(head))

    def try_open(self, stream, name_hint=None, resolver=None):
        index = DecryptedLines(stream, DEFAULT_KEY)
        try:
            count = int(index.readline() or '')
        except ValueError:
            self.reject('the index doesn\'t start with the number of entries')
        require_sane_count(count, MIN_RECORD_SIZE, stream.length, tag=self.tag)

        records = []
        for idx in range(count):
            name, size = index.readline(), index.readline()
            if name is None or size is None:
                raise MalformedIndex(message=f'the index ends at record #{idx}', tag=self.tag)
            try:
                records.append((name, int(size)))
            except ValueError:
                raise MalformedIndex(message=f'invalid size {size!r}', tag=self.tag, entry=name)

        entries = []
        offset = index.position
        for name, size in records:
            require_placement(offset, size, stream.length, tag=self.tag, entry=name)
            cipher = KeyStream(DEFAULT_KEY, start=offset)
            if type_from_name(name) is EntryType.IMAGE:
                entries.append(Entry(name, offset, size, is_packed=True, codec=Chain(cipher, Rle16())))
            else:
                entries.append(Entry(name, offset, size, codec=cipher))
            offset += size

        return self.make_index(stream, entries, name_hint, base_offset=index.position)
