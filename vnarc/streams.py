import io
import logging
import struct
import threading

from .exceptions import UnpackException


logger = logging.getLogger(__name__)


class Stream(object):
    '''This is a simple wrapper around bytes/file objects to uniform their
    properties: we need a known total length, positioned reads that can be
    issued from different threads and a cursor for sequential parsing.

    A Stream can be a window over another one (see view()): the window has
    its own cursor and length but shares the underlying data, so each
    worker decoding an entry can have its own bounded view.'''
    def __init__(self, obj, name=None):
        '''Here we normalize the object in order to be accessed as a normal file object'''
        self._type = type(obj)
        self.obj = obj
        self.name = name
        self.history = []
        self._pos = 0
        self._base = 0
        self._length = None
        self._data = None
        self._origin = None
        self._owned = False
        self._lock = threading.Lock()

        init_method_name = 'init_%s' % self.obj.__class__.__name__

        init_method = getattr(self, init_method_name, self.init_fileobj)

        init_method()

    def __repr__(self):
        return '<%s(%r, length=%d)>' % (self.__class__.__name__, self.name, self.length)

    def __len__(self):
        return self.length

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def init_str(self):
        '''We think this is a path'''
        logger.debug('opening path \'%s\'' % self.obj)
        if self.name is None:
            self.name = self.obj
        self.obj = open(self.obj, 'rb')
        self._owned = True
        self.init_fileobj()

    def init_PosixPath(self):
        self.obj = str(self.obj)
        self.init_str()

    init_WindowsPath = init_PosixPath

    def init_bytes(self):
        '''We think these are raw bytes'''
        self._data = memoryview(self.obj)
        self._length = len(self._data)

    def init_bytearray(self):
        self.obj = bytes(self.obj)
        self.init_bytes()

    def init_memoryview(self):
        self.obj = self.obj.tobytes()
        self.init_bytes()

    def init_fileobj(self):
        if not (hasattr(self.obj, 'read') and hasattr(self.obj, 'seek')):
            raise ValueError('\'%s\' is the wrong kind of object to use as stream' % self.obj.__class__.__name__)
        if self.name is None:
            self.name = getattr(self.obj, 'name', None)
        self._length = self.obj.seek(0, io.SEEK_END)
        self.obj.seek(0)

    @property
    def length(self):
        return self._length

    @property
    def remaining(self):
        return max(self._length - self._pos, 0)

    @property
    def root(self):
        return self._origin if self._origin is not None else self

    def _raw_read(self, offset, size):
        '''Read from the underlying object at an absolute offset.'''
        if self._data is not None:
            return self._data[offset:offset + size].tobytes()

        with self._lock:
            self.obj.seek(offset)
            return self.obj.read(size)

    def read_at(self, offset, size):
        '''Positioned read: it doesn't move the cursor and it's safe to call
        concurrently. It can return less data than requested near the end.'''
        if offset < 0 or size < 0:
            raise ValueError('negative offset or size')
        if offset >= self._length:
            return b''
        size = min(size, self._length - offset)

        return self.root._raw_read(self._base + offset, size)

    def read_exact_at(self, offset, size):
        data = self.read_at(offset, size)
        if len(data) != size:
            raise UnpackException(message=f'needed {size} bytes at 0x{offset:x}, got {len(data)}', offset=offset)

        return data

    def view(self, offset, size=None, name=None):
        '''Return a window [offset, offset + size) over this stream with its own cursor.'''
        if size is None:
            size = self._length - offset
        if offset < 0 or size < 0 or offset > self._length or size > self._length - offset:
            raise ValueError('view [0x%x, +0x%x) outside of the stream' % (offset, size))

        window = Stream.__new__(Stream)
        window._type = self._type
        window.obj = self.obj
        window.name = name if name is not None else self.name
        window.history = []
        window._pos = 0
        window._base = self._base + offset
        window._length = size
        window._data = None
        window._origin = self.root
        window._owned = False
        window._lock = None

        return window

    def seek(self, offset, whence=io.SEEK_SET):
        if not isinstance(offset, int):
            raise ValueError('\'%s\' is the wrong kind of offset to use' % offset.__class__.__name__)

        if whence == io.SEEK_CUR:
            offset += self._pos
        elif whence == io.SEEK_END:
            offset += self._length

        if offset < 0:
            raise ValueError('negative seek position %d' % offset)

        self._pos = offset

        return self._pos

    def tell(self):
        return self._pos

    def read(self, size=-1):
        if size is None or size < 0:
            size = self.remaining
        data = self.read_at(self._pos, size) if self._pos < self._length else b''
        self._pos += len(data)

        return data

    def read_all(self):
        '''It returns all the data from the cursor to the end.'''
        return self.read()

    def read_exact(self, size):
        data = self.read(size)
        if len(data) != size:
            raise UnpackException(message=f'needed {size} bytes, got {len(data)}', offset=self._pos)

        return data

    def peek_byte(self):
        '''Return the next byte without consuming it or None at the end of the stream.'''
        data = self.read_at(self._pos, 1) if self._pos < self._length else b''

        return data[0] if data else None

    def read_byte(self):
        '''Return the next byte or None at the end of the stream.'''
        data = self.read(1)

        return data[0] if data else None

    def _unpack(self, fmt):
        size = struct.calcsize(fmt)
        return struct.unpack(fmt, self.read_exact(size))[0]

    def read_u8(self):
        return self._unpack('<B')

    def read_u16(self):
        return self._unpack('<H')

    def read_u32(self):
        return self._unpack('<I')

    def read_i32(self):
        return self._unpack('<i')

    def read_u32_at(self, offset):
        return struct.unpack('<I', self.read_exact_at(offset, 4))[0]

    def read_u16_at(self, offset):
        return struct.unpack('<H', self.read_exact_at(offset, 2))[0]

    def read_cstring(self, max_length=None, encoding=None):
        '''Read a NUL-terminated string, the terminator is consumed but not returned.'''
        out = bytearray()
        while max_length is None or len(out) < max_length:
            b = self.read_byte()
            if b is None or b == 0:
                break
            out.append(b)

        return bytes(out) if encoding is None else bytes(out).decode(encoding, errors='replace')

    def ascii_equal(self, offset, text):
        expected = text.encode('ascii') if isinstance(text, str) else text
        return self.read_at(offset, len(expected)) == expected

    def getvalue(self):
        return self.read_at(0, self._length)

    # TODO: create contextmanager
    def save(self):
        self.history.append(self._pos)

    def restore(self):
        self._pos = self.history.pop()

    def close(self):
        if self._owned and self._origin is None:
            self.obj.close()
            self._owned = False
