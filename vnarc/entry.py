'''
Coordinates of the assets inside a container.

An Entry doesn't own any data, it only says where the payload is and how
big it is. Some containers only know the real size (and the codec) of an
entry after peeking at the first bytes of its payload: this is modelled by
Entry.resolve() that runs the peek at most once, even when more threads
ask for the same entry.
'''
import logging
import os
import threading
from collections import namedtuple

from .enum import EntryType, Resolution


logger = logging.getLogger(__name__)


EXTENSION_TYPES = {
    EntryType.IMAGE: ('bmp', 'png', 'jpg', 'jpeg', 'tga', 'gif', 'tlg', 'grp', 'ogp', 'graph', 'cts'),
    EntryType.AUDIO: ('wav', 'ogg', 'mp3', 'mid', 'midi', 'wma', 'voice', 'sound', 'music'),
    EntryType.SCRIPT: ('txt', 'scr', 'spt', 'ks', 'ini', 'csv'),
}


def type_from_name(name):
    '''Guess the kind of asset from the extension of its name.'''
    ext = os.path.splitext(name)[1].lstrip('.').lower()
    for entry_type, extensions in EXTENSION_TYPES.items():
        if ext in extensions:
            return entry_type

    return EntryType.OTHER


EntrySummary = namedtuple('EntrySummary', ['name', 'size', 'type'])


class Resolved(namedtuple('Resolved', ['codec', 'unpacked_size', 'data_offset', 'type'])):
    '''Result of the peek at the payload of an entry: data_offset is relative
    to the entry start, None values leave the entry's own ones in place.'''
    def __new__(cls, codec=None, unpacked_size=None, data_offset=0, type=None):
        return super().__new__(cls, codec, unpacked_size, data_offset, type)


class Entry(object):

    def __init__(self, name, offset, size, unpacked_size=None, type=None, is_packed=False, codec=None, extra=None):
        self.name = name
        self.offset = offset
        self.size = size
        self._unpacked_size = unpacked_size
        self._type = type if type is not None else type_from_name(name)
        self.is_packed = is_packed
        self._codec = codec
        self._data_offset = 0
        # per-format values (e.g. image geometry) that don't belong to the coordinates
        self.extra = dict(extra or {})
        self._resolution = Resolution.UNRESOLVED
        self._lock = threading.Lock()

    def __repr__(self):
        return '<%s(%r, offset=0x%x, size=0x%x, unpacked=0x%x, %s)>' % (
            self.__class__.__name__, self.name, self.offset, self.size,
            self.unpacked_size, self._resolution.name)

    @property
    def unpacked_size(self):
        return self._unpacked_size if self._unpacked_size is not None else self.size

    @property
    def unpacked_size_known(self):
        '''False for a packed entry whose size is known only after decoding.'''
        return self._unpacked_size is not None or not self.is_packed

    @property
    def type(self):
        return self._type

    @property
    def codec(self):
        return self._codec

    @property
    def data_offset(self):
        '''Offset of the payload relative to the start of the entry.'''
        return self._data_offset

    @property
    def resolution(self):
        return self._resolution

    @property
    def is_resolved(self):
        return self._resolution is Resolution.RESOLVED

    def resolve(self, fn):
        '''Run "fn(entry)" the first time it's called and store what it
        returns (a Resolved, or None when there is nothing to change).

        The state transition UNRESOLVED -> RESOLVED happens once under the
        entry lock, the following calls (from any thread) see the stored
        values. If "fn" raises, the entry stays unresolved.'''
        if self._resolution is Resolution.RESOLVED:
            return self

        with self._lock:
            if self._resolution is Resolution.RESOLVED:
                return self

            result = fn(self)
            if result is not None:
                if result.codec is not None:
                    self._codec = result.codec
                    self.is_packed = True
                if result.unpacked_size is not None:
                    self._unpacked_size = result.unpacked_size
                if result.type is not None:
                    self._type = result.type
                self._data_offset = result.data_offset

            logger.debug('resolved %r', self)
            self._resolution = Resolution.RESOLVED

        return self

    def summary(self):
        return EntrySummary(self.name, self.unpacked_size, self.type)


class ContainerIndex(object):
    '''The directory of an opened container; it's immutable.'''

    def __init__(self, format, entries, name=None, base_offset=0, params=None):
        self._format = format
        self._entries = tuple(entries)
        self._name = name
        self._base_offset = base_offset
        self._params = dict(params or {})

    def __repr__(self):
        return '<%s(%s, %r, %d entries)>' % (
            self.__class__.__name__, self._format.tag, self._name, len(self._entries))

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __getitem__(self, item):
        return self._entries[item]

    @property
    def format(self):
        return self._format

    @property
    def entries(self):
        return self._entries

    @property
    def count(self):
        return len(self._entries)

    @property
    def name(self):
        return self._name

    @property
    def base_offset(self):
        return self._base_offset

    def param(self, key, default=None):
        '''Per-archive codec parameter (key, compression method...)'''
        return self._params.get(key, default)

    def find(self, name):
        for entry in self._entries:
            if entry.name == name:
                return entry

        raise KeyError(name)
