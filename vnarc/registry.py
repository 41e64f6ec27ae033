'''
Formats and the dispatch among them.

A Registry groups the formats by the 4 bytes signature found at the start
of the container; formats without a signature (0) are only attempted when
the name of the container passes their name gate. Inside a bucket the
registration order is the priority: the first format returning an index
wins.
'''
import functools
import logging
import ntpath
import posixpath
import struct

from .compression import PassThrough
from .entry import ContainerIndex
from .exceptions import (
    ChunkUnpackException,
    DecodeFailure,
    MagicException,
    MalformedIndex,
    NoMatch,
    UnpackException,
    UnsupportedOperation,
)


logger = logging.getLogger(__name__)

# exceptions meaning "this is not my container"
REJECTIONS = (NoMatch, MagicException, UnpackException, ChunkUnpackException)


def base_name(name_hint):
    '''Last component of a path, whatever the separator.'''
    if not name_hint:
        return ''
    return ntpath.basename(posixpath.basename(str(name_hint)))


def extension_of(name_hint):
    name = base_name(name_hint)
    return name.rsplit('.', 1)[1].lower() if '.' in name else ''


class ArchiveFormat(object):
    '''Base class for the description of a container format.

    Subclasses set the class attributes and implement try_open(); the
    instances are registered once and never modified.'''
    tag = None
    description = None
    # 4 bytes little endian signatures, 0 means no signature
    signatures = (0,)
    extensions = ()
    # exact file names accepted by a signature-less format
    names = ()
    is_hierarchic = False
    implicit_size = False

    def __init__(self):
        self.logger = logging.getLogger(f'{self.__module__}.{self.__class__.__name__}')

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.tag})>'

    @property
    def is_signature_less(self):
        return 0 in self.signatures

    @property
    def primary_extension(self):
        return self.extensions[0].lower() if self.extensions else None

    def accepts_name(self, name_hint):
        '''Name gate for the formats identified without a signature.'''
        name = base_name(name_hint).lower()
        if not name:
            return False
        if self.names:
            return name in (_.lower() for _ in self.names)
        if self.extensions:
            return extension_of(name) in (_.lower() for _ in self.extensions)

        return False

    def reject(self, message=None):
        raise NoMatch(message=message, tag=self.tag)

    def try_open(self, stream, name_hint=None, resolver=None):
        '''Return a ContainerIndex or None if the stream is not in this format.'''
        raise NotImplementedError('you need to implement this in the subclass')

    def make_index(self, stream, entries, name_hint=None, **kwargs):
        return ContainerIndex(self, entries, name=name_hint or stream.name, **kwargs)

    def peek(self, stream, entry):
        '''Look at the payload of an entry to find its codec and size: it
        returns an entry.Resolved or None. It runs at most once per entry.'''
        return None

    def codec_for(self, index, entry):
        return entry.codec if entry.codec is not None else PassThrough()

    def resolve_entry(self, stream, entry):
        return entry.resolve(lambda _: self.peek(stream, _))

    def open_entry(self, stream, index, entry):
        '''Return the decoded bytes of the entry.'''
        self.resolve_entry(stream, entry)

        if entry.data_offset > entry.size:
            raise DecodeFailure(
                message=f'payload at +0x{entry.data_offset:x} beyond the {entry.size} bytes of the entry',
                tag=self.tag, entry=entry.name, offset=entry.offset)
        start = entry.offset + entry.data_offset
        view = stream.view(start, entry.size - entry.data_offset, name=entry.name)
        codec = self.codec_for(index, entry)
        size = entry.unpacked_size if entry.unpacked_size_known else None
        self.logger.debug('decoding %r with %r', entry, codec)

        return codec.decode(view, size)

    def open_image(self, stream, index, entry):
        '''Return the ImageData of an image entry.'''
        from .images.detect import decoder_for

        data = self.open_entry(stream, index, entry)

        return decoder_for(data).decode()

    def create(self, *args, **kwargs):
        raise UnsupportedOperation(message=f'{self.tag} archives cannot be created', tag=self.tag)


class Registry(object):

    def __init__(self, formats):
        self._formats = tuple(formats)
        buckets = {}
        by_tag = {}
        for fmt in self._formats:
            if fmt.tag in by_tag:
                raise ValueError(f'format \'{fmt.tag}\' registered twice')
            by_tag[fmt.tag] = fmt
            for signature in fmt.signatures:
                buckets.setdefault(signature, []).append(fmt)

        self._buckets = {key: tuple(value) for key, value in buckets.items()}
        self._by_tag = by_tag

    def __repr__(self):
        return '<%s(%d formats)>' % (self.__class__.__name__, len(self._formats))

    @property
    def formats(self):
        return self._formats

    def lookup_signature(self, signature):
        return self._buckets.get(signature, ())

    def lookup_extension(self, extension):
        extension = extension.lstrip('.').lower()
        return tuple(_ for _ in self._formats if extension in (e.lower() for e in _.extensions))

    def lookup_tag(self, tag):
        return self._by_tag[tag]

    def candidates(self, signature, name_hint=None):
        '''Formats of the bucket with the ones whose primary extension
        matches the name moved in front; the relative order is kept.'''
        bucket = self.lookup_signature(signature)
        ext = extension_of(name_hint)
        if not ext:
            return list(bucket)

        first = [_ for _ in bucket if _.primary_extension == ext]
        return first + [_ for _ in bucket if _.primary_extension != ext]

    def _attempt(self, fmt, stream, name_hint, resolver, errors):
        stream.seek(0)
        try:
            index = fmt.try_open(stream, name_hint, resolver)
        except REJECTIONS as e:
            logger.debug('%s rejected the container: %s', fmt.tag, e)
            return None
        except MalformedIndex as e:
            if e.tag is None:
                e.context['tag'] = fmt.tag
            logger.warning('%s found a malformed index: %s', fmt.tag, e)
            if errors is not None:
                errors.append(e)
            return None

        if index is not None:
            logger.debug('%s claimed the container with %d entries', fmt.tag, len(index))

        return index

    def probe(self, stream, name_hint=None, resolver=None, signature_only=False,
              signature_less_only=False, errors=None):
        '''Find the format of the stream and return its index, None if no
        format claims it.

        The malformed indexes found on the way are appended to "errors"
        when a list is passed.'''
        if signature_only and signature_less_only:
            raise ValueError('signature_only and signature_less_only exclude each other')

        head = stream.read_at(0, 4)
        signature = struct.unpack('<I', head)[0] if len(head) == 4 else None
        name_hint = name_hint if name_hint is not None else stream.name

        if not signature_less_only and signature:
            for fmt in self.candidates(signature, name_hint):
                index = self._attempt(fmt, stream, name_hint, resolver, errors)
                if index is not None:
                    return index

        if signature_only:
            return None

        for fmt in self.candidates(0, name_hint):
            if not fmt.accepts_name(name_hint):
                continue
            index = self._attempt(fmt, stream, name_hint, resolver, errors)
            if index is not None:
                return index

        return None


@functools.lru_cache(maxsize=None)
def default_registry():
    '''The registry with all the formats of the package, built once.'''
    from .formats import FORMATS

    return Registry(cls() for cls in FORMATS)
