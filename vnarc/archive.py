'''
Entry points to open containers and to decode their entries.

    >>> from vnarc import archive
    >>> index = archive.open_container(None, 'data/graph.dat', resolver=archive.sibling_resolver('data/graph.dat'))
    >>> for summary in archive.list_entries(index, 'data/graph.dat'):
    ...     print(summary.name, summary.size, summary.type)
    >>> image = archive.decode_image('data/graph.dat', index, index[0])
    >>> image.to_pil().save('0000.png')
'''
import logging
import ntpath
import os
from concurrent.futures import ThreadPoolExecutor

from .compression import as_stream
from .exceptions import DecodeFailure, MalformedIndex, UnsupportedOperation
from .registry import default_registry
from .streams import Stream


logger = logging.getLogger(__name__)


def probe(source, name_hint=None, resolver=None, registry=None, **kwargs):
    '''Return the index of the container or None if no format claims it.'''
    registry = registry if registry is not None else default_registry()

    return registry.probe(as_stream(source), name_hint, resolver, **kwargs)


def open_container(registry, source, name_hint=None, resolver=None):
    '''Like probe() but if no format claimed the container and at least one
    found a malformed index, the last of those errors is raised.'''
    registry = registry if registry is not None else default_registry()
    errors = []

    index = registry.probe(as_stream(source), name_hint, resolver, errors=errors)
    if index is None and errors:
        raise errors[-1]

    return index


def list_entries(index, source=None):
    '''Summaries of the entries. With the source the self-describing
    entries are resolved first, so the sizes are the unpacked ones;
    without it they are the sizes known from the index.'''
    if source is not None:
        stream = as_stream(source)
        for entry in index:
            _with_context(index, entry, lambda: index.format.resolve_entry(stream, entry))

    return [entry.summary() for entry in index]


def _with_context(index, entry, fn):
    try:
        return fn()
    except DecodeFailure as e:
        if e.entry is not None:
            raise
        raise DecodeFailure(
            chain=e.chain, message=e.message, tag=index.format.tag, entry=entry.name,
            offset=e.offset if e.offset is not None else entry.offset) from e


def decode_entry(source, index, entry):
    '''Return the logical bytes of the entry.'''
    stream = as_stream(source)

    return _with_context(index, entry, lambda: index.format.open_entry(stream, index, entry))


def decode_image(source, index, entry):
    '''Return the ImageData of an image entry.'''
    stream = as_stream(source)

    return _with_context(index, entry, lambda: index.format.open_image(stream, index, entry))


def output_path(directory, index, entry):
    '''Path inside "directory" where the entry is written; a name that
    would end up outside of it raises MalformedIndex.'''
    root = os.path.realpath(directory)
    name = entry.name.replace('\\', '/')
    parts = [_ for _ in name.split('/') if _]
    path = os.path.realpath(os.path.join(root, *parts)) if parts else root

    is_absolute = name.startswith('/') or ntpath.splitdrive(entry.name)[0]
    if is_absolute or path == root or os.path.commonpath([root, path]) != root:
        raise MalformedIndex(
            message=f'the entry name leads outside of {directory}',
            tag=index.format.tag, entry=entry.name, offset=entry.offset)

    return path


def extract(source, index, directory, entries=None, workers=1):
    '''Write the decoded entries inside "directory", returning the paths.

    With more than one worker the entries are decoded concurrently.'''
    stream = as_stream(source)
    entries = list(entries) if entries is not None else list(index)
    # nothing is written if any of the names leaves the directory
    paths = {id(entry): output_path(directory, index, entry) for entry in entries}
    os.makedirs(directory, exist_ok=True)

    def _extract(entry):
        data = decode_entry(stream, index, entry)
        path = paths[id(entry)]
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as output:
            output.write(data)
        logger.debug('extracted %s (%d bytes)', path, len(data))
        return path

    if workers <= 1:
        return [_extract(_) for _ in entries]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(_extract, entries))


def create(*args, **kwargs):
    raise UnsupportedOperation(message='writing containers is not supported')


def sibling_resolver(path):
    '''Resolver looking for auxiliary files in the directory of "path";
    the comparison of the names ignores the case.'''
    directory = os.path.dirname(os.path.abspath(path))

    def resolver(name):
        target = name.lower()
        try:
            candidates = os.listdir(directory)
        except OSError:
            return None
        for candidate in candidates:
            full = os.path.join(directory, candidate)
            if candidate.lower() == target and os.path.isfile(full):
                logger.debug('resolved \'%s\' as \'%s\'', name, full)
                return Stream(full)

        return None

    return resolver
