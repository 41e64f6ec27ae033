"""
# Visual novel archive extraction.

The games built on the small Japanese engines ship their assets inside
proprietary containers; each engine has its own idea of what an index is
and of how an entry is compressed or scrambled.

Extracting an asset is a sequence of three steps:

 1. probe(): the registry of the formats looks at the first 4 bytes of the
    container (and at its name, for the formats without a signature) and
    asks the candidates to parse the index; the first one that succeeds
    returns a ContainerIndex.
    Every count, offset and size read from an index passes through the
    sanity checks in vnarc.validate.

 2. decode_entry(): the payload of an entry goes through the codec (or
    chain of codecs) of its format. Some entries say how they are packed
    only in their first bytes: they are resolved once, the first time
    they are read.

 3. decode_image(): the decoded bytes of an image are brought to a top
    down, row major buffer (see vnarc.images) that can be saved with PIL.

The fixed layouts (headers, index records) are described declaratively
with Chunks and Fields (vnarc.core, vnarc.fields).
"""
from .archive import (
    probe,
    open_container,
    list_entries,
    decode_entry,
    decode_image,
    extract,
    create,
    sibling_resolver,
)
from .registry import Registry, ArchiveFormat, default_registry
from .streams import Stream
