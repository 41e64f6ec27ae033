"""
Declarative layouts for the fixed parts of a container.

A Chunk describes a header, an index record or a bitmap header as an
ordered list of fields and it's unpacked from a Stream starting at its
cursor:

    class CatfHeader(Chunk):
        magic        = fields.StringField(4, default=b'CATF', is_magic=True)
        reserved     = fields.StructField('I')
        index_offset = fields.StructField('I')

    header = CatfHeader(stream)
    header.index_offset.value

A Chunk is a Field itself, so an instance can be declared inside another
Chunk. Built without a stream it holds the defaults and pack() gives back
its encoding, which is what the tests use to build their fixtures.

The name of a field cannot be one of the attributes of Field (name,
offset, size, value, raw, father, default, stream...).
"""
from typing import Dict, List, Tuple

from .enum import Compliant
from .exceptions import ChunkUnpackException, MagicException, UnpackException
from .fields import Field
from .meta import MetaChunk
from .properties import ChunkPhase, Dependency, get_root_from_chunk
from .streams import Stream


class Chunk(Field, metaclass=MetaChunk):
    """The magic fields of a Chunk are enforced unless "compliant" says
    otherwise; a validate() method returning False is treated as a wrong
    magic."""

    def __init__(self, stream=None, **kwargs):
        kwargs.setdefault('compliant', Compliant.MAGIC | Compliant.INHERIT)
        super().__init__(**kwargs)

        if stream is None:
            self.relayout()
            return

        self.stream = stream if isinstance(stream, Stream) else Stream(stream)
        self.unpack(self.stream)

    def init(self):
        # the value of a chunk are its fields
        pass

    def _get_value(self):
        return self

    def _set_value(self, value):
        raise AttributeError('you cannot set the value of a Chunk')

    def get_fields(self) -> List[Tuple[str, Field]]:
        '''Couples (name, instance) in layout order.'''
        return [(_, getattr(self, _)) for _ in self._meta.fields]

    def get_dependencies(self) -> Dict[str, Dependency]:
        '''Dependencies of this chunk and of its fields, the keys are the
        dotted paths of the properties.'''
        dependencies = super().get_dependencies()
        for field_name, field in self.get_fields():
            dependencies.update(
                (f'{field_name}.{key}', value) for key, value in field.get_dependencies().items())

        return dependencies

    def __repr__(self):
        return '<%s(%s)>' % (
            self.__class__.__name__,
            ','.join('%s=%r' % (name, field) for name, field in self.get_fields()))

    @property
    def root(self):
        return get_root_from_chunk(self)

    @property
    def layout(self) -> Dict[str, Tuple[int, int]]:
        '''Offset and size of each field.'''
        return {name: (field.offset, field.size) for name, field in self.get_fields()}

    def _get_size(self):
        return sum(field.size for _, field in self.get_fields())

    def _get_raw(self):
        return b''.join(field.raw for _, field in self.get_fields())

    def relayout(self, offset=0):
        '''Place the fields one after the other starting from "offset".'''
        previous, self._phase = self._phase, ChunkPhase.RELAYOUTING
        self.offset = offset

        size = 0
        for _, field in self.get_fields():
            size += field.relayout(offset=offset + size)

        self._phase = previous

        return size

    def pack(self):
        self.relayout()

        return self.raw

    def unpack(self, stream):
        '''Unpack the fields in order from the cursor of the stream.

        A field failing to unpack raises ChunkUnpackException with the
        chain of the field names, innermost first.'''
        self._phase = ChunkPhase.UNPACKING
        self.offset = stream.tell()
        self.logger.debug('unpacking %s at 0x%x', self.__class__.__name__, self.offset)

        for field_name, field in self.get_fields():
            offset = stream.tell()
            try:
                field.unpack(stream)
            except (UnpackException, ChunkUnpackException) as e:
                chain = e.chain if isinstance(e, ChunkUnpackException) else []
                chain.append(field_name)
                raise ChunkUnpackException(chain=chain, message=e.message, offset=offset) from e
            field.offset = offset

        if hasattr(self, 'validate') and not self.validate():
            self.logger.debug('validation of %s failed', self.__class__.__name__)
            if self.is_compliant(Compliant.MAGIC):
                raise MagicException(chain=[], message=f'{self.__class__.__name__} is not valid')

        self._phase = ChunkPhase.DONE
