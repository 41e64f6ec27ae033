'''
Values of a field that come from another field of the same layout.

A record storing the length of the name before the name itself is written

    class Record(Chunk):
        name_length = fields.StructField('B')
        file_name   = fields.StringField(Dependency('.name_length'))

The expression is a dotted path: a leading '.' starts from the chunk
containing the field, otherwise the path starts from the root chunk. The
dependency is resolved every time the property is read, so it always
follows the unpacked value.
'''
import logging
from enum import Enum, auto


logger = logging.getLogger(__name__)


class ChunkPhase(Enum):
    '''Where a chunk is in its life'''
    INIT        = 0
    RELAYOUTING = auto()
    UNPACKING   = auto()
    DONE        = auto()


def get_root_from_chunk(instance):
    '''Walk up the fathers up to the outermost chunk.'''
    while instance.father is not None:
        instance = instance.father

    return instance


class Dependency:

    def __init__(self, expression):
        if not expression or expression == '.':
            raise ValueError(f'invalid dependency expression {expression!r}')
        self.expression = expression

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.expression})>'

    @property
    def is_relative(self):
        return self.expression.startswith('.')

    def resolve_field(self, instance):
        '''Return the field the expression points to, starting from "instance".'''
        if self.is_relative:
            start, path = instance.father, self.expression[1:]
        else:
            start, path = get_root_from_chunk(instance), self.expression

        field = start
        for component in path.split('.'):
            try:
                field = getattr(field, component)
            except AttributeError:
                raise AttributeError(f'{self!r} cannot find \'{component}\' in {field.__class__.__name__}') from None

        return field

    def resolve(self, instance):
        value = self.resolve_field(instance).value
        logger.debug('resolved %r as %r', self, value)

        return value


class PropertyDescriptor(object):
    """Attribute of a field that can be a plain value or a Dependency."""

    def __init__(self, name: str, _type: type):
        self.name = name
        self.type = _type

    def __get__(self, instance, owner=None):
        if instance is None:
            return self

        try:
            value = instance.__dict__[self.name]
        except KeyError:
            raise AttributeError(f'\'{self.name}\' is not set') from None

        if not isinstance(value, Dependency):
            return value

        if instance.father is None:
            raise AttributeError(f'\'{self.name}\' depends on {value.expression} but the field is orphan')

        return value.resolve(instance)

    def __set__(self, instance, value):
        if not isinstance(value, (self.type, Dependency)):
            raise ValueError(f'\'{self.name}\' must be of type {self.type.__name__} or a Dependency')

        instance.__dict__[self.name] = value
