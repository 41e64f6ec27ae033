'''
Machinery turning the class body of a Chunk into an ordered layout.

The fields declared in the body are templates: on the class they are
replaced by descriptors and every instance gets its own deep copy of a
field the first time it touches it.
'''
import copy
import logging
from enum import Enum, auto


logger = logging.getLogger(__name__)


class Endianess(Enum):
    LITTLE_ENDIAN = auto()
    BIG_ENDIAN    = auto()


class FieldDescriptor(object):
    """Per-instance access to a field declared on a Chunk."""

    def __init__(self, template: "Field", name: str):
        self.template = template
        self.template.name = name

    @property
    def name(self):
        return self.template.name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self.template

        try:
            return instance.__dict__[self.name]
        except KeyError:
            field = self.template.create(father=instance)
            instance.__dict__[self.name] = field
            return field

    def __set__(self, instance, value):
        # a field of the same kind replaces the instance's one, anything else is its value
        if isinstance(value, self.template.__class__):
            value.father = instance
            value.name = self.name
            instance.__dict__[self.name] = value
        else:
            self.__get__(instance).value = value


class FieldBase(object):

    def contribute_to_chunk(self, cls, name):
        if name in cls.__dict__:
            raise AttributeError(f'field {name} is already present in class {cls.__name__}')

        setattr(cls, name, FieldDescriptor(self, name))

    def create(self, father):
        instance = copy.deepcopy(self)
        instance.father = father
        return instance


class Meta(object):
    """Names of the fields of a Chunk in layout order, the inherited ones first."""

    def __init__(self, parents=()):
        self.fields = []
        for parent in parents:
            for name in parent.fields:
                if name not in self.fields:
                    self.fields.append(name)

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, ', '.join(self.fields))

    def add(self, name):
        # a redefined field moves to the position of the new definition
        if name in self.fields:
            self.fields.remove(name)
        self.fields.append(name)


class MetaChunk(type):

    def __new__(cls, name, bases, attrs):
        declared = {key: value for key, value in attrs.items() if isinstance(value, FieldBase)}
        body = {key: value for key, value in attrs.items() if key not in declared}

        new_cls = super().__new__(cls, name, bases, body)
        new_cls._meta = Meta(_._meta for _ in bases if isinstance(_, MetaChunk))

        for field_name, field in declared.items():
            logger.debug('adding field \'%s\' to %s', field_name, name)
            new_cls._meta.add(field_name)
            field.contribute_to_chunk(new_cls, field_name)

        return new_cls
