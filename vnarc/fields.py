"""
The fields a Chunk is made of: each one knows how to unpack itself from
the cursor of a Stream and how to give back its encoding.

The containers we read are little endian unless told otherwise.
"""
import logging
import struct
from enum import Enum
from typing import Dict

from .enum import Compliant
from .exceptions import MagicException, MalformedIndex, UnpackException
from .meta import Endianess, FieldBase
from .properties import ChunkPhase, Dependency, PropertyDescriptor
from .validate import is_sane_count


class Field(FieldBase):
    """Base class of the fields.

    "compliant" says which violations raise instead of being logged, a
    field with Compliant.INHERIT asks its father. A field with "is_magic"
    must unpack to its default.
    """

    def __init__(self, *args, name=None, father=None, default=None, offset=None,
                 endianess=Endianess.LITTLE_ENDIAN, compliant=Compliant.INHERIT, is_magic=False):
        super().__init__()
        self._phase = ChunkPhase.INIT
        self.logger = logging.getLogger(f'{self.__module__}.{self.__class__.__name__}')
        self.name = name
        self.father = father
        self.default = default
        self.offset = offset
        self.endianess = endianess
        self.compliant = compliant
        self.is_magic = is_magic

        self.init()

    def init(self):
        self.value = self.value_from_default()

    def value_from_default(self):
        return self.default

    def get_dependencies(self) -> Dict[str, Dependency]:
        '''Properties of this field bound to another field.'''
        return {key: value for key, value in self.__dict__.items() if isinstance(value, Dependency)}

    def is_compliant(self, level):
        instance = self
        while instance is not None:
            if instance.compliant & level:
                return True
            if not instance.compliant & Compliant.INHERIT:
                break
            instance = instance.father

        return False

    def short_read(self, message):
        '''Exception for data ending before the field: a magic field that
        cannot be read is a wrong magic.'''
        if self.is_magic and self.is_compliant(Compliant.MAGIC):
            return MagicException(chain=[], message=message)

        return UnpackException(chain=[], message=message)

    def check_magic(self, value):
        if not self.is_magic or value == self.default:
            return

        self.logger.debug('wrong magic for \'%s\': %r != %r', self.name, value, self.default)
        if self.is_compliant(Compliant.MAGIC):
            raise MagicException(chain=[], message=f'wrong magic {value!r}')

    def _get_value(self):
        return self._value

    def _set_value(self, value):
        self._value = value

    value = property(
        fget=lambda self: self._get_value(),
        fset=lambda self, value: self._set_value(value))

    def _get_size(self):
        raise NotImplementedError(f'{self.__class__.__name__} doesn\'t know its size')

    size = property(fget=lambda self: self._get_size())

    def _get_raw(self) -> bytes:
        raise NotImplementedError(f'{self.__class__.__name__} cannot be packed')

    raw = property(fget=lambda self: self._get_raw())

    def relayout(self, offset=0):
        self.offset = offset

        return self.size

    def unpack(self, stream):
        raise NotImplementedError('you need to implement this in the subclass')


class StructField(Field):
    """An integer with a struct format ('B', 'H', 'I', 'i'...).

    With "enum" the value is the member of the Enum; an unknown value
    raises only if the field is ENUM compliant, otherwise the integer is
    kept.
    """

    def __init__(self, format, default=0, enum=None, **kw):
        self.format = format
        self.enum = enum
        super().__init__(default=default, **kw)

    def __repr__(self):
        if self.enum or isinstance(self.value, bytes):
            return f'<{self.__class__.__name__}({self.value!r})>'

        return '<%s(%s)>' % (self.__class__.__name__, hex(self.value))

    def value_from_default(self):
        return self.enum(self.default) if self.enum else self.default

    def get_format(self):
        return ('<' if self.endianess == Endianess.LITTLE_ENDIAN else '>') + self.format

    def _get_size(self):
        return struct.calcsize(self.get_format())

    def _get_raw(self) -> bytes:
        value = self.value.value if isinstance(self.value, Enum) else self.value
        return struct.pack(self.get_format(), value)

    def _to_enum(self, value: int):
        try:
            return self.enum(value)
        except ValueError:
            if self.is_compliant(Compliant.ENUM):
                raise UnpackException(chain=[], message=f'{self.enum.__name__} has no value 0x{value:x}')

        self.logger.warning('%s has no value 0x%x, keeping the integer', self.enum.__name__, value)

        return value

    def unpack(self, stream):
        data = stream.read(self.size)
        if len(data) != self.size:
            raise self.short_read(f'needed {self.size} bytes for \'{self.name}\', got {len(data)}')

        value = struct.unpack(self.get_format(), data)[0]
        if self.enum:
            value = self._to_enum(value)

        self.check_magic(value)
        self.value = value


class StringField(Field):
    """A run of "n" bytes; n can be a Dependency on a length field."""

    length = PropertyDescriptor('length', int)

    def __init__(self, n=None, **kw):
        if n is None and 'default' not in kw:
            raise ValueError('StringField needs the length or a default')

        self.length = n if n is not None else len(kw['default'])

        super().__init__(**kw)

    def __repr__(self):
        return '<%s(%r)>' % (self.__class__.__name__, self.value)

    def __len__(self):
        return self.length

    def value_from_default(self):
        if self.default:
            return self.default
        # a length bound to another field is not known yet
        if 'length' in self.get_dependencies():
            return b''

        return b'\x00' * self.length

    def _get_size(self):
        return self.length

    def _get_raw(self):
        return self.value

    def text(self, encoding='cp932'):
        '''Decode the content up to the first NUL byte.'''
        return self.value.split(b'\x00', 1)[0].decode(encoding, errors='replace')

    def unpack(self, stream):
        length = self.length
        if length < 0:
            raise UnpackException(chain=[], message=f'negative length {length} for \'{self.name}\'')

        data = stream.read(length)
        if len(data) != length:
            raise self.short_read(f'needed {length} bytes for \'{self.name}\', got {len(data)}')

        self.check_magic(data)
        self.value = data


class CStringField(Field):
    """A NUL terminated string, the terminator is part of the field."""

    def __init__(self, max_length=None, **kw):
        self.max_length = max_length
        kw.setdefault('default', b'')
        super().__init__(**kw)

    def __repr__(self):
        return '<%s(%r)>' % (self.__class__.__name__, self.value)

    def _get_size(self):
        return len(self.value) + 1

    def _get_raw(self):
        return self.value + b'\x00'

    def text(self, encoding='cp932'):
        return self.value.decode(encoding, errors='replace')

    def unpack(self, stream):
        out = bytearray()
        while True:
            b = stream.read_byte()
            if b is None:
                raise UnpackException(chain=[], message=f'unterminated string for \'{self.name}\'')
            if b == 0:
                break
            out.append(b)
            if self.max_length is not None and len(out) > self.max_length:
                raise UnpackException(chain=[], message=f'string too long for \'{self.name}\'')

        self.value = bytes(out)


class ArrayField(Field):
    '''A sequence of elements built from the template "field_cls".

    The number of elements is "n" (an int or a Dependency) or, with
    "canary", the elements go on up to the one for which canary(element)
    is True (the terminator is not kept).

    A count read from the stream is checked against the remaining data
    before anything is allocated: "record_size" is the minimum size of an
    element, the size of the template when not given.
    '''

    def __init__(self, field_cls, n=0, canary=None, record_size=None, **kw):
        if n and not isinstance(n, (Dependency, int)):
            raise TypeError(f'the count must be an int or a Dependency, not {n.__class__.__name__}')

        kw.setdefault('default', [])
        self.field_cls = field_cls
        self._n = n
        self._canary = canary
        self._record_size = record_size

        super().__init__(**kw)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.value!r})>'

    def __getitem__(self, item):
        return self.value[item]

    def __len__(self):
        return len(self.value)

    def __iter__(self):
        return iter(self.value)

    def value_from_default(self):
        return list(self.default)

    @property
    def n(self):
        return self._n.resolve(self) if isinstance(self._n, Dependency) else self._n

    @property
    def record_size(self):
        if self._record_size is None:
            self._record_size = self.field_cls.size

        return self._record_size

    def _get_raw(self):
        return b''.join(element.raw for element in self.value)

    def _get_size(self):
        return sum(element.size for element in self.value)

    def relayout(self, offset=0):
        self.offset = offset
        size = 0
        for element in self.value:
            size += element.relayout(offset=offset + size)

        return size

    def instance_element(self):
        # the father keeps the dependencies of the element working
        return self.field_cls.create(father=self)

    def append(self, element):
        element.father = self
        self.value.append(element)

    def _unpack_element(self, stream):
        element = self.instance_element()
        element.offset = stream.tell()
        element.unpack(stream)

        return element

    def unpack(self, stream):
        self.value = []

        if self._canary is not None:
            while True:
                element = self._unpack_element(stream)
                if self._canary(element):
                    break
                self.value.append(element)
            return

        n = self.n
        if n == 0:
            return

        if not is_sane_count(n, self.record_size, stream.remaining):
            raise MalformedIndex(
                message=f'{n} elements of {self.record_size} bytes for \'{self.name}\' with {stream.remaining} bytes left',
                offset=stream.tell())

        for _ in range(n):
            self.value.append(self._unpack_element(stream))
