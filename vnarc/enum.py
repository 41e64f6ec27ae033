from enum import Enum, Flag


class Compliant(Flag):
    '''It indicates which degree of compliantness the data must reflect the format'''
    NONE  = 0
    ENUM  = 1 << 0
    MAGIC = 1 << 1
    INHERIT = 1 << 2


class EntryType(Enum):
    '''Kind of asset stored in an entry, guessed from its name or from its content.'''
    OTHER  = 'other'
    IMAGE  = 'image'
    AUDIO  = 'audio'
    SCRIPT = 'script'


class Resolution(Enum):
    UNRESOLVED = 0
    RESOLVED   = 1


class PlaneLayout(Enum):
    INTERLEAVED = 0
    PLANAR      = 1


class RowOrder(Enum):
    TOP_DOWN  = 0
    BOTTOM_UP = 1
