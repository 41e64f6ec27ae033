'''
The container formats, in order of registration: inside a signature
bucket the first format claiming the container wins.
'''
from .nexas import PacFormat
from .systemaqua import CatfFormat
from .aaru import Fl4Format
from .seraphim import SeraphScnFormat, ArchangelScnFormat
from .mina import MinaBitmapFormat, MinaWaveFormat, MinaScriptFormat
from .pias import PiasEncryptedFormat, PiasFormat
from .omi import OmiFormat


FORMATS = (
    PacFormat,
    CatfFormat,
    Fl4Format,
    SeraphScnFormat,
    ArchangelScnFormat,
    MinaBitmapFormat,
    MinaWaveFormat,
    MinaScriptFormat,
    PiasEncryptedFormat,
    PiasFormat,
    OmiFormat,
)
