'''
Sanity checks for the values a directory parser reads out of a container.

Every count, offset and size coming from the file is attacker controlled (or
simply garbage when we are probing the wrong format) so it must pass through
these functions before it is used to size a buffer or to seek.

The arithmetic never computes ``offset + size`` before comparing: the
comparisons are arranged so that no intermediate value can exceed the
operands, like one would do with fixed width integers.
'''
import logging
from typing import List, Sequence

from .exceptions import MalformedIndex


logger = logging.getLogger(__name__)

# absolute ceiling for the number of entries of a single container
MAX_ENTRY_COUNT = 0x40000
# largest offset/size representable by the containers we handle
MAX_ADDRESS = (1 << 64) - 1


def is_sane_count(n: int, min_record_size: int, remaining_length: int) -> bool:
    '''True if "n" records of at least "min_record_size" bytes can fit
    into "remaining_length" bytes.'''
    if n <= 0 or n > MAX_ENTRY_COUNT:
        return False
    if remaining_length < 0:
        return False
    if min_record_size <= 0:
        return True

    return n <= remaining_length // min_record_size


def check_placement(offset: int, size: int, container_length: int, data_start: int = 0) -> bool:
    '''True if the region [offset, offset + size) lies inside the container
    and doesn't start before the data region.'''
    if offset < 0 or size < 0 or container_length < 0:
        return False
    if offset > MAX_ADDRESS or size > MAX_ADDRESS:
        return False
    if offset < data_start:
        return False
    if size > container_length or offset > container_length:
        return False

    return offset <= container_length - size


def check_implicit_offsets(offsets: Sequence[int], container_length: int, data_start: int = 0) -> List[int]:
    '''Derive the sizes of entries whose size is given implicitly by the offset
    of the following one.

    The last element of "offsets" is the end of the last entry (often the
    container length itself). Offsets must be non-decreasing, otherwise the
    index is considered malformed.'''
    if len(offsets) < 2:
        raise MalformedIndex(message='not enough offsets to derive sizes')

    sizes = []
    for idx in range(len(offsets) - 1):
        offset, next_offset = offsets[idx], offsets[idx + 1]
        if next_offset < offset:
            raise MalformedIndex(message=f'offset #{idx + 1} goes backward', offset=next_offset)
        size = next_offset - offset
        if not check_placement(offset, size, container_length, data_start):
            raise MalformedIndex(message=f'entry #{idx} out of bounds', offset=offset)
        sizes.append(size)

    return sizes


def require_sane_count(n, min_record_size, remaining_length, tag=None):
    if not is_sane_count(n, min_record_size, remaining_length):
        logger.debug('insane count %d (record size %d, %d bytes remaining)', n, min_record_size, remaining_length)
        raise MalformedIndex(message=f'insane entry count {n}', tag=tag)

    return n


def require_placement(offset, size, container_length, data_start=0, tag=None, entry=None):
    if not check_placement(offset, size, container_length, data_start):
        raise MalformedIndex(
            message=f'entry of size {size} doesn\'t fit',
            tag=tag, entry=entry, offset=offset)
