class VnarcException(Exception):
    '''Base class to extend in order to throw exception in vnarc.

    It takes as first argument the chain of the layer that caused the
    exception, the remaining keyword arguments give the context (format tag,
    entry name, offset) needed to diagnose the failure.
    '''

    def __init__(self, chain=None, message=None, **context):
        self.chain = chain if chain is not None else []
        self.message = message
        self.context = context
        super().__init__(self._describe())

    def _describe(self):
        parts = []
        if self.message:
            parts.append(self.message)
        for key in ('tag', 'entry', 'offset'):
            value = self.context.get(key)
            if value is None:
                continue
            if key == 'offset' and isinstance(value, int):
                value = f'0x{value:x}'
            parts.append(f'{key}={value}')
        if self.chain:
            parts.append('at ' + '.'.join(self.chain[::-1]))

        return ' '.join(parts)

    @property
    def tag(self):
        return self.context.get('tag')

    @property
    def entry(self):
        return self.context.get('entry')

    @property
    def offset(self):
        return self.context.get('offset')


class UnpackException(VnarcException):
    pass


class MagicException(VnarcException):
    pass


class ChunkUnpackException(VnarcException):
    pass


class NoMatch(VnarcException):
    '''A format candidate declines the source: it never leaves the dispatch loop.'''
    pass


class MalformedIndex(VnarcException):
    '''Count, offset or size read from a directory failed the sanity checks.'''
    pass


class DecodeFailure(VnarcException):
    '''A codec stage ran out of input or found an inconsistency.'''
    pass


class UnsupportedOperation(VnarcException, NotImplementedError):
    pass
