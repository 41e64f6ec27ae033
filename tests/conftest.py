import logging
import os

import pytest

from vnarc.streams import Stream


logging.basicConfig(level=logging.DEBUG if 'DEBUG' in os.environ else logging.INFO)


@pytest.fixture
def make_resolver():
    '''Build a resolver serving the auxiliary files from a dictionary.'''
    def _make(files):
        lowered = {name.lower(): data for name, data in files.items()}

        def resolver(name):
            data = lowered.get(name.lower())
            return Stream(data, name=name) if data is not None else None

        return resolver

    return _make
