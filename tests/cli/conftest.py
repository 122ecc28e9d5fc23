import os
import sys
from unittest import mock

import pytest


@pytest.fixture
def cli_on_path():
    with mock.patch.dict(
            os.environ,
            {
                'PATH': '{}:{}'.format(
                    os.path.dirname(sys.executable), os.environ['PATH'],
                ),
            },
    ):
        yield


@pytest.fixture(autouse=True)
def no_user_config():
    """Keep a developer's ~/.config/freeimages.json out of the tests."""
    with mock.patch('freeimages.cli.get_config', return_value={'server': 'http://localhost:1'}):
        yield
