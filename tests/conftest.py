import pathlib
import site

import pytest
from querygen.connection import dispose_engines

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def disposed_engines():
    """Dispose pooled engines after each test so database files can be removed."""
    yield
    dispose_engines()


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.files',
    'tests.fixtures.sqlite',
    'tests.fixtures.postgres',
]
