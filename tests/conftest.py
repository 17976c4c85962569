import pathlib
import site

import pytest
from sqlscan.cache import Cache
from sqlscan.dialect import _reset_default

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def clear_caches():
    """Clear all caches and the default dialect before and after each test to ensure test isolation."""
    Cache.get_instance().clear_all()
    _reset_default()
    yield
    Cache.get_instance().clear_all()
    _reset_default()


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.sqlite',
]
