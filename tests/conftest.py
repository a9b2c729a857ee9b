import logging
import pathlib
import site

import pytest
from rowbind.transaction import _local

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def clear_transaction_state():
    """Forget transactions a failing test left marked as active."""
    yield
    if hasattr(_local, 'active_transactions'):
        _local.active_transactions.clear()


@pytest.fixture
def debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger='rowbind')
    return caplog


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.values',
    'tests.fixtures.sqlite',
    'tests.fixtures.postgres',
]
