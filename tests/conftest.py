# tests/conftest.py
import pytest

from pewpew.core import log
from pewpew.core.dispatcher import Dispatcher
from pewpew.core.metrics import reset_all


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_logging():
    # reads LOG_LEVEL / LOG_JSON / .env if available
    log.setup()
    yield


@pytest.fixture(autouse=True)
def _fresh_metrics():
    reset_all()
    yield
    reset_all()


@pytest.fixture
def disp():
    return Dispatcher(name="test.dispatcher")
