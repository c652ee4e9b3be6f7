import pytest

from brokerage.app import app
from brokerage.services import reset_state


@pytest.fixture(autouse=True)
def _fresh_state():
    reset_state()
    yield
    app.dependency_overrides.clear()
    reset_state()
