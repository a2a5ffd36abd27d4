import pytest

from tests.fakes import RecordingSurface


@pytest.fixture
def surface():
    return RecordingSurface()
