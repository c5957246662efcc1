import pytest
from fastapi.testclient import TestClient

from helpdesk.api import create_app
from helpdesk.config import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", timezone="UTC")


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client
