"""
Shared fixtures.

Every app under test runs in mock mode against a RecordingDriveClient,
so no test needs Google credentials.
"""

import pytest
from fastapi.testclient import TestClient

from drive_gateway.config.settings import Settings
from drive_gateway.main import create_app

from tests.fakes import ROOT_FOLDER_ID, RecordingDriveClient


def make_settings(**overrides) -> Settings:
    values = {
        "folder_id": ROOT_FOLDER_ID,
        "drive_mock_mode": True,
        "categories_json": '{"Năm 1": "", "Năm 2": ""}',
        "max_upload_size_mb": 1,
        "download_chunk_size": 4,
        "static_dir": None,
        "_env_file": None,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def drive() -> RecordingDriveClient:
    return RecordingDriveClient()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def client(settings, drive):
    """Test client whose lifespan has run, backed by the recording Drive."""
    with TestClient(create_app(settings=settings, drive=drive)) as test_client:
        yield test_client
