import os
from unittest.mock import Mock

import pytest


def pytest_sessionstart(session):  # noqa: ANN201, ARG001, ANN001
    mock_env = {
        "LOG_LEVEL": "DEBUG",
        "keycloak_debug": "false",
        "keycloak_timeout": "5",
        "keycloak_page_size": "2",
        "output_format": "json",
        "AWS_DEFAULT_REGION": "us-east-1",
    }
    os.environ |= mock_env


@pytest.fixture
def reset_settings():
    """Drops the cached settings so environment changes are picked up."""
    import config

    config._settings = None
    yield
    config._settings = None


@pytest.fixture
def sync_config_file(tmp_path):
    """Writes a sync configuration file and returns its path."""

    def write(content: str) -> str:
        path = tmp_path / "keycloak-sync.yml"
        path.write_text(content, encoding="utf-8")
        return str(path)

    return write


@pytest.fixture
def mock_s3_client():
    """Mock S3 client."""
    client = Mock()
    client.exceptions = Mock()
    client.exceptions.NoSuchKey = type("NoSuchKey", (Exception,), {})
    client.exceptions.NoSuchBucket = type("NoSuchBucket", (Exception,), {})
    return client
