"""Pytest configuration and fixtures."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient


@pytest.fixture(scope="function")
def settings():
    """Create settings instance for testing."""
    from chainsync.core.config import Settings

    return Settings(
        environment="testing",
        autostart_sync=False,
        indexer_url="https://primary.indexer.test",
        backup_indexer_url="https://backup.indexer.test",
        rpc_urls={"mainnet": "https://rpc.mainnet.test"},
    )


@pytest.fixture(scope="function")
def app(settings):
    """Create FastAPI application for testing."""
    from chainsync.main import create_app

    return create_app(settings)


@pytest.fixture(scope="function")
def client(app):
    """Create test client with sync autostart disabled."""
    with patch("chainsync.main.configure_logging"):
        with TestClient(app) as client:
            yield client
