"""
Pytest Configuration and Test Fixtures for the gin-admin provisioner

This module provides shared fixtures including:
- Test Settings isolated from the environment and .env files
- The gin_admin seed specification built from test settings
- An in-memory MongoDB (mongomock) wrapped in a MongoSession
- A mocked admin command runner, since mongomock has no createUser
"""

from typing import Any, Generator
from unittest.mock import MagicMock

import mongomock
import pytest
from pymongo.database import Database

from provisioner.config import Settings
from provisioner.core.database import MongoSession
from provisioner.models.seed import SeedSpec, gin_admin_seed_spec


# ==============================================================================
# Pytest Configuration
# ==============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """
    Register custom markers for test categorization.

    Markers defined:
    - unit: isolated tests, no database state
    - integration: tests that run the provisioner against in-memory MongoDB
    """
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def mock_settings() -> Settings:
    """
    Settings with the gin_admin defaults spelled out and .env loading disabled.

    Returns:
        Settings: Configured Settings instance for testing
    """
    return Settings(
        _env_file=None,
        mongodb_uri=None,
        mongodb_host="localhost",
        mongodb_port=27017,
        mongodb_username="root",
        mongodb_password="root-secret",
        mongodb_auth_source="admin",
        mongodb_db_name="gin_admin",
        app_db_user="gin_admin",
        app_db_password="gin_admin123",
        app_db_role="readWrite",
        mongodb_connect_timeout_ms=1000,
        mongodb_server_selection_timeout_ms=1000,
        mongodb_socket_timeout_ms=1000,
        seed_policy="upsert",
        log_level="debug",
    )


@pytest.fixture
def seed_spec(mock_settings: Settings) -> SeedSpec:
    """The gin_admin seed specification for the test settings."""
    return gin_admin_seed_spec(mock_settings)


# ==============================================================================
# MongoDB Fixtures (mongomock)
# ==============================================================================


@pytest.fixture
def mongo_client() -> Generator[mongomock.MongoClient, None, None]:
    """
    In-memory MongoDB client.

    Behaves like pymongo for collections, indexes (including unique and
    sparse) and documents.
    """
    client = mongomock.MongoClient()
    yield client
    client.close()


@pytest.fixture
def session(mongo_client: mongomock.MongoClient, mock_settings: Settings) -> MongoSession:
    """
    MongoSession over the in-memory client.

    run_admin_command is replaced by a MagicMock that acknowledges
    createUser, so tests can assert on the issued command and inject
    server errors through side_effect.
    """
    mongo_session = MongoSession.from_client(mongo_client, mock_settings)
    mongo_session.run_admin_command = MagicMock(return_value={"ok": 1.0})
    return mongo_session


@pytest.fixture
def target_db(mongo_client: mongomock.MongoClient, seed_spec: SeedSpec) -> Database:
    """The provisioned application database."""
    return mongo_client[seed_spec.database]


def _snapshot(database: Any) -> dict[str, Any]:
    """
    Capture collections, index definitions and role documents for
    before/after comparisons.
    """
    state: dict[str, Any] = {}
    for name in sorted(database.list_collection_names()):
        indexes = database[name].index_information()
        state[name] = {
            "indexes": {
                index_name: (
                    list(info["key"]),
                    bool(info.get("unique", False)),
                    bool(info.get("sparse", False)),
                )
                for index_name, info in indexes.items()
            },
        }
    state["_roles"] = sorted(
        (doc["code"], doc["name"], tuple(doc["permissions"]), doc["created_at"], doc["updated_at"])
        for doc in database["roles"].find({})
    )
    return state


@pytest.fixture
def snapshot() -> Any:
    """Function capturing comparable database state (see _snapshot)."""
    return _snapshot
