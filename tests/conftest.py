"""
Pytest configuration and shared fixtures for MDB_OPS tests.

This module provides:
- Mock MongoDB client, database and collection fixtures
- Testcontainers fixtures for integration tests
"""

import os
from typing import Dict
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from mdb_ops import MongoOperations, OpsConfig
from mock_motor import make_collection


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without a MongoDB server")
    config.addinivalue_line("markers", "integration: tests against a real MongoDB container")


# ============================================================================
# MOCK MONGODB FIXTURES
# ============================================================================


@pytest.fixture
def mock_mongo_client() -> MagicMock:
    """
    Create a mock MongoDB client.

    ``client[db][collection]`` returns the same mock collection for the same
    names, so tests can configure a collection before the code under test
    resolves it.
    """
    client = MagicMock(spec=AsyncIOMotorClient)
    databases: Dict[str, MagicMock] = {}

    def get_database(self, db_name):
        if db_name not in databases:
            db = MagicMock(spec=AsyncIOMotorDatabase)
            db.name = db_name
            db.client = client
            collections: Dict[str, MagicMock] = {}

            def get_collection(self, collection_name):
                if collection_name not in collections:
                    collections[collection_name] = make_collection(collection_name)
                return collections[collection_name]

            db.__getitem__ = get_collection
            databases[db_name] = db
        return databases[db_name]

    client.__getitem__ = get_database
    client.databases = databases
    return client


@pytest.fixture
def ops_config() -> OpsConfig:
    """Provide default configuration for MongoOperations."""
    return OpsConfig(mongo_uri="mongodb://localhost:27017", db_name="test_db")


@pytest.fixture
def operations(mock_mongo_client: MagicMock, ops_config: OpsConfig) -> MongoOperations:
    """Create a MongoOperations instance backed by the mock client."""
    ops = MongoOperations(ops_config, client=mock_mongo_client)
    yield ops
    ops.close()


@pytest.fixture
def people_collection(mock_mongo_client: MagicMock) -> MagicMock:
    """The mock collection Person entities are stored in."""
    return mock_mongo_client["test_db"]["people"]


@pytest.fixture
def products_collection(mock_mongo_client: MagicMock) -> MagicMock:
    """The mock collection Product entities are stored in."""
    return mock_mongo_client["catalog"]["products"]


# ============================================================================
# ENVIRONMENT VARIABLES
# ============================================================================


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch):
    """Reset environment variables before each test."""
    env_vars_to_clear = [
        "MONGO_URI",
        "DB_NAME",
        "MONGO_MAX_POOL_SIZE",
        "MONGO_MIN_POOL_SIZE",
        "MONGO_SERVER_SELECTION_TIMEOUT_MS",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    yield


# ============================================================================
# TESTCONTAINERS FIXTURES (Real MongoDB for Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def mongodb_container():
    """
    Start a MongoDB container for integration tests.

    Session-scoped: container starts once and is reused for all integration tests.
    """
    try:
        from testcontainers.mongodb import MongoDbContainer
    except ImportError:
        pytest.skip("testcontainers not installed. Install with: pip install -e '.[test]'")

    with MongoDbContainer(image="mongo:7.0") as container:
        yield container


@pytest.fixture
def mongodb_connection_string(mongodb_container) -> str:
    """Connection string of the test container."""
    return mongodb_container.get_connection_url()


@pytest_asyncio.fixture
async def real_operations(mongodb_connection_string):
    """
    Create MongoOperations connected to the test container.

    Uses a unique database name per test and drops it afterwards.
    """
    db_name = f"test_db_{os.getpid()}_{os.urandom(4).hex()}"
    client = AsyncIOMotorClient(mongodb_connection_string)
    ops = MongoOperations(
        OpsConfig(mongo_uri=mongodb_connection_string, db_name=db_name), client=client
    )

    yield ops

    await client.drop_database(db_name)
    # Catalog entities declare their own database
    await client.drop_database("catalog")
    ops.close()
    client.close()
