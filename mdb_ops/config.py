"""
Configuration management for MDB_OPS.

Configuration is read from environment variables unless passed directly.
Named clients (entities declaring a ``client_name``) read their own
``MONGO_<CLIENT>_URI`` and ``MONGO_<CLIENT>_DB_NAME`` variables and fall back
to the default client settings.
"""

import os
import re

from .constants import (
    DEFAULT_CLIENT_NAME,
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
)
from .exceptions import ConfigurationError


def _env_key(client_name: str, suffix: str) -> str:
    """Build the environment variable name for a named client setting."""
    normalized = re.sub(r"[^A-Za-z0-9]+", "_", client_name).strip("_").upper()
    return f"MONGO_{normalized}_{suffix}"


class OpsConfig:
    """
    MDB_OPS configuration.

    Example:
        # Using environment variables
        config = OpsConfig()

        # Or using direct parameters
        config = OpsConfig(
            mongo_uri="mongodb://localhost:27017",
            db_name="my_db",
            database_names={"reporting": "reports"},
        )
    """

    def __init__(
        self,
        mongo_uri: str | None = None,
        db_name: str | None = None,
        max_pool_size: int | None = None,
        min_pool_size: int | None = None,
        server_selection_timeout_ms: int | None = None,
        client_uris: dict[str, str] | None = None,
        database_names: dict[str, str] | None = None,
    ):
        """
        Initialize configuration.

        Args:
            mongo_uri: MongoDB connection URI (defaults to MONGO_URI env var)
            db_name: Default database name (defaults to DB_NAME env var)
            max_pool_size: Maximum connection pool size (defaults to 50 or MONGO_MAX_POOL_SIZE)
            min_pool_size: Minimum connection pool size (defaults to 10 or MONGO_MIN_POOL_SIZE)
            server_selection_timeout_ms: Server selection timeout in ms (defaults to 5000)
            client_uris: Connection URIs of named clients
            database_names: Default database names of named clients
        """
        self.mongo_uri = mongo_uri or os.getenv("MONGO_URI", "")
        self.db_name = db_name or os.getenv("DB_NAME", "")
        self.max_pool_size = max_pool_size or int(
            os.getenv("MONGO_MAX_POOL_SIZE", str(DEFAULT_MAX_POOL_SIZE))
        )
        self.min_pool_size = min_pool_size or int(
            os.getenv("MONGO_MIN_POOL_SIZE", str(DEFAULT_MIN_POOL_SIZE))
        )
        self.server_selection_timeout_ms = server_selection_timeout_ms or int(
            os.getenv(
                "MONGO_SERVER_SELECTION_TIMEOUT_MS",
                str(DEFAULT_SERVER_SELECTION_TIMEOUT_MS),
            )
        )
        self.client_uris = dict(client_uris or {})
        self.database_names = dict(database_names or {})

    def uri_for(self, client_name: str | None) -> str:
        """
        Get the connection URI of a client.

        Raises:
            ConfigurationError: If no URI is configured for the client
        """
        uri = self.mongo_uri
        if client_name and client_name != DEFAULT_CLIENT_NAME:
            uri = (
                self.client_uris.get(client_name)
                or os.getenv(_env_key(client_name, "URI"))
                or self.mongo_uri
            )
        if not uri:
            raise ConfigurationError(
                "mongo_uri is required (set MONGO_URI environment variable or pass directly)",
                config_key="mongo_uri",
                context={"client_name": client_name or DEFAULT_CLIENT_NAME},
            )
        return uri

    def database_name_for(self, client_name: str | None) -> str:
        """
        Get the default database name of a client.

        Raises:
            ConfigurationError: If neither the client nor the default has a database name
        """
        name = self.db_name
        if client_name and client_name != DEFAULT_CLIENT_NAME:
            name = (
                self.database_names.get(client_name)
                or os.getenv(_env_key(client_name, "DB_NAME"))
                or self.db_name
            )
        if not name:
            raise ConfigurationError(
                "The database name is required: declare it on the entity, "
                "or set DB_NAME (or the client's MONGO_<CLIENT>_DB_NAME)",
                config_key="db_name",
                context={"client_name": client_name or DEFAULT_CLIENT_NAME},
            )
        return name

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If configuration values are invalid
        """
        if self.max_pool_size < 1:
            raise ConfigurationError(
                f"max_pool_size must be >= 1, got {self.max_pool_size}",
                config_key="max_pool_size",
                config_value=self.max_pool_size,
            )

        if self.min_pool_size < 1:
            raise ConfigurationError(
                f"min_pool_size must be >= 1, got {self.min_pool_size}",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

        if self.min_pool_size > self.max_pool_size:
            raise ConfigurationError(
                f"min_pool_size ({self.min_pool_size}) cannot be greater than "
                f"max_pool_size ({self.max_pool_size})",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

        if self.server_selection_timeout_ms < 1000:
            raise ConfigurationError(
                f"server_selection_timeout_ms must be >= 1000, got "
                f"{self.server_selection_timeout_ms}",
                config_key="server_selection_timeout_ms",
                config_value=self.server_selection_timeout_ms,
            )
