"""
Client management for MDB_OPS.

Holds one motor client per client name. Clients passed in by the caller are
used as is and never closed here; clients created from configuration are
owned by the registry and closed by ``close()``.
"""

import logging
import threading
from collections.abc import Mapping

from motor.motor_asyncio import AsyncIOMotorClient

from ..config import OpsConfig
from ..constants import APP_NAME, DEFAULT_CLIENT_NAME, DEFAULT_MAX_IDLE_TIME_MS
from ..observability import get_logger as get_contextual_logger

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


class ClientRegistry:
    """
    Registry of MongoDB clients by client name.

    Example:
        clients = ClientRegistry(OpsConfig(mongo_uri="mongodb://localhost:27017"))
        client = clients.get()               # default client, created on first use
        reporting = clients.get("reporting")  # uses MONGO_REPORTING_URI if set
    """

    def __init__(
        self,
        config: OpsConfig,
        clients: Mapping[str, AsyncIOMotorClient] | None = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            config: Configuration used to create missing clients
            clients: Pre-built clients by client name (not owned by the registry)
        """
        self._config = config
        self._clients: dict[str, AsyncIOMotorClient] = dict(clients or {})
        self._owned: set[str] = set()
        self._lock = threading.Lock()

    def register(self, client_name: str, client: AsyncIOMotorClient) -> None:
        """Register an externally managed client."""
        with self._lock:
            self._clients[client_name] = client
            self._owned.discard(client_name)

    def get(self, client_name: str | None = None) -> AsyncIOMotorClient:
        """
        Get the client of an entity group, creating it from configuration if needed.

        Raises:
            ConfigurationError: If no URI is configured for the client
        """
        name = client_name or DEFAULT_CLIENT_NAME
        client = self._clients.get(name)
        if client is not None:
            return client

        with self._lock:
            client = self._clients.get(name)
            if client is None:
                client = self._create(name)
                self._clients[name] = client
                self._owned.add(name)
        return client

    def _create(self, client_name: str) -> AsyncIOMotorClient:
        uri = self._config.uri_for(client_name)
        self._config.validate()
        contextual_logger.info(
            "Creating MongoDB client",
            extra={
                "client_name": client_name,
                "max_pool_size": self._config.max_pool_size,
                "min_pool_size": self._config.min_pool_size,
            },
        )
        return AsyncIOMotorClient(
            uri,
            serverSelectionTimeoutMS=self._config.server_selection_timeout_ms,
            appname=APP_NAME,
            maxPoolSize=self._config.max_pool_size,
            minPoolSize=self._config.min_pool_size,
            maxIdleTimeMS=DEFAULT_MAX_IDLE_TIME_MS,
            retryWrites=True,
            retryReads=True,
        )

    def close(self) -> None:
        """
        Close the clients this registry created and forget all clients.

        This method is idempotent - it's safe to call multiple times.
        """
        with self._lock:
            for name in self._owned:
                self._clients[name].close()
                logger.info(f"MongoDB client '{name}' closed")
            self._owned.clear()
            self._clients.clear()
