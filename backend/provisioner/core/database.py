"""
MongoDB Session Module

Explicit connection/session object for provisioning runs. Instead of an
ambient "current database", every step asks the session for the database it
needs by name:
- admin_database() for principal management
- database(name) for the target application database

Connections use bounded timeouts from Settings. There is no retry loop: a
failed ping is a fatal ConnectivityError (or AuthorizationError when the
credential is rejected) and the caller re-runs the provisioner.
"""

import logging
from collections.abc import Callable
from typing import Any

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from provisioner.config import Settings, get_settings, mask_uri
from provisioner.errors import classify_error


# Configure module logger for structured logging
logger = logging.getLogger(__name__)

ADMIN_DATABASE = "admin"


class MongoSession:
    """
    Synchronous MongoDB session used by one provisioning run.

    Attributes:
        _settings: Settings with endpoint, credential and timeouts
        _client_factory: Callable building the driver client (MongoClient)
        _client: Connected client, or None before connect()/after close()

    Example usage:
        ```python
        with MongoSession(settings).connect() as session:
            users = session.database("gin_admin")["users"]
            users.count_documents({})
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client_factory: Callable[..., Any] = MongoClient,
    ) -> None:
        self._settings = settings or get_settings()
        self._client_factory = client_factory
        self._client: Any | None = None

    @classmethod
    def from_client(cls, client: Any, settings: Settings | None = None) -> "MongoSession":
        """
        Wrap an already constructed client (e.g. a shared or in-memory client).

        The wrapped client is not pinged.
        """
        session = cls(settings)
        session._client = client
        return session

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> Any:
        """
        Get the underlying driver client.

        Raises:
            RuntimeError: If the session is not connected.
        """
        if self._client is None:
            raise RuntimeError("MongoDB session is not connected. Call connect() first.")
        return self._client

    def connect(self) -> "MongoSession":
        """
        Create the client and verify the endpoint with an admin ping.

        Returns:
            MongoSession: self, so calls can be chained into a with-statement.

        Raises:
            ConnectivityError: Endpoint unreachable or timed out.
            AuthorizationError: Administrative credential rejected.
            ValidationError: Malformed URI or client options.
        """
        if self._client is not None:
            logger.warning("MongoDB session already connected, reusing existing client")
            return self

        uri = self._settings.resolved_mongodb_uri
        logger.info(
            f"Connecting to MongoDB at {mask_uri(uri)} "
            f"(server selection timeout {self._settings.mongodb_server_selection_timeout_ms}ms)"
        )

        client = None
        try:
            client = self._client_factory(uri, **self._settings.client_options())
            client[ADMIN_DATABASE].command("ping")
        except PyMongoError as e:
            if client is not None:
                client.close()
            error = classify_error(e, step="connect")
            logger.error(f"MongoDB connection failed: {error.message}")
            raise error from e

        self._client = client
        logger.info("Successfully connected to MongoDB server")
        return self

    def admin_database(self) -> Database:
        """Get the admin database used for principal management."""
        return self.client[ADMIN_DATABASE]

    def database(self, name: str) -> Database:
        """Get a database by explicit name."""
        return self.client[name]

    def run_admin_command(self, command: str, value: Any = 1, **kwargs: Any) -> dict[str, Any]:
        """
        Run a command against the admin database.

        Driver errors propagate unchanged; callers decide which of them
        mean "already exists".
        """
        return self.admin_database().command(command, value, **kwargs)

    def close(self) -> None:
        """Close the client. Safe to call when not connected."""
        if self._client is None:
            return
        try:
            self._client.close()
            logger.debug("MongoDB connection closed")
        finally:
            self._client = None

    def __enter__(self) -> "MongoSession":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()
