"""Cosmos DB client ownership.

A :class:`ConnectionProvider` creates the async ``CosmosClient`` the first time
it is asked for one and hands the same instance to every caller afterwards.
Tests inject a pre-built client instead.
"""

from __future__ import annotations

import logging
from typing import Any

from azure.core.exceptions import AzureError
from azure.cosmos.aio import CosmosClient

from smartoffice import __version__
from smartoffice.config import CosmosConfig

from .exceptions import StoreConnectionError

logger = logging.getLogger(__name__)


class ConnectionProvider:
    """Owns a single lazily created Cosmos DB client."""

    def __init__(
        self,
        endpoint: str | None = None,
        credential: str | None = None,
        *,
        config: CosmosConfig | None = None,
        client: Any | None = None,
    ):
        self.config = config or CosmosConfig()
        self.endpoint = endpoint if endpoint is not None else self.config.endpoint
        self._credential = credential if credential is not None else self.config.key
        self._client = client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def get_client(self) -> CosmosClient:
        """Return the shared client, creating it on first use."""
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self) -> CosmosClient:
        if not self.endpoint:
            raise StoreConnectionError("Cosmos DB endpoint is not configured")
        if not self._credential:
            raise StoreConnectionError(
                f"No credential configured for Cosmos DB account {self.endpoint}"
            )

        try:
            client = CosmosClient(
                self.endpoint,
                credential=self._credential,
                connection_timeout=self.config.connection_timeout_seconds,
                retry_total=self.config.retry_total,
                retry_backoff_max=self.config.retry_backoff_max_seconds,
                preferred_locations=self.config.preferred_locations or None,
                user_agent_suffix=f"smartoffice-sync/{__version__}",
            )
        except (AzureError, ValueError, TypeError) as e:
            raise StoreConnectionError(
                f"Failed to create Cosmos DB client for {self.endpoint}: {e}"
            ) from e

        logger.info(f"Created Cosmos DB client for {self.endpoint}")
        return client

    async def close(self) -> None:
        """Close the client if one was created."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.info("Closed Cosmos DB client")
