"""Explicitly owned store state shared by all repositories of a process."""

from __future__ import annotations

import logging
from functools import lru_cache

from smartoffice.config import Settings, get_settings

from .connection import ConnectionProvider
from .provisioning import ProvisioningManager
from .serialization import DocumentSerializer

logger = logging.getLogger(__name__)


class StoreContext:
    """Bundles the connection, serializer and repository defaults.

    Build one per process and pass it to every repository constructor; all
    repositories built from the same context share one Cosmos DB client.
    """

    def __init__(
        self,
        provider: ConnectionProvider,
        *,
        database_name: str,
        throughput_units: int = 400,
        procedure_name: str = "BulkImport",
        page_size: int | None = None,
        resubmit_remainder: bool = True,
        serializer: DocumentSerializer | None = None,
    ):
        self.provider = provider
        self.database_name = database_name
        self.throughput_units = throughput_units
        self.procedure_name = procedure_name
        self.page_size = page_size
        self.resubmit_remainder = resubmit_remainder
        self.serializer = serializer or DocumentSerializer()
        self.provisioning = ProvisioningManager(provider)

    @classmethod
    def from_settings(cls, settings: Settings) -> StoreContext:
        provider = ConnectionProvider(
            settings.cosmos.endpoint,
            settings.get_cosmos_key(),
            config=settings.cosmos,
        )
        return cls(
            provider,
            database_name=settings.cosmos.database,
            throughput_units=settings.repository.throughput_units,
            procedure_name=settings.repository.bulk_import_procedure,
            page_size=settings.repository.page_size,
            resubmit_remainder=settings.repository.resubmit_remainder,
        )

    async def close(self) -> None:
        await self.provider.close()


@lru_cache()
def get_store_context() -> StoreContext:
    """Get the process-wide StoreContext built from settings."""
    context = StoreContext.from_settings(get_settings())
    logger.debug(f"Store context ready for database {context.database_name}")
    return context
