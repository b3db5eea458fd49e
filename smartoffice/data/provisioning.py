"""Idempotent provisioning of databases, containers and stored procedures.

Each object is read first and only created after a not-found response. A
conflict on create means another initializer won the race and counts as
success, so ``ensure_ready`` is safe to run from every process on start-up and
costs three reads when everything already exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from azure.core.exceptions import AzureError
from azure.cosmos import PartitionKey, exceptions

from .connection import ConnectionProvider
from .exceptions import ProvisioningError

logger = logging.getLogger(__name__)

ProcedureBody = str | Callable[[], str]


@dataclass
class ProvisioningResult:
    """Which objects a call to ``ensure_ready`` had to create."""

    database_created: bool = False
    container_created: bool = False
    procedure_created: bool = False

    @property
    def created_anything(self) -> bool:
        return self.database_created or self.container_created or self.procedure_created


def _failure(action: str, target: str, error: AzureError) -> ProvisioningError:
    return ProvisioningError(
        f"Failed to {action} {target}: {error.message}",
        status_code=getattr(error, "status_code", None),
    )


class ProvisioningManager:
    """Ensures the database objects a repository depends on exist."""

    def __init__(self, provider: ConnectionProvider):
        self._provider = provider

    async def ensure_ready(
        self,
        database_name: str,
        collection_name: str,
        procedure_name: str,
        procedure_body: ProcedureBody,
        throughput_units: int = 400,
        partition_key_path: str = "/id",
    ) -> ProvisioningResult:
        """Create whatever is missing, in order: database, container, procedure."""
        client = self._provider.get_client()
        result = ProvisioningResult()

        result.database_created = await self._ensure_database(client, database_name)

        database = client.get_database_client(database_name)
        result.container_created = await self._ensure_container(
            database, collection_name, throughput_units, partition_key_path
        )

        container = database.get_container_client(collection_name)
        result.procedure_created = await self._ensure_procedure(
            container, procedure_name, procedure_body
        )

        return result

    async def _ensure_database(self, client: Any, name: str) -> bool:
        target = f"database {name!r}"
        try:
            await client.get_database_client(name).read()
            return False
        except exceptions.CosmosResourceNotFoundError:
            pass
        except AzureError as e:
            raise _failure("read", target, e) from e

        try:
            await client.create_database(id=name)
        except exceptions.CosmosResourceExistsError:
            logger.info(f"Database {name} was created concurrently")
            return False
        except AzureError as e:
            raise _failure("create", target, e) from e

        logger.info(f"Created database {name}")
        return True

    async def _ensure_container(
        self,
        database: Any,
        name: str,
        throughput_units: int,
        partition_key_path: str,
    ) -> bool:
        target = f"container {name!r}"
        try:
            await database.get_container_client(name).read()
            return False
        except exceptions.CosmosResourceNotFoundError:
            pass
        except AzureError as e:
            raise _failure("read", target, e) from e

        try:
            await database.create_container(
                id=name,
                partition_key=PartitionKey(path=partition_key_path),
                offer_throughput=throughput_units,
            )
        except exceptions.CosmosResourceExistsError:
            logger.info(f"Container {name} was created concurrently")
            return False
        except AzureError as e:
            raise _failure("create", target, e) from e

        logger.info(
            f"Created container {name} (partition key {partition_key_path}, "
            f"{throughput_units} RU/s)"
        )
        return True

    async def _ensure_procedure(
        self, container: Any, name: str, body: ProcedureBody
    ) -> bool:
        target = f"stored procedure {name!r}"
        try:
            await container.scripts.get_stored_procedure(name)
            return False
        except exceptions.CosmosResourceNotFoundError:
            pass
        except AzureError as e:
            raise _failure("read", target, e) from e

        source = body() if callable(body) else body

        try:
            await container.scripts.create_stored_procedure(body={"id": name, "body": source})
        except exceptions.CosmosResourceExistsError:
            logger.info(f"Stored procedure {name} was created concurrently")
            return False
        except AzureError as e:
            raise _failure("create", target, e) from e

        logger.info(f"Registered stored procedure {name}")
        return True
