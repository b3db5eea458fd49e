"""Generic document repository over a Cosmos DB container."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from azure.core.exceptions import AzureError
from azure.cosmos import exceptions

from smartoffice.models.base import Entity

from .context import StoreContext
from .exceptions import StoreError
from .procedures import load_procedure
from .provisioning import ProvisioningResult
from .query import Expression, compile_query, field

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=Entity)


class DocumentRepository(Generic[EntityT]):
    """Typed CRUD, query and bulk upsert for one entity type in one container.

    Call :meth:`initialize` before :meth:`add_or_update_many`; it registers the
    bulk import procedure the bulk path depends on. Point reads and single
    upserts only need the container to exist.

    Every document must carry a non-null value at ``partition_key_path``;
    writes without one raise :class:`StoreError`.
    """

    def __init__(
        self,
        entity_type: type[EntityT],
        context: StoreContext,
        collection_name: str,
        *,
        database_name: str | None = None,
        partition_key_path: str = "/id",
        throughput_units: int | None = None,
        procedure_name: str | None = None,
        page_size: int | None = None,
        resubmit_remainder: bool | None = None,
    ):
        if not partition_key_path.startswith("/"):
            raise ValueError(f"Partition key path must start with '/': {partition_key_path!r}")

        self.entity_type = entity_type
        self.collection_name = collection_name
        self.database_name = database_name or context.database_name
        self.partition_key_path = partition_key_path
        self.throughput_units = throughput_units or context.throughput_units
        self.procedure_name = procedure_name or context.procedure_name
        self.page_size = page_size if page_size is not None else context.page_size
        self.resubmit_remainder = (
            resubmit_remainder if resubmit_remainder is not None else context.resubmit_remainder
        )
        self._context = context
        self._serializer = context.serializer

    def _container(self) -> Any:
        client = self._context.provider.get_client()
        database = client.get_database_client(self.database_name)
        return database.get_container_client(self.collection_name)

    async def initialize(self) -> ProvisioningResult:
        """Provision the database, container and bulk import procedure."""
        result = await self._context.provisioning.ensure_ready(
            self.database_name,
            self.collection_name,
            self.procedure_name,
            load_procedure,
            throughput_units=self.throughput_units,
            partition_key_path=self.partition_key_path,
        )
        logger.info(
            f"Repository {self.database_name}/{self.collection_name} ready "
            f"(created: database={result.database_created}, "
            f"container={result.container_created}, procedure={result.procedure_created})"
        )
        return result

    async def add_or_update(self, item: EntityT) -> EntityT:
        """Insert ``item`` or replace the stored document with the same id."""
        document = self._serializer.to_document(item)
        self._partition_value(document)
        try:
            stored = await self._container().upsert_item(body=document)
        except AzureError as e:
            raise self._error("upsert", e, item.id) from e
        return self._decode(stored)

    async def add_or_update_many(self, items: Iterable[EntityT]) -> int:
        """Upsert a batch through the bulk import procedure.

        Documents are submitted in id order, one procedure call per partition
        key value. When the procedure stops early because its execution budget
        ran out, the remainder is resubmitted from the acknowledged offset
        (unless ``resubmit_remainder`` is off). Returns the number of documents
        the procedure acknowledged.
        """
        documents = sorted(
            (self._serializer.to_document(item) for item in items),
            key=lambda d: d["id"],
        )
        if not documents:
            return 0

        imported = 0
        for partition_value, batch in self._group_by_partition(documents).items():
            imported += await self._bulk_import(batch, partition_value)

        logger.info(
            f"Bulk import into {self.collection_name}: {imported}/{len(documents)} documents"
        )
        return imported

    async def _bulk_import(self, batch: list[dict[str, Any]], partition_value: Any) -> int:
        scripts = self._container().scripts
        offset = 0

        while offset < len(batch):
            remainder = batch[offset:]
            try:
                completed = await scripts.execute_stored_procedure(
                    self.procedure_name,
                    partition_key=partition_value,
                    parameters=[remainder],
                )
            except AzureError as e:
                raise self._error(f"run {self.procedure_name} on", e) from e

            if not isinstance(completed, int) or isinstance(completed, bool):
                raise StoreError(
                    f"{self.procedure_name} returned {completed!r} instead of a document count"
                )
            completed = min(completed, len(remainder))

            if not self.resubmit_remainder:
                if completed < len(remainder):
                    logger.warning(
                        f"{self.procedure_name} acknowledged {completed} of "
                        f"{len(remainder)} documents; remainder not resubmitted"
                    )
                return completed

            if completed == 0:
                raise StoreError(
                    f"{self.procedure_name} made no progress on {self.collection_name} "
                    f"with {len(remainder)} documents remaining"
                )

            offset += completed
            if offset < len(batch):
                logger.info(
                    f"{self.procedure_name} stopped after {completed} documents, "
                    f"resubmitting {len(batch) - offset}"
                )

        return offset

    def _group_by_partition(
        self, documents: list[dict[str, Any]]
    ) -> dict[Any, list[dict[str, Any]]]:
        groups: dict[Any, list[dict[str, Any]]] = {}
        for document in documents:
            value = self._partition_value(document)
            groups.setdefault(value, []).append(document)
        return groups

    def _partition_value(self, document: dict[str, Any]) -> Any:
        value: Any = document
        for segment in self.partition_key_path.strip("/").split("/"):
            if not isinstance(value, dict) or value.get(segment) is None:
                raise StoreError(
                    f"Document {document.get('id')!r} has no value for partition key "
                    f"{self.partition_key_path}"
                )
            value = value[segment]
        return value

    async def get(self, id: str, partition_key: Any = None) -> EntityT | None:
        """Point lookup by id; returns ``None`` when the document does not exist.

        Containers partitioned on something other than ``/id`` need the
        partition key value for a point read; without it the lookup runs as a
        query on ``id``.
        """
        if partition_key is None and self.partition_key_path != "/id":
            matches = await self.query(field("id") == id)
            return matches[0] if matches else None

        if partition_key is None:
            partition_key = id
        try:
            document = await self._container().read_item(
                item=id,
                partition_key=self._serializer.to_wire_value(partition_key),
            )
        except exceptions.CosmosResourceNotFoundError:
            return None
        except AzureError as e:
            raise self._error("read", e, id) from e
        return self._decode(document)

    async def get_all(self) -> list[EntityT]:
        """Return the first page of the container's document feed.

        Continuation tokens are not followed: large collections return only the
        store's default page (or ``page_size``) worth of documents. Use
        :meth:`query` for complete scans.
        """
        try:
            pages = self._container().read_all_items(max_item_count=self.page_size).by_page()
            async for page in pages:
                return [self._decode(document) async for document in page]
        except AzureError as e:
            raise self._error("read feed of", e) from e
        return []

    async def query(self, predicate: Expression) -> list[EntityT]:
        """Return every document matching ``predicate``, following all pages."""
        compiled = compile_query(predicate, self.entity_type, self._serializer)

        results: list[EntityT] = []
        page_count = 0
        try:
            pages = self._container().query_items(
                query=compiled.text,
                parameters=compiled.parameters,
                max_item_count=self.page_size,
            ).by_page()
            async for page in pages:
                page_count += 1
                async for document in page:
                    results.append(self._decode(document))
        except AzureError as e:
            raise self._error("query", e) from e

        logger.debug(
            "Query on %s returned %d documents in %d pages",
            self.collection_name,
            len(results),
            page_count,
        )
        return results

    def _decode(self, document: Any) -> EntityT:
        return self._serializer.from_document(self.entity_type, document)

    def _error(self, action: str, error: AzureError, document_id: str | None = None) -> StoreError:
        target = self.collection_name if document_id is None else f"{self.collection_name}/{document_id}"
        return StoreError(
            f"Failed to {action} {target}: {error.message}",
            status_code=getattr(error, "status_code", None),
        )
