"""
CustomerRepository

Cosmos DB operations for the 'customers' collection.

Specialized Methods:
- get_by_domain(domain): Customer whose tenant owns a primary domain
- get_unprocessed_since(cutoff): Customers not processed since ``cutoff``
- get_failed(): Customers whose last run recorded an exception
- mark_processed(customer, error): Stamp the outcome of a processing run
"""

import traceback
from datetime import datetime, timezone

from smartoffice.data.context import StoreContext
from smartoffice.data.query import field
from smartoffice.data.repository import DocumentRepository
from smartoffice.models.customers import CustomerDetail, ExceptionDetail


class CustomerRepository(DocumentRepository[CustomerDetail]):
    collection_name = "customers"

    def __init__(self, context: StoreContext, **options):
        super().__init__(CustomerDetail, context, self.collection_name, **options)

    async def get_by_domain(self, domain: str) -> CustomerDetail | None:
        matches = await self.query(field("company_profile.domain") == domain)
        return matches[0] if matches else None

    async def get_unprocessed_since(self, cutoff: datetime) -> list[CustomerDetail]:
        return await self.query(
            (field("last_processed") == None) | (field("last_processed") < cutoff)  # noqa: E711
        )

    async def get_failed(self) -> list[CustomerDetail]:
        return await self.query(field("process_exception").is_defined())

    async def mark_processed(
        self, customer: CustomerDetail, error: BaseException | None = None
    ) -> CustomerDetail:
        """Record the time and outcome of a processing run for ``customer``."""
        detail = None
        if error is not None:
            detail = ExceptionDetail(
                type=type(error).__name__,
                message=str(error),
                stack_trace="".join(traceback.format_exception(error)) or None,
            )
        updated = customer.model_copy(
            update={"last_processed": datetime.now(timezone.utc), "process_exception": detail}
        )
        return await self.add_or_update(updated)
