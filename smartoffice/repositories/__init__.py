"""
Repositories for the SmartOffice collections.

Each repository binds one entity type to its container and adds the queries
the sync jobs need:
- ControlRepository: Secure Score control catalog, partitioned by category
- CustomerRepository: partner customers and their processing outcome
"""

from smartoffice.data.context import StoreContext
from smartoffice.data.repository import DocumentRepository

from .controls import ControlRepository
from .customers import CustomerRepository

__all__ = ["ControlRepository", "CustomerRepository", "build_repositories"]


def build_repositories(context: StoreContext) -> dict[str, DocumentRepository]:
    """Build every repository, keyed by collection name."""
    repositories = [ControlRepository(context), CustomerRepository(context)]
    return {repository.collection_name: repository for repository in repositories}
