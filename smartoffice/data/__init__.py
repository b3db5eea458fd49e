"""Cosmos DB document store layer: connection, provisioning, repositories and queries."""

from .connection import ConnectionProvider
from .context import StoreContext, get_store_context
from .exceptions import (
    DocumentStoreError,
    ProvisioningError,
    QueryTranslationError,
    SerializationError,
    StoreConnectionError,
    StoreError,
)
from .provisioning import ProvisioningManager, ProvisioningResult
from .query import CompiledQuery, Expression, compile_query, field
from .repository import DocumentRepository
from .serialization import DocumentSerializer

__all__ = [
    "ConnectionProvider",
    "StoreContext",
    "get_store_context",
    "ProvisioningManager",
    "ProvisioningResult",
    "DocumentRepository",
    "DocumentSerializer",
    "CompiledQuery",
    "Expression",
    "compile_query",
    "field",
    "DocumentStoreError",
    "StoreConnectionError",
    "ProvisioningError",
    "StoreError",
    "QueryTranslationError",
    "SerializationError",
]
