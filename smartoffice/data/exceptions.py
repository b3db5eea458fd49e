"""Custom exceptions for the document store layer."""


class DocumentStoreError(Exception):
    """Base exception for document store errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StoreConnectionError(DocumentStoreError):
    """The Cosmos DB client could not be constructed."""

    pass


class ProvisioningError(DocumentStoreError):
    """Reading or creating a database, container or stored procedure failed."""

    pass


class StoreError(DocumentStoreError):
    """A read, write or query against a container failed."""

    pass


class QueryTranslationError(DocumentStoreError):
    """A query expression cannot be expressed in Cosmos DB SQL."""

    pass


class SerializationError(DocumentStoreError):
    """An entity could not be encoded, or a document could not be decoded."""

    pass
