"""Entity <-> wire document conversion for Cosmos DB.

The policy is fixed and applied in one place:

- field names are written using the model's aliases
- enum members are written by name and read back from either name or value
- datetimes are normalized to UTC and written as fixed-width ISO-8601 with a
  trailing ``Z`` (naive datetimes are taken to be UTC already)
- ``None`` fields are omitted from the document
- an object that refers back to one of its ancestors is omitted at the point
  of the back-reference rather than failing the whole document

Decoding is schema checked: the document is validated against the concrete
entity type and any mismatch surfaces as :class:`SerializationError`.
"""

from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, TypeVar, Union, get_args, get_origin
from uuid import UUID

from pydantic import BaseModel, ValidationError

from .exceptions import SerializationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Properties Cosmos DB adds to every stored document.
SYSTEM_PROPERTIES = frozenset({"_rid", "_self", "_etag", "_attachments", "_ts"})

_OMIT = object()


def format_datetime(value: datetime) -> str:
    """Render a datetime as UTC ISO-8601 with microsecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    return text.replace("+00:00", "Z")


def field_wire_name(name: str, info: Any) -> str:
    """Return the document property name for a pydantic field."""
    return info.serialization_alias or info.alias or name


class DocumentSerializer:
    """Applies the wire serialization policy to entities and documents."""

    def to_document(self, entity: BaseModel) -> dict[str, Any]:
        """Encode an entity into a JSON-compatible document."""
        if not isinstance(entity, BaseModel):
            raise SerializationError(
                f"Expected a pydantic model, got {type(entity).__name__}"
            )
        return self._encode(entity, set())

    def to_wire_value(self, value: Any) -> Any:
        """Encode a single scalar the same way it would appear in a document."""
        encoded = self._encode(value, set())
        if encoded is _OMIT:
            raise SerializationError(f"Cannot encode value {value!r}")
        return encoded

    def from_document(
        self, entity_type: type[ModelT], document: Mapping[str, Any]
    ) -> ModelT:
        """Decode a stored document into ``entity_type``."""
        if not isinstance(document, Mapping):
            raise SerializationError(
                f"Expected a document object for {entity_type.__name__}, "
                f"got {type(document).__name__}"
            )

        payload = {k: v for k, v in document.items() if k not in SYSTEM_PROPERTIES}
        payload = _resolve_enum_names(entity_type, payload)

        try:
            return entity_type.model_validate(payload)
        except ValidationError as e:
            raise SerializationError(
                f"Document {document.get('id')!r} does not match "
                f"{entity_type.__name__}: {e.error_count()} validation error(s)"
            ) from e

    def _encode(self, value: Any, active: set[int]) -> Any:
        if isinstance(value, Enum):
            return value.name
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, datetime):
            return format_datetime(value)
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, (Decimal, UUID)):
            return str(value)

        marker = id(value)
        if marker in active:
            logger.debug("Omitting back-reference to %s", type(value).__name__)
            return _OMIT

        active.add(marker)
        try:
            if isinstance(value, BaseModel):
                return self._encode_model(value, active)
            if isinstance(value, Mapping):
                return self._encode_mapping(value, active)
            if isinstance(value, (list, tuple, set, frozenset)):
                items = (self._encode(item, active) for item in value)
                return [item for item in items if item is not _OMIT]
        finally:
            active.discard(marker)

        raise SerializationError(
            f"Cannot serialize value of type {type(value).__name__}"
        )

    def _encode_model(self, model: BaseModel, active: set[int]) -> dict[str, Any]:
        document: dict[str, Any] = {}
        for name, info in type(model).model_fields.items():
            encoded = self._encode(getattr(model, name), active)
            if encoded is None or encoded is _OMIT:
                continue
            document[field_wire_name(name, info)] = encoded
        return document

    def _encode_mapping(
        self, mapping: Mapping[Any, Any], active: set[int]
    ) -> dict[str, Any]:
        document: dict[str, Any] = {}
        for key, item in mapping.items():
            if isinstance(key, Enum):
                key = key.name
            if not isinstance(key, str):
                raise SerializationError(
                    f"Document keys must be strings, got {type(key).__name__}"
                )
            encoded = self._encode(item, active)
            if encoded is None or encoded is _OMIT:
                continue
            document[key] = encoded
        return document


def _resolve_enum_names(
    model_type: type[BaseModel], data: Mapping[str, Any]
) -> dict[str, Any]:
    """Replace enum member names in ``data`` with members, following the model schema."""
    resolved = dict(data)
    for name, info in model_type.model_fields.items():
        for key in {field_wire_name(name, info), name}:
            if key in resolved:
                resolved[key] = _coerce(info.annotation, resolved[key])
    return resolved


def _coerce(annotation: Any, value: Any) -> Any:
    if inspect.isclass(annotation):
        if issubclass(annotation, Enum):
            if isinstance(value, str) and value in annotation.__members__:
                return annotation[value]
            return value
        if issubclass(annotation, BaseModel) and isinstance(value, Mapping):
            return _resolve_enum_names(annotation, value)
        return value

    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Annotated:
        return _coerce(args[0], value)
    if origin in (Union, types.UnionType):
        for arg in args:
            if arg is type(None):
                continue
            coerced = _coerce(arg, value)
            if coerced is not value:
                return coerced
        return value
    if origin in (list, set, frozenset, tuple) and isinstance(value, list) and args:
        return [_coerce(args[0], item) for item in value]
    if origin is dict and isinstance(value, Mapping) and len(args) == 2:
        return {k: _coerce(args[1], v) for k, v in value.items()}
    return value
