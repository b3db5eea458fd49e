"""Base classes shared by every stored entity."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Model whose fields travel as camelCase document properties."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Entity(WireModel):
    """A record stored as one document, identified by ``id`` within its collection."""

    id: str = Field(min_length=1)
