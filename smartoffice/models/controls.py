"""Secure Score control catalog entries."""

from enum import Enum

from pydantic import Field

from .base import Entity


class ControlCategory(str, Enum):
    """Area of the tenant a control protects."""

    IDENTITY = "Identity"
    DATA = "Data"
    DEVICE = "Device"
    APPS = "Apps"
    INFRASTRUCTURE = "Infrastructure"


class ActionType(str, Enum):
    """Kind of work needed to satisfy a control."""

    CONFIG = "Config"
    REVIEW = "Review"
    BEHAVIOR = "Behavior"


class ControlListEntry(Entity):
    """One row of the Secure Score controls catalog."""

    name: str
    description: str | None = None
    category: ControlCategory
    action_type: ActionType | None = None
    max_score: int = Field(default=0, ge=0)
    tier: str | None = None
    user_impact: str | None = None
    implementation_cost: str | None = None
    threats: list[str] = Field(default_factory=list)
    remediation: str | None = None
    deprecated: bool = False
