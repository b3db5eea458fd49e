"""Entities persisted by the sync jobs."""

from .base import Entity, WireModel
from .controls import ActionType, ControlCategory, ControlListEntry
from .customers import (
    Address,
    CustomerBillingProfile,
    CustomerCompanyProfile,
    CustomerDetail,
    ExceptionDetail,
    PartnerRelationship,
)

__all__ = [
    "Entity",
    "WireModel",
    "ActionType",
    "ControlCategory",
    "ControlListEntry",
    "Address",
    "CustomerBillingProfile",
    "CustomerCompanyProfile",
    "CustomerDetail",
    "ExceptionDetail",
    "PartnerRelationship",
]
