"""Customer records synchronized from the partner's customer list."""

from enum import Enum

from pydantic import AwareDatetime

from .base import Entity, WireModel


class PartnerRelationship(Enum):
    """How the partner relates to the customer tenant."""

    RESELLER = "reseller"
    ADVISOR = "advisor"
    NONE = "none"


class Address(WireModel):
    country: str | None = None
    region: str | None = None
    city: str | None = None
    address_line1: str | None = None
    postal_code: str | None = None
    phone_number: str | None = None


class CustomerBillingProfile(WireModel):
    """Billing contact for the customer."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    culture: str | None = None
    language: str | None = None
    company_name: str | None = None
    default_address: Address | None = None


class CustomerCompanyProfile(WireModel):
    """Directory details of the customer tenant."""

    tenant_id: str
    domain: str
    company_name: str | None = None


class ExceptionDetail(WireModel):
    """Error captured while processing a customer."""

    type: str
    message: str
    stack_trace: str | None = None


class CustomerDetail(Entity):
    """A customer of the partner and the outcome of its last processing run."""

    billing_profile: CustomerBillingProfile | None = None
    company_profile: CustomerCompanyProfile | None = None
    relationship_to_partner: PartnerRelationship | None = None
    last_processed: AwareDatetime | None = None
    process_exception: ExceptionDetail | None = None
