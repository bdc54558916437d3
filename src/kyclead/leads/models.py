"""Pydantic models for the canonical lead record and its addresses."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, create_model
from pydantic.alias_generators import to_camel

from kyclead.errors import ValidationError


class AddressKind(str, Enum):
    """Closed set of address types a lead may carry."""

    RESIDENCE = "Residence"
    OFFICE = "Office"
    PERMANENT = "Permanent"


class AddressOwner(str, Enum):
    """Which party of the lead an address belongs to."""

    APPLICANT = "applicant"
    CO_APPLICANT = "co-applicant"


class LeadStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


class VisitType(str, Enum):
    PHYSICAL = "Physical"
    VIRTUAL = "Virtual"


class Address(BaseModel):
    """Physical address plus verification metadata.

    Addresses are frozen: the only supported change is re-pointing the assigned
    agent, which returns a copy via :meth:`with_agent`.
    """

    model_config = ConfigDict(frozen=True)

    kind: AddressKind = AddressKind.RESIDENCE
    line1: str = ""
    city: str = ""
    district: str = ""
    state: str = ""
    pincode: str = ""
    owner: AddressOwner = AddressOwner.APPLICANT
    assigned_agent_id: str | None = None

    def with_agent(self, agent_id: str | None) -> "Address":
        """Return a copy assigned to ``agent_id`` (``None`` clears the assignment)."""

        return self.model_copy(update={"assigned_agent_id": agent_id or None})


def blank_address(owner: AddressOwner = AddressOwner.APPLICANT) -> Address:
    """Return an empty Residence address for ``owner``."""

    return Address(kind=AddressKind.RESIDENCE, owner=owner)


class CoApplicant(BaseModel):
    """Optional second party on a lead."""

    name: str = ""
    age: int = 0
    phone: str = ""
    email: str = ""
    relation: str = ""
    occupation: str = ""
    monthly_income: float = 0.0


class AdditionalDetails(BaseModel):
    """Employment, property, vehicle, bank-product and loan attributes.

    Every known attribute is present with an empty/zero default so consumers
    never branch on a missing key. ``extra`` holds attributes that have not been
    promoted to first-class fields yet.
    """

    # professional
    company: str = ""
    designation: str = ""
    work_experience: str = ""
    monthly_income: float = 0.0
    annual_income: str = ""
    other_income: str = ""
    # family / personal
    father_name: str = ""
    mother_name: str = ""
    spouse_name: str = ""
    gender: str = ""
    marital_status: str = ""
    date_of_birth: str = ""
    # contact
    phone_number: str = ""
    email: str = ""
    # property
    property_type: str = ""
    ownership_status: str = ""
    property_age: str = ""
    # loan
    lead_type: str = ""
    lead_type_id: str = ""
    loan_amount: str = ""
    loan_type: str = ""
    # vehicle
    vehicle_brand_name: str = ""
    vehicle_brand_id: str = ""
    vehicle_model_name: str = ""
    vehicle_model_id: str = ""
    # bank product
    agency_file_no: str = ""
    application_barcode: str = ""
    case_id: str = ""
    scheme_desc: str = ""
    bank_product: str = ""
    initiated_under_branch: str = ""
    bank_branch: str = ""
    additional_comments: str = ""

    addresses: List[Address] = Field(default_factory=list)
    co_applicant_addresses: List[Address] = Field(default_factory=list)
    extra: Dict[str, str] = Field(default_factory=dict)


DETAIL_COLLECTION_FIELDS = ("addresses", "co_applicant_addresses", "extra")
DETAIL_SCALAR_FIELDS: tuple[str, ...] = tuple(
    name for name in AdditionalDetails.model_fields if name not in DETAIL_COLLECTION_FIELDS
)


class Lead(BaseModel):
    """Canonical verification request for one applicant."""

    id: str
    name: str = ""
    age: int = 25
    job: str = ""
    phone: str = ""
    email: str = ""
    address: Address = Field(default_factory=blank_address)
    additional_details: AdditionalDetails | None = None
    status: LeadStatus = LeadStatus.PENDING
    bank: str = ""
    visit_type: VisitType = VisitType.PHYSICAL
    assigned_to: str = ""
    instructions: str = ""
    has_co_applicant: bool = False
    co_applicant: CoApplicant | None = None
    verification_date: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def secondary_addresses(self) -> List[Address]:
        if self.additional_details is None:
            return []
        return list(self.additional_details.addresses)

    @property
    def co_applicant_addresses(self) -> List[Address]:
        if self.additional_details is None:
            return []
        return list(self.additional_details.co_applicant_addresses)


def ensure_consistent(lead: Lead) -> Lead:
    """Check the co-applicant flag against the co-applicant record.

    Raises:
        ValidationError: When the flag is set without a record, or a record is
            present while the flag is cleared.
    """

    if lead.has_co_applicant and lead.co_applicant is None:
        raise ValidationError(f"Lead '{lead.id}' is flagged with a co-applicant but carries none")
    if not lead.has_co_applicant and lead.co_applicant is not None:
        raise ValidationError(f"Lead '{lead.id}' carries a co-applicant but is not flagged for one")
    return lead


_PATCH_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AddressPatch(BaseModel):
    """Sparse update for the primary address row."""

    model_config = _PATCH_CONFIG

    kind: AddressKind | None = None
    line1: str | None = None
    city: str | None = None
    district: str | None = None
    state: str | None = None
    pincode: str | None = None


AdditionalDetailsPatch = create_model(
    "AdditionalDetailsPatch",
    __config__=_PATCH_CONFIG,
    **{name: (AdditionalDetails.model_fields[name].annotation | None, None) for name in DETAIL_SCALAR_FIELDS},
)


class LeadPatch(BaseModel):
    """Sparse lead update; only fields that were supplied are written.

    Accepts both snake_case and the camelCase keys used by intake screens.
    """

    model_config = _PATCH_CONFIG

    name: str | None = None
    age: int | None = None
    job: str | None = None
    phone: str | None = None
    email: str | None = None
    status: LeadStatus | None = None
    bank: str | None = None
    visit_type: VisitType | None = None
    assigned_to: str | None = None
    instructions: str | None = None
    verification_date: datetime | None = None
    address: AddressPatch | None = None
    additional_details: AdditionalDetailsPatch | None = None  # type: ignore[valid-type]

    def supplied(self) -> Dict[str, Any]:
        """Return the scalar lead-row fields that were explicitly supplied."""

        nested = {"address", "additional_details"}
        return {name: getattr(self, name) for name in self.model_fields_set if name not in nested}


__all__ = [
    "Address",
    "AddressKind",
    "AddressOwner",
    "AddressPatch",
    "AdditionalDetails",
    "AdditionalDetailsPatch",
    "CoApplicant",
    "DETAIL_SCALAR_FIELDS",
    "Lead",
    "LeadPatch",
    "LeadStatus",
    "VisitType",
    "blank_address",
    "ensure_consistent",
]
