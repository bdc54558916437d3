"""Canonical lead record types."""

from .models import (
    AdditionalDetails,
    Address,
    AddressKind,
    AddressOwner,
    AddressPatch,
    CoApplicant,
    Lead,
    LeadPatch,
    LeadStatus,
    VisitType,
    blank_address,
    ensure_consistent,
)

__all__ = [
    "AdditionalDetails",
    "Address",
    "AddressKind",
    "AddressOwner",
    "AddressPatch",
    "CoApplicant",
    "Lead",
    "LeadPatch",
    "LeadStatus",
    "VisitType",
    "blank_address",
    "ensure_consistent",
]
