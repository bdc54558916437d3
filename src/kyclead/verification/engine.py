"""Field-level reconciliation between submitted and verified lead data.

:func:`expand` turns a lead into an ordered tuple of :class:`VerificationField`
entries, one per scalar attribute the lead schema defines, blank or not. Agents
edit entries one at a time through :func:`set_field`, which never mutates its
input, and :func:`commit` turns the final tuple into aggregate counters.

Each entry is tri-state: unverified, verified-correct or verified-incorrect.
``is_correct`` only counts when ``is_verified`` is set, and :func:`set_field`
clears it whenever an entry becomes unverified.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Sequence, Tuple

from kyclead.errors import NoFieldsVerifiedError
from kyclead.leads.models import AdditionalDetails, Address, CoApplicant, Lead

_EMPTY_DETAILS = AdditionalDetails()


@dataclass(frozen=True, slots=True)
class VerificationField:
    """One (original, verified, correctness, note) tuple for a lead attribute."""

    field_name: str
    original_value: str
    verified_value: str
    is_verified: bool = False
    is_correct: bool = False
    notes: str = ""

    @property
    def state(self) -> str:
        if not self.is_verified:
            return "unverified"
        return "correct" if self.is_correct else "incorrect"


@dataclass(frozen=True, slots=True)
class FieldPatch:
    """Single-field edit; ``None`` leaves the corresponding attribute unchanged."""

    verified_value: str | None = None
    is_verified: bool | None = None
    is_correct: bool | None = None
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class VerificationOutcome:
    """Aggregate counters for a field list."""

    total: int
    verified: int
    correct: int
    incorrect: int

    @property
    def unverified(self) -> int:
        return self.total - self.verified


def _format(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _address_entries(prefix: str, address: Address) -> List[Tuple[str, Any]]:
    return [
        (f"{prefix} Type", address.kind),
        (f"{prefix} Street", address.line1),
        (f"{prefix} City", address.city),
        (f"{prefix} District", address.district),
        (f"{prefix} State", address.state),
        (f"{prefix} Pincode", address.pincode),
        (f"{prefix} Assigned Agent", address.assigned_agent_id),
    ]


def _co_applicant_entries(co_applicant: CoApplicant) -> List[Tuple[str, Any]]:
    return [
        ("Co-Applicant Name", co_applicant.name),
        ("Co-Applicant Age", co_applicant.age),
        ("Co-Applicant Phone", co_applicant.phone),
        ("Co-Applicant Email", co_applicant.email),
        ("Co-Applicant Relation", co_applicant.relation),
        ("Co-Applicant Occupation", co_applicant.occupation),
        ("Co-Applicant Monthly Income", co_applicant.monthly_income),
    ]


def _entries(lead: Lead) -> Iterable[Tuple[str, Any]]:
    details = lead.additional_details or _EMPTY_DETAILS

    # identity
    yield "Lead ID", lead.id
    yield "Bank", lead.bank
    yield "Status", lead.status
    yield "Visit Type", lead.visit_type

    # personal
    yield "Name", lead.name
    yield "Age", lead.age
    yield "Job/Occupation", lead.job

    # address
    yield from _address_entries("Primary Address", lead.address)
    for index, address in enumerate(lead.secondary_addresses, start=1):
        yield from _address_entries(f"Additional Address {index}", address)
    for index, address in enumerate(lead.co_applicant_addresses, start=1):
        yield from _address_entries(f"Co-Applicant Address {index}", address)

    # contact
    yield "Phone", lead.phone
    yield "Email", lead.email
    yield "Contact Phone", details.phone_number
    yield "Contact Email", details.email

    # professional
    yield "Company", details.company
    yield "Designation", details.designation
    yield "Work Experience", details.work_experience
    yield "Monthly Income", details.monthly_income
    yield "Annual Income", details.annual_income
    yield "Other Income", details.other_income

    # family
    yield "Father Name", details.father_name
    yield "Mother Name", details.mother_name
    yield "Spouse Name", details.spouse_name
    yield "Gender", details.gender
    yield "Marital Status", details.marital_status
    yield "Date of Birth", details.date_of_birth
    if lead.co_applicant is not None:
        yield from _co_applicant_entries(lead.co_applicant)

    # loan
    yield "Lead Type", details.lead_type
    yield "Lead Type ID", details.lead_type_id
    yield "Loan Amount", details.loan_amount
    yield "Loan Type", details.loan_type
    yield "Property Type", details.property_type
    yield "Ownership Status", details.ownership_status
    yield "Property Age", details.property_age

    # vehicle
    yield "Vehicle Brand", details.vehicle_brand_name
    yield "Vehicle Brand ID", details.vehicle_brand_id
    yield "Vehicle Model", details.vehicle_model_name
    yield "Vehicle Model ID", details.vehicle_model_id

    # bank
    yield "Agency File No", details.agency_file_no
    yield "Application Barcode", details.application_barcode
    yield "Case ID", details.case_id
    yield "Scheme Description", details.scheme_desc
    yield "Bank Product", details.bank_product
    yield "Initiated Under Branch", details.initiated_under_branch
    yield "Bank Branch", details.bank_branch
    yield "Additional Comments", details.additional_comments

    # metadata
    yield "Assigned To", lead.assigned_to
    yield "Instructions", lead.instructions
    yield "Has Co-Applicant", lead.has_co_applicant
    yield "Verification Date", lead.verification_date
    for key in sorted(details.extra):
        yield f"Extra: {key}", details.extra[key]

    # timestamps
    yield "Created At", lead.created_at
    yield "Updated At", lead.updated_at


def expand(lead: Lead) -> Tuple[VerificationField, ...]:
    """Enumerate every verifiable attribute of ``lead`` in a fixed order.

    Blank values are kept. Every entry starts unverified with
    ``verified_value`` seeded from ``original_value``.
    """

    fields = []
    for name, value in _entries(lead):
        text = _format(value)
        fields.append(VerificationField(field_name=name, original_value=text, verified_value=text))
    return tuple(fields)


def set_field(
    fields: Sequence[VerificationField],
    index: int,
    patch: FieldPatch,
) -> Tuple[VerificationField, ...]:
    """Return a copy of ``fields`` with ``patch`` applied to the entry at ``index``.

    Raises:
        IndexError: When ``index`` is outside ``fields``.
    """

    if index < 0 or index >= len(fields):
        raise IndexError(f"field index {index} out of range for {len(fields)} fields")

    current = fields[index]
    changes = {name: value for name, value in dataclasses.asdict(patch).items() if value is not None}
    updated = dataclasses.replace(current, **changes)
    if not updated.is_verified and updated.is_correct:
        updated = dataclasses.replace(updated, is_correct=False)
    return (*fields[:index], updated, *fields[index + 1 :])


def compute_stats(fields: Sequence[VerificationField]) -> VerificationOutcome:
    verified = [field for field in fields if field.is_verified]
    correct = sum(1 for field in verified if field.is_correct)
    return VerificationOutcome(
        total=len(fields),
        verified=len(verified),
        correct=correct,
        incorrect=len(verified) - correct,
    )


def commit(fields: Sequence[VerificationField]) -> VerificationOutcome:
    """Return the aggregate counters for a finished verification.

    Raises:
        NoFieldsVerifiedError: When no entry has been verified.
    """

    outcome = compute_stats(fields)
    if outcome.verified == 0:
        raise NoFieldsVerifiedError(f"none of {outcome.total} fields were verified")
    return outcome


__all__ = [
    "FieldPatch",
    "VerificationField",
    "VerificationOutcome",
    "commit",
    "compute_stats",
    "expand",
    "set_field",
]
