"""Ordered alias tables mapping historical intake keys onto canonical lead fields.

Intake screens have used several key names for the same logical field over
time (``addressLine1`` vs ``street``, ``bank`` as an object vs ``bankName`` as a
string, flat wizard state vs nested ``personalInfo`` sections). Each canonical
field lists its source paths in precedence order: the more specific or typed
key first, the generic key last. The first path that yields a non-blank value
wins; when none does the field falls back to an empty string.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Sequence, Tuple

from kyclead.normalization.reference_data import resolve_bank_id

Transform = Callable[[Any], "str | None"]


def text_value(value: Any) -> str | None:
    """Return ``value`` as stripped text, or ``None`` when it carries no scalar text."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (int, float)):
        try:
            return str(value)
        except ValueError:
            # ints beyond the interpreter's int-to-str digit limit
            return None
    return None


def bank_value(value: Any) -> str | None:
    """Return the bank identifier for a human-readable bank name."""

    name = text_value(value)
    if name is None:
        return None
    return resolve_bank_id(name) or None


@dataclass(frozen=True, slots=True)
class AliasRule:
    """One candidate source for a canonical field."""

    path: str
    transform: Transform = text_value


def lookup_path(payload: Any, path: str) -> Any:
    """Return the value at dotted ``path`` or ``None`` when any segment is absent.

    Numeric segments index into lists, so ``coApplicants.0.name`` reads the
    first entry of a list-shaped section.
    """

    current = payload
    for segment in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def resolve_alias(payload: Any, rules: Sequence[AliasRule], default: str = "") -> str:
    """Evaluate ``rules`` in order and return the first non-blank result."""

    for rule in rules:
        raw = lookup_path(payload, rule.path)
        if raw is None:
            continue
        value = rule.transform(raw)
        if value:
            return value
    return default


def _rules(*paths: str | Tuple[str, Transform]) -> Tuple[AliasRule, ...]:
    rules = []
    for entry in paths:
        if isinstance(entry, tuple):
            rules.append(AliasRule(entry[0], entry[1]))
        else:
            rules.append(AliasRule(entry))
    return tuple(rules)


# Lead-level scalars (the primary phone has its own selection rule first).
LEAD_ALIASES: Dict[str, Tuple[AliasRule, ...]] = {
    "id": _rules("id", "leadId"),
    "name": _rules("personalInfo.name", "name", "fullName"),
    "age": _rules("personalInfo.age", "age"),
    "job": _rules("job", "occupation", "designation"),
    "phone": _rules("personalInfo.phoneNumber", "phone", "phoneNumber"),
    "email": _rules("personalInfo.email", "email"),
    "bank": _rules(
        "bank.id",
        "bankId",
        ("bankInfo.bank", bank_value),
        ("bankName", bank_value),
        ("bank", bank_value),
    ),
    "visit_type": _rules("visitType", "verificationType"),
    "assigned_to": _rules("assignedTo.id", "assignedTo", "assignedAgent"),
    "instructions": _rules("instructions", "bankInfo.instructions"),
}

# Additional-details fields, keyed by AdditionalDetails attribute name.
DETAIL_ALIASES: Dict[str, Tuple[AliasRule, ...]] = {
    "company": _rules("employment.company", "company"),
    "designation": _rules("employment.designation", "designation"),
    "work_experience": _rules("employment.workExperience", "workExperience"),
    "monthly_income": _rules("employment.monthlyIncome", "monthlyIncome", "income"),
    "annual_income": _rules("annualIncome"),
    "other_income": _rules("otherIncome"),
    "father_name": _rules("personalInfo.fatherName", "fatherName"),
    "mother_name": _rules("personalInfo.motherName", "motherName"),
    "spouse_name": _rules("personalInfo.spouseName", "spouseName"),
    "gender": _rules("personalInfo.gender", "gender"),
    "marital_status": _rules("personalInfo.maritalStatus", "maritalStatus"),
    "date_of_birth": _rules("personalInfo.dateOfBirth", "dateOfBirth"),
    "property_type": _rules("propertyType.name", "propertyType"),
    "ownership_status": _rules("ownershipStatus"),
    "property_age": _rules("propertyAge"),
    "lead_type": _rules("leadType.name", "bankInfo.leadType", "leadType"),
    "lead_type_id": _rules("leadType.id", "leadTypeId"),
    "loan_amount": _rules("bankInfo.loanAmount", "loanAmount"),
    "loan_type": _rules("loanType"),
    "vehicle_brand_name": _rules("vehicleBrand.name", "vehicleBrandName", "vehicleBrand"),
    "vehicle_brand_id": _rules("vehicleBrand.id", "vehicleBrandId"),
    "vehicle_model_name": _rules("vehicleModel.name", "vehicleModelName", "vehicleModel"),
    "vehicle_model_id": _rules("vehicleModel.id", "vehicleModelId"),
    "agency_file_no": _rules("bankInfo.agencyFileNo", "agencyFileNo"),
    "application_barcode": _rules("bankInfo.applicationBarcode", "applicationBarcode"),
    "case_id": _rules("bankInfo.caseId", "caseId"),
    "scheme_desc": _rules("bankInfo.schemeDesc", "schemeDesc"),
    "bank_product": _rules("bankProduct.name", "bankInfo.bankProduct", "bankProduct"),
    "initiated_under_branch": _rules("bankInfo.initiatedUnderBranch", "initiatedUnderBranch"),
    "bank_branch": _rules("bankBranch", "bankInfo.initiatedUnderBranch", "initiatedUnderBranch"),
    "additional_comments": _rules("bankInfo.additionalComments", "additionalComments"),
}

# Every canonical scalar the canonicalizer resolves through the alias table.
FIELD_ALIASES: Dict[str, Tuple[AliasRule, ...]] = {**LEAD_ALIASES, **DETAIL_ALIASES}

# Keys read from each entry of an address collection.
ADDRESS_ALIASES: Dict[str, Tuple[AliasRule, ...]] = {
    "kind": _rules("type", "kind", "addressType"),
    "line1": _rules("addressLine1", "line1", "street", "address"),
    "city": _rules("city"),
    "district": _rules("district"),
    "state": _rules("state"),
    "pincode": _rules("pincode", "pinCode", "postalCode", "zip"),
    "assigned_agent_id": _rules("assignedAgentId", "assignedAgent"),
}

# Co-applicant fields: a nested object beats the wizard's list, which beats flat keys.
CO_APPLICANT_ALIASES: Dict[str, Tuple[AliasRule, ...]] = {
    "name": _rules("coApplicant.name", "coApplicants.0.name", "coApplicantName"),
    "age": _rules("coApplicant.age", "coApplicants.0.age", "coApplicantAge"),
    "phone": _rules("coApplicant.phone", "coApplicants.0.phone", "coApplicantPhone"),
    "email": _rules("coApplicant.email", "coApplicants.0.email", "coApplicantEmail"),
    "relation": _rules(
        "coApplicant.relation",
        "coApplicant.relationship",
        "coApplicants.0.relationship",
        "coApplicantRelation",
    ),
    "occupation": _rules("coApplicant.occupation", "coApplicants.0.occupation", "coApplicantOccupation"),
    "monthly_income": _rules(
        "coApplicant.monthlyIncome",
        "coApplicant.income",
        "coApplicants.0.monthlyIncome",
        "coApplicantIncome",
    ),
}


__all__ = [
    "AliasRule",
    "ADDRESS_ALIASES",
    "CO_APPLICANT_ALIASES",
    "DETAIL_ALIASES",
    "FIELD_ALIASES",
    "LEAD_ALIASES",
    "bank_value",
    "lookup_path",
    "resolve_alias",
    "text_value",
]
