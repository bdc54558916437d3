"""Convert loosely structured intake payloads into canonical :class:`Lead` records.

The canonicalizer is a total function: whatever shape the intake screen
assembled (multi-step wizard state, single-page form state, a fixture), it
returns a structurally valid lead and never raises. Every field has a defined
fallback.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

from kyclead.leads.models import (
    Address,
    AddressKind,
    AddressOwner,
    AdditionalDetails,
    CoApplicant,
    Lead,
    LeadStatus,
    VisitType,
    blank_address,
)
from kyclead.normalization.aliases import (
    ADDRESS_ALIASES,
    CO_APPLICANT_ALIASES,
    DETAIL_ALIASES,
    LEAD_ALIASES,
    lookup_path,
    resolve_alias,
    text_value,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_AGE = 25
_VIRTUAL_MARKERS = ("virtual", "online")
_FALSE_STRINGS = {"", "false", "0", "no", "off"}
_ADDRESS_KINDS = {kind.value.lower(): kind for kind in AddressKind}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_lead_id() -> str:
    """Return a new lead identifier combining a monotonic clock and a random suffix."""

    return f"lead-{time.time_ns()}-{uuid.uuid4().hex[:9]}"


def _as_dict(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _coerce_int(value: str, default: int) -> int:
    try:
        parsed = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return parsed if parsed > 0 else default


def _coerce_float(value: str, default: float = 0.0) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    # NaN compares unequal to itself
    return parsed if parsed == parsed else default


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def _visit_type(raw: str) -> VisitType:
    lowered = raw.lower()
    if any(marker in lowered for marker in _VIRTUAL_MARKERS):
        return VisitType.VIRTUAL
    return VisitType.PHYSICAL


def _address_kind(raw: str) -> AddressKind:
    return _ADDRESS_KINDS.get(raw.strip().lower(), AddressKind.RESIDENCE)


def _primary_phone(payload: Mapping[str, Any]) -> str:
    """Pick the primary-flagged number, then the first listed one, then the legacy key."""

    numbers = _as_list(payload.get("phoneNumbers")) or _as_list(lookup_path(payload, "personalInfo.phoneNumbers"))
    entries: List[tuple[str, bool]] = []
    for item in numbers:
        if isinstance(item, Mapping):
            number = text_value(item.get("number")) or text_value(item.get("phone")) or ""
            entries.append((number, _truthy(item.get("isPrimary", False))))
        else:
            entries.append((text_value(item) or "", False))

    for number, is_primary in entries:
        if is_primary and number:
            return number
    if entries and entries[0][0]:
        return entries[0][0]
    return resolve_alias(payload, LEAD_ALIASES["phone"])


def _address(raw: Any, owner: AddressOwner) -> Address:
    entry = _as_dict(raw)
    return Address(
        kind=_address_kind(resolve_alias(entry, ADDRESS_ALIASES["kind"])),
        line1=resolve_alias(entry, ADDRESS_ALIASES["line1"]),
        city=resolve_alias(entry, ADDRESS_ALIASES["city"]),
        district=resolve_alias(entry, ADDRESS_ALIASES["district"]),
        state=resolve_alias(entry, ADDRESS_ALIASES["state"]),
        pincode=resolve_alias(entry, ADDRESS_ALIASES["pincode"]),
        owner=owner,
        assigned_agent_id=resolve_alias(entry, ADDRESS_ALIASES["assigned_agent_id"]) or None,
    )


def _applicant_addresses(payload: Mapping[str, Any]) -> List[Address]:
    raw = _as_list(payload.get("addresses"))
    if not raw and isinstance(payload.get("address"), Mapping):
        raw = [payload["address"]]
    return [_address(entry, AddressOwner.APPLICANT) for entry in raw]


def _co_applicant_addresses(payload: Mapping[str, Any]) -> List[Address]:
    raw = _as_list(payload.get("coApplicantAddresses")) or _as_list(lookup_path(payload, "coApplicant.addresses"))
    return [_address(entry, AddressOwner.CO_APPLICANT) for entry in raw]


def _co_applicant(payload: Mapping[str, Any]) -> CoApplicant:
    return CoApplicant(
        name=resolve_alias(payload, CO_APPLICANT_ALIASES["name"]),
        age=_coerce_int(resolve_alias(payload, CO_APPLICANT_ALIASES["age"]), 0),
        phone=resolve_alias(payload, CO_APPLICANT_ALIASES["phone"]),
        email=resolve_alias(payload, CO_APPLICANT_ALIASES["email"]),
        relation=resolve_alias(payload, CO_APPLICANT_ALIASES["relation"]),
        occupation=resolve_alias(payload, CO_APPLICANT_ALIASES["occupation"]),
        monthly_income=_coerce_float(resolve_alias(payload, CO_APPLICANT_ALIASES["monthly_income"])),
    )


def _extra(payload: Mapping[str, Any]) -> Dict[str, str]:
    extra: Dict[str, str] = {}
    for key, value in _as_dict(payload.get("extra")).items():
        text = text_value(value)
        if text is not None:
            extra[str(key)] = text
    return extra


def _details(
    payload: Mapping[str, Any],
    *,
    phone: str,
    email: str,
    secondary: List[Address],
    co_applicant_addresses: List[Address],
) -> AdditionalDetails:
    values: Dict[str, Any] = {name: resolve_alias(payload, rules) for name, rules in DETAIL_ALIASES.items()}
    values["monthly_income"] = _coerce_float(values["monthly_income"])
    return AdditionalDetails(
        **values,
        phone_number=phone,
        email=email,
        addresses=secondary,
        co_applicant_addresses=co_applicant_addresses,
        extra=_extra(payload),
    )


def canonicalize(payload: Any) -> Lead:
    """Return the canonical lead for an arbitrary intake ``payload``.

    Non-mapping payloads are treated as empty, so the result is always a
    structurally valid lead with every field defaulted.
    """

    data: Mapping[str, Any] = payload if isinstance(payload, Mapping) else {}

    addresses = _applicant_addresses(data)
    primary = addresses[0] if addresses else blank_address()
    secondary = addresses[1:]

    has_co_applicant = _truthy(data.get("hasCoApplicant", False))
    co_applicant = _co_applicant(data) if has_co_applicant else None
    co_addresses = _co_applicant_addresses(data) if has_co_applicant else []

    phone = _primary_phone(data)
    email = resolve_alias(data, LEAD_ALIASES["email"])
    now = _utcnow()

    lead = Lead(
        id=resolve_alias(data, LEAD_ALIASES["id"]) or generate_lead_id(),
        name=resolve_alias(data, LEAD_ALIASES["name"]),
        age=_coerce_int(resolve_alias(data, LEAD_ALIASES["age"]), DEFAULT_AGE),
        job=resolve_alias(data, LEAD_ALIASES["job"]),
        phone=phone,
        email=email,
        address=primary,
        additional_details=_details(
            data,
            phone=phone,
            email=email,
            secondary=secondary,
            co_applicant_addresses=co_addresses,
        ),
        status=LeadStatus.PENDING,
        bank=resolve_alias(data, LEAD_ALIASES["bank"]),
        visit_type=_visit_type(resolve_alias(data, LEAD_ALIASES["visit_type"])),
        assigned_to=resolve_alias(data, LEAD_ALIASES["assigned_to"]),
        instructions=resolve_alias(data, LEAD_ALIASES["instructions"]),
        has_co_applicant=has_co_applicant,
        co_applicant=co_applicant,
        created_at=now,
        updated_at=now,
    )
    LOGGER.debug(
        "Canonicalized lead %s with %d secondary and %d co-applicant addresses",
        lead.id,
        len(secondary),
        len(co_addresses),
    )
    return lead


__all__ = ["DEFAULT_AGE", "canonicalize", "generate_lead_id"]
