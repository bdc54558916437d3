"""Unit tests for the lead canonicalizer."""

from __future__ import annotations

import pytest

from kyclead.leads.models import AddressKind, AddressOwner, CoApplicant, Lead, LeadStatus, VisitType
from kyclead.normalization.canonicalizer import DEFAULT_AGE, canonicalize, generate_lead_id


def _address(kind: str, line1: str, city: str = "Mumbai") -> dict:
    return {
        "type": kind,
        "addressLine1": line1,
        "city": city,
        "district": city,
        "state": "Maharashtra",
        "pincode": "400001",
    }


def test_vehicle_lead_scenario() -> None:
    lead = canonicalize(
        {
            "name": "Bob",
            "leadType": "Car Loan",
            "vehicleBrand": "Toyota",
            "addresses": [_address("Residence", "1 Home St"), _address("Office", "2 Work Rd")],
        }
    )

    assert lead.address.kind is AddressKind.RESIDENCE
    assert lead.additional_details is not None
    assert len(lead.additional_details.addresses) == 1
    assert lead.additional_details.addresses[0].kind is AddressKind.OFFICE
    assert lead.additional_details.vehicle_brand_name == "Toyota"
    assert lead.additional_details.lead_type == "Car Loan"


def test_primary_secondary_split_preserves_order() -> None:
    lead = canonicalize(
        {
            "addresses": [
                _address("Residence", "A street"),
                _address("Office", "B street"),
                _address("Permanent", "C street"),
            ]
        }
    )

    assert lead.address.line1 == "A street"
    assert [address.line1 for address in lead.secondary_addresses] == ["B street", "C street"]


def test_missing_addresses_yield_blank_residence() -> None:
    lead = canonicalize({"name": "No Address"})

    assert lead.address.kind is AddressKind.RESIDENCE
    assert lead.address.line1 == ""
    assert lead.address.owner is AddressOwner.APPLICANT
    assert lead.secondary_addresses == []


def test_unknown_address_type_is_coerced_to_residence() -> None:
    lead = canonicalize({"addresses": [_address("Office", "A"), _address("Temporary", "B"), _address("office", "C")]})

    assert lead.address.kind is AddressKind.OFFICE
    assert [address.kind for address in lead.secondary_addresses] == [AddressKind.RESIDENCE, AddressKind.OFFICE]


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        "not a mapping",
        {},
        {"age": "abc", "addresses": "nope"},
        {"addresses": [None, 5, {"type": 7}]},
        {"phoneNumbers": "9999", "hasCoApplicant": "yes", "coApplicant": "bad"},
        {"name": {"first": "x"}, "bank": ["hdfc"], "monthlyIncome": "lots"},
        {"age": 10**5000, "phoneNumbers": [10**5000], "extra": {"huge": 10**5000}},
    ],
)
def test_canonicalize_is_total(payload) -> None:
    lead = canonicalize(payload)

    assert isinstance(lead, Lead)
    assert lead.id.startswith("lead-")
    assert lead.status is LeadStatus.PENDING
    assert lead.additional_details is not None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("41", 41), (33, 33), ("abc", DEFAULT_AGE), (None, DEFAULT_AGE), ("", DEFAULT_AGE)],
)
def test_age_parsing_falls_back(raw, expected) -> None:
    payload = {} if raw is None else {"age": raw}
    assert canonicalize(payload).age == expected


def test_monthly_income_parsing_falls_back_to_zero() -> None:
    assert canonicalize({"monthlyIncome": "75000"}).additional_details.monthly_income == 75000.0
    assert canonicalize({"monthlyIncome": "n/a"}).additional_details.monthly_income == 0.0
    assert canonicalize({}).additional_details.monthly_income == 0.0


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Virtual Visit", VisitType.VIRTUAL),
        ("ONLINE check", VisitType.VIRTUAL),
        ("Field visit", VisitType.PHYSICAL),
        (None, VisitType.PHYSICAL),
    ],
)
def test_visit_type_is_derived_from_free_text(raw, expected) -> None:
    payload = {} if raw is None else {"visitType": raw}
    assert canonicalize(payload).visit_type is expected


def test_primary_phone_prefers_flagged_number() -> None:
    lead = canonicalize(
        {
            "phone": "legacy",
            "phoneNumbers": [{"number": "111", "isPrimary": False}, {"number": "222", "isPrimary": True}],
        }
    )
    assert lead.phone == "222"
    assert lead.additional_details.phone_number == "222"


def test_primary_phone_ignores_empty_flagged_entry() -> None:
    lead = canonicalize({"phoneNumbers": [{"number": "111"}, {"number": "", "isPrimary": True}]})
    assert lead.phone == "111"


def test_primary_phone_falls_back_to_legacy_field() -> None:
    assert canonicalize({"phone": "9876543210"}).phone == "9876543210"
    assert canonicalize({"phoneNumbers": [], "phone": "555"}).phone == "555"


def test_co_applicant_absent_when_flag_is_false() -> None:
    lead = canonicalize({"hasCoApplicant": False, "coApplicantName": "Jane"})

    assert lead.has_co_applicant is False
    assert lead.co_applicant is None


@pytest.mark.parametrize("flag", ["false", "0", "no", ""])
def test_co_applicant_flag_false_strings(flag) -> None:
    assert canonicalize({"hasCoApplicant": flag, "coApplicantName": "Jane"}).co_applicant is None


def test_co_applicant_built_from_flat_keys() -> None:
    lead = canonicalize(
        {
            "hasCoApplicant": True,
            "coApplicantName": "Jane Doe",
            "coApplicantAge": "32",
            "coApplicantRelation": "Spouse",
            "coApplicantIncome": "50000",
        }
    )

    assert lead.co_applicant == CoApplicant(name="Jane Doe", age=32, relation="Spouse", monthly_income=50000.0)


def test_co_applicant_fields_default_independently() -> None:
    lead = canonicalize({"hasCoApplicant": "true"})

    assert lead.co_applicant == CoApplicant()


def test_nested_co_applicant_wins_over_flat_keys() -> None:
    lead = canonicalize(
        {
            "hasCoApplicant": True,
            "coApplicant": {"name": "Nested", "relationship": "Brother"},
            "coApplicantName": "Flat",
            "coApplicantPhone": "999",
        }
    )

    assert lead.co_applicant.name == "Nested"
    assert lead.co_applicant.relation == "Brother"
    assert lead.co_applicant.phone == "999"


def test_co_applicant_addresses_are_tagged() -> None:
    lead = canonicalize(
        {
            "hasCoApplicant": True,
            "coApplicantName": "Jane",
            "coApplicantAddresses": [{"type": "Office", "street": "12 School Road"}],
        }
    )

    assert len(lead.co_applicant_addresses) == 1
    co_address = lead.co_applicant_addresses[0]
    assert co_address.owner is AddressOwner.CO_APPLICANT
    assert co_address.line1 == "12 School Road"


def test_street_alias_precedence() -> None:
    lead = canonicalize({"addresses": [{"addressLine1": "Specific", "street": "Generic"}, {"street": "Only street"}]})

    assert lead.address.line1 == "Specific"
    assert lead.secondary_addresses[0].line1 == "Only street"


def test_bank_object_id_wins_over_name() -> None:
    lead = canonicalize({"bank": {"id": "axis", "name": "Axis Bank"}, "bankName": "HDFC Bank"})
    assert lead.bank == "axis"


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"bankName": "HDFC Bank"}, "hdfc"),
        ({"bank": "State Bank of India"}, "sbi"),
        ({"bankName": "Totally New Bank"}, "totally_new_bank"),
        ({}, ""),
    ],
)
def test_bank_names_resolve_to_identifiers(payload, expected) -> None:
    assert canonicalize(payload).bank == expected


def test_nested_personal_info_sections_are_read() -> None:
    lead = canonicalize(
        {
            "personalInfo": {"name": "Wizard Name", "email": "w@example.com", "fatherName": "Dad"},
            "bankInfo": {"bank": "ICICI Bank", "loanAmount": "800000"},
        }
    )

    assert lead.name == "Wizard Name"
    assert lead.email == "w@example.com"
    assert lead.additional_details.email == "w@example.com"
    assert lead.additional_details.father_name == "Dad"
    assert lead.additional_details.loan_amount == "800000"
    assert lead.bank == "icici"


def test_identity_is_generated_or_kept() -> None:
    generated = {canonicalize({}).id for _ in range(50)}
    assert len(generated) == 50
    assert canonicalize({"id": "lead-fixed"}).id == "lead-fixed"
    assert generate_lead_id() != generate_lead_id()


def test_timestamps_set_at_canonicalization() -> None:
    lead = canonicalize({"createdAt": "2001-01-01T00:00:00Z"})

    assert lead.created_at == lead.updated_at
    assert lead.created_at.year != 2001
    assert lead.verification_date is None


def test_extra_attributes_are_kept_as_text() -> None:
    lead = canonicalize({"extra": {"branchCode": "B12", "priority": 2, "ignored": None}})

    assert lead.additional_details.extra == {"branchCode": "B12", "priority": "2"}


def test_oversized_integers_fall_back_to_defaults() -> None:
    lead = canonicalize({"age": 10**5000, "monthlyIncome": 10**5000, "extra": {"huge": 10**5000, "ok": 7}})

    assert lead.age == DEFAULT_AGE
    assert lead.additional_details.monthly_income == 0.0
    assert lead.additional_details.extra == {"ok": "7"}
