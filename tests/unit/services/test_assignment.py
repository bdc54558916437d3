"""Unit tests for address-to-agent assignment."""

from __future__ import annotations

import pytest

from kyclead.errors import ValidationError
from kyclead.leads.models import Address, AddressKind, AddressOwner
from kyclead.normalization.canonicalizer import canonicalize
from kyclead.services.assignment import (
    AddressAssignment,
    RosterMember,
    assign_address,
    assign_tvt,
    assignment_for_lead,
    build_assignment,
    field_agents,
    progress,
    tvt_agents,
)

ROSTER = [
    RosterMember(id="agent-1", name="Ravi", role="agent", city="Mumbai"),
    RosterMember(id="agent-2", name="Meera", role="agent", city="Pune"),
    RosterMember(id="tvt-1", name="Kiran", role="tvt", city="Mumbai"),
    RosterMember(id="admin-1", name="Asha", role="admin"),
]


def _address(line1: str, *, owner: AddressOwner = AddressOwner.APPLICANT, kind=AddressKind.RESIDENCE) -> Address:
    return Address(kind=kind, line1=line1, city="Mumbai", owner=owner)


@pytest.fixture()
def assignment() -> AddressAssignment:
    return build_assignment(
        _address("Home"),
        [_address("Office", kind=AddressKind.OFFICE), _address("Farm", kind=AddressKind.PERMANENT)],
        [_address("Spouse office", owner=AddressOwner.CO_APPLICANT)],
    )


def test_roster_is_filtered_by_role() -> None:
    assert [member.id for member in field_agents(ROSTER)] == ["agent-1", "agent-2"]
    assert [member.id for member in tvt_agents(ROSTER)] == ["tvt-1"]


def test_completion_scenario(assignment: AddressAssignment) -> None:
    staffed = assignment
    for slot, agent in ((0, "agent-1"), (1, "agent-2"), (3, "agent-1")):
        staffed = assign_address(staffed, slot, agent, ROSTER)

    result = progress(staffed)

    assert result.total == 4
    assert result.assigned_count == 3
    assert result.tvt_assigned is False
    assert result.fully_staffed is False


def test_fully_staffed_requires_every_address_and_tvt(assignment: AddressAssignment) -> None:
    staffed = assignment
    for slot in range(4):
        staffed = assign_address(staffed, slot, "agent-1", ROSTER)
    assert progress(staffed).fully_staffed is False

    staffed = assign_tvt(staffed, "tvt-1", ROSTER)
    assert progress(staffed).fully_staffed is True
    assert progress(assign_tvt(staffed, None)).fully_staffed is False


def test_assignment_is_pure_and_overwrites(assignment: AddressAssignment) -> None:
    first = assign_address(assignment, 2, "agent-1")
    second = assign_address(first, 2, "agent-2")

    assert assignment.additional[1].assigned_agent_id is None
    assert first.additional[1].assigned_agent_id == "agent-1"
    assert second.additional[1].assigned_agent_id == "agent-2"
    assert assign_address(second, 2, None).additional[1].assigned_agent_id is None


def test_co_applicant_slot_indexing(assignment: AddressAssignment) -> None:
    updated = assign_address(assignment, 3, "agent-2")
    assert updated.co_applicant[0].assigned_agent_id == "agent-2"
    assert updated.addresses()[3].line1 == "Spouse office"


def test_roles_are_enforced(assignment: AddressAssignment) -> None:
    with pytest.raises(ValidationError):
        assign_address(assignment, 0, "tvt-1", ROSTER)
    with pytest.raises(ValidationError):
        assign_tvt(assignment, "agent-1", ROSTER)
    with pytest.raises(ValidationError):
        assign_address(assignment, 0, "ghost", ROSTER)


def test_slot_out_of_range(assignment: AddressAssignment) -> None:
    with pytest.raises(IndexError):
        assign_address(assignment, 4, "agent-1")


def test_co_applicant_entry_listed_in_both_slices_counts_once() -> None:
    shared = _address("Spouse office", owner=AddressOwner.CO_APPLICANT)

    result = build_assignment(
        _address("Home"),
        [_address("Office"), shared, _address("home")],
        [shared],
    )

    assert [address.line1 for address in result.additional] == ["Office", "home"]
    assert [address.line1 for address in result.co_applicant] == ["Spouse office"]
    assert progress(result).total == 4


def test_co_applicant_owned_additional_address_moves_slice() -> None:
    moved = _address("Spouse office", owner=AddressOwner.CO_APPLICANT)

    result = build_assignment(_address("Home"), [_address("Office"), moved])

    assert [address.line1 for address in result.additional] == ["Office"]
    assert result.co_applicant == (moved,)


def test_identical_addresses_are_separate_slots() -> None:
    lead = canonicalize({"addresses": [{"addressLine1": "Home"}, {}, {}, {"addressLine1": "home"}]})

    result = assignment_for_lead(lead)
    staffed = assign_tvt(result, "tvt-1")
    for slot in range(3):
        staffed = assign_address(staffed, slot, "agent-1")

    assert len(lead.secondary_addresses) == 3
    assert progress(result).total == 4
    assert progress(staffed).assigned_count == 3
    assert progress(staffed).fully_staffed is False
    assert progress(assign_address(staffed, 3, "agent-2")).fully_staffed is True


def test_same_location_for_different_owners_counts_twice() -> None:
    result = build_assignment(_address("Home"), [], [_address("Home", owner=AddressOwner.CO_APPLICANT)])
    assert progress(result).total == 2


def test_assignment_for_lead_reads_all_slices() -> None:
    lead = canonicalize(
        {
            "addresses": [{"addressLine1": "A"}, {"addressLine1": "B"}, {"addressLine1": "C"}],
            "hasCoApplicant": True,
            "coApplicantAddresses": [{"addressLine1": "D"}],
        }
    )

    result = assignment_for_lead(lead)

    assert [address.line1 for address in result.addresses()] == ["A", "B", "C", "D"]
    assert progress(result).total == 4
