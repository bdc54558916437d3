"""Address-to-agent assignment for field verification.

Every address in scope for a lead (primary, additional and co-applicant) can be
assigned to one field agent, and the lead as a whole gets one TVT
(technical verification team) coordinator. The agent roster is always passed in
explicitly. All functions are pure and return new :class:`AddressAssignment`
objects; reassignment overwrites the previous agent without keeping history.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from kyclead.errors import ValidationError
from kyclead.leads.models import Address, AddressOwner, Lead

AGENT_ROLE = "agent"
TVT_ROLE = "tvt"


@dataclass(frozen=True, slots=True)
class RosterMember:
    """One entry from the agent roster provider."""

    id: str
    name: str
    role: str
    city: str = ""


@dataclass(frozen=True, slots=True)
class AddressAssignment:
    """Addresses in scope for a lead plus the TVT coordinator."""

    primary: Address
    additional: Tuple[Address, ...] = ()
    co_applicant: Tuple[Address, ...] = ()
    tvt_agent_id: str | None = None

    def addresses(self) -> Tuple[Address, ...]:
        """Return every address in slot order: primary, additional, co-applicant."""

        return (self.primary, *self.additional, *self.co_applicant)


@dataclass(frozen=True, slots=True)
class AssignmentProgress:
    assigned_count: int
    total: int
    tvt_assigned: bool

    @property
    def fully_staffed(self) -> bool:
        return self.assigned_count == self.total and self.tvt_assigned


def field_agents(roster: Iterable[RosterMember]) -> List[RosterMember]:
    return [member for member in roster if member.role == AGENT_ROLE]


def tvt_agents(roster: Iterable[RosterMember]) -> List[RosterMember]:
    return [member for member in roster if member.role == TVT_ROLE]


def build_assignment(
    primary: Address,
    additional: Sequence[Address] = (),
    co_applicant: Sequence[Address] = (),
    *,
    tvt_agent_id: str | None = None,
) -> AddressAssignment:
    """Derive the addresses in scope from the three address slices.

    An additional address tagged as co-applicant-owned is moved to the
    co-applicant slice unless that same entry is already listed there. Entries
    are never merged by content: two addresses with identical text are still
    two rows, each needing its own agent.
    """

    applicant_extra = [address for address in additional if address.owner is AddressOwner.APPLICANT]
    co_slice = list(co_applicant)
    for address in additional:
        if address.owner is AddressOwner.CO_APPLICANT and not any(address is listed for listed in co_slice):
            co_slice.append(address)
    return AddressAssignment(
        primary=primary,
        additional=tuple(applicant_extra),
        co_applicant=tuple(co_slice),
        tvt_agent_id=tvt_agent_id or None,
    )


def assignment_for_lead(lead: Lead) -> AddressAssignment:
    return build_assignment(lead.address, lead.secondary_addresses, lead.co_applicant_addresses)


def _check_role(agent_id: str, role: str, roster: Sequence[RosterMember] | None) -> None:
    if roster is None:
        return
    for member in roster:
        if member.id == agent_id:
            if member.role != role:
                raise ValidationError(f"Roster member '{agent_id}' has role '{member.role}', expected '{role}'")
            return
    raise ValidationError(f"Agent '{agent_id}' is not on the roster")


def assign_address(
    assignment: AddressAssignment,
    slot: int,
    agent_id: str | None,
    roster: Sequence[RosterMember] | None = None,
) -> AddressAssignment:
    """Return a copy with the address at ``slot`` assigned to ``agent_id``.

    ``slot`` indexes :meth:`AddressAssignment.addresses`. Passing ``None`` as
    ``agent_id`` clears the assignment. When ``roster`` is given the agent must
    be on it with the field-agent role.

    Raises:
        IndexError: When ``slot`` is out of range.
        ValidationError: When the agent is missing from ``roster`` or has another role.
    """

    if agent_id:
        _check_role(agent_id, AGENT_ROLE, roster)
    extra_count = len(assignment.additional)
    total = 1 + extra_count + len(assignment.co_applicant)
    if slot < 0 or slot >= total:
        raise IndexError(f"address slot {slot} out of range for {total} addresses")

    if slot == 0:
        return dataclasses.replace(assignment, primary=assignment.primary.with_agent(agent_id))
    if slot <= extra_count:
        index = slot - 1
        additional = list(assignment.additional)
        additional[index] = additional[index].with_agent(agent_id)
        return dataclasses.replace(assignment, additional=tuple(additional))
    index = slot - 1 - extra_count
    co_applicant = list(assignment.co_applicant)
    co_applicant[index] = co_applicant[index].with_agent(agent_id)
    return dataclasses.replace(assignment, co_applicant=tuple(co_applicant))


def assign_tvt(
    assignment: AddressAssignment,
    agent_id: str | None,
    roster: Sequence[RosterMember] | None = None,
) -> AddressAssignment:
    """Return a copy coordinated by TVT member ``agent_id`` (``None`` clears it)."""

    if agent_id:
        _check_role(agent_id, TVT_ROLE, roster)
    return dataclasses.replace(assignment, tvt_agent_id=agent_id or None)


def progress(assignment: AddressAssignment) -> AssignmentProgress:
    addresses = assignment.addresses()
    return AssignmentProgress(
        assigned_count=sum(1 for address in addresses if address.assigned_agent_id),
        total=len(addresses),
        tvt_assigned=bool(assignment.tvt_agent_id),
    )


__all__ = [
    "AGENT_ROLE",
    "TVT_ROLE",
    "AddressAssignment",
    "AssignmentProgress",
    "RosterMember",
    "assign_address",
    "assign_tvt",
    "assignment_for_lead",
    "build_assignment",
    "field_agents",
    "progress",
    "tvt_agents",
]
