"""Relational persistence adapter that fans a lead out into rows and back.

A canonical :class:`~kyclead.leads.models.Lead` is stored as one ``leads`` row,
an optional ``additional_details`` row, an optional ``co_applicants`` row and
one ``addresses`` row per address, linked through the ordered
``lead_addresses`` association table. Association position 0 is always the
primary address; the primary address row is also referenced from
``leads.address_id``.

The whole fan-out runs inside a single transaction. Address rows use
deterministic identifiers (``<lead_id>-addr-<position>``) and every row is
written with update-then-insert, so a retried ``persist`` converges on the same
rows instead of duplicating them.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Sequence

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from kyclead.errors import NotFoundError, PersistenceError
from kyclead.leads.models import (
    DETAIL_SCALAR_FIELDS,
    AdditionalDetails,
    Address,
    AddressKind,
    AddressOwner,
    CoApplicant,
    Lead,
    LeadStatus,
    VisitType,
    blank_address,
    ensure_consistent,
)
from kyclead.normalization.reference_data import resolve_bank_id
from kyclead.observability import Observability, get_observability
from kyclead.settings import Settings, get_settings
from kyclead.store import sql as sql_schema
from kyclead.store.sql import session_factory as default_session_factory

LOGGER = logging.getLogger(__name__)

_CO_APPLICANT_FIELDS = tuple(CoApplicant.model_fields)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps returned by backends that drop tzinfo."""

    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def address_row_id(lead_id: str, position: int) -> str:
    """Return the deterministic row identifier for the address at ``position``."""

    return f"{lead_id}-addr-{position}"


def _ordered_addresses(lead: Lead) -> List[Address]:
    """Return ``[primary, *secondary, *co-applicant]`` in association order."""

    return [lead.address, *lead.secondary_addresses, *lead.co_applicant_addresses]


def _address_values(address: Address) -> Dict[str, Any]:
    return {
        "kind": address.kind.value,
        "line1": address.line1,
        "city": address.city,
        "district": address.district,
        "state": address.state,
        "pincode": address.pincode,
        "owner": address.owner.value,
        "assigned_agent_id": address.assigned_agent_id,
    }


def row_to_address(row: Mapping[Any, Any]) -> Address:
    """Build an :class:`Address` from an ``addresses`` row mapping."""

    table = sql_schema.addresses
    return Address(
        kind=AddressKind(row[table.c.kind]),
        line1=row[table.c.line1],
        city=row[table.c.city],
        district=row[table.c.district],
        state=row[table.c.state],
        pincode=row[table.c.pincode],
        owner=AddressOwner(row[table.c.owner]),
        assigned_agent_id=row[table.c.assigned_agent_id],
    )


class LeadStore:
    """Persist and hydrate canonical leads against the relational schema."""

    def __init__(
        self,
        *,
        session_factory: sessionmaker | None = None,
        settings: Settings | None = None,
        observability: Observability | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._session_factory = session_factory or default_session_factory(settings=self.settings)
        self._observability = observability or get_observability(component="lead_store", settings=self.settings)
        self._workers = self.settings.persistence.hydrate_workers
        self._hydrate_timeout = self.settings.persistence.hydrate_timeout_seconds

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def persist(self, lead: Lead) -> str:
        """Write ``lead`` and all of its child rows, returning the lead identifier.

        Raises:
            ValidationError: When the co-applicant flag and record disagree.
            PersistenceError: When any backing-store call fails. The transaction
                is rolled back so no partial fan-out is left behind.
        """

        ensure_consistent(lead)
        now = _utcnow()
        ordered = _ordered_addresses(lead)
        try:
            with self._session_scope() as session:
                self._upsert_lead_row(session, lead)
                self._write_details(session, lead, now)
                self._write_co_applicant(session, lead)
                address_ids = self._upsert_addresses(session, lead.id, ordered, now)
                stale_ids = self._replace_associations(session, lead.id, address_ids)
                session.execute(
                    sa.update(sql_schema.leads)
                    .where(sql_schema.leads.c.id == lead.id)
                    .values(address_id=address_ids[0])
                )
                if stale_ids:
                    session.execute(
                        sa.delete(sql_schema.addresses).where(sql_schema.addresses.c.address_id.in_(stale_ids))
                    )
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to persist lead %s: %s", lead.id, exc)
            raise PersistenceError("persist", exc) from exc

        self._observability.emit_event(
            "lead.persisted",
            lead_id=lead.id,
            address_count=len(ordered),
            has_details=lead.additional_details is not None,
        )
        return lead.id

    def _upsert_lead_row(self, session: Session, lead: Lead) -> None:
        table = sql_schema.leads
        values = {
            "name": lead.name,
            "age": lead.age,
            "job": lead.job,
            "phone": lead.phone,
            "email": lead.email,
            "bank_id": resolve_bank_id(lead.bank),
            "status": lead.status.value,
            "visit_type": lead.visit_type.value,
            "assigned_to": lead.assigned_to,
            "instructions": lead.instructions,
            "has_co_applicant": lead.has_co_applicant,
            "verification_date": lead.verification_date,
            "updated_at": lead.updated_at,
        }
        result = session.execute(sa.update(table).where(table.c.id == lead.id).values(**values))
        if result.rowcount == 0:
            session.execute(sa.insert(table).values(id=lead.id, created_at=lead.created_at, **values))

    def _write_details(self, session: Session, lead: Lead, timestamp: datetime) -> None:
        table = sql_schema.additional_details
        if lead.additional_details is None:
            session.execute(sa.delete(table).where(table.c.lead_id == lead.id))
            return
        values = lead.additional_details.model_dump(include=set(DETAIL_SCALAR_FIELDS))
        values["extra"] = dict(lead.additional_details.extra) or None
        values["updated_at"] = timestamp
        result = session.execute(sa.update(table).where(table.c.lead_id == lead.id).values(**values))
        if result.rowcount == 0:
            session.execute(sa.insert(table).values(lead_id=lead.id, created_at=timestamp, **values))

    def _write_co_applicant(self, session: Session, lead: Lead) -> None:
        table = sql_schema.co_applicants
        if lead.co_applicant is None:
            session.execute(sa.delete(table).where(table.c.lead_id == lead.id))
            return
        values = lead.co_applicant.model_dump()
        result = session.execute(sa.update(table).where(table.c.lead_id == lead.id).values(**values))
        if result.rowcount == 0:
            session.execute(sa.insert(table).values(lead_id=lead.id, **values))

    def _upsert_addresses(
        self,
        session: Session,
        lead_id: str,
        ordered: Sequence[Address],
        timestamp: datetime,
    ) -> List[str]:
        table = sql_schema.addresses
        ids: List[str] = []
        for position, address in enumerate(ordered):
            address_id = address_row_id(lead_id, position)
            ids.append(address_id)
            values = {**_address_values(address), "updated_at": timestamp}
            result = session.execute(sa.update(table).where(table.c.address_id == address_id).values(**values))
            if result.rowcount == 0:
                session.execute(sa.insert(table).values(address_id=address_id, created_at=timestamp, **values))
        return ids

    def _replace_associations(self, session: Session, lead_id: str, address_ids: Sequence[str]) -> List[str]:
        """Rewrite the ordered association rows and return address ids no longer linked."""

        table = sql_schema.lead_addresses
        previous = session.execute(sa.select(table.c.address_id).where(table.c.lead_id == lead_id)).scalars().all()
        session.execute(sa.delete(table).where(table.c.lead_id == lead_id))
        for position, address_id in enumerate(address_ids):
            session.execute(sa.insert(table).values(lead_id=lead_id, address_id=address_id, position=position))
        current = set(address_ids)
        return [address_id for address_id in previous if address_id not in current]

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def hydrate(self, lead_id: str) -> Lead:
        """Reconstruct the canonical lead stored under ``lead_id``.

        Non-primary addresses are placed by their ``owner`` tag: applicant
        addresses go to ``additional_details.addresses`` and co-applicant
        addresses to ``additional_details.co_applicant_addresses``. A lead that
        listed a co-applicant-owned address among its applicant addresses comes
        back with that address in the co-applicant list.

        Raises:
            NotFoundError: When no lead row exists for ``lead_id``.
            PersistenceError: When a backing-store call fails.
        """

        try:
            with self._session_scope() as session:
                row = session.execute(self._lead_query().where(sql_schema.leads.c.id == lead_id)).first()
                if row is None:
                    raise NotFoundError(lead_id)
                linked = self._load_associations(session, lead_id)
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to hydrate lead %s: %s", lead_id, exc)
            raise PersistenceError("hydrate", exc) from exc
        return self._reconstruct(row._mapping, linked)

    def hydrate_all(self, bank_id: str | None = None) -> List[Lead]:
        """Reconstruct every stored lead, optionally restricted to ``bank_id``.

        ``bank_id`` may be a bank identifier or a bank name; names resolve the
        same way they do on write. Association queries for the individual leads
        run concurrently, bounded by ``persistence.hydrate_timeout_seconds``;
        the returned list keeps the lead-row order and each lead keeps its
        association order.
        """

        statement = self._lead_query().order_by(sql_schema.leads.c.created_at, sql_schema.leads.c.id)
        if bank_id is not None:
            statement = statement.where(sql_schema.leads.c.bank_id == resolve_bank_id(bank_id))
        try:
            with self._session_scope() as session:
                rows = [row._mapping for row in session.execute(statement).all()]
            lead_ids = [row[sql_schema.leads.c.id] for row in rows]
            pool = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="kyclead-hydrate")
            try:
                linked_sets = list(pool.map(self._associations_for, lead_ids, timeout=self._hydrate_timeout))
            finally:
                # a hung association query must not hold the caller past the timeout
                pool.shutdown(wait=False, cancel_futures=True)
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to hydrate leads (bank=%s): %s", bank_id, exc)
            raise PersistenceError("hydrate_all", exc) from exc
        except TimeoutError as exc:
            LOGGER.exception("Timed out hydrating leads (bank=%s) after %ss", bank_id, self._hydrate_timeout)
            raise PersistenceError("hydrate_all", exc) from exc
        return [self._reconstruct(row, linked) for row, linked in zip(rows, linked_sets)]

    def _associations_for(self, lead_id: str) -> List[Address]:
        with self._session_scope() as session:
            return self._load_associations(session, lead_id)

    @staticmethod
    def _lead_query() -> sa.Select:
        leads = sql_schema.leads
        details = sql_schema.additional_details
        co_applicants = sql_schema.co_applicants
        addresses = sql_schema.addresses
        return (
            sa.select(leads, details, co_applicants, addresses)
            .select_from(
                leads.outerjoin(details, details.c.lead_id == leads.c.id)
                .outerjoin(co_applicants, co_applicants.c.lead_id == leads.c.id)
                .outerjoin(addresses, addresses.c.address_id == leads.c.address_id)
            )
            .set_label_style(sa.LABEL_STYLE_TABLENAME_PLUS_COL)
        )

    @staticmethod
    def _load_associations(session: Session, lead_id: str) -> List[Address]:
        link = sql_schema.lead_addresses
        addresses = sql_schema.addresses
        statement = (
            sa.select(addresses)
            .join(link, link.c.address_id == addresses.c.address_id)
            .where(link.c.lead_id == lead_id)
            .order_by(link.c.position)
        )
        return [row_to_address(row._mapping) for row in session.execute(statement).all()]

    @staticmethod
    def _reconstruct(row: Mapping[Any, Any], linked: Sequence[Address]) -> Lead:
        leads = sql_schema.leads
        details_table = sql_schema.additional_details
        co_table = sql_schema.co_applicants

        if linked:
            primary = linked[0]
        elif row[sql_schema.addresses.c.address_id] is not None:
            primary = row_to_address(row)
        else:
            primary = blank_address()
        remaining = list(linked[1:])
        secondary = [address for address in remaining if address.owner is AddressOwner.APPLICANT]
        co_addresses = [address for address in remaining if address.owner is AddressOwner.CO_APPLICANT]

        details = None
        if row[details_table.c.lead_id] is not None:
            values = {name: row[details_table.c[name]] for name in DETAIL_SCALAR_FIELDS}
            details = AdditionalDetails(
                **values,
                addresses=secondary,
                co_applicant_addresses=co_addresses,
                extra=row[details_table.c.extra] or {},
            )

        has_co_applicant = bool(row[leads.c.has_co_applicant])
        co_applicant = None
        if has_co_applicant:
            if row[co_table.c.lead_id] is not None:
                co_applicant = CoApplicant(**{name: row[co_table.c[name]] for name in _CO_APPLICANT_FIELDS})
            else:
                LOGGER.warning("Lead %s is flagged with a co-applicant but has no co_applicants row", row[leads.c.id])
                co_applicant = CoApplicant()

        return Lead(
            id=row[leads.c.id],
            name=row[leads.c.name],
            age=row[leads.c.age],
            job=row[leads.c.job],
            phone=row[leads.c.phone],
            email=row[leads.c.email],
            address=primary,
            additional_details=details,
            status=LeadStatus(row[leads.c.status]),
            bank=row[leads.c.bank_id],
            visit_type=VisitType(row[leads.c.visit_type]),
            assigned_to=row[leads.c.assigned_to],
            instructions=row[leads.c.instructions],
            has_co_applicant=has_co_applicant,
            co_applicant=co_applicant,
            verification_date=_as_utc(row[leads.c.verification_date]),
            created_at=_as_utc(row[leads.c.created_at]),
            updated_at=_as_utc(row[leads.c.updated_at]),
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------
    def delete(self, lead_id: str) -> None:
        """Remove ``lead_id`` together with every row it owns.

        Raises:
            NotFoundError: When no lead row exists for ``lead_id``.
            PersistenceError: When a backing-store call fails.
        """

        leads = sql_schema.leads
        link = sql_schema.lead_addresses
        try:
            with self._session_scope() as session:
                primary_id = session.execute(
                    sa.select(leads.c.address_id).where(leads.c.id == lead_id)
                ).first()
                if primary_id is None:
                    raise NotFoundError(lead_id)
                owned = set(
                    session.execute(sa.select(link.c.address_id).where(link.c.lead_id == lead_id)).scalars().all()
                )
                if primary_id[0] is not None:
                    owned.add(primary_id[0])
                session.execute(sa.delete(link).where(link.c.lead_id == lead_id))
                for table in (sql_schema.verifications, sql_schema.additional_details, sql_schema.co_applicants):
                    session.execute(sa.delete(table).where(table.c.lead_id == lead_id))
                session.execute(sa.delete(leads).where(leads.c.id == lead_id))
                if owned:
                    session.execute(
                        sa.delete(sql_schema.addresses).where(sql_schema.addresses.c.address_id.in_(owned))
                    )
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to delete lead %s: %s", lead_id, exc)
            raise PersistenceError("delete", exc) from exc

        self._observability.emit_event("lead.deleted", lead_id=lead_id, address_count=len(owned))


__all__ = ["LeadStore", "address_row_id", "row_to_address"]
