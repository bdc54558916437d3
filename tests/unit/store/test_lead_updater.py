"""Unit tests for sparse lead updates."""

from __future__ import annotations

from typing import Iterator

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from kyclead.errors import NotFoundError, PartialWriteWarning, PersistenceError
from kyclead.leads.models import LeadPatch, LeadStatus, VisitType
from kyclead.normalization.canonicalizer import canonicalize
from kyclead.store import sql as sql_schema
from kyclead.store.lead_store import LeadStore
from kyclead.store.lead_updater import LeadUpdater

LEAD_ID = "lead-upd"


@pytest.fixture()
def session_factory(tmp_path) -> Iterator[sessionmaker]:
    db_path = tmp_path / "updates.db"
    engine = sa.create_engine(f"sqlite:///{db_path}", future=True)
    sql_schema.METADATA.create_all(engine)
    yield sessionmaker(bind=engine, future=True)
    engine.dispose()


@pytest.fixture()
def store(session_factory) -> LeadStore:
    store = LeadStore(session_factory=session_factory)
    store.persist(
        canonicalize(
            {
                "id": LEAD_ID,
                "name": "Alice Smith",
                "phone": "9876543212",
                "bankName": "ICICI Bank",
                "company": "Marketing Solutions",
                "addresses": [
                    {"type": "Residence", "addressLine1": "321 Park Avenue", "city": "Delhi"},
                    {"type": "Office", "addressLine1": "654 Corporate Center", "city": "Gurgaon"},
                ],
            }
        )
    )
    return store


@pytest.fixture()
def updater(session_factory) -> LeadUpdater:
    return LeadUpdater(session_factory=session_factory)


def test_unknown_bank_name_is_slugged(store: LeadStore, updater: LeadUpdater, session_factory) -> None:
    report = updater.apply_update(LEAD_ID, {"bank": "Totally New Bank"})

    with session_factory() as session:
        bank_id = session.execute(
            sa.select(sql_schema.leads.c.bank_id).where(sql_schema.leads.c.id == LEAD_ID)
        ).scalar_one()
    assert bank_id == "totally_new_bank"
    assert store.hydrate(LEAD_ID).bank == "totally_new_bank"
    assert report.updated_fields == ["bank_id"]
    assert report.complete


def test_known_bank_name_maps_to_identifier(store: LeadStore, updater: LeadUpdater) -> None:
    updater.apply_update(LEAD_ID, LeadPatch(bank="State Bank of India"))
    assert store.hydrate(LEAD_ID).bank == "sbi"


def test_only_supplied_fields_are_written(store: LeadStore, updater: LeadUpdater) -> None:
    before = store.hydrate(LEAD_ID)

    updater.apply_update(LEAD_ID, {"name": "Alice Cooper", "phone": None})
    after = store.hydrate(LEAD_ID)

    assert after.name == "Alice Cooper"
    assert after.phone == before.phone
    assert after.bank == before.bank
    assert after.address == before.address
    assert after.additional_details == before.additional_details
    assert after.created_at == before.created_at
    assert after.updated_at > before.updated_at


def test_camel_case_enum_fields(store: LeadStore, updater: LeadUpdater) -> None:
    updater.apply_update(LEAD_ID, {"visitType": "Virtual", "status": "In Progress", "assignedTo": "tvt-1"})
    lead = store.hydrate(LEAD_ID)

    assert lead.visit_type is VisitType.VIRTUAL
    assert lead.status is LeadStatus.IN_PROGRESS
    assert lead.assigned_to == "tvt-1"


def test_address_updates_primary_row_in_place(store: LeadStore, updater: LeadUpdater, session_factory) -> None:
    leads = sql_schema.leads
    with session_factory() as session:
        address_id_before = session.execute(sa.select(leads.c.address_id).where(leads.c.id == LEAD_ID)).scalar_one()

    report = updater.apply_update(LEAD_ID, {"address": {"city": "Pune", "pincode": "411001"}})

    with session_factory() as session:
        address_id_after = session.execute(sa.select(leads.c.address_id).where(leads.c.id == LEAD_ID)).scalar_one()
        address_rows = session.execute(sa.select(sa.func.count()).select_from(sql_schema.addresses)).scalar_one()
    lead = store.hydrate(LEAD_ID)

    assert address_id_after == address_id_before
    assert address_rows == 2
    assert lead.address.city == "Pune"
    assert lead.address.pincode == "411001"
    assert lead.address.line1 == "321 Park Avenue"
    assert lead.secondary_addresses[0].city == "Gurgaon"
    assert report.updated_fields == ["address.city", "address.pincode"]


def test_details_upsert_creates_missing_row(session_factory, updater: LeadUpdater) -> None:
    store = LeadStore(session_factory=session_factory)
    lead = canonicalize({"id": "lead-bare", "name": "Bare"}).model_copy(update={"additional_details": None})
    store.persist(lead)

    updater.apply_update("lead-bare", {"additionalDetails": {"company": "NewCo", "monthlyIncome": 42000}})
    created = store.hydrate("lead-bare").additional_details

    assert created is not None
    assert created.company == "NewCo"
    assert created.monthly_income == 42000.0
    assert created.designation == ""

    updater.apply_update("lead-bare", {"additionalDetails": {"designation": "Lead"}})
    updated = store.hydrate("lead-bare").additional_details
    assert updated.company == "NewCo"
    assert updated.designation == "Lead"


def test_unknown_lead_raises_not_found(updater: LeadUpdater) -> None:
    with pytest.raises(NotFoundError):
        updater.apply_update("missing", {"name": "x"})


def test_nested_failure_is_soft(store: LeadStore, updater: LeadUpdater, monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(*_args, **_kwargs):
        raise OperationalError("UPDATE additional_details", {}, Exception("lock timeout"))

    monkeypatch.setattr(updater, "_upsert_details", _boom)

    report = updater.apply_update(
        LEAD_ID,
        {"name": "Still Saved", "address": {"city": "Agra"}, "additionalDetails": {"company": "Lost"}},
    )
    lead = store.hydrate(LEAD_ID)

    assert lead.name == "Still Saved"
    assert lead.address.city == "Agra"
    assert lead.additional_details.company == "Marketing Solutions"
    assert not report.complete
    assert len(report.warnings) == 1
    assert isinstance(report.warnings[0], PartialWriteWarning)
    assert report.warnings[0].step == "details_upsert"


def test_missing_primary_address_reference_is_soft(store: LeadStore, updater: LeadUpdater, session_factory) -> None:
    with session_factory.begin() as session:
        session.execute(
            sa.update(sql_schema.leads).where(sql_schema.leads.c.id == LEAD_ID).values(address_id=None)
        )

    report = updater.apply_update(LEAD_ID, {"instructions": "Call first", "address": {"city": "Agra"}})

    assert [warning.step for warning in report.warnings] == ["address_update"]
    assert store.hydrate(LEAD_ID).instructions == "Call first"


def test_top_level_failure_aborts(store: LeadStore, updater: LeadUpdater, monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(*_args, **_kwargs):
        raise OperationalError("UPDATE leads", {}, Exception("database is locked"))

    monkeypatch.setattr(updater, "_update_lead_row", _boom)

    with pytest.raises(PersistenceError) as excinfo:
        updater.apply_update(LEAD_ID, {"name": "Never", "additionalDetails": {"company": "Never"}})

    assert excinfo.value.operation == "apply_update"
    lead = store.hydrate(LEAD_ID)
    assert lead.name == "Alice Smith"
    assert lead.additional_details.company == "Marketing Solutions"
