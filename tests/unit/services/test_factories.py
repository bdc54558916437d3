"""Tests for the store factory helpers."""

from __future__ import annotations

from kyclead.normalization.canonicalizer import canonicalize
from kyclead.services.factories import build_lead_store, build_lead_updater, build_verification_store
from kyclead.settings.config import Settings, StorageSettings
from kyclead.store import sql as sql_schema
from kyclead.verification.engine import FieldPatch, expand, set_field


def test_factories_share_configured_sqlite_database(tmp_path) -> None:
    settings = Settings(storage=StorageSettings(sqlite_path=tmp_path / "nested" / "factory.db"))
    engine = sql_schema.build_engine(settings=settings)
    sql_schema.METADATA.create_all(engine)

    store = build_lead_store(settings=settings)
    updater = build_lead_updater(settings=settings)
    verifications = build_verification_store(settings=settings)

    lead = canonicalize({"id": "lead-factory", "name": "Factory Lead"})
    store.persist(lead)
    updater.apply_update("lead-factory", {"instructions": "Ring twice"})
    verifications.save("lead-factory", set_field(expand(lead), 4, FieldPatch(is_verified=True, is_correct=True)))

    assert (tmp_path / "nested" / "factory.db").exists()
    assert store.hydrate("lead-factory").instructions == "Ring twice"
    assert verifications.latest_for_lead("lead-factory").outcome.correct == 1
    engine.dispose()
