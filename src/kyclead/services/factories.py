"""Factory helpers that wire the lead stores to the configured database.

These helpers centralize how :mod:`kyclead.settings` is honored so callers do
not build engines themselves. Passing an existing ``session_factory`` lets
several stores share one engine and connection pool.
"""

from __future__ import annotations

from sqlalchemy.orm import sessionmaker

from kyclead.settings import Settings, get_settings
from kyclead.store.lead_store import LeadStore
from kyclead.store.lead_updater import LeadUpdater
from kyclead.store.sql import session_factory as build_sql_session_factory
from kyclead.store.verification_store import VerificationStore


def build_lead_store(
    *,
    session_factory: sessionmaker | None = None,
    settings: Settings | None = None,
) -> LeadStore:
    """Instantiate a :class:`LeadStore` backed by the configured SQL engine."""

    resolved = settings or get_settings()
    factory = session_factory or build_sql_session_factory(settings=resolved)
    return LeadStore(session_factory=factory, settings=resolved)


def build_lead_updater(
    *,
    session_factory: sessionmaker | None = None,
    settings: Settings | None = None,
) -> LeadUpdater:
    """Instantiate a :class:`LeadUpdater` backed by the configured SQL engine."""

    resolved = settings or get_settings()
    factory = session_factory or build_sql_session_factory(settings=resolved)
    return LeadUpdater(session_factory=factory, settings=resolved)


def build_verification_store(
    *,
    session_factory: sessionmaker | None = None,
    settings: Settings | None = None,
) -> VerificationStore:
    """Instantiate a :class:`VerificationStore` backed by the configured SQL engine."""

    factory = session_factory or build_sql_session_factory(settings=settings or get_settings())
    return VerificationStore(session_factory=factory)


__all__ = ["build_lead_store", "build_lead_updater", "build_verification_store"]
