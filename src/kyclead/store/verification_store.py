"""Persist committed verification field lists."""

from __future__ import annotations

import dataclasses
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from kyclead.errors import NotFoundError, PersistenceError
from kyclead.store import sql as sql_schema
from kyclead.store.sql import session_factory as default_session_factory
from kyclead.verification.engine import VerificationField, VerificationOutcome, commit

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class StoredVerification:
    """A verification row read back from the store."""

    verification_id: str
    lead_id: str
    agent_id: str | None
    status: str
    notes: str | None
    fields: Tuple[VerificationField, ...]
    outcome: VerificationOutcome
    created_at: datetime


class VerificationStore:
    """Write and read ``verifications`` rows."""

    def __init__(self, *, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or default_session_factory()

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

    def save(
        self,
        lead_id: str,
        fields: Sequence[VerificationField],
        *,
        agent_id: str | None = None,
        status: str = "completed",
        notes: str | None = None,
    ) -> str:
        """Commit ``fields`` and store the snapshot with its counters.

        Raises:
            NoFieldsVerifiedError: When no field was verified; nothing is written.
            NotFoundError: When ``lead_id`` does not exist.
            PersistenceError: When the insert fails.
        """

        outcome = commit(fields)
        verification_id = str(uuid.uuid4())
        try:
            with self._session_scope() as session:
                exists = session.execute(
                    sa.select(sql_schema.leads.c.id).where(sql_schema.leads.c.id == lead_id)
                ).first()
                if exists is None:
                    raise NotFoundError(lead_id)
                session.execute(
                    sa.insert(sql_schema.verifications).values(
                        verification_id=verification_id,
                        lead_id=lead_id,
                        agent_id=agent_id,
                        status=status,
                        notes=notes,
                        fields=[dataclasses.asdict(field) for field in fields],
                        total=outcome.total,
                        verified=outcome.verified,
                        correct=outcome.correct,
                        incorrect=outcome.incorrect,
                        created_at=_utcnow(),
                    )
                )
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to save verification for lead %s: %s", lead_id, exc)
            raise PersistenceError("save_verification", exc) from exc

        LOGGER.info(
            "Saved verification verification_id=%s lead_id=%s verified=%d/%d",
            verification_id,
            lead_id,
            outcome.verified,
            outcome.total,
        )
        return verification_id

    def latest_for_lead(self, lead_id: str) -> StoredVerification | None:
        """Return the most recent verification for ``lead_id``, if any."""

        table = sql_schema.verifications
        statement = (
            sa.select(table)
            .where(table.c.lead_id == lead_id)
            .order_by(table.c.created_at.desc(), table.c.verification_id)
            .limit(1)
        )
        try:
            with self._session_scope() as session:
                row = session.execute(statement).mappings().first()
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to load verification for lead %s: %s", lead_id, exc)
            raise PersistenceError("latest_verification", exc) from exc
        if row is None:
            return None
        created_at = row["created_at"]
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return StoredVerification(
            verification_id=row["verification_id"],
            lead_id=row["lead_id"],
            agent_id=row["agent_id"],
            status=row["status"],
            notes=row["notes"],
            fields=tuple(VerificationField(**entry) for entry in row["fields"]),
            outcome=VerificationOutcome(
                total=row["total"],
                verified=row["verified"],
                correct=row["correct"],
                incorrect=row["incorrect"],
            ),
            created_at=created_at,
        )


__all__ = ["StoredVerification", "VerificationStore"]
