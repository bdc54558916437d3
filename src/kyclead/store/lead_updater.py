"""Sparse (PATCH-style) updates against persisted leads."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from kyclead.errors import NotFoundError, PartialWriteWarning, PersistenceError
from kyclead.leads.models import AddressPatch, LeadPatch
from kyclead.normalization.reference_data import resolve_bank_id
from kyclead.observability import Observability, get_observability
from kyclead.settings import Settings, get_settings
from kyclead.store import sql as sql_schema
from kyclead.store.sql import session_factory as default_session_factory

LOGGER = logging.getLogger(__name__)

# Lead-row columns that may be cleared by sending an explicit null.
_NULLABLE_FIELDS = frozenset({"verification_date"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _column_values(values: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in values.items()}


@dataclass(slots=True)
class UpdateReport:
    """Outcome of :meth:`LeadUpdater.apply_update`.

    ``warnings`` lists nested steps that failed softly; the lead-row update
    itself always succeeded when a report is returned.
    """

    lead_id: str
    updated_fields: List[str] = field(default_factory=list)
    warnings: List[PartialWriteWarning] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.warnings


class LeadUpdater:
    """Apply partial updates to persisted leads.

    Only fields present in the patch are written. The lead-row update is the
    only step whose failure aborts the call; the primary-address update and the
    additional-details upsert each run inside a SAVEPOINT and are logged and
    skipped when they fail, leaving the rest of the update committed.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker | None = None,
        settings: Settings | None = None,
        observability: Observability | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._session_factory = session_factory or default_session_factory(settings=self.settings)
        self._observability = observability or get_observability(component="lead_updater", settings=self.settings)

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

    def apply_update(self, lead_id: str, patch: LeadPatch | Mapping[str, Any]) -> UpdateReport:
        """Write the supplied fields of ``patch`` onto lead ``lead_id``.

        Args:
            lead_id: Identifier of the lead to update.
            patch: A :class:`LeadPatch` or a mapping using snake_case or camelCase keys.

        Returns:
            :class:`UpdateReport` listing written fields and any soft failures.

        Raises:
            NotFoundError: When the lead does not exist.
            PersistenceError: When the lead-row update fails.
        """

        if not isinstance(patch, LeadPatch):
            patch = LeadPatch.model_validate(dict(patch))
        report = UpdateReport(lead_id=lead_id)
        now = _utcnow()

        try:
            with self._session_scope() as session:
                report.updated_fields.extend(self._update_lead_row(session, lead_id, patch, now))
                if patch.address is not None and patch.address.model_fields_set:
                    self._soft_step(
                        session,
                        report,
                        "address_update",
                        self._update_address,
                        lead_id,
                        patch.address,
                        now,
                    )
                if patch.additional_details is not None and patch.additional_details.model_fields_set:
                    self._soft_step(
                        session,
                        report,
                        "details_upsert",
                        self._upsert_details,
                        lead_id,
                        patch.additional_details,
                        now,
                    )
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to update lead %s: %s", lead_id, exc)
            raise PersistenceError("apply_update", exc) from exc

        self._observability.emit_event(
            "lead.updated",
            lead_id=lead_id,
            fields=report.updated_fields,
            soft_failures=[warning.step for warning in report.warnings],
        )
        return report

    def _soft_step(self, session: Session, report: UpdateReport, step: str, func, *args: Any) -> None:
        try:
            with session.begin_nested():
                written = func(session, *args)
        except (SQLAlchemyError, LookupError) as exc:
            warning = PartialWriteWarning(step, exc)
            LOGGER.warning("Lead %s: %s", report.lead_id, warning)
            report.warnings.append(warning)
            return
        report.updated_fields.extend(written)

    def _update_lead_row(self, session: Session, lead_id: str, patch: LeadPatch, timestamp: datetime) -> List[str]:
        table = sql_schema.leads
        values = _column_values(
            {name: value for name, value in patch.supplied().items() if value is not None or name in _NULLABLE_FIELDS}
        )
        if "bank" in values:
            values["bank_id"] = resolve_bank_id(values.pop("bank"))
        written = sorted(values)
        values["updated_at"] = timestamp
        result = session.execute(sa.update(table).where(table.c.id == lead_id).values(**values))
        if result.rowcount == 0:
            raise NotFoundError(lead_id)
        return written

    def _update_address(self, session: Session, lead_id: str, patch: AddressPatch, timestamp: datetime) -> List[str]:
        """Update the primary address row in place through ``leads.address_id``."""

        address_id = session.execute(
            sa.select(sql_schema.leads.c.address_id).where(sql_schema.leads.c.id == lead_id)
        ).scalar_one_or_none()
        if address_id is None:
            raise LookupError(f"lead '{lead_id}' has no primary address row")
        values = _column_values(patch.model_dump(exclude_unset=True, exclude_none=True))
        table = sql_schema.addresses
        session.execute(
            sa.update(table).where(table.c.address_id == address_id).values(**values, updated_at=timestamp)
        )
        return [f"address.{name}" for name in sorted(values)]

    def _upsert_details(self, session: Session, lead_id: str, patch: Any, timestamp: datetime) -> List[str]:
        """Update the additional-details row, creating it when the lead has none yet."""

        values = patch.model_dump(exclude_unset=True, exclude_none=True)
        table = sql_schema.additional_details
        result = session.execute(
            sa.update(table).where(table.c.lead_id == lead_id).values(**values, updated_at=timestamp)
        )
        if result.rowcount == 0:
            session.execute(
                sa.insert(table).values(lead_id=lead_id, created_at=timestamp, updated_at=timestamp, **values)
            )
        return [f"additional_details.{name}" for name in sorted(values)]


__all__ = ["LeadUpdater", "UpdateReport"]
