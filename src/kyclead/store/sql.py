"""SQLAlchemy metadata and engine helpers for the lead tables."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import sqlalchemy as sa
from sqlalchemy import Engine
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import URL
from sqlalchemy.orm import sessionmaker

from kyclead.settings import Settings, get_settings

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")
TIMESTAMP = sa.DateTime(timezone=True)
UUID_TYPE = sa.String(length=64)

METADATA = sa.MetaData()

addresses = sa.Table(
    "addresses",
    METADATA,
    sa.Column("address_id", UUID_TYPE, primary_key=True),
    sa.Column("kind", sa.Text(), nullable=False, server_default="Residence"),
    sa.Column("line1", sa.Text(), nullable=False, server_default=""),
    sa.Column("city", sa.Text(), nullable=False, server_default=""),
    sa.Column("district", sa.Text(), nullable=False, server_default=""),
    sa.Column("state", sa.Text(), nullable=False, server_default=""),
    sa.Column("pincode", sa.Text(), nullable=False, server_default=""),
    sa.Column("owner", sa.Text(), nullable=False, server_default="applicant"),
    sa.Column("assigned_agent_id", sa.Text(), nullable=True),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    sa.Column("updated_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)

leads = sa.Table(
    "leads",
    METADATA,
    sa.Column("id", UUID_TYPE, primary_key=True),
    sa.Column("name", sa.Text(), nullable=False, server_default=""),
    sa.Column("age", sa.Integer(), nullable=False, server_default="25"),
    sa.Column("job", sa.Text(), nullable=False, server_default=""),
    sa.Column("phone", sa.Text(), nullable=False, server_default=""),
    sa.Column("email", sa.Text(), nullable=False, server_default=""),
    sa.Column("bank_id", sa.Text(), nullable=False, server_default=""),
    sa.Column("address_id", UUID_TYPE, sa.ForeignKey("addresses.address_id", ondelete="SET NULL"), nullable=True),
    sa.Column("status", sa.Text(), nullable=False, server_default="Pending"),
    sa.Column("visit_type", sa.Text(), nullable=False, server_default="Physical"),
    sa.Column("assigned_to", sa.Text(), nullable=False, server_default=""),
    sa.Column("instructions", sa.Text(), nullable=False, server_default=""),
    sa.Column("has_co_applicant", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    sa.Column("verification_date", TIMESTAMP, nullable=True),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    sa.Column("updated_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)
sa.Index("idx_leads_bank_id", leads.c.bank_id)
sa.Index("idx_leads_status", leads.c.status)

additional_details = sa.Table(
    "additional_details",
    METADATA,
    sa.Column("lead_id", UUID_TYPE, sa.ForeignKey("leads.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("company", sa.Text(), nullable=False, server_default=""),
    sa.Column("designation", sa.Text(), nullable=False, server_default=""),
    sa.Column("work_experience", sa.Text(), nullable=False, server_default=""),
    sa.Column("monthly_income", sa.Float(), nullable=False, server_default="0"),
    sa.Column("annual_income", sa.Text(), nullable=False, server_default=""),
    sa.Column("other_income", sa.Text(), nullable=False, server_default=""),
    sa.Column("father_name", sa.Text(), nullable=False, server_default=""),
    sa.Column("mother_name", sa.Text(), nullable=False, server_default=""),
    sa.Column("spouse_name", sa.Text(), nullable=False, server_default=""),
    sa.Column("gender", sa.Text(), nullable=False, server_default=""),
    sa.Column("marital_status", sa.Text(), nullable=False, server_default=""),
    sa.Column("date_of_birth", sa.Text(), nullable=False, server_default=""),
    sa.Column("phone_number", sa.Text(), nullable=False, server_default=""),
    sa.Column("email", sa.Text(), nullable=False, server_default=""),
    sa.Column("property_type", sa.Text(), nullable=False, server_default=""),
    sa.Column("ownership_status", sa.Text(), nullable=False, server_default=""),
    sa.Column("property_age", sa.Text(), nullable=False, server_default=""),
    sa.Column("lead_type", sa.Text(), nullable=False, server_default=""),
    sa.Column("lead_type_id", sa.Text(), nullable=False, server_default=""),
    sa.Column("loan_amount", sa.Text(), nullable=False, server_default=""),
    sa.Column("loan_type", sa.Text(), nullable=False, server_default=""),
    sa.Column("vehicle_brand_name", sa.Text(), nullable=False, server_default=""),
    sa.Column("vehicle_brand_id", sa.Text(), nullable=False, server_default=""),
    sa.Column("vehicle_model_name", sa.Text(), nullable=False, server_default=""),
    sa.Column("vehicle_model_id", sa.Text(), nullable=False, server_default=""),
    sa.Column("agency_file_no", sa.Text(), nullable=False, server_default=""),
    sa.Column("application_barcode", sa.Text(), nullable=False, server_default=""),
    sa.Column("case_id", sa.Text(), nullable=False, server_default=""),
    sa.Column("scheme_desc", sa.Text(), nullable=False, server_default=""),
    sa.Column("bank_product", sa.Text(), nullable=False, server_default=""),
    sa.Column("initiated_under_branch", sa.Text(), nullable=False, server_default=""),
    sa.Column("bank_branch", sa.Text(), nullable=False, server_default=""),
    sa.Column("additional_comments", sa.Text(), nullable=False, server_default=""),
    sa.Column("extra", JSON_TYPE, nullable=True),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    sa.Column("updated_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)

co_applicants = sa.Table(
    "co_applicants",
    METADATA,
    sa.Column("lead_id", UUID_TYPE, sa.ForeignKey("leads.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("name", sa.Text(), nullable=False, server_default=""),
    sa.Column("age", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("phone", sa.Text(), nullable=False, server_default=""),
    sa.Column("email", sa.Text(), nullable=False, server_default=""),
    sa.Column("relation", sa.Text(), nullable=False, server_default=""),
    sa.Column("occupation", sa.Text(), nullable=False, server_default=""),
    sa.Column("monthly_income", sa.Float(), nullable=False, server_default="0"),
)

lead_addresses = sa.Table(
    "lead_addresses",
    METADATA,
    sa.Column("lead_id", UUID_TYPE, sa.ForeignKey("leads.id", ondelete="CASCADE"), primary_key=True),
    sa.Column(
        "address_id",
        UUID_TYPE,
        sa.ForeignKey("addresses.address_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column("position", sa.Integer(), nullable=False),
    sa.UniqueConstraint("lead_id", "position", name="uq_lead_addresses_position"),
)

verifications = sa.Table(
    "verifications",
    METADATA,
    sa.Column("verification_id", UUID_TYPE, primary_key=True),
    sa.Column("lead_id", UUID_TYPE, sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False),
    sa.Column("agent_id", sa.Text(), nullable=True),
    sa.Column("status", sa.Text(), nullable=False),
    sa.Column("notes", sa.Text(), nullable=True),
    sa.Column("fields", JSON_TYPE, nullable=False),
    sa.Column("total", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("verified", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("correct", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("incorrect", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)
sa.Index("idx_verifications_lead_created", verifications.c.lead_id, verifications.c.created_at)


def _resolve_database_url(settings: Settings) -> str:
    """Return the SQLAlchemy URL considering overrides and configured backend."""

    if settings.storage.database_url:
        return settings.storage.database_url

    backend = settings.storage.backend
    if backend == "sqlite":
        sqlite_path = Path(settings.storage.sqlite_path)
        sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        return URL.create("sqlite", database=sqlite_path.as_posix()).render_as_string(hide_password=False)

    raise ValueError(f"Backend '{backend}' requires storage.database_url to be set")


def build_engine(*, echo: bool = False, settings: Settings | None = None) -> Engine:
    """Instantiate a SQLAlchemy engine with a bounded per-statement timeout."""

    resolved = settings or get_settings()
    url = _resolve_database_url(resolved)
    timeout = resolved.persistence.statement_timeout_seconds
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = timeout
    elif url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={int(timeout * 1000)}"
    return sa.create_engine(url, echo=echo, future=True, pool_pre_ping=True, connect_args=connect_args)


def session_factory(*, settings: Settings | None = None) -> sessionmaker:
    """Return a configured sessionmaker bound to the active engine."""

    engine = build_engine(settings=settings)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


__all__ = [
    "METADATA",
    "additional_details",
    "addresses",
    "build_engine",
    "co_applicants",
    "lead_addresses",
    "leads",
    "session_factory",
    "verifications",
]
