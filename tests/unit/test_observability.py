"""Unit tests for structured event logging."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from kyclead.observability import Observability
from kyclead.settings.config import ObservabilitySettings, Settings


def _settings(*, structured: bool) -> Settings:
    return Settings(observability=ObservabilitySettings(structured_logging=structured, service_name="kyclead-test"))


def test_structured_event_is_single_json_line(caplog) -> None:
    logger = logging.getLogger("kyclead.tests.observability")
    observability = Observability(settings=_settings(structured=True), component="lead_store", logger=logger)

    with caplog.at_level(logging.INFO, logger=logger.name):
        observability.emit_event("lead.persisted", lead_id="lead-1", addresses=3, meta={"bank": "hdfc"})

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["event"] == "lead.persisted"
    assert payload["service"] == "kyclead-test"
    assert payload["component"] == "lead_store"
    assert payload["lead_id"] == "lead-1"
    assert payload["addresses"] == 3
    assert payload["meta"] == {"bank": "hdfc"}
    assert "timestamp" in payload


def test_plain_mode_and_level(caplog) -> None:
    logger = logging.getLogger("kyclead.tests.observability.plain")
    observability = Observability(settings=_settings(structured=False), logger=logger)

    with caplog.at_level(logging.WARNING, logger=logger.name):
        observability.emit_event("lead.updated", level=logging.WARNING, warnings=1)

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.getMessage().startswith("lead.updated | ")
    assert "'component': 'core'" in record.getMessage()


def test_structured_event_stringifies_unserializable_values(caplog) -> None:
    logger = logging.getLogger("kyclead.tests.observability.values")
    observability = Observability(settings=_settings(structured=True), logger=logger)
    stamp = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)

    with caplog.at_level(logging.INFO, logger=logger.name):
        observability.emit_event("lead.updated", at=stamp, fields=["name"], nested={"ids": ("a", "b")})

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["at"] == "2024-03-01 12:30:00+00:00"
    assert payload["fields"] == ["name"]
    assert payload["nested"] == {"ids": ["a", "b"]}
