"""Reference data for lead normalization.

Maps the bank names that arrive from intake screens onto the stable bank
identifiers stored on lead rows. Keys are lower-cased so lookups are
case-insensitive; names that are not listed fall back to a deterministic slug.
"""

from __future__ import annotations

import re

# Known bank names (and common short forms) mapped to their identifiers.
KNOWN_BANKS = {
    "hdfc": "hdfc",
    "hdfc bank": "hdfc",
    "icici": "icici",
    "icici bank": "icici",
    "axis": "axis",
    "axis bank": "axis",
    "sbi": "sbi",
    "state bank of india": "sbi",
    "kotak mahindra bank": "kotak",
    "kotak": "kotak",
    "punjab national bank": "pnb",
    "pnb": "pnb",
    "bank of baroda": "bob",
    "canara bank": "canara",
    "union bank of india": "union",
    "indian bank": "indian",
}

# Display names for known bank identifiers.
BANK_DISPLAY_NAMES = {
    "hdfc": "HDFC Bank",
    "icici": "ICICI Bank",
    "axis": "Axis Bank",
    "sbi": "State Bank of India",
    "kotak": "Kotak Mahindra Bank",
    "pnb": "Punjab National Bank",
    "bob": "Bank of Baroda",
    "canara": "Canara Bank",
    "union": "Union Bank of India",
    "indian": "Indian Bank",
}

_WHITESPACE = re.compile(r"\s+")


def bank_slug(name: str) -> str:
    """Lower-case ``name`` and replace whitespace runs with underscores."""

    return _WHITESPACE.sub("_", name.strip().lower())


def resolve_bank_id(name: str | None) -> str:
    """Translate a human-readable bank name into a stable bank identifier.

    Known names map through :data:`KNOWN_BANKS`; anything else maps to
    :func:`bank_slug`, so the same unrecognised name always yields the same id.
    Identifiers pass through unchanged.
    """

    if not name or not name.strip():
        return ""
    key = _WHITESPACE.sub(" ", name.strip().lower())
    if key in KNOWN_BANKS:
        return KNOWN_BANKS[key]
    return bank_slug(name)


def bank_display_name(bank_id: str | None) -> str:
    """Return a presentation name for ``bank_id``."""

    if not bank_id:
        return ""
    if bank_id in BANK_DISPLAY_NAMES:
        return BANK_DISPLAY_NAMES[bank_id]
    return bank_id.replace("_", " ").title()


__all__ = ["KNOWN_BANKS", "BANK_DISPLAY_NAMES", "bank_slug", "resolve_bank_id", "bank_display_name"]
