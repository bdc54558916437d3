"""Intake normalization: alias tables, bank reference data and the lead canonicalizer."""
