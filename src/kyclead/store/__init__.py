"""Relational persistence for leads, their addresses and verification records.

The store package owns the table definitions and the adapters that fan a
canonical lead out into rows and reassemble it on read.
"""
