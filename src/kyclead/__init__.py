"""kyclead: canonical lead records for KYC and loan verification.

This package holds the core of the lead-management application: turning loose
intake payloads into canonical lead records, fanning those records out into
relational storage, resolving which addresses need field coverage, and
reconciling submitted data against what agents verified in the field.
"""
