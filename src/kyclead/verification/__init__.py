"""Field-level verification reconciliation."""
