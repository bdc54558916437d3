"""Service-layer helpers: agent assignment and store factories."""
