"""User accounts, roles and profile metadata."""
