"""Persistence — append-only audit log of ledger events."""
