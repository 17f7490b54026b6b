"""Tamper-evident audit trail of signing and reference operations."""
