"""Audit ledger orchestration services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from gitsig.app.ports import AuditRecord, LedgerPort


@dataclass(slots=True)
class AuditService:
    """Record, read and verify audit ledger entries."""

    ledger: LedgerPort | None

    def is_enabled(self) -> bool:
        """Return True when audit logging is available."""

        return self.ledger is not None

    def record(
        self,
        operation: str,
        *,
        objects: list[str] | None = None,
        references: list[str] | None = None,
        fingerprints: list[str] | None = None,
        args: dict[str, Any] | None = None,
    ) -> None:
        """Append an entry; a no-op when auditing is disabled."""

        if self.ledger is None:
            return
        self.ledger.log(
            operation,
            objects=objects,
            references=references,
            fingerprints=fingerprints,
            args=args,
        )

    def get_entries(self, *, tail: int | None = None) -> list[AuditRecord]:
        """Return ledger entries (the last ``tail`` when given; empty when disabled)."""

        if self.ledger is None:
            return []
        entries = self.ledger.read_all()
        if tail is not None:
            return entries[-tail:] if tail > 0 else []
        return entries

    def verify(self) -> tuple[bool, str | None]:
        """Verify ledger integrity, treating missing ledger as valid."""

        if self.ledger is None:
            return True, None
        return self.ledger.verify()
