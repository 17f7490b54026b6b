"""Ledger port interface for the signature audit trail."""

from typing import Any, Protocol

from pydantic import BaseModel, Field


class AuditRecord(BaseModel):
    """Normalized view of an audit ledger entry."""

    timestamp: str = Field(..., description="ISO-8601 timestamp")
    operation: str = Field(..., description="Operation name recorded in the ledger")
    objects: list[str] = Field(
        default_factory=list, description="Object ids signed, verified or removed"
    )
    references: list[str] = Field(
        default_factory=list, description="Reference names or refspecs touched by the event"
    )
    fingerprints: list[str] = Field(
        default_factory=list, description="Key fingerprints involved in the event"
    )
    args: dict[str, Any] = Field(default_factory=dict, description="Additional parameters")


class LedgerPort(Protocol):
    """Port interface for audit ledger operations.

    Adapters implementing this port must provide:
    - Append-only audit logging
    - Hash chain verification
    - Tamper-evident storage

    Side effects: Writes to the audit ledger file.
    """

    def log(
        self,
        operation: str,
        *,
        objects: list[str] | None = None,
        references: list[str] | None = None,
        fingerprints: list[str] | None = None,
        args: dict[str, Any] | None = None,
    ) -> AuditRecord:
        """Append an operation to the audit ledger.

        Args:
            operation: Operation name (e.g., "sign", "push")
            objects: Object ids the operation acted on
            references: References created, removed or transferred
            fingerprints: Fingerprints of the keys used
            args: Additional arguments/metadata
        """
        ...

    def verify(self) -> tuple[bool, str | None]:
        """Verify audit ledger integrity.

        Returns:
            ``(True, None)`` if the hash chain is intact, else ``(False, reason)``
        """
        ...

    def read_all(self) -> list[AuditRecord]:
        """Read all audit entries in append order."""
        ...
