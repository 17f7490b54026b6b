"""Append-only audit ledger recording signature and reference operations."""

from __future__ import annotations

import hashlib
import hmac
import json
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from gitsig import __version__
from gitsig.app.ports import AuditRecord, LedgerPort
from gitsig.utils.crypto import load_or_create_hmac_key
from gitsig.utils.hashing import compute_sha256

GENESIS_HASH = "0" * 64
GENESIS_SIGNATURE = "0" * 64


class AuditEntry(BaseModel):
    """Single audit ledger entry.

    Entries are linked in a hash chain and sealed with an HMAC that also
    covers the previous entry's seal, so edits, deletions and reordering are
    all detected by :meth:`AuditLedger.verify`.
    """

    timestamp: str = Field(..., description="ISO 8601 timestamp in UTC")
    operation: str = Field(..., description="Operation name (e.g., sign, push)")
    objects: list[str] = Field(default_factory=list, description="Object ids acted on")
    references: list[str] = Field(
        default_factory=list, description="Reference names or refspecs touched"
    )
    fingerprints: list[str] = Field(default_factory=list, description="Key fingerprints used")
    args: dict[str, Any] = Field(default_factory=dict, description="Operation parameters")
    version: str = Field(default=__version__, description="gitsig version that wrote the entry")
    previous_hash: str = Field(
        default=GENESIS_HASH,
        description="SHA-256 hash of previous entry. Genesis entry has 64 zeros.",
    )
    sequence: int = Field(..., ge=1, description="Monotonic sequence number starting at 1")
    entry_hash: str | None = Field(
        default=None,
        description="SHA-256 of the entry content including previous_hash",
    )
    signature: str | None = Field(default=None, description="HMAC seal of the entry")

    def compute_hash(self) -> str:
        """Compute deterministic hash of entry content (excluding hash and seal)."""
        data = self.model_dump(mode="json", exclude={"entry_hash", "signature"})
        content = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return compute_sha256(content.encode("utf-8"))

    def to_record(self) -> AuditRecord:
        return AuditRecord(
            timestamp=self.timestamp,
            operation=self.operation,
            objects=list(self.objects),
            references=list(self.references),
            fingerprints=list(self.fingerprints),
            args=dict(self.args),
        )


class AuditLedger(LedgerPort):
    """JSONL audit ledger with a hash chain and HMAC seals.

    One JSON object per line; every append is flushed and fsynced.
    """

    def __init__(self, ledger_path: Path, *, hmac_key: bytes | None = None) -> None:
        """Initialize audit ledger.

        Args:
            ledger_path: Path to JSONL ledger file
            hmac_key: Key for sealing entries (defaults to a secret next to the ledger)
        """
        self.ledger_path = ledger_path
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)

        if hmac_key is None:
            self._hmac_key = load_or_create_hmac_key(ledger_path.with_suffix(".key"), length=32)
        else:
            self._hmac_key = hmac_key

        self._last_hash = GENESIS_HASH
        self._last_sequence = 0
        self._last_signature = GENESIS_SIGNATURE

        entries = self._read_entries()
        if entries:
            tip = entries[-1]
            self._last_hash = tip.entry_hash or GENESIS_HASH
            self._last_sequence = tip.sequence
            self._last_signature = tip.signature or GENESIS_SIGNATURE

    def _read_entries(self) -> list[AuditEntry]:
        if not self.ledger_path.exists():
            return []

        entries: list[AuditEntry] = []
        with open(self.ledger_path, encoding="utf-8") as fh:
            for line_num, raw_line in enumerate(fh, 1):
                line = raw_line.strip()
                if not line:
                    continue
                try:
                    entries.append(AuditEntry.model_validate_json(line))
                except ValueError as exc:
                    raise ValueError(
                        f"Invalid entry at line {line_num} in {self.ledger_path}: {exc}"
                    ) from exc
        return entries

    def _compute_signature(self, entry: AuditEntry, previous_signature: str) -> str:
        payload = "|".join(
            [
                str(entry.sequence),
                entry.previous_hash,
                entry.entry_hash or "",
                previous_signature,
            ]
        ).encode("utf-8")
        return hmac.new(self._hmac_key, payload, hashlib.sha256).hexdigest()

    def log(
        self,
        operation: str,
        *,
        objects: list[str] | None = None,
        references: list[str] | None = None,
        fingerprints: list[str] | None = None,
        args: dict[str, Any] | None = None,
    ) -> AuditRecord:
        sequence = self._last_sequence + 1
        entry = AuditEntry(
            timestamp=datetime.now(UTC).isoformat(),
            operation=operation,
            objects=objects or [],
            references=references or [],
            fingerprints=fingerprints or [],
            args=args or {},
            previous_hash=self._last_hash,
            sequence=sequence,
        )
        entry.entry_hash = entry.compute_hash()
        entry.signature = self._compute_signature(entry, self._last_signature)

        with open(self.ledger_path, "a", encoding="utf-8") as fh:
            fh.write(entry.model_dump_json() + "\n")
            fh.flush()
            os.fsync(fh.fileno())

        self._last_sequence = sequence
        self._last_hash = entry.entry_hash
        self._last_signature = entry.signature
        return entry.to_record()

    def read_entries(self) -> list[AuditEntry]:
        """Return raw ledger entries including chain fields."""
        return self._read_entries()

    def read_all(self) -> list[AuditRecord]:
        return [entry.to_record() for entry in self._read_entries()]

    def verify(self) -> tuple[bool, str | None]:
        """Walk the chain and check every hash, link, seal and sequence number."""
        try:
            entries = self._read_entries()
        except ValueError as exc:
            return False, str(exc)

        previous_hash = GENESIS_HASH
        previous_signature = GENESIS_SIGNATURE
        for idx, entry in enumerate(entries, 1):
            if entry.entry_hash is None or entry.signature is None:
                return False, f"Entry {idx} is missing its hash or seal."

            expected_hash = entry.compute_hash()
            if not hmac.compare_digest(entry.entry_hash, expected_hash):
                return False, f"Entry {idx} has invalid hash; ledger may have been tampered."

            if entry.previous_hash != previous_hash:
                return False, f"Entry {idx} breaks hash chain."

            expected_signature = self._compute_signature(entry, previous_signature)
            if not hmac.compare_digest(entry.signature, expected_signature):
                return False, f"Entry {idx} has invalid signature; ledger may have been tampered."

            if entry.sequence != idx:
                return False, f"Entry {idx} sequence mismatch (got {entry.sequence})."

            previous_hash = entry.entry_hash
            previous_signature = entry.signature

        return True, None
