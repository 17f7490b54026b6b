"""Tests for audit ledger functionality."""

import json
from pathlib import Path

import pytest

from gitsig.app import AuditService
from gitsig.audit.ledger import GENESIS_HASH, AuditEntry, AuditLedger


def _entry(**overrides) -> AuditEntry:
    values = {
        "timestamp": "2026-10-18T10:00:00+00:00",
        "operation": "sign",
        "objects": ["a" * 40],
        "references": [f"refs/signify/signatures/{'b' * 40}/{'a' * 40}"],
        "fingerprints": ["b" * 40],
        "args": {"algorithm": "signify"},
        "sequence": 1,
    }
    values.update(overrides)
    return AuditEntry(**values)


def test_audit_entry_hash_is_deterministic():
    """Identical entries hash identically."""
    first = _entry()
    second = _entry()

    assert first.compute_hash() == second.compute_hash()
    assert len(first.compute_hash()) == 64


def test_audit_entry_hash_covers_references():
    assert _entry().compute_hash() != _entry(references=[]).compute_hash()


def test_sequence_starts_at_one():
    with pytest.raises(ValueError):
        _entry(sequence=0)


def test_audit_ledger_log(temp_dir: Path):
    """Test logging operations to audit ledger."""
    ledger_path = temp_dir / "audit.jsonl"
    ledger = AuditLedger(ledger_path)

    record = ledger.log(
        "sign",
        objects=["a" * 40],
        references=["refs/signify/signatures/x/y"],
        fingerprints=["b" * 40],
        args={"algorithm": "minisign"},
    )

    assert record.operation == "sign"
    assert record.objects == ["a" * 40]
    assert record.args == {"algorithm": "minisign"}
    assert ledger_path.exists()
    # HMAC key is created beside the ledger when none is supplied
    assert ledger_path.with_suffix(".key").exists()

    (entry,) = ledger.read_entries()
    assert entry.sequence == 1
    assert entry.previous_hash == GENESIS_HASH
    assert entry.signature is not None


def test_audit_ledger_chain_links(temp_dir: Path):
    ledger = AuditLedger(temp_dir / "audit.jsonl", hmac_key=b"k" * 32)
    ledger.log("sign")
    ledger.log("push", references=["refs/signify/*"])
    ledger.log("pull")

    entries = ledger.read_entries()

    assert [entry.sequence for entry in entries] == [1, 2, 3]
    assert entries[1].previous_hash == entries[0].entry_hash
    assert entries[2].previous_hash == entries[1].entry_hash
    assert ledger.verify() == (True, None)


def test_audit_ledger_resumes_chain(temp_dir: Path):
    ledger_path = temp_dir / "audit.jsonl"
    AuditLedger(ledger_path, hmac_key=b"k" * 32).log("sign")

    reopened = AuditLedger(ledger_path, hmac_key=b"k" * 32)
    reopened.log("push")

    assert [entry.sequence for entry in reopened.read_entries()] == [1, 2]
    assert reopened.verify() == (True, None)


def test_audit_ledger_detects_tampering(temp_dir: Path):
    ledger_path = temp_dir / "audit.jsonl"
    ledger = AuditLedger(ledger_path, hmac_key=b"k" * 32)
    ledger.log("sign", objects=["a" * 40])
    ledger.log("push")

    lines = ledger_path.read_text().splitlines()
    data = json.loads(lines[0])
    data["objects"] = ["c" * 40]
    lines[0] = json.dumps(data)
    ledger_path.write_text("\n".join(lines) + "\n")

    valid, error = ledger.verify()

    assert valid is False
    assert "Entry 1 has invalid hash" in error


def test_audit_ledger_detects_deleted_entry(temp_dir: Path):
    ledger_path = temp_dir / "audit.jsonl"
    ledger = AuditLedger(ledger_path, hmac_key=b"k" * 32)
    for operation in ("sign", "push", "pull"):
        ledger.log(operation)

    lines = ledger_path.read_text().splitlines()
    ledger_path.write_text("\n".join([lines[0], lines[2]]) + "\n")

    valid, error = ledger.verify()

    assert valid is False
    assert "Entry 2" in error


def test_audit_ledger_detects_wrong_key(temp_dir: Path):
    ledger_path = temp_dir / "audit.jsonl"
    AuditLedger(ledger_path, hmac_key=b"k" * 32).log("sign")

    valid, error = AuditLedger(ledger_path, hmac_key=b"x" * 32).verify()

    assert valid is False
    assert "invalid signature" in error


def test_audit_ledger_rejects_corrupt_line(temp_dir: Path):
    ledger_path = temp_dir / "audit.jsonl"
    ledger = AuditLedger(ledger_path, hmac_key=b"k" * 32)
    ledger.log("sign")
    with open(ledger_path, "a", encoding="utf-8") as fh:
        fh.write("{not json\n")

    valid, error = ledger.verify()

    assert valid is False
    assert "line 2" in error


def test_audit_service_disabled_is_noop():
    service = AuditService(ledger=None)

    service.record("sign", objects=["a" * 40])

    assert service.is_enabled() is False
    assert service.get_entries() == []
    assert service.verify() == (True, None)


def test_audit_service_tail(temp_dir: Path):
    service = AuditService(ledger=AuditLedger(temp_dir / "audit.jsonl", hmac_key=b"k" * 32))
    for operation in ("sign", "push", "pull"):
        service.record(operation)

    assert [record.operation for record in service.get_entries(tail=2)] == ["push", "pull"]
    assert service.get_entries(tail=0) == []
    assert len(service.get_entries()) == 3
