"""Tests for the signing service orchestration."""

from pathlib import Path

import pytest

from gitsig.app import AuditService, SigningService
from gitsig.audit.ledger import AuditLedger
from gitsig.errors import (
    IncompatibleKeyType,
    InvalidSignature,
    KeyDecodeError,
    ObjectLookupError,
)
from gitsig.keys import SignifyPrivateKey
from gitsig.keys.passphrase import static_passphrase
from gitsig.signature import codec
from gitsig.signature.model import SignatureVersion
from gitsig.signature.refs import craft_reference, discover_signers


@pytest.fixture
def service(memory_store) -> SigningService:
    return SigningService(memory_store, passphrase_source=static_passphrase("unused"))


def test_raw_sign_writes_objects_but_no_references(service, memory_store, objects, key_dir):
    outcomes = list(service.raw_sign(key_dir, objects["blob"]))

    assert [outcome.key_path.name for outcome in outcomes] == ["alice.sec", "bob.sec"]
    for outcome in outcomes:
        assert outcome.object_id == objects["blob"]
        assert memory_store.get_object(outcome.signature_id).kind.value == "commit"
    assert memory_store.list_references_matching("refs/signify/*") == []


def test_raw_sign_then_raw_verify(service, objects, key_dir):
    (signify_outcome,) = service.raw_sign(key_dir / "alice.sec", objects["tree"])

    (verified,) = service.raw_verify(key_dir / "alice.pub", signify_outcome.signature_id)

    assert verified.signed_id == objects["tree"]
    assert verified.fingerprint == signify_outcome.fingerprint


def test_raw_sign_legacy_layout(service, memory_store, objects, key_dir):
    (outcome,) = service.raw_sign(
        key_dir / "alice.sec", objects["tree"], version=SignatureVersion.V0
    )

    assert memory_store.get_object(outcome.signature_id).kind.value == "tree"
    (verified,) = service.raw_verify(key_dir / "alice.pub", outcome.signature_id)
    assert verified.signed_id == objects["tree"]


def test_raw_sign_legacy_layout_rejects_minisign(service, objects, key_dir):
    with pytest.raises(IncompatibleKeyType):
        list(service.raw_sign(key_dir / "bob.sec", objects["blob"], version=SignatureVersion.V0))


def test_raw_verify_with_wrong_key_type(service, objects, key_dir):
    (outcome,) = service.raw_sign(key_dir / "alice.sec", objects["blob"])

    with pytest.raises(IncompatibleKeyType):
        list(service.raw_verify(key_dir / "bob.pub", outcome.signature_id))


def test_sign_creates_one_reference_per_key(service, memory_store, objects, key_dir):
    outcomes = list(service.sign(key_dir, objects["commit"]))

    assert all(outcome.created for outcome in outcomes)
    for outcome in outcomes:
        assert outcome.reference == craft_reference(outcome.fingerprint, objects["commit"])
        assert memory_store.read_reference(outcome.reference) == outcome.signature_id

    signers = discover_signers(memory_store)
    assert signers == {objects["commit"]: {outcome.fingerprint for outcome in outcomes}}


def test_sign_resolves_revision_names(disk_repo, key_dir):
    from gitsig.app.adapters import DulwichObjectStore

    path, ids = disk_repo
    store = DulwichObjectStore.discover(path)
    service = SigningService(store, passphrase_source=static_passphrase(""))

    (outcome,) = service.sign(key_dir / "alice.sec", "master")

    assert outcome.object_id == ids["commit"]


def test_sign_twice_keeps_existing_reference(service, memory_store, objects, key_dir):
    (first,) = service.sign(key_dir / "alice.sec", objects["blob"])
    (second,) = service.sign(key_dir / "alice.sec", objects["blob"])

    assert first.created is True
    assert second.created is False
    assert second.signature_id == first.signature_id
    assert memory_store.read_reference(first.reference) == first.signature_id


def test_sign_then_verify(service, objects, key_dir):
    list(service.sign(key_dir, objects["tree"]))

    outcomes = list(service.verify(key_dir, objects["tree"]))

    assert [outcome.key_path.name for outcome in outcomes] == ["alice.pub", "bob.pub"]
    assert all(outcome.verified for outcome in outcomes)


def test_verify_reports_missing_signature_and_continues(service, objects, key_dir):
    list(service.sign(key_dir / "bob.sec", objects["blob"]))

    outcomes = list(service.verify(key_dir, objects["blob"]))

    assert [outcome.verified for outcome in outcomes] == [False, True]


def test_verify_rejects_signature_over_other_object(service, memory_store, objects, key_dir):
    secret = SignifyPrivateKey.from_text(
        (key_dir / "alice.sec").read_text(), static_passphrase("")
    )
    fingerprint = secret.public_key().fingerprint()
    foreign = codec.encode(memory_store, secret, objects["tree"])
    memory_store.create_reference(craft_reference(fingerprint, objects["blob"]), foreign)

    with pytest.raises(InvalidSignature, match="covers"):
        list(service.verify(key_dir / "alice.pub", objects["blob"]))


def test_verify_with_stranger_key_fails(service, memory_store, objects, key_dir, temp_dir):
    (outcome,) = service.sign(key_dir / "alice.sec", objects["blob"])
    stranger = SignifyPrivateKey.generate().public_key()
    memory_store.create_reference(
        craft_reference(stranger.fingerprint(), objects["blob"]), outcome.signature_id
    )
    stranger_path = temp_dir / "stranger.pub"
    stranger_path.write_text(stranger.to_text())

    with pytest.raises(InvalidSignature):
        list(service.verify(stranger_path, objects["blob"]))


def test_rev_lookup(service, objects, key_dir):
    list(service.sign(key_dir / "alice.sec", objects["commit"]))

    outcomes = list(service.rev_lookup(key_dir, objects["commit"]))

    assert [outcome.exists for outcome in outcomes] == [True, False]
    assert outcomes[0].reference.startswith("refs/signify/signatures/")


def test_unknown_revision(service, key_dir):
    with pytest.raises(ObjectLookupError):
        list(service.sign(key_dir, "does-not-exist"))


def test_missing_key_path(service, objects, temp_dir: Path):
    with pytest.raises(KeyDecodeError):
        list(service.verify(temp_dir / "missing.pub", objects["blob"]))


def test_keys_are_wiped_after_signing(memory_store, objects, key_dir, monkeypatch):
    loaded: list = []

    from gitsig.app import signing_service as module

    original = module.load_private_keys

    def capturing(path, source):
        keys = original(path, source)
        loaded.extend(key for _, key in keys)
        return keys

    monkeypatch.setattr(module, "load_private_keys", capturing)
    service = SigningService(memory_store, passphrase_source=static_passphrase(""))

    list(service.sign(key_dir, objects["blob"]))

    assert loaded
    assert all(not any(key._seckey) for key in loaded)


def test_fingerprints(service, key_dir):
    pairs = service.fingerprints(key_dir)

    assert [path.name for path, _ in pairs] == ["alice.pub", "bob.pub"]
    assert all(len(fp) == 40 for _, fp in pairs)


def test_sign_is_audited(memory_store, objects, key_dir, temp_dir):
    ledger = AuditLedger(temp_dir / "audit.jsonl", hmac_key=b"k" * 32)
    service = SigningService(
        memory_store,
        audit=AuditService(ledger=ledger),
        passphrase_source=static_passphrase(""),
    )

    (outcome,) = service.sign(key_dir / "alice.sec", objects["blob"])
    list(service.sign(key_dir / "alice.sec", objects["blob"]))

    records = ledger.read_all()
    assert [record.operation for record in records] == ["sign"]
    assert records[0].references == [outcome.reference]
    assert records[0].fingerprints == [outcome.fingerprint]
    assert ledger.verify() == (True, None)
