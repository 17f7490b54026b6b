"""Signing, verification and lookup across one or many keys."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path

from gitsig.app.audit_service import AuditService
from gitsig.app.ports import ObjectStorePort
from gitsig.errors import InvalidSignature
from gitsig.keys import load_private_keys, load_public_keys
from gitsig.keys.passphrase import PassphraseSource, interactive_passphrase
from gitsig.signature import codec, refs
from gitsig.signature.model import SignatureVersion
from gitsig.signature.verify import verify

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RawSignOutcome:
    """Signature object written by one key."""

    key_path: Path
    fingerprint: str
    object_id: str
    signature_id: str


@dataclass(frozen=True, slots=True)
class RawVerifyOutcome:
    """Successful verification of a signature object by one key."""

    key_path: Path
    fingerprint: str
    signature_id: str
    signed_id: str


@dataclass(frozen=True, slots=True)
class SignOutcome:
    """Result of ``sign`` for one key.

    ``created`` is False when a signature by this key already existed and was
    left untouched.
    """

    key_path: Path
    fingerprint: str
    object_id: str
    reference: str
    signature_id: str
    created: bool


@dataclass(frozen=True, slots=True)
class VerifyOutcome:
    """Result of ``verify`` for one key; ``signature_id`` is None when unsigned."""

    key_path: Path
    fingerprint: str
    object_id: str
    reference: str
    signature_id: str | None

    @property
    def verified(self) -> bool:
        return self.signature_id is not None


@dataclass(frozen=True, slots=True)
class LookupOutcome:
    """Signature reference found (or not) for one key."""

    key_path: Path
    fingerprint: str
    object_id: str
    reference: str
    exists: bool


class SigningService:
    """Orchestrate the key, codec, verification and reference layers.

    Batch methods are generators that yield one outcome per key in key path
    order. Cryptographic and parse failures propagate immediately; a missing
    signature is reported as an outcome and iteration continues.
    """

    def __init__(
        self,
        store: ObjectStorePort,
        *,
        audit: AuditService | None = None,
        passphrase_source: PassphraseSource = interactive_passphrase,
    ) -> None:
        self.store = store
        self.audit = audit or AuditService(ledger=None)
        self.passphrase_source = passphrase_source

    def raw_sign(
        self,
        key_path: Path,
        revision: str,
        *,
        version: SignatureVersion = SignatureVersion.current(),
    ) -> Iterator[RawSignOutcome]:
        """Write a signature object for ``revision`` without creating a reference."""
        object_id = self.store.resolve_revision(revision)
        with ExitStack() as stack:
            keys = load_private_keys(key_path, self.passphrase_source)
            for _, secret_key in keys:
                stack.enter_context(secret_key)

            for path, secret_key in keys:
                fingerprint = secret_key.public_key().fingerprint()
                signature_id = codec.encode(self.store, secret_key, object_id, version)
                self.audit.record(
                    "raw_sign",
                    objects=[object_id, signature_id],
                    fingerprints=[fingerprint],
                    args={"version": version.tag, "algorithm": secret_key.algorithm.tag},
                )
                yield RawSignOutcome(
                    key_path=path,
                    fingerprint=fingerprint,
                    object_id=object_id,
                    signature_id=signature_id,
                )

    def raw_verify(
        self,
        key_path: Path,
        signature_revision: str,
    ) -> Iterator[RawVerifyOutcome]:
        """Verify the signature object at ``signature_revision`` with every key."""
        signature_id = self.store.resolve_revision(signature_revision)
        signature_object = codec.decode(self.store, signature_id)
        for path, public_key in load_public_keys(key_path):
            signed_id = verify(signature_object, public_key, recover=True)
            yield RawVerifyOutcome(
                key_path=path,
                fingerprint=public_key.fingerprint(),
                signature_id=signature_id,
                signed_id=signed_id,
            )

    def sign(self, key_path: Path, revision: str) -> Iterator[SignOutcome]:
        """Sign ``revision`` with every key and reference each signature.

        Keys that already signed the object are skipped, never overwritten.
        """
        object_id = self.store.resolve_revision(revision)
        with ExitStack() as stack:
            keys = load_private_keys(key_path, self.passphrase_source)
            for _, secret_key in keys:
                stack.enter_context(secret_key)

            for path, secret_key in keys:
                fingerprint = secret_key.public_key().fingerprint()
                reference = refs.craft_reference(fingerprint, object_id)
                existing = self.store.read_reference(reference)
                if existing is not None:
                    logger.info("Signature already exists under %s", reference)
                    yield SignOutcome(
                        key_path=path,
                        fingerprint=fingerprint,
                        object_id=object_id,
                        reference=reference,
                        signature_id=existing,
                        created=False,
                    )
                    continue

                signature_id = codec.encode(self.store, secret_key, object_id)
                self.store.create_reference(reference, signature_id, allow_overwrite=False)
                self.audit.record(
                    "sign",
                    objects=[object_id, signature_id],
                    references=[reference],
                    fingerprints=[fingerprint],
                    args={"algorithm": secret_key.algorithm.tag},
                )
                yield SignOutcome(
                    key_path=path,
                    fingerprint=fingerprint,
                    object_id=object_id,
                    reference=reference,
                    signature_id=signature_id,
                    created=True,
                )

    def verify(self, key_path: Path, revision: str) -> Iterator[VerifyOutcome]:
        """Verify the referenced signature of every key over ``revision``.

        Raises:
            InvalidSignature: If a referenced signature covers a different object
        """
        object_id = self.store.resolve_revision(revision)
        for path, public_key in load_public_keys(key_path):
            fingerprint = public_key.fingerprint()
            reference = refs.craft_reference(fingerprint, object_id)
            signature_id = refs.lookup_signature(self.store, fingerprint, object_id)
            if signature_id is not None:
                signature_object = codec.decode(self.store, signature_id)
                signed_id = verify(signature_object, public_key, recover=True)
                if signed_id != object_id:
                    raise InvalidSignature(
                        f"Signature under {reference} covers {signed_id}, not {object_id}"
                    )
            yield VerifyOutcome(
                key_path=path,
                fingerprint=fingerprint,
                object_id=object_id,
                reference=reference,
                signature_id=signature_id,
            )

    def rev_lookup(self, key_path: Path, revision: str) -> Iterator[LookupOutcome]:
        """Report which keys have a signature reference for ``revision``."""
        object_id = self.store.resolve_revision(revision)
        for path, public_key in load_public_keys(key_path):
            fingerprint = public_key.fingerprint()
            reference = refs.craft_reference(fingerprint, object_id)
            yield LookupOutcome(
                key_path=path,
                fingerprint=fingerprint,
                object_id=object_id,
                reference=reference,
                exists=refs.lookup_signature(self.store, fingerprint, object_id) is not None,
            )

    def fingerprints(self, key_path: Path) -> list[tuple[Path, str]]:
        """Return ``(path, fingerprint)`` for every public key under ``key_path``."""
        return [(path, key.fingerprint()) for path, key in load_public_keys(key_path)]
