"""Signature discovery, exchange with remotes and removal."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

from gitsig.app.adapters.remote_refs import DulwichRemoteReferences
from gitsig.app.audit_service import AuditService
from gitsig.app.ports import ObjectStorePort, ReferenceSourcePort, TransportPort
from gitsig.keys import load_public_keys
from gitsig.signature import refs
from gitsig.utils.offline import OfflineModeGate

logger = logging.getLogger(__name__)

DESCRIBE_PATTERNS = ("refs/heads/*", "refs/tags/*", "refs/remotes/*")


@dataclass(frozen=True, slots=True)
class RemovalOutcome:
    """Signature reference removed (or absent) for one key."""

    key_path: Path
    fingerprint: str
    object_id: str
    reference: str
    remote: str | None
    removed: bool


class SyncService:
    """List, push, pull and remove signature references.

    Every operation that contacts a remote passes through the offline gate first.
    """

    def __init__(
        self,
        store: ObjectStorePort,
        transport: TransportPort,
        offline_gate: OfflineModeGate,
        *,
        audit: AuditService | None = None,
        remote_factory: Callable[[str], ReferenceSourcePort] = DulwichRemoteReferences,
        default_remote: str = "origin",
    ) -> None:
        self.store = store
        self.transport = transport
        self.offline_gate = offline_gate
        self.audit = audit or AuditService(ledger=None)
        self.remote_factory = remote_factory
        self.default_remote = default_remote

    def list_signatures(self, remote: str | None = None) -> dict[str, set[str]]:
        """Map signed object ids to signer fingerprints, locally or on ``remote``."""
        if remote is None:
            return refs.discover_signers(self.store)

        self.offline_gate.require("list-signatures --remote")
        url = self.store.remote_url(remote)
        logger.info("Listing signature references of %s (%s)", remote, url)
        return refs.discover_signers(self.remote_factory(url))

    def describe(self, object_id: str) -> str:
        """Name ``object_id`` by the first branch, tag or remote branch pointing at it.

        Falls back to the id itself.
        """
        for pattern in DESCRIBE_PATTERNS:
            for name in self.store.list_references_matching(pattern):
                if self.store.read_reference(name) == object_id:
                    return name[len("refs/") :]
        return object_id

    def push(self, remote: str | None = None) -> str:
        """Push every ``refs/signify/*`` reference to ``remote``."""
        target = remote or self.default_remote
        self.offline_gate.require("push")
        self.transport.push(target, refs.ALL_SIGNIFY_REFS)
        self.audit.record("push", references=[refs.ALL_SIGNIFY_REFS], args={"remote": target})
        return target

    def pull(self, remote: str | None = None) -> str:
        """Fetch every ``refs/signify/*`` reference from ``remote``."""
        target = remote or self.default_remote
        self.offline_gate.require("pull")
        refspec = f"{refs.ALL_SIGNIFY_REFS}:{refs.ALL_SIGNIFY_REFS}"
        self.transport.fetch(target, refspec)
        self.audit.record("pull", references=[refspec], args={"remote": target})
        return target

    def remove_signatures(
        self,
        key_path: Path,
        revision: str,
        *,
        remote: str | None = None,
    ) -> Iterator[RemovalOutcome]:
        """Delete each key's signature reference for ``revision``.

        Local removal of a missing reference is not an error. With ``remote``,
        the reference is deleted on the remote instead of locally.
        """
        if remote is not None:
            self.offline_gate.require("rm signature --remote")

        object_id = self.store.resolve_revision(revision)
        for path, public_key in load_public_keys(key_path):
            fingerprint = public_key.fingerprint()
            reference = refs.craft_reference(fingerprint, object_id)
            if remote is not None:
                self.transport.delete_remote_reference(remote, reference)
                removed = True
            else:
                removed = self.store.delete_reference(reference)

            if removed:
                self.audit.record(
                    "rm_signature",
                    objects=[object_id],
                    references=[reference],
                    fingerprints=[fingerprint],
                    args={"remote": remote},
                )
            yield RemovalOutcome(
                key_path=path,
                fingerprint=fingerprint,
                object_id=object_id,
                reference=reference,
                remote=remote,
                removed=removed,
            )
