"""Reference naming and signer discovery.

A signature by key ``F`` over object ``O`` is named
``refs/signify/signatures/<F>/<O>``, so any number of signers can attach
signatures to the same object without a central index.
"""

from __future__ import annotations

import logging

from gitsig.app.ports import ObjectStorePort, ReferenceSourcePort
from gitsig.signature.model import OID_HEX_LENGTHS

logger = logging.getLogger(__name__)

ALL_SIGNIFY_REFS = "refs/signify/*"
ALL_SIGNIFY_SIGNATURE_REFS = "refs/signify/signatures/*"
ALL_SIGNIFY_SIGNATURE_REFS_PREFIX = "refs/signify/signatures/"

_HEX_DIGITS = frozenset("0123456789abcdef")


def _is_object_id(value: str) -> bool:
    return len(value) in OID_HEX_LENGTHS and set(value) <= _HEX_DIGITS


def craft_reference(fingerprint: str, object_id: str) -> str:
    """Return the reference name for ``fingerprint``'s signature over ``object_id``."""
    return f"{ALL_SIGNIFY_SIGNATURE_REFS_PREFIX}{fingerprint}/{object_id}"


def parse_reference(name: str) -> tuple[str, str] | None:
    """Split a signature reference into ``(object_id, fingerprint)``.

    Returns None for anything that is not exactly
    ``refs/signify/signatures/<hex>/<hex>``.
    """
    if not name.startswith(ALL_SIGNIFY_SIGNATURE_REFS_PREFIX):
        return None
    remainder = name[len(ALL_SIGNIFY_SIGNATURE_REFS_PREFIX) :]
    fingerprint, separator, object_id = remainder.partition("/")
    if not separator or not _is_object_id(fingerprint) or not _is_object_id(object_id):
        return None
    return object_id, fingerprint


def discover_signers(source: ReferenceSourcePort) -> dict[str, set[str]]:
    """Map every signed object id to the fingerprints that signed it.

    Malformed reference names are skipped. Keys are in lexicographic order.
    """
    signers: dict[str, set[str]] = {}
    for name in source.list_references_matching(ALL_SIGNIFY_SIGNATURE_REFS):
        parsed = parse_reference(name)
        if parsed is None:
            logger.debug("Skipping malformed signature reference %s", name)
            continue
        object_id, fingerprint = parsed
        signers.setdefault(object_id, set()).add(fingerprint)
    return dict(sorted(signers.items()))


def lookup_signature(store: ObjectStorePort, fingerprint: str, object_id: str) -> str | None:
    """Return the signature object id stored for ``(fingerprint, object_id)``, if any."""
    return store.read_reference(craft_reference(fingerprint, object_id))
