"""Hashing utilities for fingerprints and ledger entries."""

import hashlib

from dulwich.objects import Blob


def compute_sha256(content: bytes) -> str:
    """Compute SHA-256 hash of content.

    Args:
        content: Bytes to hash

    Returns:
        Hexadecimal hash string
    """
    return hashlib.sha256(content).hexdigest()


def compute_blob_id(content: bytes) -> str:
    """Compute the git blob id of ``content`` without writing it anywhere.

    Args:
        content: Raw blob payload

    Returns:
        Hex object id, as git would assign it to a blob holding ``content``
    """
    return Blob.from_string(content).id.decode("ascii")
