"""Verify decoded signature objects against public keys."""

from __future__ import annotations

import logging
from collections.abc import Callable

from gitsig.errors import IncompatibleKeyType, SignatureParseError
from gitsig.keys import (
    MinisignPublicKey,
    MinisignSignature,
    PublicKey,
    SignifyPublicKey,
    SignifySignature,
)
from gitsig.signature.model import SignatureAlgorithm, SignatureObject, SignatureVersion

logger = logging.getLogger(__name__)

# (layout version, declared algorithm, key type) combinations that may be verified
COMPATIBILITY: frozenset[tuple[SignatureVersion, SignatureAlgorithm, type]] = frozenset(
    {
        (SignatureVersion.V0, SignatureAlgorithm.SIGNIFY, SignifyPublicKey),
        (SignatureVersion.V1, SignatureAlgorithm.SIGNIFY, SignifyPublicKey),
        (SignatureVersion.V1, SignatureAlgorithm.MINISIGN, MinisignPublicKey),
    }
)


def _parse_signify_binary(data: bytes) -> SignifySignature:
    return SignifySignature.from_bytes(data)


def _parse_signify_text(data: bytes) -> SignifySignature:
    return SignifySignature.from_text(data.decode("utf-8"))


def _parse_minisign_text(data: bytes) -> MinisignSignature:
    return MinisignSignature.from_text(data.decode("utf-8"))


SIGNATURE_PARSERS: dict[
    tuple[SignatureVersion, SignatureAlgorithm],
    Callable[[bytes], SignifySignature | MinisignSignature],
] = {
    (SignatureVersion.V0, SignatureAlgorithm.SIGNIFY): _parse_signify_binary,
    (SignatureVersion.V1, SignatureAlgorithm.SIGNIFY): _parse_signify_text,
    (SignatureVersion.V1, SignatureAlgorithm.MINISIGN): _parse_minisign_text,
}


def check_compatibility(signature_object: SignatureObject, public_key: PublicKey) -> None:
    """Raise :class:`IncompatibleKeyType` unless the key may verify this signature."""
    triple = (signature_object.version, signature_object.algorithm, type(public_key))
    if triple not in COMPATIBILITY:
        raise IncompatibleKeyType(
            "Attempted to validate a "
            f"{signature_object.version.tag} {signature_object.algorithm.tag} signature "
            f"with a {public_key.algorithm.tag} public key (oid={signature_object.id})"
        )


def parse_signature(signature_object: SignatureObject) -> SignifySignature | MinisignSignature:
    """Parse the stored signature bytes for the object's version and algorithm."""
    parser = SIGNATURE_PARSERS[(signature_object.version, signature_object.algorithm)]
    try:
        return parser(signature_object.signature)
    except (ValueError, UnicodeDecodeError) as exc:
        raise SignatureParseError(
            f"Failed to parse {signature_object.algorithm.tag} signature from git blob "
            f"(oid={signature_object.id}): {exc}"
        ) from exc


def verify(
    signature_object: SignatureObject,
    public_key: PublicKey,
    *,
    recover: bool = False,
) -> str | None:
    """Verify ``signature_object`` with ``public_key``.

    Steps run in order and the first failure aborts: key compatibility,
    signature parsing, recovery of the signed id, cryptographic check.

    Args:
        signature_object: Decoded signature object
        public_key: Key expected to have produced the signature
        recover: Return the signed object id on success

    Returns:
        The signed object id when ``recover`` is True, else None

    Raises:
        IncompatibleKeyType: If the key type does not match the version/algorithm
        SignatureParseError: If the stored signature does not parse
        MalformedSignatureObject: If the signed id cannot be recovered
        InvalidSignature: If the cryptographic check fails
    """
    check_compatibility(signature_object, public_key)
    signature = parse_signature(signature_object)
    signed_id = signature_object.dereference()

    # Both branches are guaranteed type-consistent by the compatibility matrix
    public_key.verify(bytes.fromhex(signed_id), signature)  # type: ignore[arg-type]
    logger.debug(
        "Verified %s signature %s over %s",
        signature_object.algorithm.tag,
        signature_object.id,
        signed_id,
    )
    return signed_id if recover else None
