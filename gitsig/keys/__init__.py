"""signify and minisign key handling."""

from gitsig.keys.loader import (
    PrivateKey,
    PublicKey,
    detect_key_format,
    fingerprint,
    load_private_key,
    load_private_keys,
    load_public_key,
    load_public_keys,
)
from gitsig.keys.minisign import MinisignPrivateKey, MinisignPublicKey, MinisignSignature
from gitsig.keys.signify import SignifyPrivateKey, SignifyPublicKey, SignifySignature

__all__ = [
    "PrivateKey",
    "PublicKey",
    "MinisignPrivateKey",
    "MinisignPublicKey",
    "MinisignSignature",
    "SignifyPrivateKey",
    "SignifyPublicKey",
    "SignifySignature",
    "detect_key_format",
    "fingerprint",
    "load_private_key",
    "load_private_keys",
    "load_public_key",
    "load_public_keys",
]
