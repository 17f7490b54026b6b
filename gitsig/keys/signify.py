"""OpenBSD signify keys and signatures.

Binary layouts (all fields concatenated, base64 framed under an untrusted
comment):

* public key: ``"Ed"`` | keynum (8) | Ed25519 public key (32)
* secret key: ``"Ed"`` | ``"BK"`` | kdf rounds (u32, big endian) | salt (16)
  | checksum (8) | keynum (8) | Ed25519 secret key (64, seed + public key)
* signature: ``"Ed"`` | keynum (8) | Ed25519 signature (64)

A secret key with non-zero rounds is XOR-encrypted with ``bcrypt_pbkdf``
output; the checksum is the first 8 bytes of SHA-512 over the plaintext key.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

import bcrypt
from cryptography.exceptions import InvalidSignature as Ed25519VerifyFailure
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from gitsig.errors import DecryptionFailed, InvalidSignature, KeyDecodeError
from gitsig.keys.framing import frame, unframe
from gitsig.keys.passphrase import PassphraseSource, passphrase_scope
from gitsig.signature.model import SignatureAlgorithm
from gitsig.utils.crypto import wipe, xor_into
from gitsig.utils.hashing import compute_blob_id

logger = logging.getLogger(__name__)

PKALG = b"Ed"
KDFALG = b"BK"
KEYNUM_BYTES = 8
PUBLIC_KEY_BYTES = 32
SECRET_KEY_BYTES = 64
SIGNATURE_BYTES = 64
SALT_BYTES = 16
CHECKSUM_BYTES = 8
DEFAULT_KDF_ROUNDS = 42

PUBLIC_KEY_LEN = len(PKALG) + KEYNUM_BYTES + PUBLIC_KEY_BYTES
SECRET_KEY_LEN = (
    len(PKALG) + len(KDFALG) + 4 + SALT_BYTES + CHECKSUM_BYTES + KEYNUM_BYTES + SECRET_KEY_BYTES
)
SIGNATURE_LEN = len(PKALG) + KEYNUM_BYTES + SIGNATURE_BYTES

SIGNATURE_COMMENT = "signed with gitsig via signify"


def _checksum(seckey: bytes | bytearray) -> bytes:
    return hashlib.sha512(seckey).digest()[:CHECKSUM_BYTES]


@dataclass(frozen=True, slots=True)
class SignifySignature:
    """A signify signature with the id of the key that produced it."""

    keynum: bytes
    signature: bytes

    @classmethod
    def from_bytes(cls, raw: bytes) -> "SignifySignature":
        """Parse the binary signature structure.

        Raises:
            ValueError: If the length or algorithm marker is wrong
        """
        if len(raw) != SIGNATURE_LEN:
            raise ValueError(f"signify signature must be {SIGNATURE_LEN} bytes, got {len(raw)}")
        if raw[:2] != PKALG:
            raise ValueError(f"unsupported signify signature algorithm {raw[:2]!r}")
        return cls(keynum=raw[2 : 2 + KEYNUM_BYTES], signature=raw[2 + KEYNUM_BYTES :])

    @classmethod
    def from_text(cls, text: str) -> "SignifySignature":
        """Parse a framed (``untrusted comment:`` + base64) signature."""
        _, payloads, _ = unframe(text)
        return cls.from_bytes(payloads[0])

    def to_bytes(self) -> bytes:
        return PKALG + self.keynum + self.signature

    def to_text(self, comment: str = SIGNATURE_COMMENT) -> str:
        return frame(comment, self.to_bytes())


@dataclass(frozen=True, slots=True)
class SignifyPublicKey:
    """Signify public key."""

    algorithm: ClassVar[SignatureAlgorithm] = SignatureAlgorithm.SIGNIFY

    keynum: bytes
    key: bytes

    @classmethod
    def from_bytes(cls, raw: bytes, *, path: Path | None = None) -> "SignifyPublicKey":
        if len(raw) != PUBLIC_KEY_LEN:
            raise KeyDecodeError(
                f"Failed to decode signify public key: expected {PUBLIC_KEY_LEN} bytes, "
                f"got {len(raw)}",
                path=path,
            )
        if raw[:2] != PKALG:
            raise KeyDecodeError(
                f"Failed to decode signify public key: unsupported algorithm {raw[:2]!r}",
                path=path,
            )
        return cls(keynum=raw[2 : 2 + KEYNUM_BYTES], key=raw[2 + KEYNUM_BYTES :])

    @classmethod
    def from_text(cls, text: str, *, path: Path | None = None) -> "SignifyPublicKey":
        try:
            _, payloads, _ = unframe(text)
        except ValueError as exc:
            raise KeyDecodeError(f"Failed to decode signify public key: {exc}", path=path) from exc
        return cls.from_bytes(payloads[0], path=path)

    @property
    def raw_key(self) -> bytes:
        """Bytes hashed into the fingerprint."""
        return self.key

    def fingerprint(self) -> str:
        return compute_blob_id(self.raw_key)

    def to_bytes(self) -> bytes:
        return PKALG + self.keynum + self.key

    def to_text(self, comment: str = "signify public key") -> str:
        return frame(comment, self.to_bytes())

    def verify(self, message: bytes, signature: SignifySignature) -> None:
        """Check ``signature`` over ``message``.

        Raises:
            InvalidSignature: If the signature was made by another key or does not verify
        """
        if signature.keynum != self.keynum:
            raise InvalidSignature(
                "Invalid signify signature: signature was made by a different key "
                f"(keynum {signature.keynum.hex()} != {self.keynum.hex()})"
            )
        try:
            Ed25519PublicKey.from_public_bytes(self.key).verify(signature.signature, message)
        except Ed25519VerifyFailure:
            raise InvalidSignature("Invalid signify signature") from None


class SignifyPrivateKey:
    """Decrypted signify secret key.

    The secret material lives in a ``bytearray`` so :meth:`wipe` can zero it.
    Instances are context managers that wipe on exit.
    """

    algorithm: ClassVar[SignatureAlgorithm] = SignatureAlgorithm.SIGNIFY

    __slots__ = ("keynum", "_seckey")

    def __init__(self, keynum: bytes, seckey: bytearray) -> None:
        if len(keynum) != KEYNUM_BYTES or len(seckey) != SECRET_KEY_BYTES:
            raise ValueError("invalid signify key material")
        self.keynum = keynum
        self._seckey = seckey

    def __enter__(self) -> "SignifyPrivateKey":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.wipe()

    @classmethod
    def generate(cls) -> "SignifyPrivateKey":
        """Create a fresh key pair."""
        seed = secrets.token_bytes(32)
        public = (
            Ed25519PrivateKey.from_private_bytes(seed)
            .public_key()
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
        )
        return cls(keynum=secrets.token_bytes(KEYNUM_BYTES), seckey=bytearray(seed + public))

    @classmethod
    def from_text(
        cls,
        text: str,
        passphrase_source: PassphraseSource,
        *,
        path: Path | None = None,
    ) -> "SignifyPrivateKey":
        """Decode (and, when encrypted, decrypt) a signify secret key.

        Raises:
            KeyDecodeError: If the encoding is corrupt
            DecryptionFailed: If the passphrase is wrong
        """
        try:
            _, payloads, _ = unframe(text)
        except ValueError as exc:
            raise KeyDecodeError(f"Failed to decode secret key: {exc}", path=path) from exc

        raw = bytearray(payloads[0])
        try:
            return cls._from_raw(raw, passphrase_source, path=path)
        finally:
            wipe(raw)

    @classmethod
    def _from_raw(
        cls,
        raw: bytearray,
        passphrase_source: PassphraseSource,
        *,
        path: Path | None,
    ) -> "SignifyPrivateKey":
        if len(raw) != SECRET_KEY_LEN:
            raise KeyDecodeError(
                f"Failed to decode secret key: expected {SECRET_KEY_LEN} bytes, got {len(raw)}",
                path=path,
            )
        if bytes(raw[0:2]) != PKALG:
            raise KeyDecodeError(
                f"Failed to decode secret key: unsupported algorithm {bytes(raw[0:2])!r}",
                path=path,
            )
        if bytes(raw[2:4]) != KDFALG:
            raise KeyDecodeError(
                f"Failed to decode secret key: unsupported kdf {bytes(raw[2:4])!r}", path=path
            )

        offset = 4
        (rounds,) = struct.unpack(">I", bytes(raw[offset : offset + 4]))
        offset += 4
        salt = bytes(raw[offset : offset + SALT_BYTES])
        offset += SALT_BYTES
        checksum = bytes(raw[offset : offset + CHECKSUM_BYTES])
        offset += CHECKSUM_BYTES
        keynum = bytes(raw[offset : offset + KEYNUM_BYTES])
        offset += KEYNUM_BYTES
        seckey = bytearray(raw[offset : offset + SECRET_KEY_BYTES])

        if rounds:
            logger.debug("Decrypting signify secret key with %d bcrypt_pbkdf rounds", rounds)
            with passphrase_scope(passphrase_source) as passphrase:
                try:
                    stream = bcrypt.kdf(
                        password=bytes(passphrase),
                        salt=salt,
                        desired_key_bytes=SECRET_KEY_BYTES,
                        rounds=rounds,
                        ignore_few_rounds=True,
                    )
                except ValueError as exc:
                    wipe(seckey)
                    raise DecryptionFailed(
                        f"Failed to decrypt secret key: {exc}", path=path
                    ) from exc
            xor_into(seckey, stream)

        if _checksum(seckey) != checksum:
            wipe(seckey)
            if rounds:
                raise DecryptionFailed(
                    "Failed to decrypt secret key: incorrect passphrase", path=path
                )
            raise KeyDecodeError("Failed to decode secret key: checksum mismatch", path=path)

        return cls(keynum=keynum, seckey=seckey)

    def to_text(
        self,
        passphrase: bytes | None = None,
        *,
        rounds: int = DEFAULT_KDF_ROUNDS,
        comment: str = "signify secret key",
    ) -> str:
        """Encode the key, encrypting it when ``passphrase`` is given."""
        salt = secrets.token_bytes(SALT_BYTES)
        stored = bytearray(self._seckey)
        try:
            if passphrase:
                stream = bcrypt.kdf(
                    password=passphrase,
                    salt=salt,
                    desired_key_bytes=SECRET_KEY_BYTES,
                    rounds=rounds,
                    ignore_few_rounds=True,
                )
                xor_into(stored, stream)
            else:
                rounds = 0
            payload = (
                PKALG
                + KDFALG
                + struct.pack(">I", rounds)
                + salt
                + _checksum(self._seckey)
                + self.keynum
                + bytes(stored)
            )
            return frame(comment, payload)
        finally:
            wipe(stored)

    def public_key(self) -> SignifyPublicKey:
        return SignifyPublicKey(keynum=self.keynum, key=bytes(self._seckey[32:]))

    def sign(self, message: bytes) -> SignifySignature:
        signer = Ed25519PrivateKey.from_private_bytes(bytes(self._seckey[:32]))
        return SignifySignature(keynum=self.keynum, signature=signer.sign(message))

    def wipe(self) -> None:
        """Zero the secret key material."""
        wipe(self._seckey)
