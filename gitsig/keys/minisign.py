"""minisign keys and signatures.

Binary layouts (base64 framed under an untrusted comment):

* public key: ``"Ed"`` | keynum (8) | Ed25519 public key (32)
* secret key: ``"Ed"`` | kdf ``"Sc"`` or ``"\\0\\0"`` | checksum alg ``"B2"``
  | salt (32) | opslimit (u64, little endian) | memlimit (u64, little endian)
  | keynum (8) | Ed25519 secret key (64) | checksum (32)
* signature: ``"ED"`` | keynum (8) | Ed25519 signature over BLAKE2b-512 of the
  message (64), followed by a ``trusted comment:`` line and a global signature
  over the signature bytes plus the trusted comment.

The keynum/secret key/checksum block of an encrypted secret key is XORed with
scrypt output derived from the passphrase.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

import nacl.exceptions
import nacl.pwhash
from cryptography.exceptions import InvalidSignature as Ed25519VerifyFailure
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from gitsig.errors import DecryptionFailed, InvalidSignature, KeyDecodeError
from gitsig.keys.framing import TRUSTED_COMMENT, frame, unframe
from gitsig.keys.passphrase import PassphraseSource, passphrase_scope
from gitsig.signature.model import SignatureAlgorithm
from gitsig.utils.crypto import encode_bytes, wipe, xor_into
from gitsig.utils.hashing import compute_blob_id

logger = logging.getLogger(__name__)

SIGALG = b"Ed"
SIGALG_PREHASHED = b"ED"
KDFALG = b"Sc"
KDFALG_NONE = b"\x00\x00"
CHKALG = b"B2"
KEYNUM_BYTES = 8
PUBLIC_KEY_BYTES = 32
SECRET_KEY_BYTES = 64
SIGNATURE_BYTES = 64
SALT_BYTES = 32
CHECKSUM_BYTES = 32

# Values minisign itself uses for interactive key generation
DEFAULT_OPSLIMIT = 33554432
DEFAULT_MEMLIMIT = 1073741824

PUBLIC_KEY_LEN = len(SIGALG) + KEYNUM_BYTES + PUBLIC_KEY_BYTES
KEYNUM_SK_LEN = KEYNUM_BYTES + SECRET_KEY_BYTES + CHECKSUM_BYTES
SECRET_KEY_LEN = len(SIGALG) + len(KDFALG) + len(CHKALG) + SALT_BYTES + 8 + 8 + KEYNUM_SK_LEN
SIGNATURE_LEN = len(SIGALG_PREHASHED) + KEYNUM_BYTES + SIGNATURE_BYTES

SIGNATURE_COMMENT = "signature from minisign secret key"
DEFAULT_TRUSTED_COMMENT = "signature from gitsig"


def _key_id(keynum: bytes) -> str:
    """Key id as minisign displays it (little endian, upper-case hex)."""
    return keynum[::-1].hex().upper()


def _checksum(keynum: bytes, seckey: bytes | bytearray) -> bytes:
    state = hashlib.blake2b(digest_size=CHECKSUM_BYTES)
    state.update(SIGALG)
    state.update(keynum)
    state.update(seckey)
    return state.digest()


def _prehash(message: bytes) -> bytes:
    return hashlib.blake2b(message, digest_size=64).digest()


def _scrypt_stream(passphrase: bytes, salt: bytes, opslimit: int, memlimit: int) -> bytes:
    return nacl.pwhash.scrypt.kdf(
        KEYNUM_SK_LEN, passphrase, salt, opslimit=opslimit, memlimit=memlimit
    )


@dataclass(frozen=True, slots=True)
class MinisignSignature:
    """Parsed minisign signature with its trusted comment."""

    algorithm_tag: bytes
    keynum: bytes
    signature: bytes
    trusted_comment: str
    global_signature: bytes
    untrusted_comment: str = SIGNATURE_COMMENT

    @property
    def is_legacy(self) -> bool:
        """True when the message was signed without BLAKE2b prehashing."""
        return self.algorithm_tag == SIGALG

    @classmethod
    def from_text(cls, text: str) -> "MinisignSignature":
        """Parse the four-line signature text.

        Raises:
            ValueError: If the text is not a well-formed minisign signature
        """
        comment, payloads, lines = unframe(text, expected_lines=4)
        if not lines[2].startswith(TRUSTED_COMMENT):
            raise ValueError(f"missing {TRUSTED_COMMENT.strip()!r} line")

        raw, global_signature = payloads
        if len(raw) != SIGNATURE_LEN:
            raise ValueError(f"minisign signature must be {SIGNATURE_LEN} bytes, got {len(raw)}")
        algorithm_tag = raw[:2]
        if algorithm_tag not in (SIGALG, SIGALG_PREHASHED):
            raise ValueError(f"unsupported minisign signature algorithm {algorithm_tag!r}")
        if len(global_signature) != SIGNATURE_BYTES:
            raise ValueError(
                f"minisign global signature must be {SIGNATURE_BYTES} bytes, "
                f"got {len(global_signature)}"
            )
        return cls(
            algorithm_tag=algorithm_tag,
            keynum=raw[2 : 2 + KEYNUM_BYTES],
            signature=raw[2 + KEYNUM_BYTES :],
            trusted_comment=lines[2][len(TRUSTED_COMMENT) :],
            global_signature=global_signature,
            untrusted_comment=comment,
        )

    def to_text(self) -> str:
        raw = self.algorithm_tag + self.keynum + self.signature
        return (
            frame(self.untrusted_comment, raw)
            + f"{TRUSTED_COMMENT}{self.trusted_comment}\n"
            + f"{encode_bytes(self.global_signature)}\n"
        )


@dataclass(frozen=True, slots=True)
class MinisignPublicKey:
    """minisign public key."""

    algorithm: ClassVar[SignatureAlgorithm] = SignatureAlgorithm.MINISIGN

    keynum: bytes
    key: bytes

    @classmethod
    def from_bytes(cls, raw: bytes, *, path: Path | None = None) -> "MinisignPublicKey":
        if len(raw) != PUBLIC_KEY_LEN:
            raise KeyDecodeError(
                f"Failed to decode minisign public key: expected {PUBLIC_KEY_LEN} bytes, "
                f"got {len(raw)}",
                path=path,
            )
        if raw[:2] != SIGALG:
            raise KeyDecodeError(
                f"Failed to decode minisign public key: unsupported algorithm {raw[:2]!r}",
                path=path,
            )
        return cls(keynum=raw[2 : 2 + KEYNUM_BYTES], key=raw[2 + KEYNUM_BYTES :])

    @classmethod
    def from_text(cls, text: str, *, path: Path | None = None) -> "MinisignPublicKey":
        try:
            _, payloads, _ = unframe(text)
        except ValueError as exc:
            raise KeyDecodeError(f"Failed to read minisign public key: {exc}", path=path) from exc
        return cls.from_bytes(payloads[0], path=path)

    @property
    def key_id(self) -> str:
        return _key_id(self.keynum)

    @property
    def raw_key(self) -> bytes:
        """Bytes hashed into the fingerprint (the full binary encoding)."""
        return self.to_bytes()

    def fingerprint(self) -> str:
        return compute_blob_id(self.raw_key)

    def to_bytes(self) -> bytes:
        return SIGALG + self.keynum + self.key

    def to_text(self) -> str:
        return frame(f"minisign public key {self.key_id}", self.to_bytes())

    def verify(self, message: bytes, signature: MinisignSignature) -> None:
        """Check both the message signature and the trusted comment signature.

        Raises:
            InvalidSignature: On legacy signatures, key id mismatch or a failed check
        """
        if signature.is_legacy:
            raise InvalidSignature(
                "Invalid minisign signature: legacy (non-prehashed) signatures are not accepted"
            )
        if signature.keynum != self.keynum:
            raise InvalidSignature(
                "Invalid minisign signature: signature key id "
                f"{_key_id(signature.keynum)} != {self.key_id}"
            )

        verifier = Ed25519PublicKey.from_public_bytes(self.key)
        try:
            verifier.verify(signature.signature, _prehash(message))
        except Ed25519VerifyFailure:
            raise InvalidSignature("Invalid minisign signature") from None
        try:
            verifier.verify(
                signature.global_signature,
                signature.signature + signature.trusted_comment.encode("utf-8"),
            )
        except Ed25519VerifyFailure:
            raise InvalidSignature(
                "Invalid minisign signature: trusted comment signature does not verify"
            ) from None


class MinisignPrivateKey:
    """Decrypted minisign secret key, wiped on :meth:`wipe` or context exit."""

    algorithm: ClassVar[SignatureAlgorithm] = SignatureAlgorithm.MINISIGN

    __slots__ = ("keynum", "_seckey")

    def __init__(self, keynum: bytes, seckey: bytearray) -> None:
        if len(keynum) != KEYNUM_BYTES or len(seckey) != SECRET_KEY_BYTES:
            raise ValueError("invalid minisign key material")
        self.keynum = keynum
        self._seckey = seckey

    def __enter__(self) -> "MinisignPrivateKey":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.wipe()

    @classmethod
    def generate(cls) -> "MinisignPrivateKey":
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
    ) -> "MinisignPrivateKey":
        """Decode a minisign secret key, prompting once when it is encrypted.

        Raises:
            KeyDecodeError: If the encoding is corrupt
            DecryptionFailed: If the passphrase is wrong
        """
        try:
            _, payloads, _ = unframe(text)
        except ValueError as exc:
            raise KeyDecodeError(f"Failed to read minisign secret key: {exc}", path=path) from exc

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
    ) -> "MinisignPrivateKey":
        if len(raw) != SECRET_KEY_LEN:
            raise KeyDecodeError(
                f"Failed to decode minisign secret key: expected {SECRET_KEY_LEN} bytes, "
                f"got {len(raw)}",
                path=path,
            )
        sig_alg, kdf_alg, chk_alg = bytes(raw[0:2]), bytes(raw[2:4]), bytes(raw[4:6])
        if sig_alg != SIGALG:
            raise KeyDecodeError(
                f"Failed to decode minisign secret key: unsupported algorithm {sig_alg!r}",
                path=path,
            )
        if kdf_alg not in (KDFALG, KDFALG_NONE):
            raise KeyDecodeError(
                f"Failed to decode minisign secret key: unsupported kdf {kdf_alg!r}", path=path
            )
        if chk_alg != CHKALG:
            raise KeyDecodeError(
                f"Failed to decode minisign secret key: unsupported checksum {chk_alg!r}",
                path=path,
            )

        offset = 6
        salt = bytes(raw[offset : offset + SALT_BYTES])
        offset += SALT_BYTES
        opslimit, memlimit = struct.unpack("<QQ", bytes(raw[offset : offset + 16]))
        offset += 16
        keynum_sk = bytearray(raw[offset : offset + KEYNUM_SK_LEN])

        try:
            if kdf_alg == KDFALG:
                logger.debug(
                    "Decrypting minisign secret key (opslimit=%d, memlimit=%d)", opslimit, memlimit
                )
                with passphrase_scope(passphrase_source) as passphrase:
                    try:
                        stream = _scrypt_stream(bytes(passphrase), salt, opslimit, memlimit)
                    except (nacl.exceptions.CryptoError, ValueError) as exc:
                        raise DecryptionFailed(
                            f"Failed to decode minisign private key: {exc}", path=path
                        ) from exc
                xor_into(keynum_sk, stream)

            keynum = bytes(keynum_sk[:KEYNUM_BYTES])
            seckey = bytearray(keynum_sk[KEYNUM_BYTES : KEYNUM_BYTES + SECRET_KEY_BYTES])
            checksum = bytes(keynum_sk[KEYNUM_BYTES + SECRET_KEY_BYTES :])
            if _checksum(keynum, seckey) != checksum:
                wipe(seckey)
                if kdf_alg == KDFALG:
                    raise DecryptionFailed(
                        "Failed to decode minisign private key: wrong password", path=path
                    )
                raise KeyDecodeError(
                    "Failed to decode minisign private key: checksum mismatch", path=path
                )
            return cls(keynum=keynum, seckey=seckey)
        finally:
            wipe(keynum_sk)

    @property
    def key_id(self) -> str:
        return _key_id(self.keynum)

    def to_text(
        self,
        passphrase: bytes | None = None,
        *,
        opslimit: int = DEFAULT_OPSLIMIT,
        memlimit: int = DEFAULT_MEMLIMIT,
    ) -> str:
        """Encode the key, encrypting it with scrypt when ``passphrase`` is given."""
        salt = secrets.token_bytes(SALT_BYTES)
        keynum_sk = bytearray(self.keynum)
        keynum_sk += self._seckey
        keynum_sk += _checksum(self.keynum, self._seckey)
        try:
            if passphrase:
                kdf_alg = KDFALG
                xor_into(keynum_sk, _scrypt_stream(passphrase, salt, opslimit, memlimit))
            else:
                kdf_alg = KDFALG_NONE
            payload = (
                SIGALG
                + kdf_alg
                + CHKALG
                + salt
                + struct.pack("<QQ", opslimit, memlimit)
                + bytes(keynum_sk)
            )
            return frame("minisign encrypted secret key", payload)
        finally:
            wipe(keynum_sk)

    def public_key(self) -> MinisignPublicKey:
        return MinisignPublicKey(keynum=self.keynum, key=bytes(self._seckey[32:]))

    def sign(
        self,
        message: bytes,
        *,
        trusted_comment: str = DEFAULT_TRUSTED_COMMENT,
        untrusted_comment: str = SIGNATURE_COMMENT,
    ) -> MinisignSignature:
        """Sign the BLAKE2b-512 digest of ``message`` and the trusted comment."""
        signer = Ed25519PrivateKey.from_private_bytes(bytes(self._seckey[:32]))
        signature = signer.sign(_prehash(message))
        global_signature = signer.sign(signature + trusted_comment.encode("utf-8"))
        return MinisignSignature(
            algorithm_tag=SIGALG_PREHASHED,
            keynum=self.keynum,
            signature=signature,
            trusted_comment=trusted_comment,
            global_signature=global_signature,
            untrusted_comment=untrusted_comment,
        )

    def wipe(self) -> None:
        wipe(self._seckey)
