"""Helpers for key files, secret buffers and base64 framing."""

from __future__ import annotations

import base64
import binascii
import os
import secrets
from pathlib import Path


def _write_secure_file(path: Path, data: bytes, *, mode: int = 0o600) -> None:
    """Write ``data`` to ``path`` and restrict permissions.

    Args:
        path: Target file path
        data: Bytes to persist
        mode: File mode to apply (POSIX style)
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        os.write(fd, data)
    finally:
        os.close(fd)

    try:
        os.chmod(path, mode)
    except PermissionError:
        # Windows may not support POSIX-style chmod; best effort only.
        pass


def write_key_file(path: Path, text: str) -> None:
    """Persist an encoded key with owner-only permissions."""
    _write_secure_file(path, text.encode("utf-8"))


def load_or_create_hmac_key(path: Path, *, length: int = 32) -> bytes:
    """Load an existing HMAC key or generate a new random key.

    Args:
        path: Key file location
        length: Number of random bytes to generate

    Returns:
        Raw key bytes suitable for HMAC operations.
    """
    try:
        return path.read_bytes()
    except FileNotFoundError:
        key = secrets.token_bytes(length)
        _write_secure_file(path, key)
        return key


def wipe(buffer: bytearray) -> None:
    """Overwrite ``buffer`` with zeros in place."""
    for index in range(len(buffer)):
        buffer[index] = 0


def xor_into(buffer: bytearray, stream: bytes, *, offset: int = 0) -> None:
    """XOR ``stream`` into ``buffer`` starting at ``offset``."""
    for index, value in enumerate(stream):
        buffer[offset + index] ^= value


def encode_bytes(data: bytes) -> str:
    """Encode binary data as standard base64 text."""
    return base64.b64encode(data).decode("ascii")


def decode_bytes(encoded: str) -> bytes:
    """Decode standard base64 text produced by :func:`encode_bytes`.

    Raises:
        ValueError: If ``encoded`` is not valid base64
    """
    try:
        return base64.b64decode(encoded.strip().encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"invalid base64: {exc}") from exc
