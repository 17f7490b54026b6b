"""Load signify/minisign keys from files or key directories."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import ExitStack
from pathlib import Path
from typing import TypeVar

from gitsig.errors import KeyDecodeError, UnknownKeyFormat
from gitsig.keys.framing import read_comment
from gitsig.keys.minisign import MinisignPrivateKey, MinisignPublicKey
from gitsig.keys.passphrase import PassphraseSource, interactive_passphrase
from gitsig.keys.signify import SignifyPrivateKey, SignifyPublicKey
from gitsig.signature.model import SignatureAlgorithm

logger = logging.getLogger(__name__)

PublicKey = SignifyPublicKey | MinisignPublicKey
PrivateKey = SignifyPrivateKey | MinisignPrivateKey

PUBLIC_KEY_SUFFIX = ".pub"
SECRET_KEY_SUFFIX = ".sec"

T = TypeVar("T")


def detect_key_format(text: str, *, path: Path | None = None) -> SignatureAlgorithm:
    """Pick the key algorithm from the untrusted comment line.

    Raises:
        UnknownKeyFormat: If the comment does not start with ``signify`` or ``minisign``
    """
    comment = read_comment(text)
    if comment is not None:
        for algorithm in SignatureAlgorithm:
            if comment.startswith(algorithm.tag):
                return algorithm
    raise UnknownKeyFormat("Unknown key format", path=path)


def load_public_key(text: str, *, path: Path | None = None) -> PublicKey:
    """Decode a public key from its text encoding."""
    algorithm = detect_key_format(text, path=path)
    if algorithm is SignatureAlgorithm.SIGNIFY:
        return SignifyPublicKey.from_text(text, path=path)
    return MinisignPublicKey.from_text(text, path=path)


def load_private_key(
    text: str,
    passphrase_source: PassphraseSource = interactive_passphrase,
    *,
    path: Path | None = None,
) -> PrivateKey:
    """Decode a secret key, prompting through ``passphrase_source`` if encrypted."""
    algorithm = detect_key_format(text, path=path)
    if algorithm is SignatureAlgorithm.SIGNIFY:
        return SignifyPrivateKey.from_text(text, passphrase_source, path=path)
    return MinisignPrivateKey.from_text(text, passphrase_source, path=path)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise KeyDecodeError(f"Failed to read key: {exc}", path=path) from exc


def _collect(path: Path, suffix: str, read: Callable[[Path], T]) -> list[tuple[Path, T]]:
    if not path.exists():
        raise KeyDecodeError("Failed to query key path metadata: no such file", path=path)

    if not path.is_dir():
        return [(path, read(path))]

    candidates = sorted(
        entry for entry in path.iterdir() if entry.suffix == suffix and entry.is_file()
    )
    logger.debug("Found %d %s key(s) in %s", len(candidates), suffix, path)
    return [(candidate, read(candidate)) for candidate in candidates]


def load_public_keys(path: Path) -> list[tuple[Path, PublicKey]]:
    """Load one public key file, or every ``*.pub`` file of a directory.

    Args:
        path: Key file or directory

    Returns:
        ``(path, key)`` pairs ordered by path
    """
    return _collect(
        path,
        PUBLIC_KEY_SUFFIX,
        lambda key_path: load_public_key(_read_text(key_path), path=key_path),
    )


def load_private_keys(
    path: Path,
    passphrase_source: PassphraseSource = interactive_passphrase,
) -> list[tuple[Path, PrivateKey]]:
    """Load one secret key file, or every ``*.sec`` file of a directory.

    Each encrypted key prompts once through ``passphrase_source``. If any key
    fails to load, the keys already decrypted are wiped before the error propagates.
    """
    with ExitStack() as loaded:
        keys = _collect(
            path,
            SECRET_KEY_SUFFIX,
            lambda key_path: loaded.enter_context(
                load_private_key(_read_text(key_path), passphrase_source, path=key_path)
            ),
        )
        loaded.pop_all()
    return keys


def fingerprint(public_key: PublicKey) -> str:
    """Return the git blob id of the key's raw bytes."""
    return public_key.fingerprint()
