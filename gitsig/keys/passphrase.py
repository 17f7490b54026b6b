"""Scoped acquisition of secret key passphrases."""

from __future__ import annotations

import getpass
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from gitsig.utils.crypto import wipe

PassphraseSource = Callable[[str], str]

PASSPHRASE_PROMPT = "key passphrase: "


def interactive_passphrase(prompt: str) -> str:
    """Read a passphrase from the terminal without echo."""
    return getpass.getpass(prompt)


def static_passphrase(value: str) -> PassphraseSource:
    """Return a non-interactive source that always yields ``value``."""

    def _source(prompt: str) -> str:  # noqa: ARG001 - signature fixed by PassphraseSource
        return value

    return _source


@contextmanager
def passphrase_scope(
    source: PassphraseSource, prompt: str = PASSPHRASE_PROMPT
) -> Iterator[bytearray]:
    """Yield the passphrase as a mutable buffer that is zeroed on exit.

    The buffer is wiped whether the body returns, raises or exits early.
    """
    buffer = bytearray(source(prompt).encode("utf-8"))
    try:
        yield buffer
    finally:
        wipe(buffer)
