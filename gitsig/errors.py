"""Exception taxonomy shared by the key, codec, verification and service layers.

Every error carries the context needed to render an actionable message
(key path, object id, field name, fingerprint). None of them are retried.
"""

from __future__ import annotations

from pathlib import Path


class GitSigError(Exception):
    """Base class for all gitsig failures."""


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class KeyDecodeError(GitSigError):
    """Raised when key material cannot be decoded."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        self.path = path
        if path is not None:
            message = f"{message} (key: {path})"
        super().__init__(message)


class UnknownKeyFormat(KeyDecodeError):
    """Raised when a key's comment line names no supported algorithm."""


class DecryptionFailed(KeyDecodeError):
    """Raised when an encrypted secret key cannot be decrypted."""


# ---------------------------------------------------------------------------
# Object store
# ---------------------------------------------------------------------------


class ObjectLookupError(GitSigError):
    """Raised when a revision or object id does not resolve to a usable object."""

    def __init__(self, message: str, *, revision: str | None = None) -> None:
        self.revision = revision
        super().__init__(message)


class UnsupportedObjectKind(GitSigError):
    """Raised when asked to sign an object kind no layout can represent."""

    def __init__(self, object_id: str, kind: str) -> None:
        self.object_id = object_id
        self.kind = kind
        super().__init__(f"Unsupported or recursive object type {kind} (oid={object_id})")


class ReferenceConflict(GitSigError):
    """Raised when a reference exists and overwriting was not allowed."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Reference {name} already exists")


# ---------------------------------------------------------------------------
# Signature objects
# ---------------------------------------------------------------------------


class SignatureDecodeError(GitSigError):
    """Base class for failures while decoding a stored signature object."""

    def __init__(self, message: str, *, object_id: str, field: str | None = None) -> None:
        self.object_id = object_id
        self.field = field
        super().__init__(f"{message} (oid={object_id})")


class MalformedSignatureObject(SignatureDecodeError):
    """Raised when a required entry is missing or has the wrong kind."""


class UnknownVersion(SignatureDecodeError):
    """Raised when the ``version`` entry holds an unrecognized tag."""

    def __init__(self, tag: str, *, object_id: str) -> None:
        self.tag = tag
        super().__init__(
            f"Invalid tree signature version {tag!r}", object_id=object_id, field="version"
        )


class UnknownAlgorithm(SignatureDecodeError):
    """Raised when the ``algorithm`` entry holds an unrecognized tag."""

    def __init__(self, tag: str, *, object_id: str) -> None:
        self.tag = tag
        super().__init__(
            f"Invalid tree signature algorithm {tag!r}", object_id=object_id, field="algorithm"
        )


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


class VerificationError(GitSigError):
    """Base class for verification failures."""


class IncompatibleKeyType(VerificationError):
    """Raised when a key cannot be used with a signature's version/algorithm."""


class SignatureParseError(VerificationError):
    """Raised when signature bytes do not parse for their declared algorithm."""


class InvalidSignature(VerificationError):
    """Raised when the cryptographic check fails."""


# ---------------------------------------------------------------------------
# Remotes and transport
# ---------------------------------------------------------------------------


class RemoteError(GitSigError):
    """Raised when a remote cannot be resolved or contacted."""


class TransportError(GitSigError):
    """Raised when the external ``git`` executable reports failure."""

    def __init__(self, command: list[str], returncode: int, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = f"Exit code of git: {returncode} ({' '.join(command)})"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)
