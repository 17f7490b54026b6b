"""Version and algorithm vocabularies plus the decoded signature object types.

A stored signature is one of two layouts:

* :class:`FlatSignature` - the original flat tree with ``object`` and
  ``signature`` entries. Its version is always ``v0`` and its algorithm is
  always signify; neither is stored.
* :class:`WrappedSignature` - a commit whose tree holds ``version``,
  ``algorithm``, ``signature`` and, for blob/tree targets, ``object``. Commit
  targets are the wrapper's sole parent instead.

Keeping the layouts as separate types means a decoded object can never pair a
version with an algorithm or pointer rule from the other layout.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from gitsig.errors import MalformedSignatureObject, UnknownAlgorithm, UnknownVersion

OID_HEX_LENGTHS = (40, 64)
OID_RAW_LENGTHS = (20, 32)


class SignatureVersion(IntEnum):
    """Layout version of a stored signature, ordered oldest first."""

    V0 = 0
    V1 = 1

    @property
    def tag(self) -> str:
        return f"v{self.value}"

    @classmethod
    def current(cls) -> "SignatureVersion":
        return cls.V1

    @classmethod
    def from_tag(cls, tag: str, *, object_id: str) -> "SignatureVersion":
        for version in cls:
            if version.tag == tag:
                return version
        raise UnknownVersion(tag, object_id=object_id)


class SignatureAlgorithm(str, Enum):
    """Signing algorithms a key or signature can be tagged with."""

    SIGNIFY = "signify"
    MINISIGN = "minisign"

    @property
    def tag(self) -> str:
        return self.value

    @classmethod
    def from_tag(cls, tag: str, *, object_id: str) -> "SignatureAlgorithm":
        try:
            return cls(tag)
        except ValueError:
            raise UnknownAlgorithm(tag, object_id=object_id) from None


@dataclass(frozen=True, slots=True)
class FlatSignature:
    """Signature stored as a flat tree (layout ``v0``).

    Attributes:
        id: Object id of the tree holding the signature
        object_pointer: Id of the ``object`` blob
        pointer_content: Bytes of the ``object`` blob (the raw signed id)
        signature: Raw binary signify signature
    """

    id: str
    object_pointer: str
    pointer_content: bytes
    signature: bytes

    @property
    def version(self) -> SignatureVersion:
        return SignatureVersion.V0

    @property
    def algorithm(self) -> SignatureAlgorithm:
        return SignatureAlgorithm.SIGNIFY

    def dereference(self) -> str:
        """Return the signed object id stored as raw bytes in the pointer blob."""
        if len(self.pointer_content) not in OID_RAW_LENGTHS:
            raise MalformedSignatureObject(
                "Failed to parse git object id from raw bytes in the signed object blob",
                object_id=self.id,
                field="object",
            )
        return self.pointer_content.hex()


@dataclass(frozen=True, slots=True)
class WrappedSignature:
    """Signature stored in a commit wrapper (layout ``v1`` and later).

    Attributes:
        id: Object id of the wrapper commit
        version: Declared layout version (never ``v0``)
        algorithm: Declared signing algorithm
        object_pointer: Id of the signed object
        via_parent: True when the pointer came from the wrapper's parent
        signature: Serialized signature text as stored
    """

    id: str
    version: SignatureVersion
    algorithm: SignatureAlgorithm
    object_pointer: str
    via_parent: bool
    signature: bytes

    def __post_init__(self) -> None:
        if self.version is SignatureVersion.V0:
            raise MalformedSignatureObject(
                "Commit-wrapped signatures cannot declare version v0",
                object_id=self.id,
                field="version",
            )

    def dereference(self) -> str:
        """Return the signed object id."""
        return self.object_pointer


SignatureObject = FlatSignature | WrappedSignature
