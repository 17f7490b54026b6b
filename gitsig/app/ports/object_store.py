"""Object store port interface for git objects and references."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

BLOB_MODE = 0o100644
TREE_MODE = 0o040000


class ObjectKind(str, Enum):
    """Kinds of objects a git object store holds."""

    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"
    TAG = "tag"


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """A named entry of a tree object."""

    name: str
    mode: int
    id: str

    @property
    def kind(self) -> ObjectKind:
        """Kind implied by the entry mode."""
        if self.mode == TREE_MODE:
            return ObjectKind.TREE
        return ObjectKind.BLOB


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Read-only view of a stored object.

    Attributes:
        id: Hex object id
        kind: Object kind
        data: Blob contents (blobs only)
        entries: Tree entries by name (trees only)
        tree: Root tree id (commits only)
        parents: Parent ids (commits only)
    """

    id: str
    kind: ObjectKind
    data: bytes = b""
    entries: dict[str, TreeEntry] = field(default_factory=dict)
    tree: str | None = None
    parents: tuple[str, ...] = ()


class ObjectStorePort(Protocol):
    """Port interface for a content-addressed git object store.

    Adapters implementing this port must provide:
    - Idempotent object writes (same content, same id)
    - Reference creation that never overwrites unless asked to
    - Glob listing of reference names

    Side effects: Writes objects and references to the repository.
    """

    def put_blob(self, data: bytes) -> str:
        """Store ``data`` as a blob and return its id."""
        ...

    def put_tree(self, entries: list[TreeEntry]) -> str:
        """Store a tree built from ``entries`` and return its id."""
        ...

    def put_commit(self, tree: str, parents: list[str], message: str) -> str:
        """Store a commit of ``tree`` with ``parents`` and return its id.

        The author, committer and timestamps are fixed by the adapter so that
        identical inputs always yield the same id.
        """
        ...

    def get_object(self, object_id: str) -> StoredObject:
        """Look up an object by id.

        Raises:
            ObjectLookupError: If the id is malformed or absent
        """
        ...

    def resolve_revision(self, revision: str) -> str:
        """Resolve a revision expression (id, ref name, abbreviated id) to an object id.

        Raises:
            ObjectLookupError: If the revision does not resolve
        """
        ...

    def read_reference(self, name: str) -> str | None:
        """Return the id a reference points at, or None if it does not exist."""
        ...

    def create_reference(self, name: str, object_id: str, *, allow_overwrite: bool = False) -> None:
        """Point ``name`` at ``object_id``.

        Raises:
            ReferenceConflict: If ``name`` exists and ``allow_overwrite`` is False
        """
        ...

    def delete_reference(self, name: str) -> bool:
        """Remove a reference; return False if it did not exist."""
        ...

    def list_references_matching(self, pattern: str) -> list[str]:
        """Return reference names matching the glob ``pattern``, sorted."""
        ...

    def remote_url(self, name: str) -> str:
        """Return the configured URL of remote ``name``.

        Raises:
            RemoteError: If the remote is not configured
        """
        ...
