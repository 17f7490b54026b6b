"""Object store adapter backed by a dulwich repository."""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from pathlib import Path

from dulwich.errors import NotGitRepository
from dulwich.objects import Blob, Commit, Tree, valid_hexsha
from dulwich.objectspec import parse_object
from dulwich.repo import BaseRepo, MemoryRepo, Repo

from gitsig.app.ports import ObjectKind, ObjectStorePort, StoredObject, TreeEntry
from gitsig.errors import ObjectLookupError, ReferenceConflict, RemoteError

logger = logging.getLogger(__name__)

DEFAULT_IDENTITY = b"gitsig <gitsig@localhost>"

_KINDS = {
    b"blob": ObjectKind.BLOB,
    b"tree": ObjectKind.TREE,
    b"commit": ObjectKind.COMMIT,
    b"tag": ObjectKind.TAG,
}


class DulwichObjectStore(ObjectStorePort):
    """Adapter exposing a dulwich ``Repo`` (or ``MemoryRepo``) through the object store port.

    Wrapper commits are written with a fixed author/committer identity and a
    zero timestamp so the same tree and parents always produce the same id.
    """

    def __init__(self, repo: BaseRepo, *, identity: bytes = DEFAULT_IDENTITY) -> None:
        self._repo = repo
        self._identity = identity

    @classmethod
    def discover(cls, start: Path, *, identity: bytes = DEFAULT_IDENTITY) -> "DulwichObjectStore":
        """Open the repository containing ``start``."""
        try:
            repo = Repo.discover(str(start))
        except NotGitRepository as exc:
            raise ObjectLookupError(f"Failed to open git repository at {start}") from exc
        logger.debug("Opened repository at %s", repo.path)
        return cls(repo, identity=identity)

    @classmethod
    def in_memory(cls, *, identity: bytes = DEFAULT_IDENTITY) -> "DulwichObjectStore":
        """Create a store over an empty in-memory repository."""
        return cls(MemoryRepo(), identity=identity)

    @property
    def repo(self) -> BaseRepo:
        return self._repo

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    def put_blob(self, data: bytes) -> str:
        blob = Blob.from_string(data)
        self._repo.object_store.add_object(blob)
        return blob.id.decode("ascii")

    def put_tree(self, entries: list[TreeEntry]) -> str:
        tree = Tree()
        for entry in entries:
            tree.add(entry.name.encode("utf-8"), entry.mode, entry.id.encode("ascii"))
        self._repo.object_store.add_object(tree)
        return tree.id.decode("ascii")

    def put_commit(self, tree: str, parents: list[str], message: str) -> str:
        commit = Commit()
        commit.tree = tree.encode("ascii")
        commit.parents = [parent.encode("ascii") for parent in parents]
        commit.author = commit.committer = self._identity
        commit.author_time = commit.commit_time = 0
        commit.author_timezone = commit.commit_timezone = 0
        commit.message = message.encode("utf-8")
        self._repo.object_store.add_object(commit)
        return commit.id.decode("ascii")

    def get_object(self, object_id: str) -> StoredObject:
        if not valid_hexsha(object_id):
            raise ObjectLookupError(f"Invalid object id {object_id!r}", revision=object_id)
        try:
            obj = self._repo[object_id.encode("ascii")]
        except KeyError:
            raise ObjectLookupError(
                f"Failed to look-up git object (oid={object_id})", revision=object_id
            ) from None

        kind = _KINDS[obj.type_name]
        if kind is ObjectKind.BLOB:
            return StoredObject(id=object_id, kind=kind, data=obj.as_raw_string())
        if kind is ObjectKind.TREE:
            entries = {}
            for item in obj.items():
                name = item.path.decode("utf-8", "surrogateescape")
                entries[name] = TreeEntry(name=name, mode=item.mode, id=item.sha.decode("ascii"))
            return StoredObject(id=object_id, kind=kind, entries=entries)
        if kind is ObjectKind.COMMIT:
            return StoredObject(
                id=object_id,
                kind=kind,
                tree=obj.tree.decode("ascii"),
                parents=tuple(parent.decode("ascii") for parent in obj.parents),
            )
        return StoredObject(id=object_id, kind=kind)

    def resolve_revision(self, revision: str) -> str:
        try:
            obj = parse_object(self._repo, revision.encode("utf-8"))
        # Newer dulwich releases assert on names that are neither refs nor ids
        except (KeyError, ValueError, AssertionError) as exc:
            raise ObjectLookupError(
                f"Failed to look-up git object for revision {revision!r}", revision=revision
            ) from exc
        return obj.id.decode("ascii")

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def read_reference(self, name: str) -> str | None:
        try:
            return self._repo.refs[name.encode("utf-8")].decode("ascii")
        except KeyError:
            return None

    def create_reference(self, name: str, object_id: str, *, allow_overwrite: bool = False) -> None:
        key = name.encode("utf-8")
        value = object_id.encode("ascii")
        if allow_overwrite:
            self._repo.refs[key] = value
            return
        if not self._repo.refs.add_if_new(key, value):
            raise ReferenceConflict(name)
        logger.debug("Created reference %s -> %s", name, object_id)

    def delete_reference(self, name: str) -> bool:
        key = name.encode("utf-8")
        if key not in self._repo.refs:
            return False
        return bool(self._repo.refs.remove_if_equals(key, None))

    def list_references_matching(self, pattern: str) -> list[str]:
        names = (name.decode("utf-8", "surrogateescape") for name in self._repo.refs.allkeys())
        return sorted(name for name in names if fnmatchcase(name, pattern))

    def remote_url(self, name: str) -> str:
        config = self._repo.get_config()
        try:
            url = config.get((b"remote", name.encode("utf-8")), b"url")
        except KeyError:
            raise RemoteError(f"Unable to find remote {name!r}") from None
        return url.decode("utf-8")
