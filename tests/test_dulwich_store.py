"""Tests for the dulwich object store adapter."""

from pathlib import Path

import pytest
from dulwich.repo import Repo

from gitsig.app.adapters import DulwichObjectStore
from gitsig.app.ports import BLOB_MODE, ObjectKind, TreeEntry
from gitsig.errors import ObjectLookupError, ReferenceConflict, RemoteError
from gitsig.utils.hashing import compute_blob_id


def test_put_blob_matches_git_blob_id(memory_store):
    blob_id = memory_store.put_blob(b"hello world\n")

    assert blob_id == compute_blob_id(b"hello world\n")
    assert blob_id == "3b18e512dba79e4c8300dd08aeb37f8e728b8dad"


def test_get_object_reports_kinds(memory_store, objects):
    blob = memory_store.get_object(objects["blob"])
    tree = memory_store.get_object(objects["tree"])
    commit = memory_store.get_object(objects["commit"])

    assert blob.kind is ObjectKind.BLOB
    assert blob.data == b"hello world\n"
    assert tree.kind is ObjectKind.TREE
    assert set(tree.entries) == {"README", "docs"}
    assert tree.entries["docs"].kind is ObjectKind.TREE
    assert tree.entries["README"].kind is ObjectKind.BLOB
    assert commit.kind is ObjectKind.COMMIT
    assert commit.tree == objects["tree"]
    assert commit.parents == ()


def test_commits_are_deterministic(memory_store, objects):
    first = memory_store.put_commit(objects["tree"], [objects["commit"]], "same\n")
    second = memory_store.put_commit(objects["tree"], [objects["commit"]], "same\n")

    assert first == second


def test_commit_uses_configured_identity(objects, memory_store):
    other = DulwichObjectStore(memory_store.repo, identity=b"Someone <someone@example.com>")

    default_id = memory_store.put_commit(objects["tree"], [], "message\n")
    other_id = other.put_commit(objects["tree"], [], "message\n")

    assert default_id != other_id
    assert memory_store.repo[other_id.encode()].author == b"Someone <someone@example.com>"


def test_get_object_rejects_malformed_id(memory_store):
    with pytest.raises(ObjectLookupError, match="Invalid object id"):
        memory_store.get_object("not-an-id")


def test_get_object_missing(memory_store):
    with pytest.raises(ObjectLookupError) as excinfo:
        memory_store.get_object("0" * 40)

    assert excinfo.value.revision == "0" * 40


def test_resolve_revision(disk_repo):
    path, ids = disk_repo
    store = DulwichObjectStore.discover(path)

    assert store.resolve_revision(ids["commit"]) == ids["commit"]
    assert store.resolve_revision("refs/heads/master") == ids["commit"]
    assert store.resolve_revision("master") == ids["commit"]


def test_resolve_unknown_revision(memory_store):
    with pytest.raises(ObjectLookupError, match="no-such-branch"):
        memory_store.resolve_revision("no-such-branch")


def test_resolve_unknown_revision_on_disk(disk_repo):
    path, _ = disk_repo
    store = DulwichObjectStore.discover(path)

    with pytest.raises(ObjectLookupError) as excinfo:
        store.resolve_revision("no-such-branch")

    assert excinfo.value.revision == "no-such-branch"


def test_discover_outside_repository(temp_dir: Path):
    with pytest.raises(ObjectLookupError, match="Failed to open git repository"):
        DulwichObjectStore.discover(temp_dir)


def test_create_reference_never_overwrites(memory_store, objects):
    memory_store.create_reference("refs/signify/test", objects["blob"])

    with pytest.raises(ReferenceConflict):
        memory_store.create_reference("refs/signify/test", objects["tree"])
    assert memory_store.read_reference("refs/signify/test") == objects["blob"]


def test_create_reference_with_overwrite(memory_store, objects):
    memory_store.create_reference("refs/signify/test", objects["blob"])
    memory_store.create_reference("refs/signify/test", objects["tree"], allow_overwrite=True)

    assert memory_store.read_reference("refs/signify/test") == objects["tree"]


def test_delete_reference(memory_store, objects):
    memory_store.create_reference("refs/signify/test", objects["blob"])

    assert memory_store.delete_reference("refs/signify/test") is True
    assert memory_store.read_reference("refs/signify/test") is None
    assert memory_store.delete_reference("refs/signify/test") is False


def test_list_references_matching(memory_store, objects):
    names = [
        "refs/signify/signatures/b/2",
        "refs/signify/signatures/a/1",
        "refs/heads/main",
    ]
    for name in names:
        memory_store.create_reference(name, objects["commit"])

    assert memory_store.list_references_matching("refs/signify/signatures/*") == [
        "refs/signify/signatures/a/1",
        "refs/signify/signatures/b/2",
    ]


def test_remote_url(disk_repo):
    path, _ = disk_repo
    repo = Repo(str(path))
    config = repo.get_config()
    config.set((b"remote", b"origin"), b"url", b"https://example.com/repo.git")
    config.write_to_path()
    repo.close()

    store = DulwichObjectStore.discover(path)

    assert store.remote_url("origin") == "https://example.com/repo.git"
    with pytest.raises(RemoteError, match="upstream"):
        store.remote_url("upstream")


def test_tree_entries_are_stored_in_git_order(memory_store):
    blob = memory_store.put_blob(b"x")
    entries = [
        TreeEntry(name="signature", mode=BLOB_MODE, id=blob),
        TreeEntry(name="algorithm", mode=BLOB_MODE, id=blob),
    ]

    assert memory_store.put_tree(entries) == memory_store.put_tree(list(reversed(entries)))
