"""Pytest configuration and fixtures."""

import gc
import shutil
import tempfile
import time
from collections.abc import Generator
from pathlib import Path

import pytest
from dulwich.repo import Repo

from gitsig.app.adapters import DulwichObjectStore
from gitsig.app.ports import BLOB_MODE, TREE_MODE, TreeEntry
from gitsig.config import Settings
from gitsig.keys import MinisignPrivateKey, SignifyPrivateKey

# Smallest scrypt parameters libsodium accepts; keeps encrypted minisign tests fast
FAST_OPSLIMIT = 32768
FAST_MEMLIMIT = 16777216


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    try:
        yield Path(tmpdir)
    finally:
        gc.collect()
        time.sleep(0.05)
        shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def memory_store() -> DulwichObjectStore:
    """Object store over an empty in-memory repository."""
    return DulwichObjectStore.in_memory()


def populate(store: DulwichObjectStore) -> dict[str, str]:
    """Write a blob, a tree holding it and a root commit; return their ids."""
    blob = store.put_blob(b"hello world\n")
    subtree = store.put_tree([TreeEntry(name="nested.txt", mode=BLOB_MODE, id=blob)])
    tree = store.put_tree(
        [
            TreeEntry(name="README", mode=BLOB_MODE, id=blob),
            TreeEntry(name="docs", mode=TREE_MODE, id=subtree),
        ]
    )
    commit = store.put_commit(tree, [], "initial commit\n")
    return {"blob": blob, "tree": tree, "commit": commit}


@pytest.fixture
def objects(memory_store: DulwichObjectStore) -> dict[str, str]:
    """Ids of a blob, tree and commit stored in ``memory_store``."""
    return populate(memory_store)


@pytest.fixture
def disk_repo(temp_dir: Path) -> Generator[tuple[Path, dict[str, str]], None, None]:
    """On-disk repository with ``refs/heads/master`` (and HEAD) at a root commit."""
    path = temp_dir / "repo"
    path.mkdir()
    repo = Repo.init(str(path))
    try:
        ids = populate(DulwichObjectStore(repo))
        repo.refs[b"refs/heads/master"] = ids["commit"].encode("ascii")
        yield path, ids
    finally:
        repo.close()


@pytest.fixture
def signify_key() -> SignifyPrivateKey:
    return SignifyPrivateKey.generate()


@pytest.fixture
def minisign_key() -> MinisignPrivateKey:
    return MinisignPrivateKey.generate()


@pytest.fixture
def key_dir(
    temp_dir: Path, signify_key: SignifyPrivateKey, minisign_key: MinisignPrivateKey
) -> Path:
    """Directory with ``alice`` (signify) and ``bob`` (minisign) key pairs, unencrypted."""
    keys = temp_dir / "keys"
    keys.mkdir()
    (keys / "alice.sec").write_text(signify_key.to_text())
    (keys / "alice.pub").write_text(signify_key.public_key().to_text())
    (keys / "bob.sec").write_text(minisign_key.to_text())
    (keys / "bob.pub").write_text(minisign_key.public_key().to_text())
    (keys / "notes.txt").write_text("not a key\n")
    return keys


@pytest.fixture
def override_settings(
    temp_dir: Path, disk_repo: tuple[Path, dict[str, str]]
) -> Generator[Settings, None, None]:
    """Provide isolated gitsig settings pointed at ``disk_repo``."""

    import gitsig.config as config_module

    original_settings = getattr(config_module, "_settings", None)

    data_dir = temp_dir / "appdata"
    config_dir = temp_dir / "appconfig"
    data_dir.mkdir(parents=True, exist_ok=True)
    config_dir.mkdir(parents=True, exist_ok=True)

    settings = config_module.Settings(
        data_dir=data_dir,
        config_dir=config_dir,
        repo_path=disk_repo[0],
        audit_enabled=True,
        online=True,
        passphrase=None,
    )

    config_module._settings = settings

    try:
        yield settings
    finally:
        config_module._settings = original_settings
