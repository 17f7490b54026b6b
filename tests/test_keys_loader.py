"""Tests for key format detection and key directory loading."""

from pathlib import Path

import pytest

from gitsig.errors import DecryptionFailed, KeyDecodeError, UnknownKeyFormat
from gitsig.keys import (
    MinisignPrivateKey,
    MinisignPublicKey,
    SignifyPrivateKey,
    SignifyPublicKey,
    detect_key_format,
    fingerprint,
    load_private_key,
    load_private_keys,
    load_public_key,
    load_public_keys,
)
from gitsig.keys import loader
from gitsig.keys.passphrase import static_passphrase
from gitsig.signature.model import SignatureAlgorithm


def test_detects_signify_and_minisign(signify_key, minisign_key):
    assert detect_key_format(signify_key.public_key().to_text()) is SignatureAlgorithm.SIGNIFY
    assert detect_key_format(minisign_key.to_text()) is SignatureAlgorithm.MINISIGN


def test_unknown_comment_is_rejected(temp_dir: Path):
    path = temp_dir / "odd.pub"

    with pytest.raises(UnknownKeyFormat, match="Unknown key format") as excinfo:
        detect_key_format("untrusted comment: ssh key\nAAAA\n", path=path)

    assert excinfo.value.path == path


def test_missing_comment_line_is_unknown():
    with pytest.raises(UnknownKeyFormat):
        load_public_key("AAAA\n")


def test_unknown_format_is_a_decode_error():
    with pytest.raises(KeyDecodeError):
        load_private_key("untrusted comment: age key\nAAAA\n", static_passphrase(""))


def test_load_public_key_dispatches_on_format(signify_key, minisign_key):
    assert isinstance(load_public_key(signify_key.public_key().to_text()), SignifyPublicKey)
    assert isinstance(load_public_key(minisign_key.public_key().to_text()), MinisignPublicKey)


def test_load_public_keys_single_file(key_dir: Path, signify_key):
    loaded = load_public_keys(key_dir / "alice.pub")

    assert loaded == [(key_dir / "alice.pub", signify_key.public_key())]


def test_load_public_keys_directory_filters_and_sorts(key_dir: Path):
    loaded = load_public_keys(key_dir)

    assert [path.name for path, _ in loaded] == ["alice.pub", "bob.pub"]
    assert isinstance(loaded[0][1], SignifyPublicKey)
    assert isinstance(loaded[1][1], MinisignPublicKey)


def test_load_private_keys_directory(key_dir: Path, signify_key, minisign_key):
    loaded = load_private_keys(key_dir, static_passphrase("unused"))

    assert [path.name for path, _ in loaded] == ["alice.sec", "bob.sec"]
    assert isinstance(loaded[0][1], SignifyPrivateKey)
    assert isinstance(loaded[1][1], MinisignPrivateKey)
    assert loaded[0][1].public_key() == signify_key.public_key()
    assert loaded[1][1].public_key() == minisign_key.public_key()


def test_each_encrypted_key_prompts_once(temp_dir: Path):
    keys = temp_dir / "encrypted"
    keys.mkdir()
    for name in ("one", "two"):
        key = SignifyPrivateKey.generate()
        (keys / f"{name}.sec").write_text(key.to_text(b"secret", rounds=4))

    prompts: list[str] = []

    def source(prompt: str) -> str:
        prompts.append(prompt)
        return "secret"

    loaded = load_private_keys(keys, source)

    assert len(loaded) == 2
    assert len(prompts) == 2


def test_empty_directory_loads_nothing(temp_dir: Path):
    empty = temp_dir / "empty"
    empty.mkdir()

    assert load_public_keys(empty) == []


def test_missing_path_raises(temp_dir: Path):
    missing = temp_dir / "nope.pub"

    with pytest.raises(KeyDecodeError) as excinfo:
        load_public_keys(missing)

    assert excinfo.value.path == missing


def test_fingerprint_helper_delegates(signify_key):
    public = signify_key.public_key()

    assert fingerprint(public) == public.fingerprint()


def test_failed_directory_load_wipes_decrypted_keys(temp_dir: Path, monkeypatch):
    keys = temp_dir / "mixed"
    keys.mkdir()
    (keys / "a.sec").write_text(SignifyPrivateKey.generate().to_text(b"right", rounds=4))
    (keys / "b.sec").write_text(SignifyPrivateKey.generate().to_text(b"other", rounds=4))

    created = []
    original_load = loader.load_private_key

    def recording_load(*args, **kwargs):
        key = original_load(*args, **kwargs)
        created.append(key)
        return key

    monkeypatch.setattr(loader, "load_private_key", recording_load)

    with pytest.raises(DecryptionFailed):
        load_private_keys(keys, static_passphrase("right"))

    assert len(created) == 1
    assert not any(created[0]._seckey)
