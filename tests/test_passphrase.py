"""Tests for passphrase sources and key text framing."""

import pytest

from gitsig.keys.framing import frame, read_comment, unframe
from gitsig.keys.passphrase import PASSPHRASE_PROMPT, passphrase_scope, static_passphrase


def test_passphrase_scope_wipes_buffer():
    with passphrase_scope(static_passphrase("s3cret")) as buffer:
        assert bytes(buffer) == b"s3cret"

    assert bytes(buffer) == bytes(6)


def test_passphrase_scope_wipes_on_error():
    with pytest.raises(RuntimeError):
        with passphrase_scope(static_passphrase("s3cret")) as buffer:
            raise RuntimeError("boom")

    assert not any(buffer)


def test_passphrase_scope_prompts_once():
    prompts: list[str] = []

    def source(prompt: str) -> str:
        prompts.append(prompt)
        return "pw"

    with passphrase_scope(source):
        pass

    assert prompts == [PASSPHRASE_PROMPT]


def test_frame_roundtrip():
    text = frame("signify public key", b"\x00\x01\x02")

    comment, payloads, lines = unframe(text)

    assert comment == "signify public key"
    assert payloads == [b"\x00\x01\x02"]
    assert len(lines) == 2


def test_unframe_tolerates_crlf():
    comment, payloads, _ = unframe("untrusted comment: x\r\nAAEC\r\n")

    assert comment == "x"
    assert payloads == [b"\x00\x01\x02"]


def test_unframe_requires_comment_line():
    with pytest.raises(ValueError, match="untrusted comment"):
        unframe("comment: x\nAAEC\n")


def test_unframe_requires_enough_lines():
    with pytest.raises(ValueError, match="expected at least 4 lines"):
        unframe("untrusted comment: x\nAAEC\n", expected_lines=4)


def test_read_comment_without_frame():
    assert read_comment("AAEC") is None
