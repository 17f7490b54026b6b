"""Text framing shared by signify and minisign keys and signatures.

Both tools store binary structures as::

    untrusted comment: <free text>
    <base64 payload>

minisign signatures append a ``trusted comment:`` line and a second base64
line, handled in :mod:`gitsig.keys.minisign`.
"""

from __future__ import annotations

from gitsig.utils.crypto import decode_bytes, encode_bytes

UNTRUSTED_COMMENT = "untrusted comment: "
TRUSTED_COMMENT = "trusted comment: "


def read_comment(text: str) -> str | None:
    """Return the untrusted comment of ``text``, or None if the frame is absent."""
    first_line = text.split("\n", 1)[0].rstrip("\r")
    if not first_line.startswith(UNTRUSTED_COMMENT):
        return None
    return first_line[len(UNTRUSTED_COMMENT) :]


def unframe(text: str, *, expected_lines: int = 2) -> tuple[str, list[bytes], list[str]]:
    """Split framed text into its comment, decoded payloads and raw lines.

    Args:
        text: Framed text
        expected_lines: Minimum number of non-empty lines required

    Returns:
        Tuple of (untrusted comment, decoded base64 lines 2 and 4 when present, all lines)

    Raises:
        ValueError: If the frame or base64 payload is malformed
    """
    lines = [line.rstrip("\r") for line in text.split("\n")]
    while lines and not lines[-1]:
        lines.pop()
    if len(lines) < expected_lines:
        raise ValueError(f"expected at least {expected_lines} lines, found {len(lines)}")

    comment = read_comment(lines[0])
    if comment is None:
        raise ValueError(f"missing {UNTRUSTED_COMMENT.strip()!r} line")

    payloads = [decode_bytes(lines[1])]
    if expected_lines >= 4:
        payloads.append(decode_bytes(lines[3]))
    return comment, payloads, lines


def frame(comment: str, payload: bytes) -> str:
    """Encode ``payload`` beneath an untrusted comment line."""
    return f"{UNTRUSTED_COMMENT}{comment}\n{encode_bytes(payload)}\n"
