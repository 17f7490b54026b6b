"""Signature objects: layouts, codec, verification and reference naming."""
