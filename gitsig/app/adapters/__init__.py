"""Concrete adapters wiring application ports to dulwich and git."""

from __future__ import annotations

from .dulwich_store import DulwichObjectStore
from .git_transport import GitCommandTransport
from .remote_refs import DulwichRemoteReferences

__all__ = [
    "DulwichObjectStore",
    "DulwichRemoteReferences",
    "GitCommandTransport",
]
