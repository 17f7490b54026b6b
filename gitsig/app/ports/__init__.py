"""Port interfaces for the gitsig application layer.

These protocol interfaces define contracts for adapters.
Domain logic depends on these ports, never on concrete implementations.
"""

__all__ = [
    "AuditRecord",
    "LedgerPort",
    "BLOB_MODE",
    "TREE_MODE",
    "ObjectKind",
    "ObjectStorePort",
    "StoredObject",
    "TreeEntry",
    "ReferenceSourcePort",
    "TransportPort",
]

from gitsig.app.ports.ledger import AuditRecord, LedgerPort
from gitsig.app.ports.object_store import (
    BLOB_MODE,
    TREE_MODE,
    ObjectKind,
    ObjectStorePort,
    StoredObject,
    TreeEntry,
)
from gitsig.app.ports.references import ReferenceSourcePort
from gitsig.app.ports.transport import TransportPort
