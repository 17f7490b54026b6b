"""Application layer for gitsig.

Services orchestrate the key, codec and reference layers. All repository,
network and ledger side effects are delegated to adapters via port interfaces.
"""

__all__ = [
    "AuditService",
    "SigningService",
    "SyncService",
]

from gitsig.app.audit_service import AuditService
from gitsig.app.signing_service import SigningService
from gitsig.app.sync_service import SyncService
