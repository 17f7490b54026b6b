"""Application bootstrap wiring ports, adapters, and services."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gitsig.app import AuditService, SigningService, SyncService
from gitsig.app.adapters import DulwichObjectStore, GitCommandTransport
from gitsig.app.ports import LedgerPort, ObjectStorePort, TransportPort
from gitsig.audit.ledger import AuditLedger
from gitsig.config import Settings, get_settings
from gitsig.keys.passphrase import PassphraseSource, interactive_passphrase, static_passphrase
from gitsig.utils.offline import OfflineModeGate

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ApplicationContainer:
    """Aggregates wired services and adapters for the CLI layer."""

    settings: Settings
    store: ObjectStorePort
    transport: TransportPort
    audit_service: AuditService
    signing_service: SigningService
    sync_service: SyncService
    offline_gate: OfflineModeGate


def _create_ledger(settings: Settings) -> LedgerPort | None:
    if not settings.audit_enabled:
        return None

    return AuditLedger(
        settings.get_audit_path(),
        hmac_key=settings.get_audit_hmac_key(),
    )


def _create_passphrase_source(settings: Settings) -> PassphraseSource:
    configured = settings.get_passphrase()
    if configured is not None:
        logger.debug("Using passphrase from GITSIG_PASSPHRASE instead of prompting")
        return static_passphrase(configured)
    return interactive_passphrase


def bootstrap_application(
    settings: Settings | None = None,
    *,
    store: ObjectStorePort | None = None,
    transport: TransportPort | None = None,
) -> ApplicationContainer:
    """Instantiate adapters and services for CLI consumption.

    Args:
        settings: Settings to wire with (defaults to the global settings)
        store: Object store override (defaults to the repository at ``repo_path``)
        transport: Transport override (defaults to the ``git`` executable)
    """

    active_settings = settings or get_settings()

    offline_gate = OfflineModeGate.from_settings(active_settings)

    if store is None:
        store = DulwichObjectStore.discover(
            active_settings.repo_path,
            identity=active_settings.get_signer_identity(),
        )
    if transport is None:
        transport = GitCommandTransport(
            active_settings.repo_path,
            git_executable=active_settings.git_executable,
        )

    ledger = _create_ledger(active_settings)
    audit_service = AuditService(ledger=ledger)

    signing_service = SigningService(
        store,
        audit=audit_service,
        passphrase_source=_create_passphrase_source(active_settings),
    )
    sync_service = SyncService(
        store,
        transport,
        offline_gate,
        audit=audit_service,
        default_remote=active_settings.default_remote,
    )

    return ApplicationContainer(
        settings=active_settings,
        store=store,
        transport=transport,
        audit_service=audit_service,
        signing_service=signing_service,
        sync_service=sync_service,
        offline_gate=offline_gate,
    )
