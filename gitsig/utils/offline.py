"""Gate for operations that talk to remote repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from gitsig.config import Settings


@dataclass(slots=True)
class OfflineModeGate:
    """Centralized guard for network-bound capabilities."""

    online_enabled: bool

    @classmethod
    def from_settings(cls, settings: "Settings") -> "OfflineModeGate":
        """Construct gate from configuration (``GITSIG_ONLINE`` included)."""

        return cls(online_enabled=settings.online)

    def is_online_enabled(self) -> bool:
        """Return True when remotes may be contacted."""

        return self.online_enabled

    def require(self, feature: str) -> None:
        """Raise if ``feature`` cannot execute under offline mode."""

        if self.online_enabled:
            return

        raise RuntimeError(
            f"{feature} requires network access. Drop `--offline` or set GITSIG_ONLINE=1."
        )
