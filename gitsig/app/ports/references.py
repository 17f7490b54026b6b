"""Reference source port for discovering signatures."""

from typing import Protocol


class ReferenceSourcePort(Protocol):
    """Anything that can list reference names: the local store or a remote.

    Side effects: Remote implementations contact the network (online only).
    """

    def list_references_matching(self, pattern: str) -> list[str]:
        """Return reference names matching the glob ``pattern``.

        Args:
            pattern: fnmatch-style glob such as ``refs/signify/signatures/*``

        Returns:
            Sorted reference names
        """
        ...
