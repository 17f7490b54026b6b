"""Transport port for exchanging signature references with remotes."""

from typing import Protocol


class TransportPort(Protocol):
    """Port interface for pushing and fetching references.

    Side effects: Contacts remotes and updates local references (online only).
    """

    def push(self, remote: str, refspec: str) -> None:
        """Push ``refspec`` to ``remote``.

        Raises:
            TransportError: If the transfer fails
        """
        ...

    def fetch(self, remote: str, refspec: str) -> None:
        """Fetch ``refspec`` from ``remote``.

        Raises:
            TransportError: If the transfer fails
        """
        ...

    def delete_remote_reference(self, remote: str, name: str) -> None:
        """Delete reference ``name`` on ``remote``.

        Raises:
            TransportError: If the deletion fails
        """
        ...
