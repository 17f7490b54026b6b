"""Remote reference listing over dulwich's anonymous transports."""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase

from dulwich.client import get_transport_and_path
from dulwich.errors import GitProtocolError, NotGitRepository

from gitsig.app.ports import ReferenceSourcePort
from gitsig.errors import RemoteError

logger = logging.getLogger(__name__)


class DulwichRemoteReferences(ReferenceSourcePort):
    """List references advertised by a remote without fetching objects.

    Only transports that need no authentication prompt are supported
    (local paths, ``git://``, anonymous ``http(s)://``, ``ssh://`` with an agent).
    """

    def __init__(self, url: str) -> None:
        self.url = url

    def _advertised(self) -> list[str]:
        try:
            client, path = get_transport_and_path(self.url)
            result = client.get_refs(path)
        except (GitProtocolError, NotGitRepository, OSError) as exc:
            raise RemoteError(
                f"Failed to connect to remote {self.url}, only remotes with no "
                f"authentication are supported: {exc}"
            ) from exc

        refs = getattr(result, "refs", result)
        logger.debug("Remote %s advertised %d reference(s)", self.url, len(refs))
        return [name.decode("utf-8", "surrogateescape") for name in refs]

    def list_references_matching(self, pattern: str) -> list[str]:
        return sorted(name for name in self._advertised() if fnmatchcase(name, pattern))
