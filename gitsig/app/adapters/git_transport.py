"""Transport adapter that shells out to the ``git`` executable."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from gitsig.app.ports import TransportPort
from gitsig.errors import TransportError

logger = logging.getLogger(__name__)


class GitCommandTransport(TransportPort):
    """Push, fetch and delete references with ``git`` so its credential helpers apply."""

    def __init__(self, repo_path: Path, *, git_executable: str = "git") -> None:
        self.repo_path = repo_path
        self.git_executable = git_executable

    def _run(self, args: list[str]) -> str:
        command = [self.git_executable, "-C", str(self.repo_path), *args]
        logger.debug("Running %s", " ".join(command))
        try:
            completed = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise TransportError(command, -1, str(exc)) from exc

        if completed.stderr:
            logger.debug("git stderr: %s", completed.stderr.strip())
        if completed.returncode != 0:
            raise TransportError(command, completed.returncode, completed.stderr.strip())
        return completed.stdout

    def push(self, remote: str, refspec: str) -> None:
        self._run(["push", remote, refspec])

    def fetch(self, remote: str, refspec: str) -> None:
        self._run(["fetch", remote, refspec])

    def delete_remote_reference(self, remote: str, name: str) -> None:
        self._run(["push", "-d", remote, name])
