import json
import logging
import time
from pathlib import Path
from typing import Iterable, Iterator, Optional

from maxwell.defaults import (
    CLAUDE_PROJECTS,
    MARKER_DIR,
    MARKER_MIN_AGE,
    MARKER_TTL,
    REMOTE_MARKER_DIR,
    TRANSCRIPT_SKEW,
)
from maxwell.remote import SshRunner
from maxwell.session_state import RemoteHost, ToolMarker

logger = logging.getLogger(__name__)


class MarkerScanner:
    """Finds tool invocations that are waiting for the user's approval.

    Local markers are validated against the session transcript and reaped
    when stale. Remote markers are read over ssh and only filtered by age,
    since the files on a remote host are not ours to delete.
    """

    def __init__(
        self,
        marker_dir: Path = MARKER_DIR,
        projects_dir: Path = CLAUDE_PROJECTS,
        runner: Optional[SshRunner] = None,
        remote_marker_dir: str = REMOTE_MARKER_DIR,
    ):
        self.marker_dir = Path(marker_dir)
        self.projects_dir = Path(projects_dir)
        self._runner = runner or SshRunner()
        self._remote_command = f"cat {remote_marker_dir}/*.json 2>/dev/null"

    def scan(self, remotes: Iterable[RemoteHost] = (), now: Optional[float] = None) -> list[str]:
        now = time.time() if now is None else now
        messages = self.scan_local(now)
        for remote in remotes:
            if remote.enabled:
                messages.extend(self.scan_remote(remote, now))
        return messages

    def active_sessions(self) -> set[str]:
        """Session IDs that currently have a local marker file."""
        try:
            return {p.stem for p in self.marker_dir.iterdir() if p.suffix == ".json"}
        except OSError:
            return set()

    # -- Local --

    def scan_local(self, now: float) -> list[str]:
        try:
            paths = [p for p in self.marker_dir.iterdir() if p.suffix == ".json"]
        except OSError:
            return []

        messages = []
        for path in paths:
            message = self._check_local(path, now)
            if message:
                messages.append(message)
        return messages

    def _check_local(self, path: Path, now: float) -> Optional[str]:
        try:
            marker_mtime = path.stat().st_mtime
            with open(path, "r", encoding="utf-8") as f:
                marker = ToolMarker.from_json(json.load(f))
        except (OSError, ValueError):
            # Missing, unreadable or mid-write; the hook may still be writing it
            return None
        if marker is None:
            return None

        transcript_mtime = self._transcript_mtime(marker.session_id)
        if transcript_mtime is not None and transcript_mtime > marker_mtime + TRANSCRIPT_SKEW:
            logger.debug("Reaping %s: transcript moved on", path.name)
            self._reap(path)
            return None

        age = marker.age(now)
        if age > MARKER_TTL:
            logger.debug("Reaping %s: expired after %.0fs", path.name, age)
            self._reap(path)
            return None
        if age <= MARKER_MIN_AGE:
            return None
        return marker.message

    def _transcript_mtime(self, session_id: str) -> Optional[float]:
        """Newest mtime of ``<project>/<session_id>.jsonl`` across projects."""
        try:
            project_dirs = [d for d in self.projects_dir.iterdir() if d.is_dir()]
        except OSError:
            return None

        newest = None
        for project_dir in project_dirs:
            try:
                mtime = (project_dir / f"{session_id}.jsonl").stat().st_mtime
            except OSError:
                continue
            if newest is None or mtime > newest:
                newest = mtime
        return newest

    @staticmethod
    def _reap(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug("Could not remove %s: %s", path, e)

    # -- Remote --

    def scan_remote(self, remote: RemoteHost, now: float) -> list[str]:
        output = self._runner.run(remote, self._remote_command)
        messages = []
        for data in _json_values(output):
            marker = ToolMarker.from_json(data)
            if marker is None:
                continue
            if MARKER_MIN_AGE < marker.age(now) < MARKER_TTL:
                messages.append(remote.label + marker.message)
        return messages


def _json_values(output: str) -> Iterator:
    """Decode the JSON values in ``cat`` output, line by line.

    Files without a trailing newline run together on one line, so each line
    may hold several values. Decoding stops at the first garbage on a line.
    """
    decoder = json.JSONDecoder()
    for line in output.splitlines():
        rest = line.strip()
        while rest:
            try:
                value, end = decoder.raw_decode(rest)
            except ValueError:
                break
            yield value
            rest = rest[end:].lstrip()
