import json
import logging
import time
from pathlib import Path
from typing import Iterable, Optional

from maxwell.defaults import (
    CLAUDE_PROJECTS,
    FINISHED_MAX_AGE,
    FINISHED_MIN_AGE,
    STOPPED_DIR,
    STOPPED_MARKER_TTL,
    TRANSCRIPT_TAIL_BYTES,
)
from maxwell.session_state import FinishedSession

logger = logging.getLogger(__name__)


class FinishedScanner:
    """Finds sessions where the assistant has answered and the user hasn't looked.

    A transcript qualifies when its newest user/assistant record is from the
    assistant and it holds at least one of each. Sessions that were
    explicitly stopped, are still being written, went quiet long ago, or have
    a tool waiting for approval are left out. Dismissals are applied by the
    caller, which needs to know which dismissed sessions still qualify.
    """

    def __init__(
        self,
        projects_dir: Path = CLAUDE_PROJECTS,
        stopped_dir: Path = STOPPED_DIR,
        tail_bytes: int = TRANSCRIPT_TAIL_BYTES,
    ):
        self.projects_dir = Path(projects_dir)
        self.stopped_dir = Path(stopped_dir)
        self._tail_bytes = tail_bytes

    def scan(
        self,
        active_sessions: Iterable[str] = (),
        now: Optional[float] = None,
    ) -> list[FinishedSession]:
        now = time.time() if now is None else now
        active_sessions = set(active_sessions)

        self.sweep_stopped(now)

        try:
            project_dirs = [d for d in self.projects_dir.iterdir() if d.is_dir()]
        except OSError:
            return []

        finished = []
        for project_dir in project_dirs:
            try:
                transcripts = [p for p in project_dir.iterdir() if p.suffix == ".jsonl"]
            except OSError:
                continue
            for transcript in transcripts:
                session_id = transcript.stem
                if session_id in active_sessions:
                    continue
                if (self.stopped_dir / f"{session_id}.json").exists():
                    continue
                try:
                    age = now - transcript.stat().st_mtime
                except OSError:
                    continue
                if not FINISHED_MIN_AGE < age < FINISHED_MAX_AGE:
                    continue

                prompt = self._finished_prompt(transcript)
                if prompt is not None:
                    finished.append(FinishedSession(session_id, project_dir.name, prompt))
        return finished

    def sweep_stopped(self, now: float) -> None:
        """Delete stopped markers older than their TTL."""
        try:
            paths = [p for p in self.stopped_dir.iterdir() if p.suffix == ".json"]
        except OSError:
            return

        for path in paths:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    created = json.load(f).get("time")
            except (OSError, ValueError, AttributeError):
                continue
            if isinstance(created, bool) or not isinstance(created, (int, float)):
                continue
            if now - created > STOPPED_MARKER_TTL:
                logger.debug("Reaping stopped marker %s", path.name)
                try:
                    path.unlink()
                except OSError:
                    pass

    def _finished_prompt(self, transcript: Path) -> Optional[str]:
        """Return the last user prompt if the session is finished, else None.

        The prompt is "" when no plain-text user prompt was found.
        """
        try:
            lines, truncated = _tail_lines(transcript, self._tail_bytes)
            newest, users, assistants, prompt = _scan_records(lines)
            if truncated and newest != "user" and not users:
                # A long reply pushed the prompt out of the tail window
                lines, _ = _tail_lines(transcript, None)
                newest, users, assistants, prompt = _scan_records(lines)
        except OSError as e:
            logger.debug("Transcript read error for %s: %s", transcript.name, e)
            return None

        if newest == "assistant" and users and assistants:
            return prompt or ""
        return None


def _tail_lines(path: Path, max_bytes: Optional[int]) -> tuple[list[bytes], bool]:
    """Read the last ``max_bytes`` of a file as lines (whole file if None).

    Returns the lines and whether the beginning of the file was skipped.
    """
    with open(path, "rb") as f:
        f.seek(0, 2)
        size = f.tell()
        start = 0 if max_bytes is None else max(0, size - max_bytes)
        f.seek(start)
        if start > 0:
            f.readline()  # skip partial line
        return f.readlines(), start > 0


def _scan_records(lines: list[bytes]) -> tuple[Optional[str], int, int, Optional[str]]:
    """Walk records newest-first.

    Returns the type of the newest user/assistant record, the number of user
    and assistant records, and the most recent string prompt.
    """
    newest = None
    users = assistants = 0
    prompt = None

    for line in reversed(lines):
        try:
            entry = json.loads(line)
        except ValueError:
            continue
        if not isinstance(entry, dict):
            continue
        etype = entry.get("type")
        if etype not in ("user", "assistant"):
            continue
        if newest is None:
            newest = etype
        if etype == "assistant":
            assistants += 1
            continue
        users += 1
        if prompt is None:
            message = entry.get("message")
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                prompt = content

    return newest, users, assistants, prompt
