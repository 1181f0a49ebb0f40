"""Producer side of the marker protocol.

The assistant's hook configuration calls ``maxwell hook <action>`` with the
hook event JSON on stdin:

    PreToolUse   -> maxwell hook pre-tool <Tool>
    PostToolUse  -> maxwell hook clear
    Stop         -> maxwell hook clear
    SessionEnd   -> maxwell hook stop

Markers are written to a temp file and renamed into place so the monitor
never reads half a file.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Optional

from maxwell.defaults import HOOK_COMMAND_WIDTH, MARKER_DIR, STOPPED_DIR

logger = logging.getLogger(__name__)


def _session_id(payload: dict) -> str:
    session = payload.get("session_id")
    return session if isinstance(session, str) and session else "unknown"


def _marker_path(directory: Path, session_id: str) -> Path:
    # Session IDs come from outside; keep them from escaping the directory
    return Path(directory) / f"{os.path.basename(session_id)}.json"


def _write_atomic(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def _remove(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


def describe_command(tool: str, tool_input) -> str:
    """Short description of a tool call: the command for Bash, else the file name."""
    if not isinstance(tool_input, dict):
        return ""
    if tool == "Bash":
        return str(tool_input.get("command", ""))[:HOOK_COMMAND_WIDTH]
    return os.path.basename(str(tool_input.get("file_path", "")))


def write_marker(
    tool: str,
    payload: dict,
    marker_dir: Path = MARKER_DIR,
    now: Optional[float] = None,
) -> Path:
    session_id = _session_id(payload)
    marker = {
        "tool": tool,
        "cmd": describe_command(tool, payload.get("tool_input")),
        "cwd": str(payload.get("cwd", "")),
        "time": int(time.time() if now is None else now),
        "session": session_id,
    }
    path = _marker_path(marker_dir, session_id)
    _write_atomic(path, marker)
    logger.debug("Wrote marker %s", path)
    return path


def clear_marker(payload: dict, marker_dir: Path = MARKER_DIR) -> bool:
    return _remove(_marker_path(marker_dir, _session_id(payload)))


def mark_stopped(
    payload: dict,
    marker_dir: Path = MARKER_DIR,
    stopped_dir: Path = STOPPED_DIR,
    now: Optional[float] = None,
) -> Path:
    """Clear any pending marker and record that the session was stopped."""
    session_id = _session_id(payload)
    _remove(_marker_path(marker_dir, session_id))
    path = _marker_path(stopped_dir, session_id)
    _write_atomic(path, {
        "time": int(time.time() if now is None else now),
        "session": session_id,
        "cwd": str(payload.get("cwd", "")),
    })
    return path
