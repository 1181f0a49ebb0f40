"""Shared fixtures for the Maxwell test suite."""

import json
import os
import time
from pathlib import Path

import pytest

from maxwell.reconciler import MonitorListener


NOW = 1_700_000_000.0


@pytest.fixture
def now() -> float:
    return NOW


@pytest.fixture
def marker_dir(tmp_path: Path) -> Path:
    path = tmp_path / "markers"
    path.mkdir()
    return path


@pytest.fixture
def stopped_dir(tmp_path: Path) -> Path:
    path = tmp_path / "stopped"
    path.mkdir()
    return path


@pytest.fixture
def projects_dir(tmp_path: Path) -> Path:
    path = tmp_path / "projects"
    path.mkdir()
    return path


def set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


def write_marker(
    marker_dir: Path,
    session: str,
    created: float,
    tool: str = "Bash",
    cmd: str = "npm install",
    cwd: str = "/Users/x/proj",
    mtime: float = None,
) -> Path:
    path = marker_dir / f"{session}.json"
    path.write_text(json.dumps({
        "tool": tool, "cmd": cmd, "cwd": cwd, "time": created, "session": session,
    }))
    set_mtime(path, created if mtime is None else mtime)
    return path


def write_transcript(
    projects_dir: Path,
    project: str,
    session: str,
    records: list[dict],
    mtime: float,
) -> Path:
    project_dir = projects_dir / project
    project_dir.mkdir(exist_ok=True)
    path = project_dir / f"{session}.jsonl"
    with open(path, "w", encoding="utf-8") as fh:
        for record in records:
            fh.write(json.dumps(record) + "\n")
    set_mtime(path, mtime)
    return path


def user(text="hello"):
    return {"type": "user", "message": {"role": "user", "content": text}}


def tool_result():
    return {"type": "user", "message": {"role": "user", "content": [
        {"type": "tool_result", "tool_use_id": "t1", "content": "ok"},
    ]}}


def assistant(text="done"):
    return {"type": "assistant", "message": {"role": "assistant", "content": [
        {"type": "text", "text": text},
    ]}}


class RecordingListener(MonitorListener):
    """Collects events as (kind, payload) tuples."""

    def __init__(self):
        self.events = []

    def waiting_changed(self, messages):
        self.events.append(("waiting_changed", list(messages)))

    def waiting_cleared(self):
        self.events.append(("waiting_cleared", None))

    def finished_changed(self, messages):
        self.events.append(("finished_changed", list(messages)))

    def finished_cleared(self):
        self.events.append(("finished_cleared", None))

    def kinds(self):
        return [kind for kind, _ in self.events]


class FakeRunner:
    """Stands in for SshRunner: canned output per remote name."""

    def __init__(self, outputs=None):
        self.outputs = outputs or {}
        self.calls = []

    def run(self, remote, command):
        self.calls.append((remote.name, command))
        return self.outputs.get(remote.name, "")


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def wall_clock() -> float:
    return time.time()
