"""Tests for the approval-marker scanner (local and remote)."""

import json

from conftest import FakeRunner, assistant, user, write_marker, write_transcript

from maxwell import hook
from maxwell.marker_scanner import MarkerScanner
from maxwell.session_state import RemoteHost

BASH = "\U0001f5a5\ufe0f"
FOLDER = "\U0001f4c1"


def _scanner(marker_dir, projects_dir, runner=None) -> MarkerScanner:
    return MarkerScanner(marker_dir=marker_dir, projects_dir=projects_dir, runner=runner or FakeRunner())


class TestLocalMarkers:
    def test_valid_marker_without_transcript(self, marker_dir, projects_dir, now) -> None:
        write_marker(marker_dir, "s1", now - 10)
        messages = _scanner(marker_dir, projects_dir).scan(now=now)
        assert messages == [f"{BASH} npm install\n{FOLDER} x/proj"]

    def test_expired_marker_is_reaped(self, marker_dir, projects_dir, now) -> None:
        path = write_marker(marker_dir, "s1", now - 200)
        assert _scanner(marker_dir, projects_dir).scan(now=now) == []
        assert not path.exists()

    def test_fresh_marker_is_hidden_but_kept(self, marker_dir, projects_dir, now) -> None:
        path = write_marker(marker_dir, "s1", now - 1)
        assert _scanner(marker_dir, projects_dir).scan(now=now) == []
        assert path.exists()

    def test_exactly_min_age_is_hidden(self, marker_dir, projects_dir, now) -> None:
        write_marker(marker_dir, "s1", now - 2)
        assert _scanner(marker_dir, projects_dir).scan(now=now) == []

    def test_newer_transcript_reaps_marker(self, marker_dir, projects_dir, now) -> None:
        path = write_marker(marker_dir, "s1", now - 10)
        write_transcript(projects_dir, "-Users-x-proj", "s1", [user(), assistant()], mtime=now - 5)
        assert _scanner(marker_dir, projects_dir).scan(now=now) == []
        assert not path.exists()

    def test_newer_transcript_reaps_even_fresh_marker(self, marker_dir, projects_dir, now) -> None:
        path = write_marker(marker_dir, "s1", now - 1, mtime=now - 10)
        write_transcript(projects_dir, "-Users-x-proj", "s1", [user()], mtime=now)
        _scanner(marker_dir, projects_dir).scan(now=now)
        assert not path.exists()

    def test_transcript_within_skew_keeps_marker(self, marker_dir, projects_dir, now) -> None:
        path = write_marker(marker_dir, "s1", now - 10)
        write_transcript(projects_dir, "-Users-x-proj", "s1", [user()], mtime=now - 9)
        assert len(_scanner(marker_dir, projects_dir).scan(now=now)) == 1
        assert path.exists()

    def test_transcript_in_other_project_dir_counts(self, marker_dir, projects_dir, now) -> None:
        (projects_dir / "-Users-x-other").mkdir()
        path = write_marker(marker_dir, "s1", now - 10)
        write_transcript(projects_dir, "-Users-x-proj", "s1", [user()], mtime=now)
        _scanner(marker_dir, projects_dir).scan(now=now)
        assert not path.exists()

    def test_malformed_marker_is_skipped_not_deleted(self, marker_dir, projects_dir, now) -> None:
        partial = marker_dir / "s1.json"
        partial.write_text('{"tool": "Bash", "cmd": "np')
        missing = marker_dir / "s2.json"
        missing.write_text(json.dumps({"tool": "Bash", "time": now - 500}))
        assert _scanner(marker_dir, projects_dir).scan(now=now) == []
        assert partial.exists()
        assert missing.exists()

    def test_non_json_files_ignored(self, marker_dir, projects_dir, now) -> None:
        (marker_dir / "notes.txt").write_text("hello")
        (marker_dir / ".tmp123.tmp").write_text("{}")
        assert _scanner(marker_dir, projects_dir).scan(now=now) == []

    def test_missing_marker_dir(self, tmp_path, projects_dir, now) -> None:
        scanner = _scanner(tmp_path / "nope", projects_dir)
        assert scanner.scan(now=now) == []
        assert scanner.active_sessions() == set()

    def test_missing_projects_dir(self, marker_dir, tmp_path, now) -> None:
        write_marker(marker_dir, "s1", now - 10)
        assert len(_scanner(marker_dir, tmp_path / "nope").scan(now=now)) == 1

    def test_active_sessions(self, marker_dir, projects_dir, now) -> None:
        write_marker(marker_dir, "s1", now - 10)
        write_marker(marker_dir, "s2", now - 1)
        assert _scanner(marker_dir, projects_dir).active_sessions() == {"s1", "s2"}


def _remote_line(session, created, tool="Bash", cmd="make test", cwd="/home/me/api") -> str:
    return json.dumps({"tool": tool, "cmd": cmd, "cwd": cwd, "time": created,
                       "session": session, "remote": True})


class TestRemoteMarkers:
    def test_remote_message_is_prefixed(self, marker_dir, projects_dir, now) -> None:
        runner = FakeRunner({"dev": _remote_line("r1", now - 10) + "\n"})
        remotes = [RemoteHost(name="dev", host="dev.local", user="me")]
        messages = _scanner(marker_dir, projects_dir, runner).scan(remotes, now=now)
        assert messages == [f"[dev] {BASH} make test\n{FOLDER} me/api"]

    def test_failed_host_does_not_block_others(self, marker_dir, projects_dir, now) -> None:
        runner = FakeRunner({"dev": _remote_line("r1", now - 10)})
        remotes = [
            RemoteHost(name="down", host="10.0.0.9", user="me"),
            RemoteHost(name="dev", host="dev.local", user="me"),
        ]
        write_marker(marker_dir, "s1", now - 10)
        messages = _scanner(marker_dir, projects_dir, runner).scan(remotes, now=now)
        assert len(messages) == 2
        assert messages[0].startswith(BASH)
        assert messages[1].startswith("[dev] ")

    def test_remote_age_window(self, marker_dir, projects_dir, now) -> None:
        output = "\n".join([
            _remote_line("fresh", now - 2),
            _remote_line("ok", now - 60, cmd="ok"),
            _remote_line("old", now - 120),
        ])
        runner = FakeRunner({"dev": output})
        remotes = [RemoteHost(name="dev", host="dev.local", user="me")]
        messages = _scanner(marker_dir, projects_dir, runner).scan(remotes, now=now)
        assert messages == [f"[dev] {BASH} ok\n{FOLDER} me/api"]

    def test_garbage_lines_are_skipped(self, marker_dir, projects_dir, now) -> None:
        output = "not json\n{\"tool\": \"Bash\"}\n" + _remote_line("r1", now - 10)
        runner = FakeRunner({"dev": output})
        remotes = [RemoteHost(name="dev", host="dev.local", user="me")]
        assert len(_scanner(marker_dir, projects_dir, runner).scan(remotes, now=now)) == 1

    def test_disabled_host_is_not_contacted(self, marker_dir, projects_dir, now) -> None:
        runner = FakeRunner({"dev": _remote_line("r1", now - 10)})
        remotes = [RemoteHost(name="dev", host="dev.local", user="me", enabled=False)]
        assert _scanner(marker_dir, projects_dir, runner).scan(remotes, now=now) == []
        assert runner.calls == []

    def test_remote_listing_command(self, marker_dir, projects_dir, now) -> None:
        runner = FakeRunner()
        _scanner(marker_dir, projects_dir, runner).scan([RemoteHost("dev", "h", "u")], now=now)
        assert runner.calls == [("dev", "cat /tmp/maxwell_claude/*.json 2>/dev/null")]

    def test_order_local_then_remotes(self, marker_dir, projects_dir, now) -> None:
        runner = FakeRunner({
            "a": _remote_line("ra", now - 10, cmd="a"),
            "b": _remote_line("rb", now - 10, cmd="b"),
        })
        remotes = [RemoteHost("b", "hb", "u"), RemoteHost("a", "ha", "u")]
        write_marker(marker_dir, "s1", now - 10, cmd="local")
        messages = _scanner(marker_dir, projects_dir, runner).scan(remotes, now=now)
        assert [m.split("\n")[0] for m in messages] == [
            f"{BASH} local", f"[b] {BASH} b", f"[a] {BASH} a",
        ]

    def test_markers_written_by_hook(self, marker_dir, projects_dir, tmp_path, now) -> None:
        remote_dir = tmp_path / "remote"
        for session, cmd in (("r1", "make test"), ("r2", "make lint")):
            hook.write_marker("Bash", {"session_id": session, "cwd": "/home/me/api",
                                       "tool_input": {"command": cmd}},
                              marker_dir=remote_dir, now=now - 10)
        # What `cat <dir>/*.json` prints on the remote host
        output = "".join(p.read_text() for p in sorted(remote_dir.glob("*.json")))
        runner = FakeRunner({"dev": output})
        remotes = [RemoteHost(name="dev", host="dev.local", user="me")]
        messages = _scanner(marker_dir, projects_dir, runner).scan(remotes, now=now)
        assert messages == [
            f"[dev] {BASH} make test\n{FOLDER} me/api",
            f"[dev] {BASH} make lint\n{FOLDER} me/api",
        ]

    def test_markers_without_trailing_newline(self, marker_dir, projects_dir, now) -> None:
        output = _remote_line("r1", now - 10, cmd="a") + _remote_line("r2", now - 10, cmd="b") + " junk"
        runner = FakeRunner({"dev": output})
        remotes = [RemoteHost(name="dev", host="dev.local", user="me")]
        messages = _scanner(marker_dir, projects_dir, runner).scan(remotes, now=now)
        assert [m.split("\n")[0] for m in messages] == [f"[dev] {BASH} a", f"[dev] {BASH} b"]
