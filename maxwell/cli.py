#!/usr/bin/env python3
"""Command line entry point for Maxwell.

Usage:
    maxwell                       # Start the tray notifier
    maxwell status                # One poll, human readable
    maxwell json                  # One poll as JSON
    maxwell remotes               # Configured remote hosts
    maxwell remotes add NAME HOST USER [--key PATH]
    maxwell remotes remove|enable|disable NAME
    maxwell hook pre-tool <Tool>  # Hook: tool waiting for approval (stdin: hook JSON)
    maxwell hook clear            # Hook: tool finished
    maxwell hook stop             # Hook: session ended
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from maxwell import hook
from maxwell.reconciler import MonitorListener
from maxwell.session_monitor import SessionMonitor
from maxwell.session_state import RemoteHost
from maxwell.settings import Settings

logger = logging.getLogger(__name__)


def _poll(settings_path) -> dict:
    monitor = SessionMonitor(MonitorListener(), settings_path=settings_path)
    result = monitor.poll_once()
    return {
        "waiting": result.waiting_messages,
        "finished": result.finished_messages,
        "finishedSessions": sorted(result.finished_session_ids),
    }


def cmd_run(args) -> int:
    from maxwell.tray_app import MaxwellTray

    app = MaxwellTray(settings_path=args.config)
    try:
        app.run()
    except KeyboardInterrupt:
        print("\nShutting down...")
    return 0


def cmd_status(args) -> int:
    data = _poll(args.config)
    if not data["waiting"] and not data["finished"]:
        print("All quiet.")
        return 0
    if data["waiting"]:
        print("Awaiting approval:")
        for message in data["waiting"]:
            print("  " + message.replace("\n", "  "))
    if data["finished"]:
        print("Finished:")
        for message in data["finished"]:
            print("  " + message.replace("\n", "  "))
    return 0


def cmd_json(args) -> int:
    print(json.dumps(_poll(args.config), indent=2, ensure_ascii=False))
    return 0


def cmd_remotes(args) -> int:
    settings = Settings.load(args.config)
    if args.remotes_action:
        return _edit_remotes(settings, args)
    if not settings.remotes:
        print(f"No remote hosts configured in {settings.path}")
        return 0
    for remote in settings.remotes:
        state = "enabled" if remote.enabled else "disabled"
        print(f"{remote.name}\t{remote.target}\t{remote.key_path}\t{state}")
    return 0


def _edit_remotes(settings: Settings, args) -> int:
    existing = {r.name: r for r in settings.remotes}
    if args.remotes_action == "add":
        if args.name in existing:
            print(f"Error: remote '{args.name}' already exists", file=sys.stderr)
            return 1
        settings.remotes.append(RemoteHost(
            name=args.name, host=args.host, user=args.user,
            key_path=args.key, enabled=not args.disabled,
        ))
    else:
        remote = existing.get(args.name)
        if remote is None:
            print(f"Error: no remote named '{args.name}'", file=sys.stderr)
            return 1
        if args.remotes_action == "remove":
            settings.remotes.remove(remote)
        else:
            remote.enabled = args.remotes_action == "enable"

    try:
        settings.save()
    except OSError as e:
        logger.error("Could not write %s: %s", settings.path, e)
        return 1
    print(f"Saved {settings.path} (use 'Reload settings' in the tray to apply)")
    return 0


def cmd_hook(args) -> int:
    data = sys.stdin.read()
    try:
        payload = json.loads(data) if data.strip() else {}
    except json.JSONDecodeError as e:
        print(f"Error: invalid hook JSON ({e})", file=sys.stderr)
        return 1
    if not isinstance(payload, dict):
        print("Error: hook JSON must be an object", file=sys.stderr)
        return 1

    try:
        if args.action == "pre-tool":
            if not args.tool:
                print("Usage: maxwell hook pre-tool <Tool>", file=sys.stderr)
                return 1
            hook.write_marker(args.tool, payload)
        elif args.action == "clear":
            hook.clear_marker(payload)
        else:
            hook.mark_stopped(payload)
    except OSError as e:
        logger.error("Hook %s failed: %s", args.action, e)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="maxwell", description="Claude session notifier")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--config", type=Path, default=None, help="settings file")
    parser.set_defaults(func=cmd_run)
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="start the tray notifier").set_defaults(func=cmd_run)
    sub.add_parser("status", help="poll once and print").set_defaults(func=cmd_status)
    sub.add_parser("json", help="poll once and print JSON").set_defaults(func=cmd_json)
    remotes_parser = sub.add_parser("remotes", help="list or edit remote hosts")
    remotes_parser.set_defaults(func=cmd_remotes)
    remotes_sub = remotes_parser.add_subparsers(dest="remotes_action")
    add = remotes_sub.add_parser("add", help="add a remote host")
    add.add_argument("name")
    add.add_argument("host")
    add.add_argument("user")
    add.add_argument("--key", default="~/.ssh/id_rsa", help="ssh private key")
    add.add_argument("--disabled", action="store_true", help="add without polling it")
    for action in ("remove", "enable", "disable"):
        remotes_sub.add_parser(action, help=f"{action} a remote host").add_argument("name")

    hook_parser = sub.add_parser("hook", help="marker hooks (reads hook JSON on stdin)")
    hook_parser.add_argument("action", choices=["pre-tool", "clear", "stop"])
    hook_parser.add_argument("tool", nargs="?", default=None)
    hook_parser.set_defaults(func=cmd_hook)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
