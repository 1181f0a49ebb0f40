"""Default configuration."""

import os
from pathlib import Path

# Monitoring
POLL_INTERVAL_SECONDS = 2.0

# Paths shared with the hook scripts
MARKER_DIR = Path(os.environ.get("MAXWELL_MARKER_DIR", "/tmp/maxwell_claude"))
STOPPED_DIR = Path(os.environ.get("MAXWELL_STOPPED_DIR", "/tmp/maxwell_claude_stopped"))
CLAUDE_PROJECTS = Path(
    os.environ.get("MAXWELL_PROJECTS_DIR", Path.home() / ".claude" / "projects")
)
CONFIG_PATH = Path(
    os.environ.get("MAXWELL_CONFIG", Path.home() / ".maxwell" / "config.json")
)

# Tool markers (seconds)
MARKER_TTL = 120
MARKER_MIN_AGE = 2
TRANSCRIPT_SKEW = 2

# Finished sessions (seconds)
FINISHED_MIN_AGE = 5
FINISHED_MAX_AGE = 300
STOPPED_MARKER_TTL = 300
TRANSCRIPT_TAIL_BYTES = 50000

# Message formatting
COMMAND_WIDTH = 20
PROMPT_WIDTH = 30
HOOK_COMMAND_WIDTH = 30
ELLIPSIS = "\u2026"
FOLDER_ICON = "\U0001f4c1"
FINISHED_ICON = "\u2705"
FINISHED_FALLBACK = "Finished"

# Remote hosts
SSH_CONNECT_TIMEOUT = 2
SSH_COMMAND_TIMEOUT = 10.0
REMOTE_MARKER_DIR = "/tmp/maxwell_claude"

# UI
TRAY_ICON_NAME = "dialog-information"
TRAY_TOOLTIP = "Maxwell"
