from enum import Enum
from dataclasses import dataclass, field
from typing import Optional

from maxwell.defaults import (
    COMMAND_WIDTH,
    ELLIPSIS,
    FINISHED_FALLBACK,
    FINISHED_ICON,
    FOLDER_ICON,
    PROMPT_WIDTH,
)


class ToolKind(Enum):
    BASH = "Bash"
    EDIT = "Edit"
    WRITE = "Write"
    READ = "Read"
    OTHER = "Other"

    @classmethod
    def parse(cls, value) -> "ToolKind":
        for kind in cls:
            if kind.value == value:
                return kind
        return cls.OTHER

    @property
    def icon(self) -> str:
        return TOOL_ICONS[self]


TOOL_ICONS = {
    ToolKind.BASH: "\U0001f5a5\ufe0f",   # desktop computer
    ToolKind.EDIT: "\u270f\ufe0f",       # pencil
    ToolKind.WRITE: "\U0001f4dd",        # memo
    ToolKind.READ: "\U0001f4d6",         # open book
    ToolKind.OTHER: "\u26a0\ufe0f",      # warning sign
}


def truncate(text: str, width: int) -> str:
    if len(text) > width:
        return text[:width] + ELLIPSIS
    return text


def short_folder(cwd: str) -> str:
    """Last two path segments of a working directory."""
    return "/".join(cwd.split("/")[-2:])


def project_folder(project_dir_name: str) -> str:
    """Last two segments of a project directory name such as ``-Users-x-proj``."""
    return "/".join(project_dir_name.split("-")[-2:])


@dataclass
class ToolMarker:
    """A pending tool invocation waiting for the user's approval."""

    tool: ToolKind
    command: str
    working_directory: str
    created_at: float
    session_id: str
    tool_name: str = ""
    remote: bool = False  # informational

    @classmethod
    def from_json(cls, data) -> Optional["ToolMarker"]:
        """Build a marker from a decoded JSON object.

        Returns None when a required field is missing or has the wrong type,
        which is how a half-written file looks to a concurrent reader.
        """
        if not isinstance(data, dict):
            return None
        cwd = data.get("cwd")
        created = data.get("time")
        session = data.get("session")
        if not isinstance(cwd, str) or not isinstance(session, str):
            return None
        if isinstance(created, bool) or not isinstance(created, (int, float)):
            return None
        raw_tool = data.get("tool")
        tool_name = raw_tool if isinstance(raw_tool, str) and raw_tool else ""
        command = data.get("cmd")
        return cls(
            tool=ToolKind.parse(tool_name),
            command=command if isinstance(command, str) else "",
            working_directory=cwd,
            created_at=created,
            session_id=session,
            tool_name=tool_name,
            remote=bool(data.get("remote", False)),
        )

    def age(self, now: float) -> float:
        return now - self.created_at

    @property
    def label(self) -> str:
        if self.command:
            return truncate(self.command, COMMAND_WIDTH)
        return self.tool_name or self.tool.value

    @property
    def message(self) -> str:
        return f"{self.tool.icon} {self.label}\n{FOLDER_ICON} {short_folder(self.working_directory)}"


@dataclass
class FinishedSession:
    """A session whose assistant replied and nobody has looked at it yet."""

    session_id: str
    project_dir: str
    prompt: str = ""

    @property
    def message(self) -> str:
        prompt = " ".join(self.prompt.split())
        label = truncate(prompt, PROMPT_WIDTH) if prompt else FINISHED_FALLBACK
        return f"{FINISHED_ICON} {label}\n{FOLDER_ICON} {project_folder(self.project_dir)}"


@dataclass
class PollResult:
    waiting_messages: list[str] = field(default_factory=list)
    finished: list[FinishedSession] = field(default_factory=list)
    # Dismissed sessions that would otherwise still be in `finished`
    dismissed_finished: frozenset[str] = frozenset()

    @property
    def finished_messages(self) -> list[str]:
        return [f.message for f in self.finished]

    @property
    def finished_session_ids(self) -> set[str]:
        return {f.session_id for f in self.finished}


@dataclass
class RemoteHost:
    name: str
    host: str
    user: str
    key_path: str = "~/.ssh/id_rsa"
    enabled: bool = True

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    @property
    def label(self) -> str:
        return f"[{self.name}] "
