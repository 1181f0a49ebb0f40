import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from maxwell.defaults import CONFIG_PATH
from maxwell.session_state import RemoteHost

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Remote hosts to watch, stored as ``{"remotes": [...]}`` in JSON."""

    remotes: list[RemoteHost] = field(default_factory=list)
    path: Path = CONFIG_PATH

    @property
    def enabled_remotes(self) -> list[RemoteHost]:
        return [r for r in self.remotes if r.enabled]

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Settings":
        """Read the settings file. A missing or unreadable file means no remotes."""
        path = Path(path) if path else CONFIG_PATH
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return cls(path=path)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable settings %s: %s", path, e)
            return cls(path=path)

        remotes = []
        for entry in data.get("remotes", []) if isinstance(data, dict) else []:
            remote = _remote_from_json(entry)
            if remote is None:
                logger.warning("Skipping malformed remote entry: %r", entry)
                continue
            remotes.append(remote)
        return cls(remotes=remotes, path=path)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"remotes": [_remote_to_json(r) for r in self.remotes]}
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, self.path)


def _remote_from_json(entry) -> Optional[RemoteHost]:
    if not isinstance(entry, dict):
        return None
    name = entry.get("name")
    host = entry.get("host")
    if not isinstance(name, str) or not isinstance(host, str) or not host:
        return None
    return RemoteHost(
        name=name,
        host=host,
        user=str(entry.get("user", "")),
        key_path=str(entry.get("keyPath", "~/.ssh/id_rsa")),
        enabled=bool(entry.get("enabled", True)),
    )


def _remote_to_json(remote: RemoteHost) -> dict:
    return {
        "name": remote.name,
        "host": remote.host,
        "user": remote.user,
        "keyPath": remote.key_path,
        "enabled": remote.enabled,
    }
