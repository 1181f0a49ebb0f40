import logging
import os
import subprocess

from maxwell.defaults import SSH_COMMAND_TIMEOUT, SSH_CONNECT_TIMEOUT
from maxwell.session_state import RemoteHost

logger = logging.getLogger(__name__)


class SshRunner:
    """Runs one non-interactive command on a remote host over ssh.

    Any failure (unreachable host, auth refused, timeout, missing ssh binary)
    comes back as empty output so one bad host never aborts a poll.
    """

    def __init__(
        self,
        connect_timeout: int = SSH_CONNECT_TIMEOUT,
        command_timeout: float = SSH_COMMAND_TIMEOUT,
        ssh_command: str = "ssh",
    ):
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._ssh = ssh_command

    def build_args(self, remote: RemoteHost, command: str) -> list[str]:
        return [
            self._ssh,
            "-o", "BatchMode=yes",
            "-o", f"ConnectTimeout={self._connect_timeout}",
            "-o", "StrictHostKeyChecking=no",
            "-i", os.path.expanduser(remote.key_path),
            remote.target,
            command,
        ]

    def run(self, remote: RemoteHost, command: str) -> str:
        try:
            result = subprocess.run(
                self.build_args(remote, command),
                capture_output=True, text=True, timeout=self._command_timeout,
            )
        except subprocess.TimeoutExpired:
            logger.debug("ssh to %s timed out", remote.name)
            return ""
        except OSError as e:
            logger.debug("ssh to %s failed: %s", remote.name, e)
            return ""
        # cat exits non-zero when no marker matches; ssh itself uses 255
        if result.returncode == 255:
            logger.debug("ssh to %s failed: %s", remote.name, result.stderr.strip())
            return ""
        return result.stdout
