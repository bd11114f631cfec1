# Copyright (c) Syntropy Systems
"""Remote feature control: WP-CLI over SSH."""

from __future__ import annotations

import contextlib
import json
import logging
import shlex
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pydantic import TypeAdapter, ValidationError

from knockout.errors import RemoteConnectionError, ToggleError
from knockout.models.base import KnockoutBaseModel
from knockout.models.state import Feature

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one remote command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """Return True if the command exited cleanly."""
        return self.returncode == 0


class CommandChannel(Protocol):
    """Runs named commands on the server and returns their text output."""

    def open(self) -> None:
        ...

    def run(self, argv: Sequence[str]) -> CommandResult:
        ...

    def close(self) -> None:
        ...


class FeatureBackend(Protocol):
    """Lists and toggles features on the server under test."""

    def connect(self) -> None:
        ...

    def list_features(self) -> list[Feature]:
        ...

    def set_enabled(self, identifier: str, enabled: bool) -> None:
        ...

    def close(self) -> None:
        ...


def _run(argv: list[str], timeout: float, what: str) -> CommandResult:
    try:
        proc = subprocess.run(  # noqa: S603
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            start_new_session=True,  # Ctrl-C reaches knockout only
        )
    except FileNotFoundError as e:
        msg = f"{argv[0]} not found on PATH"
        raise RemoteConnectionError(msg) from e
    except subprocess.TimeoutExpired as e:
        msg = f"{what} timed out after {timeout:.0f}s"
        raise RemoteConnectionError(msg) from e
    except OSError as e:
        msg = f"{what} failed: {e}"
        raise RemoteConnectionError(msg) from e

    return CommandResult(proc.returncode, proc.stdout, proc.stderr)


class LocalChannel:
    """Runs commands on this machine (WordPress installed locally)."""

    timeout: float

    def __init__(self, timeout: float = 120.0) -> None:
        self.timeout = timeout

    def open(self) -> None:
        """Nothing to open for local execution."""

    def run(self, argv: Sequence[str]) -> CommandResult:
        """Run argv locally."""
        return _run(list(argv), self.timeout, f"'{shlex.join(argv)}'")

    def close(self) -> None:
        """Nothing to release for local execution."""


class SSHChannel:
    """Runs commands on a remote host through the system ``ssh`` client.

    :meth:`open` starts a multiplexed master connection so that each command
    reuses one authenticated session; :meth:`close` shuts it down. Key-based
    authentication is required (``BatchMode=yes``), there is no password
    prompt to answer.
    """

    host: str
    user: str | None
    port: int
    timeout: float
    ssh_binary: str
    _control_dir: tempfile.TemporaryDirectory[str] | None

    SSH_CONNECT_FAILED = 255

    def __init__(
        self,
        host: str,
        user: str | None = None,
        port: int = 22,
        timeout: float = 120.0,
        ssh_binary: str = "ssh",
    ) -> None:
        """Initialize the channel.

        Args:
            host: Remote hostname or address
            user: Login user (defaults to ssh's own default)
            port: SSH port
            timeout: Per-command timeout in seconds
            ssh_binary: ssh executable to invoke

        """
        self.host = host
        self.user = user
        self.port = port
        self.timeout = timeout
        self.ssh_binary = ssh_binary
        self._control_dir = None

    @property
    def target(self) -> str:
        """Return the ``user@host`` destination."""
        return f"{self.user}@{self.host}" if self.user else self.host

    @property
    def control_path(self) -> Path | None:
        """Return the master socket path, if a master is running."""
        if self._control_dir is None:
            return None
        return Path(self._control_dir.name) / "master.sock"

    def _base_argv(self) -> list[str]:
        argv = [
            self.ssh_binary,
            "-p",
            str(self.port),
            "-o",
            "BatchMode=yes",
        ]
        if self.control_path is not None:
            argv += ["-o", f"ControlPath={self.control_path}"]
        return argv

    def open(self) -> None:
        """Authenticate and start the master connection.

        Raises:
            RemoteConnectionError: If the host cannot be reached.

        """
        if self._control_dir is not None:
            return

        self._control_dir = tempfile.TemporaryDirectory(prefix="knockout-ssh-")
        argv = [*self._base_argv(), "-o", "ControlMaster=yes", "-f", "-N", self.target]
        logger.debug("Opening SSH master: %s", shlex.join(argv))
        try:
            result = _run(argv, self.timeout, f"SSH connection to {self.target}")
        except RemoteConnectionError:
            self._cleanup()
            raise

        if not result.ok:
            self._cleanup()
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            msg = f"Could not connect to {self.target}: {detail}"
            raise RemoteConnectionError(msg)

    def run(self, argv: Sequence[str]) -> CommandResult:
        """Run argv on the remote host."""
        remote_cmd = shlex.join(argv)
        full = [*self._base_argv(), self.target, "--", remote_cmd]
        result = _run(full, self.timeout, f"'{remote_cmd}' on {self.target}")
        if result.returncode == self.SSH_CONNECT_FAILED:
            detail = result.stderr.strip() or "connection lost"
            msg = f"SSH to {self.target} failed: {detail}"
            raise RemoteConnectionError(msg)
        return result

    def close(self) -> None:
        """Stop the master connection."""
        if self._control_dir is None:
            return
        argv = [*self._base_argv(), "-O", "exit", self.target]
        with contextlib.suppress(RemoteConnectionError):
            _ = _run(argv, 10.0, "SSH master shutdown")
        self._cleanup()

    def _cleanup(self) -> None:
        if self._control_dir is not None:
            with contextlib.suppress(OSError):
                self._control_dir.cleanup()
            self._control_dir = None


class _PluginRow(KnockoutBaseModel):
    name: str
    status: str
    title: str | None = None
    version: str | None = None


_PLUGIN_ROWS = TypeAdapter(list[_PluginRow])


class WPCLIBackend:
    """Feature backend driving WordPress plugins through WP-CLI.

    A plugin counts as enabled only when its status is ``active``; must-use
    and drop-in plugins cannot be toggled and are listed as disabled.
    """

    channel: CommandChannel
    wp_path: str | None
    wp_binary: str

    def __init__(
        self,
        channel: CommandChannel,
        wp_path: str | None = None,
        wp_binary: str = "wp",
    ) -> None:
        self.channel = channel
        self.wp_path = wp_path
        self.wp_binary = wp_binary

    def _wp(self, *args: str) -> list[str]:
        argv = [self.wp_binary, *args]
        if self.wp_path:
            argv.append(f"--path={self.wp_path}")
        return argv

    def connect(self) -> None:
        """Open the command channel."""
        self.channel.open()

    def list_features(self) -> list[Feature]:
        """Return every installed plugin with its activation state.

        Raises:
            RemoteConnectionError: If WP-CLI cannot be run or returns garbage.

        """
        result = self.channel.run(self._wp("plugin", "list", "--format=json"))
        if not result.ok:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            msg = f"wp plugin list failed: {detail}"
            raise RemoteConnectionError(msg)

        try:
            rows = _PLUGIN_ROWS.validate_python(json.loads(result.stdout))
        except (json.JSONDecodeError, ValidationError) as e:
            msg = f"Unexpected output from wp plugin list: {e}"
            raise RemoteConnectionError(msg) from e

        return [
            Feature(
                identifier=row.name,
                enabled=row.status == "active",
                title=row.title,
                version=row.version,
            )
            for row in rows
        ]

    def set_enabled(self, identifier: str, enabled: bool) -> None:
        """Activate or deactivate a plugin, returning once WP-CLI confirms.

        Raises:
            ToggleError: If the command fails or the connection drops.

        """
        action = "activate" if enabled else "deactivate"
        try:
            result = self.channel.run(self._wp("plugin", action, identifier))
        except RemoteConnectionError as e:
            raise ToggleError(identifier, enabled, str(e)) from e

        if not result.ok:
            detail = result.stderr.strip() or result.stdout.strip()
            raise ToggleError(identifier, enabled, detail)

        logger.debug("wp plugin %s %s: %s", action, identifier, result.stdout.strip())

    def close(self) -> None:
        """Release the command channel."""
        self.channel.close()
