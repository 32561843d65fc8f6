"""SSH session management built on Paramiko."""

from __future__ import annotations

import io
import logging
import socket
from dataclasses import dataclass
from typing import Callable, Optional

import paramiko

from .credentials import SSHCredentials

logger = logging.getLogger(__name__)


class SSHConnectionError(RuntimeError):
    """Raised when an SSH connection cannot be established."""

    pass


class RemoteCommandError(RuntimeError):
    """Raised when a remote command exits with a non-zero status."""

    def __init__(self, result: "SSHCommandResult") -> None:
        self.result = result
        detail = result.stderr or result.stdout
        super().__init__(
            f"Remote command exited with status {result.exit_status}: {result.command}"
            + (f"\n{detail}" if detail else "")
        )


@dataclass
class SSHCommandResult:
    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


def escape_single_quote(arg: str) -> str:
    """Escape ``'`` so ``arg`` can be wrapped in single quotes in a shell command.

    ``let's go`` becomes ``let'"'"'s go``; quoted that reads
    ``'let'"'"'s go'``, the concatenation of ``'let'``, ``"'"`` and ``'s go'``.
    """
    return arg.replace("'", "'\"'\"'")


class SSHSession:
    """High-level wrapper around paramiko.SSHClient."""

    def __init__(
        self,
        credentials: SSHCredentials,
        *,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
    ) -> None:
        self.credentials = credentials
        self._client_factory = client_factory or paramiko.SSHClient
        self._client: Optional[paramiko.SSHClient] = None

    @property
    def host(self) -> str:
        return self.credentials.host

    def __enter__(self) -> "SSHSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def connect(self) -> None:
        if self._client:
            return
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            connect_kwargs = {
                "hostname": self.credentials.host,
                "port": self.credentials.port,
                "username": self.credentials.username,
                "timeout": self.credentials.timeout,
                "look_for_keys": False,
                "allow_agent": False,
            }
            if self.credentials.auth_method == "password":
                connect_kwargs["password"] = self.credentials.password
            else:
                connect_kwargs["key_filename"] = self.credentials.key_path
                if self.credentials.passphrase:
                    connect_kwargs["passphrase"] = self.credentials.passphrase
            client.connect(**connect_kwargs)
        except Exception as exc:  # pragma: no cover - network errors hard to simulate
            client.close()
            raise SSHConnectionError(str(exc)) from exc
        self._client = client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def run(self, command: str, *, timeout: Optional[int] = 600) -> SSHCommandResult:
        """Execute a command on the remote server and wait for it to finish."""
        if not self._client:
            self.connect()
        assert self._client is not None

        logger.debug("Executing remote command on %s: %s", self.host, command)
        _, stdout, stderr = self._client.exec_command(command, timeout=timeout)
        try:
            exit_status = stdout.channel.recv_exit_status()
            stdout_text = stdout.read().decode("utf-8", errors="replace")
            stderr_text = stderr.read().decode("utf-8", errors="replace")
        except socket.timeout:
            stdout.channel.close()
            return SSHCommandResult(
                command=command,
                stdout="",
                stderr=f"TIMEOUT: Command did not complete within {timeout} seconds.",
                exit_status=-1,
            )

        return SSHCommandResult(
            command=command,
            stdout=stdout_text.strip(),
            stderr=stderr_text.strip(),
            exit_status=exit_status,
        )

    def execute(self, command: str, *, timeout: Optional[int] = 600) -> str:
        """Like :meth:`run` but raise :class:`RemoteCommandError` on failure."""
        result = self.run(command, timeout=timeout)
        if not result.ok:
            raise RemoteCommandError(result)
        return result.stdout

    def copy_to(self, content: bytes, remote_path: str) -> None:
        """Upload ``content`` to ``remote_path`` over SFTP."""
        if not self._client:
            self.connect()
        assert self._client is not None

        sftp = self._client.open_sftp()
        try:
            sftp.putfo(io.BytesIO(content), remote_path)
        finally:
            sftp.close()
