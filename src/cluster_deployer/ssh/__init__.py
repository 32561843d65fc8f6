"""SSH utilities for cluster-deployer."""

from .credentials import (
    DCOS_SSH_PORT,
    KUBERNETES_SSH_PORT,
    SWARM_SSH_PORT,
    SSHCredentials,
)
from .session import (
    RemoteCommandError,
    SSHCommandResult,
    SSHConnectionError,
    SSHSession,
    escape_single_quote,
)

__all__ = [
    "DCOS_SSH_PORT",
    "KUBERNETES_SSH_PORT",
    "SWARM_SSH_PORT",
    "SSHCredentials",
    "RemoteCommandError",
    "SSHCommandResult",
    "SSHConnectionError",
    "SSHSession",
    "escape_single_quote",
]
