"""Exception types shared by the parser, reconciler and pipeline steps."""

from __future__ import annotations


class DeployerError(RuntimeError):
    """Base class for every error raised by cluster-deployer."""

    pass


class InvalidFormatError(DeployerError):
    """Raised when a port declaration file cannot be parsed."""

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class InvalidConfigError(DeployerError):
    """Raised when remote network resources are not shaped as expected."""

    pass


class QuotaExceededError(DeployerError):
    """Raised when no security rule priority is left to allocate."""

    pass


class RemoteStateError(DeployerError):
    """Raised when listing or updating remote resources fails."""

    pass


class CancellationError(DeployerError):
    """Raised when a blocking wait is interrupted by a cancel request."""

    pass


class PollTimeoutError(DeployerError):
    """Raised when a polling loop exceeds its deadline."""

    pass
