"""Service port value types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

MIN_PORT = 0
MAX_PORT = 65535


class Protocol(str, Enum):
    """Transport protocol of a published port."""
    TCP = "TCP"
    UDP = "UDP"

    @classmethod
    def parse(cls, value: str | None) -> "Protocol":
        """Anything other than ``udp`` (case-insensitive) maps to TCP."""
        if value is not None and str(value).strip().lower() == "udp":
            return cls.UDP
        return cls.TCP


@dataclass(frozen=True)
class ServicePort:
    """One externally reachable port mapping.

    ``external_port`` is the port published on the agents / load balancer,
    ``internal_port`` the port the container listens on.
    """

    external_port: int
    internal_port: int
    protocol: Protocol = Protocol.TCP

    def __post_init__(self) -> None:
        for name in ("external_port", "internal_port"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if not MIN_PORT <= value <= MAX_PORT:
                raise ValueError(f"{name} out of range [{MIN_PORT}, {MAX_PORT}]: {value}")
        if not isinstance(self.protocol, Protocol):
            object.__setattr__(self, "protocol", Protocol.parse(self.protocol))

    def __str__(self) -> str:
        return f"{self.external_port}:{self.internal_port}/{self.protocol.value}"

    def to_dict(self) -> dict:
        return {
            "external_port": self.external_port,
            "internal_port": self.internal_port,
            "protocol": self.protocol.value,
        }
