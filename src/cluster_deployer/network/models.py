"""Firewall and load balancer resource models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import InvalidConfigError
from ..ports.models import Protocol

WILDCARD = "*"


class Access(str, Enum):
    ALLOW = "Allow"
    DENY = "Deny"


class Direction(str, Enum):
    INBOUND = "Inbound"
    OUTBOUND = "Outbound"


def _enum_value(enum_type, value):
    if isinstance(value, enum_type):
        return value
    for member in enum_type:
        if str(value).lower() == member.value.lower():
            return member
    raise ValueError(f"Unknown {enum_type.__name__}: {value!r}")


@dataclass
class NetworkRule:
    """One security rule of a rule group."""

    name: str
    priority: int
    destination_port_range: str
    access: Access = Access.ALLOW
    direction: Direction = Direction.INBOUND
    protocol: str = WILDCARD
    source_address: str = WILDCARD
    source_port_range: str = WILDCARD
    destination_address: str = WILDCARD
    description: str = ""

    def is_inbound_allow(self) -> bool:
        return self.direction == Direction.INBOUND and self.access == Access.ALLOW

    def port_bounds(self) -> Optional[tuple]:
        """Return ``(start, end)`` of the destination ports, ``None`` for ``*``."""
        spec = self.destination_port_range.strip()
        if spec == WILDCARD:
            return None
        start, sep, end = spec.partition("-")
        try:
            low = int(start)
            high = int(end) if sep else low
        except ValueError:
            raise InvalidConfigError(
                f"Security rule '{self.name}' has an invalid destination port range '{spec}'"
            ) from None
        return low, high

    def covers(self, port: int) -> bool:
        bounds = self.port_bounds()
        if bounds is None:
            return True
        return bounds[0] <= port <= bounds[1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "priority": self.priority,
            "destination_port_range": self.destination_port_range,
            "access": self.access.value,
            "direction": self.direction.value,
            "protocol": self.protocol,
            "source_address": self.source_address,
            "source_port_range": self.source_port_range,
            "destination_address": self.destination_address,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkRule":
        return cls(
            name=data["name"],
            priority=int(data["priority"]),
            destination_port_range=str(data.get("destination_port_range", WILDCARD)),
            access=_enum_value(Access, data.get("access", Access.ALLOW.value)),
            direction=_enum_value(Direction, data.get("direction", Direction.INBOUND.value)),
            protocol=data.get("protocol", WILDCARD),
            source_address=data.get("source_address", WILDCARD),
            source_port_range=data.get("source_port_range", WILDCARD),
            destination_address=data.get("destination_address", WILDCARD),
            description=data.get("description", ""),
        )


@dataclass
class RuleGroup:
    """A named set of security rules (network security group)."""

    name: str
    rules: List[NetworkRule] = field(default_factory=list)

    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "rules": [rule.to_dict() for rule in self.rules]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleGroup":
        return cls(
            name=data["name"],
            rules=[NetworkRule.from_dict(rule) for rule in data.get("rules", []) or []],
        )


@dataclass
class HealthProbe:
    name: str
    port: int
    protocol: Protocol = Protocol.TCP

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "port": self.port, "protocol": self.protocol.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthProbe":
        return cls(
            name=data["name"],
            port=int(data["port"]),
            protocol=Protocol.parse(data.get("protocol")),
        )


@dataclass
class LoadBalancerRule:
    """Forwarding rule from a frontend port to a backend pool port."""

    name: str
    frontend_port: int
    backend_port: int
    protocol: Protocol
    frontend: str
    backend: str
    probe: Optional[str] = None
    idle_timeout_minutes: int = 4
    load_distribution: str = "Default"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "frontend_port": self.frontend_port,
            "backend_port": self.backend_port,
            "protocol": self.protocol.value,
            "frontend": self.frontend,
            "backend": self.backend,
            "probe": self.probe,
            "idle_timeout_minutes": self.idle_timeout_minutes,
            "load_distribution": self.load_distribution,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoadBalancerRule":
        return cls(
            name=data["name"],
            frontend_port=int(data["frontend_port"]),
            backend_port=int(data["backend_port"]),
            protocol=Protocol.parse(data.get("protocol")),
            frontend=data.get("frontend", ""),
            backend=data.get("backend", ""),
            probe=data.get("probe"),
            idle_timeout_minutes=int(data.get("idle_timeout_minutes", 4)),
            load_distribution=data.get("load_distribution", "Default"),
        )


@dataclass
class LoadBalancer:
    """Load balancer with its frontend IP configurations and backend pools."""

    name: str
    frontends: List[str] = field(default_factory=list)
    backends: List[str] = field(default_factory=list)
    rules: List[LoadBalancerRule] = field(default_factory=list)
    probes: List[HealthProbe] = field(default_factory=list)

    def find_rule(self, frontend_port: int, protocol: Protocol) -> Optional[LoadBalancerRule]:
        for rule in self.rules:
            if rule.frontend_port == frontend_port and rule.protocol == protocol:
                return rule
        return None

    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "frontends": list(self.frontends),
            "backends": list(self.backends),
            "rules": [rule.to_dict() for rule in self.rules],
            "probes": [probe.to_dict() for probe in self.probes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoadBalancer":
        return cls(
            name=data["name"],
            frontends=list(data.get("frontends", []) or []),
            backends=list(data.get("backends", []) or []),
            rules=[LoadBalancerRule.from_dict(r) for r in data.get("rules", []) or []],
            probes=[HealthProbe.from_dict(p) for p in data.get("probes", []) or []],
        )
