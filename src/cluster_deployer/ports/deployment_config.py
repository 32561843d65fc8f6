"""Orchestrator-specific deployment configuration."""

from __future__ import annotations

import glob
import os
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from string import Template
from typing import List, Mapping, Optional, Sequence

from .models import ServicePort
from .parser import ConfigSource, parse_all, parse_compose_ports, parse_marathon_ports


class OrchestratorType(str, Enum):
    """Container orchestrators a cluster can run."""
    DCOS = "dcos"
    SWARM = "swarm"
    KUBERNETES = "kubernetes"

    @classmethod
    def parse(cls, value: str) -> "OrchestratorType":
        normalized = value.strip().lower()
        aliases = {"marathon": cls.DCOS, "mesos": cls.DCOS, "k8s": cls.KUBERNETES}
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            supported = ", ".join(t.value for t in cls)
            raise ValueError(f"Unsupported orchestrator '{value}' (supported: {supported})") from None


def expand_variables(text: str, env: Optional[Mapping[str, str]] = None) -> str:
    """Replace ``$VAR`` and ``${VAR}`` with values from ``env``; unknown names stay."""
    return Template(text).safe_substitute(os.environ if env is None else env)


class DeploymentConfig(ABC):
    """The config files of one deployment and the ports they publish."""

    def __init__(self, config_files: Sequence[ConfigSource]) -> None:
        self.config_files = list(config_files)

    @property
    @abstractmethod
    def resource_prefix(self) -> str:
        """Name prefix of the cluster's agent network resources."""

    @abstractmethod
    def service_ports(self) -> List[ServicePort]:
        ...


class MarathonDeploymentConfig(DeploymentConfig):
    file_suffix = "json"

    @property
    def resource_prefix(self) -> str:
        return "dcos"

    def service_ports(self) -> List[ServicePort]:
        return parse_all(parse_marathon_ports, self.config_files)


class SwarmDeploymentConfig(DeploymentConfig):
    file_suffix = "yml"

    @property
    def resource_prefix(self) -> str:
        return "swarm"

    def service_ports(self) -> List[ServicePort]:
        return parse_all(parse_compose_ports, self.config_files)


class KubernetesDeploymentConfig(DeploymentConfig):
    file_suffix = "yml"

    @property
    def resource_prefix(self) -> str:
        return "k8s"

    def service_ports(self) -> List[ServicePort]:
        # Kubernetes opens security rules for its services itself.
        return []


_CONFIG_TYPES = {
    OrchestratorType.DCOS: MarathonDeploymentConfig,
    OrchestratorType.SWARM: SwarmDeploymentConfig,
    OrchestratorType.KUBERNETES: KubernetesDeploymentConfig,
}


def resolve_config_files(
    patterns: str,
    workspace: Path,
    env: Optional[Mapping[str, str]] = None,
) -> List[Path]:
    """Resolve comma separated glob patterns relative to ``workspace``."""
    expanded = expand_variables(patterns, env)
    matches: List[Path] = []
    for pattern in (p.strip() for p in expanded.split(",")):
        if not pattern:
            continue
        for match in sorted(glob.glob(str(workspace / pattern), recursive=True)):
            path = Path(match)
            if path.is_file() and path not in matches:
                matches.append(path)
    return matches


def build_deployment_config(
    orchestrator: OrchestratorType,
    patterns: str,
    workspace: Path,
    env: Optional[Mapping[str, str]] = None,
) -> DeploymentConfig:
    """Load the config files matching ``patterns`` for ``orchestrator``."""
    files = resolve_config_files(patterns, workspace, env)
    if not files:
        raise ValueError(f"No configuration files found for '{patterns}' in {workspace}")
    return _CONFIG_TYPES[orchestrator]([ConfigSource.from_path(path) for path in files])
