"""Service port model and the config-file parsers that produce it."""

from .models import Protocol, ServicePort
from .parser import (
    ConfigSource,
    parse_compose_ports,
    parse_marathon_ports,
    parse_port_long_syntax,
    parse_port_short_syntax,
)
from .deployment_config import (
    DeploymentConfig,
    KubernetesDeploymentConfig,
    MarathonDeploymentConfig,
    OrchestratorType,
    SwarmDeploymentConfig,
    build_deployment_config,
    expand_variables,
    resolve_config_files,
)

__all__ = [
    "Protocol",
    "ServicePort",
    "ConfigSource",
    "parse_compose_ports",
    "parse_marathon_ports",
    "parse_port_long_syntax",
    "parse_port_short_syntax",
    "DeploymentConfig",
    "KubernetesDeploymentConfig",
    "MarathonDeploymentConfig",
    "OrchestratorType",
    "SwarmDeploymentConfig",
    "build_deployment_config",
    "expand_variables",
    "resolve_config_files",
]
