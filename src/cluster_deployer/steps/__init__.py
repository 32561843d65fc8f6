"""Built-in deployment steps."""

from . import keys
from .build_check import CheckBuildResultStep, RunOn
from .deploy import (
    DEPLOY_STEPS,
    KubernetesDeploymentStep,
    MarathonDeploymentStep,
    RemoteDeployStep,
    SwarmDeploymentStep,
)
from .enable_ports import EnablePortsStep
from .provisioning import (
    ClusterInfoStep,
    ResourceGroupStep,
    TemplateDeployStep,
    TemplateMonitorStep,
    ValidateClusterStep,
)

__all__ = [
    "keys",
    "CheckBuildResultStep",
    "RunOn",
    "DEPLOY_STEPS",
    "KubernetesDeploymentStep",
    "MarathonDeploymentStep",
    "RemoteDeployStep",
    "SwarmDeploymentStep",
    "EnablePortsStep",
    "ClusterInfoStep",
    "ResourceGroupStep",
    "TemplateDeployStep",
    "TemplateMonitorStep",
    "ValidateClusterStep",
]
