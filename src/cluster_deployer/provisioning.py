"""Interface of the cloud provisioning API used by the pipeline steps."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class ProvisioningState(str, Enum):
    ACCEPTED = "Accepted"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"
    DELETING = "Deleting"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ProvisioningState":
        for member in cls:
            if value is not None and member.value.lower() == str(value).lower():
                return member
        return cls.RUNNING

    @property
    def is_failure(self) -> bool:
        return self in (ProvisioningState.FAILED, ProvisioningState.CANCELED, ProvisioningState.DELETING)


@dataclass
class DeploymentOperation:
    """One resource operation of a template deployment."""

    resource_name: Optional[str]
    resource_type: Optional[str]
    provisioning_state: ProvisioningState

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentOperation":
        target = data.get("target_resource") or {}
        return cls(
            resource_name=target.get("resource_name"),
            resource_type=target.get("resource_type"),
            provisioning_state=ProvisioningState.parse(data.get("provisioning_state")),
        )


@dataclass
class ContainerServiceInfo:
    """What the pipeline needs to know about a provisioned cluster."""

    name: str
    orchestrator: str
    master_fqdn: str
    admin_username: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContainerServiceInfo":
        return cls(
            name=data["name"],
            orchestrator=data.get("orchestrator", ""),
            master_fqdn=data.get("master_fqdn", ""),
            admin_username=data.get("admin_username", ""),
        )


class ClusterProvisioner(ABC):
    """Resource group, template deployment and cluster lookups.

    Implementations raise :class:`~cluster_deployer.errors.RemoteStateError`
    when the provisioning API call fails.
    """

    @abstractmethod
    def ensure_resource_group(self, name: str, location: Optional[str]) -> None:
        """Create the resource group unless it already exists."""
        pass

    @abstractmethod
    def list_resource_names(self, resource_group: str) -> List[str]:
        pass

    @abstractmethod
    def deploy_template(self, resource_group: str, template: Dict[str, Any]) -> str:
        """Start an incremental template deployment and return its name."""
        pass

    @abstractmethod
    def list_deployment_operations(self, resource_group: str, deployment_name: str) -> List[DeploymentOperation]:
        pass

    @abstractmethod
    def get_container_service(self, resource_group: str, name: str) -> Optional[ContainerServiceInfo]:
        """Return ``None`` when the cluster does not exist."""
        pass
