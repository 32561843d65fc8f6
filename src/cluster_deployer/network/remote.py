"""Interface of the control plane holding firewall and load balancer state."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from .models import LoadBalancer, RuleGroup


class RemoteNetworkState(ABC):
    """Query/mutate access to the network resources of a resource group.

    Implementations raise :class:`~cluster_deployer.errors.RemoteStateError`
    when a call against the control plane fails.
    """

    @abstractmethod
    def list_rule_groups(self, resource_group: str) -> List[RuleGroup]:
        pass

    @abstractmethod
    def list_load_balancers(self, resource_group: str) -> List[LoadBalancer]:
        pass

    @abstractmethod
    def apply_rule_group(self, resource_group: str, group: RuleGroup) -> None:
        """Replace the rule group with ``group`` (full rule list)."""
        pass

    @abstractmethod
    def apply_load_balancer(self, resource_group: str, balancer: LoadBalancer) -> None:
        """Replace the load balancer configuration with ``balancer``."""
        pass
