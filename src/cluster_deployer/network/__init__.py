"""Firewall / load balancer models and the exposure reconciler."""

from .models import (
    Access,
    Direction,
    HealthProbe,
    LoadBalancer,
    LoadBalancerRule,
    NetworkRule,
    RuleGroup,
)
from .remote import RemoteNetworkState
from .reconciler import (
    LOWEST_PRIORITY,
    PRIORITY_STEP,
    NetworkExposureReconciler,
    ReconcileResult,
    filter_ports_to_open,
)

__all__ = [
    "Access",
    "Direction",
    "HealthProbe",
    "LoadBalancer",
    "LoadBalancerRule",
    "NetworkRule",
    "RuleGroup",
    "RemoteNetworkState",
    "LOWEST_PRIORITY",
    "PRIORITY_STEP",
    "NetworkExposureReconciler",
    "ReconcileResult",
    "filter_ports_to_open",
]
