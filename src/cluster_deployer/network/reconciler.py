"""Open the published service ports on the cluster's agent firewall and load balancer.

The reconciler lists the current security rules and load balancing rules of
a resource group, works out which of the desired ports are not reachable yet
and applies only those additions, one batched update per resource.

Listing and applying is a plain read-modify-write without a concurrency
token: a change made by someone else between the two calls is overwritten.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from ..config import PollingConfig
from ..errors import InvalidConfigError, QuotaExceededError
from ..ports.models import Protocol, ServicePort
from ..utils.logging import LogSink
from ..utils.polling import wait_until
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

logger = logging.getLogger(__name__)

# Increment between the priorities of two security rules we create.
PRIORITY_STEP = 10
# Valid priorities are [100, 4096]; a smaller number is evaluated first.
HIGHEST_PRIORITY = 100
LOWEST_PRIORITY = 4096

LOAD_BALANCER_IDLE_TIMEOUT_IN_MINUTES = 5
LOAD_DISTRIBUTION_DEFAULT = "Default"


def security_group_prefix(resource_prefix: str) -> str:
    return f"{resource_prefix}-agent-public-nsg-"


def load_balancer_prefix(resource_prefix: str) -> str:
    return f"{resource_prefix}-agent-lb-"


def security_rule_name(port: int) -> str:
    return f"Allow_{port}"


def load_balancer_rule_name(port: ServicePort) -> str:
    return f"JLBRule{port.protocol.value}{port.external_port}"


def probe_name(port: int) -> str:
    return f"tcpPort{port}Probe"


@dataclass
class ReconcileResult:
    """What a reconciliation created."""

    rule_group: Optional[str] = None
    load_balancer: Optional[str] = None
    security_rules: List[NetworkRule] = field(default_factory=list)
    load_balancer_rules: List[LoadBalancerRule] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.security_rules or self.load_balancer_rules)


@dataclass
class _SecurityPlan:
    group: RuleGroup
    additions: List[NetworkRule]


@dataclass
class _LoadBalancerPlan:
    balancer: LoadBalancer
    rules: List[LoadBalancerRule]
    probes: List[HealthProbe]


def filter_ports_to_open(
    rules: Iterable[NetworkRule],
    ports_to_open: Set[int],
    sink: Optional[LogSink] = None,
) -> Optional[int]:
    """Drop the ports already allowed by ``rules`` from ``ports_to_open``.

    Returns the highest priority seen, ``None`` when there are no rules.
    Deny rules are left alone: a port the user denied explicitly stays
    denied, the allow rule we add later gets a lower priority.
    """
    max_priority: Optional[int] = None
    for rule in rules:
        if max_priority is None or rule.priority > max_priority:
            max_priority = rule.priority

        if not rule.is_inbound_allow():
            continue

        if rule.port_bounds() is None:
            _status(sink, f"Security rule '{rule.name}' already allows all ports ({rule.destination_port_range})")
            ports_to_open.clear()
            continue

        for port in sorted(ports_to_open):
            if rule.covers(port):
                _status(
                    sink,
                    f"Security rule '{rule.name}' ({rule.destination_port_range}) already allows port {port}",
                )
                ports_to_open.discard(port)

    return max_priority


def _status(sink: Optional[LogSink], message: str) -> None:
    if sink is not None:
        sink.status(message)
    else:
        logger.info(message)


class NetworkExposureReconciler:
    """Makes the agent firewall and load balancer expose a set of service ports."""

    def __init__(
        self,
        remote: RemoteNetworkState,
        *,
        sink: Optional[LogSink] = None,
        confirm_changes: bool = True,
        confirmation: Optional[PollingConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.remote = remote
        self.sink = sink or LogSink(__name__)
        self.confirm_changes = confirm_changes
        self.confirmation = confirmation or PollingConfig(
            interval_seconds=5.0, timeout_seconds=300.0, max_attempts=12
        )
        self.cancel_event = cancel_event

    def reconcile(
        self,
        resource_group: str,
        resource_prefix: str,
        service_ports: Sequence[ServicePort],
    ) -> ReconcileResult:
        """Plan both passes, then apply them.

        Everything is validated before the first update is sent, so an
        :class:`InvalidConfigError` or :class:`QuotaExceededError` leaves the
        remote state untouched.
        """
        result = ReconcileResult()
        if not service_ports:
            self.sink.status("No service ports to expose")
            return result

        security_plan = self.plan_security_rules(resource_group, resource_prefix, service_ports)
        balancer_plan = self.plan_load_balancer_rules(resource_group, resource_prefix, service_ports)

        if security_plan is not None:
            result.rule_group = security_plan.group.name
            if security_plan.additions:
                updated = replace(
                    security_plan.group,
                    rules=list(security_plan.group.rules) + security_plan.additions,
                )
                self.remote.apply_rule_group(resource_group, updated)
                result.security_rules = list(security_plan.additions)

        if balancer_plan is not None:
            result.load_balancer = balancer_plan.balancer.name
            if balancer_plan.rules:
                balancer = balancer_plan.balancer
                updated_balancer = replace(
                    balancer,
                    rules=list(balancer.rules) + balancer_plan.rules,
                    probes=list(balancer.probes) + balancer_plan.probes,
                )
                self.remote.apply_load_balancer(resource_group, updated_balancer)
                result.load_balancer_rules = list(balancer_plan.rules)

        if result.changed and self.confirm_changes:
            self.wait_until_visible(resource_group, result)
        return result

    def plan_security_rules(
        self,
        resource_group: str,
        resource_prefix: str,
        service_ports: Sequence[ServicePort],
    ) -> Optional[_SecurityPlan]:
        prefix = security_group_prefix(resource_prefix)
        group = self._find_rule_group(resource_group, prefix)
        if group is None:
            self.sink.status(
                f"Security group '{prefix}*' not found in resource group '{resource_group}', "
                "skipping security rules"
            )
            return None

        ports_to_open = {port.external_port for port in service_ports}
        max_priority = filter_ports_to_open(group.rules, ports_to_open, self.sink)
        priority = max_priority if max_priority is not None else HIGHEST_PRIORITY - PRIORITY_STEP

        additions: List[NetworkRule] = []
        for port in sorted(ports_to_open):
            self.sink.status(f"Security rule for port {port} not found")
            priority += PRIORITY_STEP
            if priority > LOWEST_PRIORITY:
                raise QuotaExceededError(
                    f"Cannot allocate a priority for port {port} in security group '{group.name}': "
                    f"{priority} exceeds the maximum {LOWEST_PRIORITY}"
                )
            name = security_rule_name(port)
            self.sink.status(f"Creating security rule for port {port} with name {name} (priority {priority})")
            additions.append(
                NetworkRule(
                    name=name,
                    priority=priority,
                    destination_port_range=str(port),
                    access=Access.ALLOW,
                    direction=Direction.INBOUND,
                    source_address="Internet",
                    description=f"Allow traffic from the Internet to port {port}",
                )
            )
        return _SecurityPlan(group=group, additions=additions)

    def plan_load_balancer_rules(
        self,
        resource_group: str,
        resource_prefix: str,
        service_ports: Sequence[ServicePort],
    ) -> Optional[_LoadBalancerPlan]:
        prefix = load_balancer_prefix(resource_prefix)
        balancer = self._find_load_balancer(resource_group, prefix)
        if balancer is None:
            self.sink.status(
                f"Load balancer '{prefix}*' not found in resource group '{resource_group}', "
                "skipping load balancing rules"
            )
            return None

        frontend = balancer.frontends[0]
        backend = balancer.backends[0]
        existing_probes = {probe.name for probe in balancer.probes}
        seen: Set[Tuple[int, Protocol]] = set()
        rules: List[LoadBalancerRule] = []
        probes: List[HealthProbe] = []

        for port in service_ports:
            key = (port.external_port, port.protocol)
            if key in seen:
                continue
            seen.add(key)

            if balancer.find_rule(port.external_port, port.protocol) is not None:
                self.sink.status(
                    f"Load balancing rule for port {port.external_port}/{port.protocol.value} found"
                )
                continue

            rule_name = load_balancer_rule_name(port)
            self.sink.status(
                f"Creating load balancing rule for port {port.external_port} with name {rule_name}"
            )
            # There is no UDP probe type, so every rule is probed over TCP.
            probe = probe_name(port.external_port)
            if probe not in existing_probes:
                probes.append(HealthProbe(name=probe, port=port.external_port, protocol=Protocol.TCP))
                existing_probes.add(probe)
            rules.append(
                LoadBalancerRule(
                    name=rule_name,
                    frontend_port=port.external_port,
                    backend_port=port.external_port,
                    protocol=port.protocol,
                    frontend=frontend,
                    backend=backend,
                    probe=probe,
                    idle_timeout_minutes=LOAD_BALANCER_IDLE_TIMEOUT_IN_MINUTES,
                    load_distribution=LOAD_DISTRIBUTION_DEFAULT,
                )
            )
        return _LoadBalancerPlan(balancer=balancer, rules=rules, probes=probes)

    def wait_until_visible(self, resource_group: str, result: ReconcileResult) -> None:
        """Poll the remote listing until every created rule shows up."""
        expected_rules = {rule.name for rule in result.security_rules}
        expected_lb_rules = {rule.name for rule in result.load_balancer_rules}

        def check() -> Optional[bool]:
            if expected_rules:
                group = self._get_rule_group(resource_group, result.rule_group)
                if group is None or not expected_rules.issubset(group.rule_names()):
                    return None
            if expected_lb_rules:
                balancer = self._get_load_balancer(resource_group, result.load_balancer)
                if balancer is None or not expected_lb_rules.issubset(balancer.rule_names()):
                    return None
            return True

        wait_until(
            check,
            description=f"new network rules in resource group '{resource_group}'",
            interval=self.confirmation.interval_seconds,
            timeout=self.confirmation.timeout_seconds,
            max_attempts=self.confirmation.max_attempts,
            cancel_event=self.cancel_event,
        )
        self.sink.status("New network rules are in effect")

    def _find_rule_group(self, resource_group: str, prefix: str) -> Optional[RuleGroup]:
        for group in self.remote.list_rule_groups(resource_group):
            if group.name.startswith(prefix):
                return group
        return None

    def _find_load_balancer(self, resource_group: str, prefix: str) -> Optional[LoadBalancer]:
        for balancer in self.remote.list_load_balancers(resource_group):
            if not balancer.name.startswith(prefix):
                continue
            if len(balancer.backends) != 1 or len(balancer.frontends) != 1:
                raise InvalidConfigError(
                    f"Load balancer '{balancer.name}' must have exactly one backend pool and one "
                    f"frontend IP configuration (found {len(balancer.backends)} backend pools, "
                    f"{len(balancer.frontends)} frontends)"
                )
            return balancer
        return None

    def _get_rule_group(self, resource_group: str, name: Optional[str]) -> Optional[RuleGroup]:
        for group in self.remote.list_rule_groups(resource_group):
            if group.name == name:
                return group
        return None

    def _get_load_balancer(self, resource_group: str, name: Optional[str]) -> Optional[LoadBalancer]:
        for balancer in self.remote.list_load_balancers(resource_group):
            if balancer.name == name:
                return balancer
        return None
