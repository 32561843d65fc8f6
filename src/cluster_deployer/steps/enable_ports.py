"""Expose the ports published by the deployed services."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import NetworkConfig
from ..errors import (
    CancellationError,
    InvalidConfigError,
    InvalidFormatError,
    PollTimeoutError,
    QuotaExceededError,
    RemoteStateError,
)
from ..network import NetworkExposureReconciler, RemoteNetworkState
from ..pipeline.context import DeploymentContext
from ..pipeline.models import DeploymentState
from ..pipeline.step import Step
from ..ports.deployment_config import build_deployment_config
from . import keys

logger = logging.getLogger(__name__)


class EnablePortsStep(Step):
    """Open the agent firewall and load balancer for every published port."""

    key = keys.ENABLE_PORTS

    def __init__(self, remote: RemoteNetworkState, network: Optional[NetworkConfig] = None) -> None:
        self.remote = remote
        self.network = network or NetworkConfig()

    def execute(self, context: DeploymentContext) -> None:
        inputs = context.inputs
        try:
            config = build_deployment_config(
                inputs.orchestrator, inputs.config_file_patterns, inputs.workspace, inputs.env
            )
            ports = config.service_ports()
        except InvalidFormatError as exc:
            context.log_error("Error parsing the published ports: ", exc)
            return
        except (OSError, ValueError) as exc:
            context.log_error("Error loading the deployment configuration: ", exc)
            return

        context.outputs.exposed_ports = ports
        if ports:
            context.log_status("Published ports: " + ", ".join(str(port) for port in ports))

        reconciler = NetworkExposureReconciler(
            self.remote,
            sink=context.sink,
            confirm_changes=self.network.confirm_changes,
            confirmation=self.network.confirmation,
            cancel_event=context.cancel_event,
        )
        try:
            result = reconciler.reconcile(inputs.resource_group, config.resource_prefix, ports)
        except (InvalidConfigError, QuotaExceededError) as exc:
            context.log_error("Cannot expose the published ports: ", exc)
            return
        except RemoteStateError as exc:
            context.log_error("Error updating network resources: ", exc)
            return
        except (CancellationError, PollTimeoutError) as exc:
            context.log_error("Network rules were not confirmed: ", exc)
            return

        context.outputs.reconcile_result = result
        if result.changed:
            context.log_status(
                f"🔓 Created {len(result.security_rules)} security rules and "
                f"{len(result.load_balancer_rules)} load balancing rules"
            )
        else:
            context.log_status("All published ports are already exposed")
        context.state = DeploymentState.SUCCESS
