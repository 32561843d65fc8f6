"""Steps that make sure the target cluster exists and collect its details."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..config import PollingConfig
from ..errors import DeployerError
from ..pipeline.context import DeploymentContext
from ..pipeline.models import DeploymentState
from ..pipeline.step import Step
from ..ports.deployment_config import OrchestratorType
from ..provisioning import ClusterProvisioner, DeploymentOperation, ProvisioningState
from ..utils.polling import wait_until
from . import keys

logger = logging.getLogger(__name__)


class ResourceGroupStep(Step):
    """Create the resource group if it does not exist."""

    key = keys.RESOURCE_GROUP

    def __init__(self, provisioner: ClusterProvisioner) -> None:
        self.provisioner = provisioner

    def execute(self, context: DeploymentContext) -> None:
        name = context.inputs.resource_group
        context.log_status(f"Creating resource group '{name}' if it does not exist")
        try:
            self.provisioner.ensure_resource_group(name, context.inputs.location)
        except DeployerError as exc:
            context.log_error(f"Error creating resource group '{name}': ", exc)
            return
        context.state = DeploymentState.SUCCESS


class ValidateClusterStep(Step):
    """``Success`` when the cluster already exists, ``UnSuccessful`` otherwise."""

    key = keys.VALIDATE_CLUSTER

    def __init__(self, provisioner: ClusterProvisioner) -> None:
        self.provisioner = provisioner

    def execute(self, context: DeploymentContext) -> None:
        resource_group = context.inputs.resource_group
        name = context.inputs.cluster_name
        context.log_status(f"Checking if container service '{name}' exists in '{resource_group}'")
        try:
            names = self.provisioner.list_resource_names(resource_group)
        except DeployerError as exc:
            context.log_error(f"Error listing resources of '{resource_group}': ", exc)
            return

        context.outputs.cluster_exists = name in names
        if context.outputs.cluster_exists:
            context.log_status(f"Container service '{name}' found")
            context.state = DeploymentState.SUCCESS
        else:
            context.log_status(f"Container service '{name}' not found")
            context.state = DeploymentState.UNSUCCESSFUL


class TemplateDeployStep(Step):
    """Start the template deployment that provisions the cluster."""

    key = keys.TEMPLATE_DEPLOY

    def __init__(
        self,
        provisioner: ClusterProvisioner,
        template: Union[Dict[str, Any], str, Path, None],
    ) -> None:
        self.provisioner = provisioner
        self.template = template

    def _load_template(self) -> Dict[str, Any]:
        if isinstance(self.template, dict):
            return copy.deepcopy(self.template)
        with Path(self.template).open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def execute(self, context: DeploymentContext) -> None:
        if self.template is None:
            context.log_error("No cluster template configured, cannot create the container service")
            return

        context.log_status("Starting deployment")
        try:
            template = self._load_template()
            set_template_parameter(template, "clusterName", "string", context.inputs.cluster_name)
            if context.inputs.location:
                set_template_parameter(template, "location", "string", context.inputs.location)
            deployment_name = self.provisioner.deploy_template(context.inputs.resource_group, template)
        except (DeployerError, OSError, ValueError) as exc:
            context.log_error("Error starting deployment: ", exc)
            return

        context.outputs.deployment_name = deployment_name
        context.log_status(f"Deployment '{deployment_name}' started")
        context.state = DeploymentState.SUCCESS


def set_template_parameter(template: Dict[str, Any], name: str, type_: str, value: Any) -> None:
    """Set the default value of a template parameter the template declares."""
    parameters = template.get("parameters")
    if not isinstance(parameters, dict) or name not in parameters:
        return
    parameters[name] = {"type": type_, "defaultValue": value}


class TemplateMonitorStep(Step):
    """Wait until every operation of the template deployment succeeded."""

    key = keys.TEMPLATE_MONITOR

    def __init__(self, provisioner: ClusterProvisioner, polling: Optional[PollingConfig] = None) -> None:
        self.provisioner = provisioner
        self.polling = polling or PollingConfig()

    def execute(self, context: DeploymentContext) -> None:
        resource_group = context.inputs.resource_group
        deployment_name = context.outputs.deployment_name
        if not deployment_name:
            context.log_error("No deployment to monitor")
            return

        def check() -> Optional[Union[bool, DeploymentOperation]]:
            operations = [
                op for op in self.provisioner.list_deployment_operations(resource_group, deployment_name)
                # operations without a target resource carry no state
                if op.resource_name is not None
            ]
            pending = 0
            for op in operations:
                state = op.provisioning_state
                if state.is_failure:
                    return op
                if state is not ProvisioningState.SUCCEEDED:
                    pending += 1
                logger.debug("%s(%s): %s", state.value, op.resource_type, op.resource_name)
            if not operations or pending:
                context.log_status(f"Deployment '{deployment_name}': {pending} operations to be completed")
                return None
            return True

        try:
            outcome = wait_until(
                check,
                description=f"deployment '{deployment_name}'",
                interval=self.polling.interval_seconds,
                timeout=self.polling.timeout_seconds,
                max_attempts=self.polling.max_attempts,
                cancel_event=context.cancel_event,
            )
        except DeployerError as exc:
            context.log_error(f"Error monitoring deployment '{deployment_name}': ", exc)
            return

        if isinstance(outcome, DeploymentOperation):
            context.log_error(
                f"Failed({outcome.provisioning_state.value}): {outcome.resource_type}:{outcome.resource_name}"
            )
            return

        context.log_status(f"Deployment '{deployment_name}' finished successfully")
        context.state = DeploymentState.SUCCESS


class ClusterInfoStep(Step):
    """Look up the cluster's master FQDN and admin user."""

    key = keys.CLUSTER_INFO

    def __init__(self, provisioner: ClusterProvisioner) -> None:
        self.provisioner = provisioner

    def execute(self, context: DeploymentContext) -> None:
        resource_group = context.inputs.resource_group
        name = context.inputs.cluster_name
        context.log_status("Getting management public FQDN")
        try:
            info = self.provisioner.get_container_service(resource_group, name)
        except DeployerError as exc:
            context.log_error(f"Error getting container service '{name}': ", exc)
            return

        if info is None:
            context.log_error(f"Container service '{name}' not found in resource group '{resource_group}'")
            return

        try:
            orchestrator = OrchestratorType.parse(info.orchestrator)
        except ValueError as exc:
            context.log_error(f"Container service '{name}': ", exc)
            return
        context.log_status(f"Orchestrator type: {orchestrator.value}")

        if orchestrator is not context.inputs.orchestrator:
            context.log_error(
                f"Container service '{name}' runs {orchestrator.value}, "
                f"but {context.inputs.orchestrator.value} is configured"
            )
            return

        context.outputs.orchestrator = orchestrator
        context.outputs.mgmt_fqdn = info.master_fqdn
        context.outputs.admin_username = info.admin_username
        context.log_status(f"Management FQDN: {info.master_fqdn}")
        context.log_status(f"Admin user: {info.admin_username}")
        context.state = DeploymentState.SUCCESS
