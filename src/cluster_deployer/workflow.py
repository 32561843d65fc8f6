"""High-level workflow orchestration."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .config import AppConfig
from .network import RemoteNetworkState
from .pipeline import (
    DeploymentContext,
    DeploymentInputs,
    PipelineExecutor,
    PipelineGraph,
    RunOutcome,
    StepRecord,
)
from .ports import OrchestratorType
from .provisioning import ClusterProvisioner
from .steps import (
    DEPLOY_STEPS,
    CheckBuildResultStep,
    ClusterInfoStep,
    EnablePortsStep,
    ResourceGroupStep,
    RunOn,
    SwarmDeploymentStep,
    TemplateDeployStep,
    TemplateMonitorStep,
    ValidateClusterStep,
    keys,
)
from .steps.deploy import SessionFactory
from .utils.logging import LogSink

logger = logging.getLogger(__name__)


@dataclass
class DeploymentRequest:
    """User-provided deployment request captured from the CLI."""

    resource_group: str
    cluster_name: str
    orchestrator: OrchestratorType
    config_files: str
    location: Optional[str] = None
    build_result: Optional[str] = None
    run_on: Optional[str] = None  # overrides deployment.run_on
    env: Optional[Mapping[str, str]] = field(default=None, repr=False)


def build_pipeline(
    config: AppConfig,
    provisioner: ClusterProvisioner,
    remote: RemoteNetworkState,
    orchestrator: OrchestratorType,
    *,
    run_on: Optional[RunOn] = None,
    session_factory: Optional[SessionFactory] = None,
) -> PipelineGraph:
    """Wire the built-in steps for ``orchestrator``.

    ``check_build`` is the start step. An existing cluster skips the
    template deployment; Kubernetes opens its service ports itself, so its
    deploy step is the last one.
    """
    deployment = config.deployment
    deploy_cls = DEPLOY_STEPS[orchestrator]
    deploy_kwargs: Dict[str, Any] = {
        "enable_substitution": deployment.enable_config_substitution,
        "session_factory": session_factory,
    }
    if deploy_cls is SwarmDeploymentStep:
        deploy_kwargs["remove_containers_first"] = deployment.swarm_remove_containers_first
    deploy_step = deploy_cls(config.ssh, **deploy_kwargs)

    after_deploy = None if orchestrator is OrchestratorType.KUBERNETES else keys.ENABLE_PORTS

    graph = PipelineGraph()
    graph.add(
        CheckBuildResultStep(run_on or RunOn.from_string(deployment.run_on)),
        on_success=keys.RESOURCE_GROUP,
    )
    graph.add(ResourceGroupStep(provisioner), on_success=keys.VALIDATE_CLUSTER)
    graph.add(
        ValidateClusterStep(provisioner),
        on_success=keys.CLUSTER_INFO,
        on_failure=keys.TEMPLATE_DEPLOY,
    )
    graph.add(
        TemplateDeployStep(provisioner, _template(deployment.template_path)),
        on_success=keys.TEMPLATE_MONITOR,
    )
    graph.add(TemplateMonitorStep(provisioner, config.monitor), on_success=keys.CLUSTER_INFO)
    graph.add(ClusterInfoStep(provisioner), on_success=deploy_step.key)
    graph.add(deploy_step, on_success=after_deploy)
    if after_deploy is not None:
        graph.add(EnablePortsStep(remote, config.network))
    graph.validate(keys.CHECK_BUILD)
    return graph


def _template(path: Optional[str]) -> Optional[Path]:
    return Path(path) if path else None


class DeploymentWorkflow:
    """Runs the deployment pipeline for one request and keeps a JSON run log."""

    def __init__(
        self,
        config: AppConfig,
        provisioner: ClusterProvisioner,
        remote: RemoteNetworkState,
        *,
        workspace: Optional[str] = None,
        session_factory: Optional[SessionFactory] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.config = config
        self.provisioner = provisioner
        self.remote = remote
        self.workspace = Path(workspace or config.deployment.workspace_root)
        self.session_factory = session_factory
        self.cancel_event = cancel_event or threading.Event()

        self.log_dir = Path(config.deployment.log_dir)
        self.current_log_file: Optional[Path] = None
        self.deployment_log: Dict[str, Any] = {}

    def run_deploy(self, request: DeploymentRequest) -> RunOutcome:
        """Run the pipeline and return its outcome."""
        logger.info(
            "Preparing %s deployment to '%s' in resource group '%s'",
            request.orchestrator.value,
            request.cluster_name,
            request.resource_group,
        )
        inputs = DeploymentInputs(
            resource_group=request.resource_group,
            cluster_name=request.cluster_name,
            orchestrator=request.orchestrator,
            config_file_patterns=request.config_files,
            workspace=self.workspace,
            location=request.location or self.config.deployment.location,
            build_result=request.build_result,
            env=dict(os.environ if request.env is None else request.env),
        )
        context = DeploymentContext(inputs, sink=LogSink(), cancel_event=self.cancel_event)

        run_on = RunOn.from_string(request.run_on) if request.run_on else None
        graph = build_pipeline(
            self.config,
            self.provisioner,
            self.remote,
            request.orchestrator,
            run_on=run_on,
            session_factory=self.session_factory,
        )

        self._init_log(inputs)
        executor = PipelineExecutor(on_step_finished=self._log_step_result)
        try:
            outcome = executor.run(graph, keys.CHECK_BUILD, context)
        except KeyboardInterrupt:
            context.sink.error("Deployment interrupted")
            self._finalize_log("cancelled", context)
            raise
        except Exception:
            self._finalize_log("failed", context)
            raise

        if outcome.success:
            status = "success"
        elif self.cancel_event.is_set():
            status = "cancelled"
        else:
            status = "failed"
        self._finalize_log(status, context, outcome)
        if outcome.success:
            logger.info("✅ Deployment finished: %s", " -> ".join(outcome.visited))
        else:
            logger.error("❌ Deployment failed after: %s", " -> ".join(outcome.visited))
        return outcome

    def _init_log(self, inputs: DeploymentInputs) -> None:
        """Start a new run log file."""
        self.log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.current_log_file = self.log_dir / f"deploy_{inputs.resource_group}_{timestamp}.json"
        self.deployment_log = {
            "version": "1.0",
            "resource_group": inputs.resource_group,
            "cluster_name": inputs.cluster_name,
            "orchestrator": inputs.orchestrator.value,
            "config_files": inputs.config_file_patterns,
            "build_result": inputs.build_result,
            "start_time": datetime.now().isoformat(),
            "end_time": None,
            "status": "running",
            "steps": [],
        }
        self._save_log()
        logger.info("📝 Logging to: %s", self.current_log_file)

    def _log_step_result(self, record: StepRecord, context: DeploymentContext) -> None:
        self.deployment_log.setdefault("steps", []).append(record.to_dict())
        self.deployment_log["messages"] = list(context.sink.lines)
        self._save_log()

    def _finalize_log(
        self,
        status: str,
        context: DeploymentContext,
        outcome: Optional[RunOutcome] = None,
    ) -> None:
        self.deployment_log["end_time"] = datetime.now().isoformat()
        self.deployment_log["status"] = status
        self.deployment_log["messages"] = list(context.sink.lines)
        self.deployment_log["outputs"] = context.outputs.to_dict()
        if outcome is not None:
            self.deployment_log["final_state"] = outcome.final_state.value
            self.deployment_log["visited"] = list(outcome.visited)
        self.deployment_log["summary"] = {
            "total_steps": len(self.deployment_log.get("steps", [])),
            "successful_steps": sum(
                1 for s in self.deployment_log.get("steps", []) if s.get("state") == "Success"
            ),
            "duration_seconds": self._calculate_duration(),
        }
        self._save_log()
        logger.info("📄 Log saved to: %s", self.current_log_file)

    def _calculate_duration(self) -> float:
        start = datetime.fromisoformat(self.deployment_log["start_time"])
        end = datetime.fromisoformat(self.deployment_log["end_time"])
        return (end - start).total_seconds()

    def _save_log(self) -> None:
        if self.current_log_file:
            with open(self.current_log_file, "w", encoding="utf-8") as f:
                json.dump(self.deployment_log, f, indent=2, ensure_ascii=False)
