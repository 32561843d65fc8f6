"""Pipeline-scoped state shared by the steps of one deployment run."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from ..ports.deployment_config import OrchestratorType
from ..ports.models import ServicePort
from ..utils.logging import LogSink
from .models import DeploymentState

if TYPE_CHECKING:
    from ..network.reconciler import ReconcileResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeploymentInputs:
    """Parameters supplied by the pipeline host; read-only during a run."""

    resource_group: str
    cluster_name: str
    orchestrator: OrchestratorType
    config_file_patterns: str
    workspace: Path = Path(".")
    location: Optional[str] = None
    build_result: Optional[str] = None
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass
class DeploymentOutputs:
    """Values produced by steps for the steps after them."""

    cluster_exists: Optional[bool] = None
    deployment_name: Optional[str] = None
    mgmt_fqdn: Optional[str] = None
    admin_username: Optional[str] = None
    orchestrator: Optional[OrchestratorType] = None
    deployed_files: List[str] = field(default_factory=list)
    exposed_ports: List[ServicePort] = field(default_factory=list)
    reconcile_result: Optional["ReconcileResult"] = None

    def to_dict(self) -> Dict[str, Any]:
        result = self.reconcile_result
        return {
            "cluster_exists": self.cluster_exists,
            "deployment_name": self.deployment_name,
            "mgmt_fqdn": self.mgmt_fqdn,
            "admin_username": self.admin_username,
            "orchestrator": self.orchestrator.value if self.orchestrator else None,
            "deployed_files": list(self.deployed_files),
            "exposed_ports": [str(port) for port in self.exposed_ports],
            "created_security_rules": [r.name for r in result.security_rules] if result else [],
            "created_load_balancer_rules": [r.name for r in result.load_balancer_rules] if result else [],
        }


class DeploymentContext:
    """Mutable record threaded through one pipeline run.

    Steps read :attr:`inputs`, write :attr:`outputs` and must leave a
    :class:`DeploymentState` behind. ``log_error`` always marks the run as
    failed.
    """

    def __init__(
        self,
        inputs: DeploymentInputs,
        *,
        sink: Optional[LogSink] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.inputs = inputs
        self.outputs = DeploymentOutputs()
        self.sink = sink or LogSink()
        self.cancel_event = cancel_event or threading.Event()
        self._state = DeploymentState.UNKNOWN

    @property
    def state(self) -> DeploymentState:
        return self._state

    @state.setter
    def state(self, value: DeploymentState) -> None:
        self._state = value

    @property
    def has_error(self) -> bool:
        return self._state is DeploymentState.HAS_ERROR

    def log_status(self, message: str) -> None:
        self.sink.status(message)

    def log_error(self, message: str, exc: Optional[BaseException] = None) -> None:
        if exc is not None:
            message = f"{message}{exc}"
            logger.debug("Step failure details", exc_info=exc)
        self.sink.error(message)
        self._state = DeploymentState.HAS_ERROR

    def cancel(self) -> None:
        """Ask blocking waits of the current step to stop."""
        self.cancel_event.set()
