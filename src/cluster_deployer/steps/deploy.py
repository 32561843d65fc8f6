"""Steps that push config files to the cluster master and apply them over SSH."""

from __future__ import annotations

import json
import logging
import os
import time
from abc import abstractmethod
from typing import Callable, Optional

from ..config import SSHConfig
from ..errors import DeployerError
from ..pipeline.context import DeploymentContext
from ..pipeline.models import DeploymentState
from ..pipeline.step import Step
from ..ports.deployment_config import (
    DeploymentConfig,
    OrchestratorType,
    build_deployment_config,
    expand_variables,
)
from ..ports.parser import ConfigSource
from ..ssh import (
    DCOS_SSH_PORT,
    KUBERNETES_SSH_PORT,
    SWARM_SSH_PORT,
    RemoteCommandError,
    SSHConnectionError,
    SSHCredentials,
    SSHSession,
    escape_single_quote,
)
from . import keys

logger = logging.getLogger(__name__)

SessionFactory = Callable[[SSHCredentials], SSHSession]


def remote_file_name(suffix: str) -> str:
    """Name of the temporary copy of a config file on the master."""
    return f"acsDep{int(time.time() * 1000)}.{suffix}"


class RemoteDeployStep(Step):
    """Upload every config file to the master and run the orchestrator's commands on it."""

    orchestrator: OrchestratorType
    ssh_port: int = 22

    def __init__(
        self,
        ssh: Optional[SSHConfig] = None,
        *,
        enable_substitution: bool = True,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self.ssh = ssh or SSHConfig()
        self.enable_substitution = enable_substitution
        self.session_factory = session_factory or SSHSession

    def credentials(self, context: DeploymentContext) -> SSHCredentials:
        host = context.outputs.mgmt_fqdn
        username = self.ssh.username or context.outputs.admin_username
        if not host:
            raise ValueError("Management FQDN of the cluster is unknown")
        if not username:
            raise ValueError("No SSH username configured and the cluster admin user is unknown")
        credentials = SSHCredentials(
            host=host,
            username=username,
            port=self.ssh_port,
            key_path=os.path.expanduser(self.ssh.key_path) if self.ssh.key_path else None,
            passphrase=self.ssh.passphrase,
            timeout=self.ssh.timeout,
        )
        credentials.validate()
        return credentials

    def load_config(self, context: DeploymentContext) -> DeploymentConfig:
        inputs = context.inputs
        return build_deployment_config(
            self.orchestrator, inputs.config_file_patterns, inputs.workspace, inputs.env
        )

    def prepare(self, source: ConfigSource, context: DeploymentContext) -> bytes:
        text = source.text()
        if self.enable_substitution:
            text = expand_variables(text, context.inputs.env)
        return text.encode("utf-8")

    @abstractmethod
    def deploy_file(self, session: SSHSession, remote_path: str, content: bytes, context: DeploymentContext) -> None:
        """Apply one uploaded config file."""

    def execute(self, context: DeploymentContext) -> None:
        try:
            credentials = self.credentials(context)
            config = self.load_config(context)
        except (DeployerError, OSError, ValueError) as exc:
            context.log_error(f"Error preparing {self.orchestrator.value} deployment: ", exc)
            return

        suffix = getattr(config, "file_suffix", "txt")
        context.log_status(f"Connecting to {credentials.host}:{credentials.port} as {credentials.username}")
        try:
            with self.session_factory(credentials) as session:
                for source in config.config_files:
                    if context.cancel_event.is_set():
                        context.log_error("Deployment cancelled")
                        return
                    content = self.prepare(source, context)
                    remote_path = remote_file_name(suffix)
                    context.log_status(f"Copying {source.path} to {remote_path}")
                    session.copy_to(content, remote_path)
                    try:
                        self.deploy_file(session, remote_path, content, context)
                    finally:
                        session.run(f"rm -f -- '{escape_single_quote(remote_path)}'")
                    context.outputs.deployed_files.append(source.path)
                    context.log_status(f"✅ Deployed {source.path}")
        except (DeployerError, SSHConnectionError, RemoteCommandError, OSError, ValueError) as exc:
            context.log_error(f"Error deploying to {credentials.host}: ", exc)
            return

        context.state = DeploymentState.SUCCESS


class MarathonDeploymentStep(RemoteDeployStep):
    """Replace the Marathon apps described by the JSON app definitions."""

    key = keys.DEPLOY_DCOS
    orchestrator = OrchestratorType.DCOS
    ssh_port = DCOS_SSH_PORT

    def deploy_file(self, session: SSHSession, remote_path: str, content: bytes, context: DeploymentContext) -> None:
        app_id = marathon_app_id(content)
        if app_id:
            context.log_status(f"Removing Marathon app '{app_id}'")
            # the app might not exist yet
            session.run(
                f"curl -i -X DELETE 'http://localhost/marathon/v2/apps/{escape_single_quote(app_id.lstrip('/'))}'"
            )
        context.log_status("Creating Marathon app")
        output = session.execute(
            "curl -i -H 'Content-Type: application/json' "
            f"-d@'{escape_single_quote(remote_path)}' http://localhost/marathon/v2/apps?force=true"
        )
        if output:
            logger.debug(output)


def marathon_app_id(content: bytes) -> Optional[str]:
    try:
        definition = json.loads(content.decode("utf-8"))
    except ValueError:
        return None
    if isinstance(definition, dict) and isinstance(definition.get("id"), str):
        return definition["id"]
    return None


class SwarmDeploymentStep(RemoteDeployStep):
    """Bring the compose project up on the Swarm master."""

    key = keys.DEPLOY_SWARM
    orchestrator = OrchestratorType.SWARM
    ssh_port = SWARM_SSH_PORT

    def __init__(self, *args, remove_containers_first: bool = False, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.remove_containers_first = remove_containers_first

    def compose_command(self, remote_path: str, action: str) -> str:
        return f"DOCKER_HOST=:2375 docker-compose -f '{escape_single_quote(remote_path)}' {action}"

    def deploy_file(self, session: SSHSession, remote_path: str, content: bytes, context: DeploymentContext) -> None:
        if self.remove_containers_first:
            context.log_status("Removing running containers")
            session.execute(self.compose_command(remote_path, "down"))
        context.log_status("Starting containers")
        session.execute(self.compose_command(remote_path, "up -d"))


class KubernetesDeploymentStep(RemoteDeployStep):
    key = keys.DEPLOY_KUBERNETES
    orchestrator = OrchestratorType.KUBERNETES
    ssh_port = KUBERNETES_SSH_PORT

    def deploy_file(self, session: SSHSession, remote_path: str, content: bytes, context: DeploymentContext) -> None:
        context.log_status("Applying Kubernetes resources")
        session.execute(f"kubectl apply -f '{escape_single_quote(remote_path)}'")


DEPLOY_STEPS = {
    OrchestratorType.DCOS: MarathonDeploymentStep,
    OrchestratorType.SWARM: SwarmDeploymentStep,
    OrchestratorType.KUBERNETES: KubernetesDeploymentStep,
}
