"""Configuration loading utilities for cluster-deployer."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

_DEFAULT_CONFIG_PATH = Path("config/default_config.json")


@dataclass
class ControlPlaneConfig:
    """Connection settings for the cloud control plane gateway."""

    endpoint: Optional[str] = None
    api_token: Optional[str] = None
    proxy: Optional[str] = None  # e.g. "http://127.0.0.1:7890"
    timeout: int = 30
    max_retries: int = 3


@dataclass
class SSHConfig:
    """Credentials used to reach the cluster master."""

    username: Optional[str] = None  # falls back to the cluster admin user
    key_path: Optional[str] = None
    passphrase: Optional[str] = None
    timeout: int = 20


@dataclass
class PollingConfig:
    """Bounds of a blocking wait loop."""

    interval_seconds: float = 10.0
    timeout_seconds: float = 1800.0
    max_attempts: Optional[int] = None


@dataclass
class NetworkConfig:
    """Settings of the network exposure reconciler."""

    confirm_changes: bool = True
    confirmation: PollingConfig = field(
        default_factory=lambda: PollingConfig(interval_seconds=5.0, timeout_seconds=300.0, max_attempts=12)
    )


@dataclass
class DeploySettings:
    """Settings related to deployment execution."""

    workspace_root: str = "."
    log_dir: str = "deploy_logs"
    location: Optional[str] = None
    template_path: Optional[str] = None
    run_on: str = "Success"  # "Success" | "SuccessOrUnstable"
    enable_config_substitution: bool = True
    swarm_remove_containers_first: bool = False


@dataclass
class AppConfig:
    """Top-level configuration."""

    control_plane: ControlPlaneConfig = field(default_factory=ControlPlaneConfig)
    ssh: SSHConfig = field(default_factory=SSHConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    monitor: PollingConfig = field(default_factory=PollingConfig)
    deployment: DeploySettings = field(default_factory=DeploySettings)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        control_plane_payload = _section(payload, "control_plane")
        ssh_payload = _section(payload, "ssh")
        network_payload = _section(payload, "network")
        monitor_payload = _section(payload, "monitor")
        deployment_payload = _section(payload, "deployment")

        # confirmation is nested, merge it separately
        confirmation_payload = _section(network_payload, "confirmation")
        network_defaults = NetworkConfig()
        confirmation = PollingConfig(
            **{**network_defaults.confirmation.__dict__, **confirmation_payload}
        )
        network_payload_cleaned = {k: v for k, v in network_payload.items() if k != "confirmation"}

        return cls(
            control_plane=ControlPlaneConfig(
                **{**ControlPlaneConfig().__dict__, **control_plane_payload}
            ),
            ssh=SSHConfig(**{**SSHConfig().__dict__, **ssh_payload}),
            network=NetworkConfig(
                confirm_changes=network_payload_cleaned.get(
                    "confirm_changes", network_defaults.confirm_changes
                ),
                confirmation=confirmation,
            ),
            monitor=PollingConfig(**{**PollingConfig().__dict__, **monitor_payload}),
            deployment=DeploySettings(**{**DeploySettings().__dict__, **deployment_payload}),
        )


def _section(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = payload.get(key, {}) or {}
    # keys starting with an underscore are comments
    return {k: v for k, v in section.items() if not k.startswith("_")}


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    env_endpoint = os.getenv("CLUSTER_DEPLOYER_CONTROL_PLANE_URL")
    if env_endpoint:
        config.control_plane.endpoint = env_endpoint

    env_token = os.getenv("CLUSTER_DEPLOYER_API_TOKEN")
    if env_token:
        config.control_plane.api_token = env_token

    env_proxy = os.getenv("CLUSTER_DEPLOYER_PROXY")
    if env_proxy:
        config.control_plane.proxy = env_proxy

    env_username = os.getenv("CLUSTER_DEPLOYER_SSH_USERNAME")
    if env_username:
        config.ssh.username = env_username

    env_key_path = os.getenv("CLUSTER_DEPLOYER_SSH_KEY_PATH")
    if env_key_path:
        config.ssh.key_path = env_key_path

    env_passphrase = os.getenv("CLUSTER_DEPLOYER_SSH_PASSPHRASE")
    if env_passphrase:
        config.ssh.passphrase = env_passphrase

    return config


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path` or the default location.

    Environment variables (higher priority than config file):
    - CLUSTER_DEPLOYER_CONTROL_PLANE_URL: control plane gateway URL
    - CLUSTER_DEPLOYER_API_TOKEN: bearer token for the control plane
    - CLUSTER_DEPLOYER_PROXY: HTTP proxy for control plane requests
    - CLUSTER_DEPLOYER_SSH_USERNAME: SSH user for the cluster master
    - CLUSTER_DEPLOYER_SSH_KEY_PATH: path to the SSH private key
    - CLUSTER_DEPLOYER_SSH_PASSPHRASE: passphrase of the SSH private key

    Without an explicit `path` and without a default config file the
    built-in defaults are used.
    """
    if path:
        candidate = Path(path)
        if not candidate.is_file():
            raise FileNotFoundError(f"Could not find configuration file: {candidate}")
        candidates = [candidate]
    else:
        candidates = [_DEFAULT_CONFIG_PATH]

    for candidate in candidates:
        if candidate.is_file():
            with candidate.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            return _apply_env_overrides(AppConfig.from_dict(data))

    return _apply_env_overrides(AppConfig())
