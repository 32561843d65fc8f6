"""HTTP client for the control plane gateway."""

from __future__ import annotations

import logging
import os
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import quote

import requests

from ..errors import RemoteStateError
from ..network.models import LoadBalancer, RuleGroup
from ..network.remote import RemoteNetworkState
from ..provisioning import ClusterProvisioner, ContainerServiceInfo, DeploymentOperation

if TYPE_CHECKING:
    from ..config import ControlPlaneConfig

logger = logging.getLogger(__name__)


class ControlPlaneClient(RemoteNetworkState, ClusterProvisioner):
    """JSON/REST access to resource groups, network resources and deployments.

    Every collection endpoint answers ``{"value": [...]}``; single resources
    are plain JSON objects shaped like the models' ``to_dict`` output.
    """

    def __init__(self, config: "ControlPlaneConfig", session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            config: control plane configuration with endpoint and api_token
            session: optional pre-built session (tests inject fakes here)
        """
        if not config.endpoint:
            raise ValueError("Control plane endpoint is required")

        self.config = config
        self.base_url = config.endpoint.rstrip("/")
        self.session = session or requests.Session()

        # Set up proxy if configured
        proxy = config.proxy or os.environ.get("HTTPS_PROXY") or os.environ.get("HTTP_PROXY")
        if proxy:
            self.session.proxies = {"http": proxy, "https": proxy}
            logger.info("Control plane client using proxy: %s", proxy)

        self.session.headers.update({"Content-Type": "application/json"})
        if config.api_token:
            self.session.headers.update({"Authorization": f"Bearer {config.api_token}"})

    # ---- low level -------------------------------------------------------

    def _url(self, *parts: str) -> str:
        return "/".join([self.base_url] + [quote(part, safe="") for part in parts])

    def _request(
        self,
        method: str,
        url: str,
        *,
        body: Optional[Dict[str, Any]] = None,
        allow_missing: bool = False,
    ) -> Optional[Dict[str, Any]]:
        max_retries = max(1, self.config.max_retries)
        for attempt in range(max_retries):
            try:
                response = self.session.request(method, url, json=body, timeout=self.config.timeout)
            except requests.exceptions.RequestException as exc:
                raise RemoteStateError(f"{method} {url} failed: {exc}") from exc

            # Handle rate limiting
            if response.status_code == 429 and attempt < max_retries - 1:
                wait_time = 2 ** attempt
                logger.warning("Rate limited by control plane. Waiting %ss before retry...", wait_time)
                time.sleep(wait_time)
                continue

            if allow_missing and response.status_code == 404:
                return None
            try:
                response.raise_for_status()
            except requests.exceptions.HTTPError as exc:
                detail = response.text[:500] if response.text else ""
                raise RemoteStateError(f"{method} {url} failed: {exc} {detail}".strip()) from exc

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise RemoteStateError(f"{method} {url} returned invalid JSON") from exc

        raise RemoteStateError(f"{method} {url} still rate limited after {max_retries} attempts")

    def _list(self, url: str) -> List[Dict[str, Any]]:
        payload = self._request("GET", url) or {}
        return list(payload.get("value", []) or [])

    # ---- RemoteNetworkState ----------------------------------------------

    def list_rule_groups(self, resource_group: str) -> List[RuleGroup]:
        url = self._url("resourceGroups", resource_group, "networkSecurityGroups")
        return [RuleGroup.from_dict(item) for item in self._list(url)]

    def list_load_balancers(self, resource_group: str) -> List[LoadBalancer]:
        url = self._url("resourceGroups", resource_group, "loadBalancers")
        return [LoadBalancer.from_dict(item) for item in self._list(url)]

    def apply_rule_group(self, resource_group: str, group: RuleGroup) -> None:
        url = self._url("resourceGroups", resource_group, "networkSecurityGroups", group.name)
        self._request("PUT", url, body=group.to_dict())

    def apply_load_balancer(self, resource_group: str, balancer: LoadBalancer) -> None:
        url = self._url("resourceGroups", resource_group, "loadBalancers", balancer.name)
        self._request("PUT", url, body=balancer.to_dict())

    # ---- ClusterProvisioner ----------------------------------------------

    def ensure_resource_group(self, name: str, location: Optional[str]) -> None:
        self._request("PUT", self._url("resourceGroups", name), body={"location": location})

    def list_resource_names(self, resource_group: str) -> List[str]:
        url = self._url("resourceGroups", resource_group, "resources")
        return [item["name"] for item in self._list(url) if "name" in item]

    def deploy_template(self, resource_group: str, template: Dict[str, Any]) -> str:
        deployment_name = str(int(time.time() * 1000))
        url = self._url("resourceGroups", resource_group, "deployments", deployment_name)
        body = {"properties": {"mode": "Incremental", "template": template, "parameters": {}}}
        self._request("PUT", url, body=body)
        return deployment_name

    def list_deployment_operations(self, resource_group: str, deployment_name: str) -> List[DeploymentOperation]:
        url = self._url("resourceGroups", resource_group, "deployments", deployment_name, "operations")
        return [DeploymentOperation.from_dict(item) for item in self._list(url)]

    def get_container_service(self, resource_group: str, name: str) -> Optional[ContainerServiceInfo]:
        url = self._url("resourceGroups", resource_group, "containerServices", name)
        payload = self._request("GET", url, allow_missing=True)
        if payload is None:
            return None
        return ContainerServiceInfo.from_dict(payload)
