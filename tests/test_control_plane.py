import json
import unittest
from typing import List, Optional
from unittest import mock

import requests

from cluster_deployer.config import ControlPlaneConfig
from cluster_deployer.control_plane import ControlPlaneClient
from cluster_deployer.errors import RemoteStateError
from cluster_deployer.network import RuleGroup
from cluster_deployer.provisioning import ProvisioningState


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None) -> None:
        self.status_code = status_code
        self.content = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self.text = self.content.decode("utf-8")
        self._payload = payload

    def json(self):
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


class FakeSession:
    def __init__(self, responses: List[FakeResponse]) -> None:
        self.responses = list(responses)
        self.headers: dict = {}
        self.proxies: dict = {}
        self.calls: List[tuple] = []

    def request(self, method: str, url: str, json=None, timeout: Optional[int] = None):
        self.calls.append((method, url, json))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def client(*responses, **config) -> ControlPlaneClient:
    config.setdefault("endpoint", "https://gateway.example.com/api/")
    config.setdefault("api_token", "token")
    return ControlPlaneClient(ControlPlaneConfig(**config), session=FakeSession(list(responses)))  # type: ignore[arg-type]


class ControlPlaneClientTests(unittest.TestCase):
    def test_requires_endpoint(self) -> None:
        with self.assertRaises(ValueError):
            ControlPlaneClient(ControlPlaneConfig(), session=FakeSession([]))  # type: ignore[arg-type]

    def test_bearer_token_header(self) -> None:
        c = client()
        self.assertEqual(c.session.headers["Authorization"], "Bearer token")

    def test_list_rule_groups(self) -> None:
        payload = {
            "value": [
                {
                    "name": "dcos-agent-public-nsg-1",
                    "rules": [{"name": "Allow_80", "priority": 100, "destination_port_range": "80"}],
                }
            ]
        }
        c = client(FakeResponse(200, payload))
        groups = c.list_rule_groups("my rg")
        self.assertEqual(groups[0].rules[0].priority, 100)
        method, url, _ = c.session.calls[0]
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://gateway.example.com/api/resourceGroups/my%20rg/networkSecurityGroups")

    def test_apply_rule_group_sends_model(self) -> None:
        c = client(FakeResponse(200, {}))
        c.apply_rule_group("rg", RuleGroup("nsg"))
        method, url, body = c.session.calls[0]
        self.assertEqual(method, "PUT")
        self.assertTrue(url.endswith("/networkSecurityGroups/nsg"))
        self.assertEqual(body, {"name": "nsg", "rules": []})

    def test_missing_container_service(self) -> None:
        c = client(FakeResponse(404, {"error": "not found"}))
        self.assertIsNone(c.get_container_service("rg", "cluster"))

    def test_deployment_operations(self) -> None:
        payload = {
            "value": [
                {"target_resource": {"resource_name": "vm0", "resource_type": "vm"}, "provisioning_state": "Failed"},
                {"provisioning_state": "Succeeded"},
            ]
        }
        c = client(FakeResponse(200, payload))
        operations = c.list_deployment_operations("rg", "42")
        self.assertEqual(operations[0].provisioning_state, ProvisioningState.FAILED)
        self.assertIsNone(operations[1].resource_name)

    def test_http_error_is_wrapped(self) -> None:
        c = client(FakeResponse(500, {"error": "boom"}))
        with self.assertRaises(RemoteStateError) as ctx:
            c.list_load_balancers("rg")
        self.assertIn("boom", str(ctx.exception))

    def test_connection_error_is_wrapped(self) -> None:
        c = client(requests.exceptions.ConnectionError("refused"))
        with self.assertRaises(RemoteStateError):
            c.list_resource_names("rg")

    def test_rate_limit_is_retried(self) -> None:
        c = client(FakeResponse(429), FakeResponse(200, {"value": [{"name": "mycluster"}]}))
        with mock.patch("cluster_deployer.control_plane.client.time.sleep") as sleep:
            names = c.list_resource_names("rg")
        self.assertEqual(names, ["mycluster"])
        sleep.assert_called_once_with(1)


if __name__ == "__main__":
    unittest.main()
