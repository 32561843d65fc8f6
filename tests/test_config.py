import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from cluster_deployer.config import AppConfig, PollingConfig, load_config


class ConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = AppConfig()
        self.assertEqual(config.deployment.log_dir, "deploy_logs")
        self.assertEqual(config.deployment.run_on, "Success")
        self.assertTrue(config.network.confirm_changes)
        self.assertEqual(config.network.confirmation.max_attempts, 12)
        self.assertIsNone(config.monitor.max_attempts)

    def test_loads_custom_config(self) -> None:
        payload = {
            "control_plane": {"endpoint": "https://gateway.example.com", "_comment": "ignored"},
            "network": {"confirm_changes": False, "confirmation": {"interval_seconds": 1}},
            "monitor": {"interval_seconds": 2, "max_attempts": 5},
            "deployment": {"run_on": "SuccessOrUnstable"},
        }
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text(json.dumps(payload))
            with mock.patch.dict(os.environ, {}, clear=True):
                config = load_config(str(path))

        self.assertEqual(config.control_plane.endpoint, "https://gateway.example.com")
        self.assertFalse(config.network.confirm_changes)
        self.assertEqual(config.network.confirmation.interval_seconds, 1)
        # unset confirmation keys keep their defaults
        self.assertEqual(config.network.confirmation.max_attempts, 12)
        self.assertEqual(config.monitor, PollingConfig(interval_seconds=2, timeout_seconds=1800.0, max_attempts=5))
        self.assertEqual(config.deployment.run_on, "SuccessOrUnstable")
        self.assertEqual(config.deployment.log_dir, "deploy_logs")

    def test_missing_explicit_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_config("does/not/exist.json")

    def test_env_overrides(self) -> None:
        env = {
            "CLUSTER_DEPLOYER_CONTROL_PLANE_URL": "https://env.example.com",
            "CLUSTER_DEPLOYER_API_TOKEN": "secret-token",
            "CLUSTER_DEPLOYER_SSH_USERNAME": "azureuser",
            "CLUSTER_DEPLOYER_SSH_KEY_PATH": "/keys/id_rsa",
        }
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text(json.dumps({"control_plane": {"endpoint": "https://file.example.com"}}))
            with mock.patch.dict(os.environ, env, clear=True):
                config = load_config(str(path))

        self.assertEqual(config.control_plane.endpoint, "https://env.example.com")
        self.assertEqual(config.control_plane.api_token, "secret-token")
        self.assertEqual(config.ssh.username, "azureuser")
        self.assertEqual(config.ssh.key_path, "/keys/id_rsa")


if __name__ == "__main__":
    unittest.main()
