import io
import json
import os
import signal
import tempfile
import threading
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from cluster_deployer.cli import _install_cancel_handlers, _restore_handlers, build_parser, run_cli
from cluster_deployer.ports import OrchestratorType


class CLITests(unittest.TestCase):
    def test_deploy_arguments(self) -> None:
        args = build_parser().parse_args(
            [
                "deploy",
                "--resource-group", "rg",
                "--cluster", "mycluster",
                "--orchestrator", "marathon",
                "--config-files", "*.json",
                "--run-on", "SuccessOrUnstable",
            ]
        )
        self.assertIs(args.orchestrator, OrchestratorType.DCOS)
        self.assertEqual(args.run_on, "SuccessOrUnstable")

    def test_unknown_orchestrator(self) -> None:
        with redirect_stdout(io.StringIO()), self.assertRaises(SystemExit):
            build_parser().parse_args(["ports", "--orchestrator", "nomad", "x.yml"])

    def test_ports_command_prints_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "docker-compose.yml"
            path.write_text('version: "3"\nservices:\n  web:\n    ports: ["80:8080/udp"]\n')
            out = io.StringIO()
            with redirect_stdout(out):
                code = run_cli(["--workspace", tmp, "ports", "--orchestrator", "swarm", "--json", "docker-compose.yml"])
        self.assertEqual(code, 0)
        self.assertEqual(
            json.loads(out.getvalue()),
            [{"external_port": 80, "internal_port": 8080, "protocol": "UDP"}],
        )

    def test_ports_command_reports_invalid_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "app.json").write_text("{}")
            out = io.StringIO()
            with redirect_stdout(out):
                code = run_cli(["--workspace", tmp, "ports", "--orchestrator", "dcos", "app.json"])
        self.assertEqual(code, 1)
        self.assertIn("container", out.getvalue())

    def test_logs_command_shows_latest(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_dir = Path(tmp) / "logs"
            log_dir.mkdir()
            (log_dir / "deploy_rg_20240101_000000.json").write_text(
                json.dumps(
                    {
                        "resource_group": "rg",
                        "cluster_name": "mycluster",
                        "orchestrator": "dcos",
                        "status": "success",
                        "steps": [{"step": "check_build", "state": "Success"}],
                        "messages": ["Build result is SUCCESS"],
                    }
                )
            )
            config = Path(tmp) / "config.json"
            config.write_text(json.dumps({"deployment": {"log_dir": str(log_dir)}}))
            out = io.StringIO()
            with redirect_stdout(out):
                code = run_cli(["--config", str(config), "logs"])
        self.assertEqual(code, 0)
        self.assertIn("check_build", out.getvalue())
        self.assertIn("Build result is SUCCESS", out.getvalue())

    def test_deploy_without_endpoint_reports_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config = Path(tmp) / "config.json"
            config.write_text(json.dumps({"control_plane": {"endpoint": None}}))
            out = io.StringIO()
            with mock.patch.dict(os.environ), redirect_stdout(out):
                os.environ.pop("CLUSTER_DEPLOYER_CONTROL_PLANE_URL", None)
                code = run_cli(
                    [
                        "--config", str(config),
                        "deploy",
                        "--resource-group", "rg",
                        "--cluster", "mycluster",
                        "--orchestrator", "swarm",
                        "--config-files", "*.yml",
                    ]
                )
        self.assertEqual(code, 1)
        self.assertIn("endpoint is required", out.getvalue())

    def test_signals_request_cancellation(self) -> None:
        event = threading.Event()
        previous = _install_cancel_handlers(event)
        try:
            handler = signal.getsignal(signal.SIGTERM)
            with redirect_stdout(io.StringIO()):
                handler(signal.SIGTERM, None)
            self.assertTrue(event.is_set())
            with self.assertRaises(KeyboardInterrupt):
                handler(signal.SIGINT, None)
        finally:
            _restore_handlers(previous)
        self.assertIs(signal.getsignal(signal.SIGTERM), previous[signal.SIGTERM])


if __name__ == "__main__":
    unittest.main()
