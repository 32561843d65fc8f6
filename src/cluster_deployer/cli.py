"""Command-line interface for cluster-deployer."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .config import AppConfig, load_config
from .control_plane import ControlPlaneClient
from .errors import DeployerError
from .ports import OrchestratorType, build_deployment_config
from .utils.logging import get_logger
from .workflow import DeploymentRequest, DeploymentWorkflow


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: AppConfig
    workspace: str


def _orchestrator(value: str) -> OrchestratorType:
    try:
        return OrchestratorType.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cluster-deployer",
        description="Deploy containers to a managed cluster and expose their published ports.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument(
        "--workspace",
        type=str,
        default=None,
        help="Directory the config file patterns are resolved against.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy_parser = subparsers.add_parser(
        "deploy", help="Provision the cluster if needed, deploy and open ports"
    )
    deploy_parser.add_argument("--resource-group", required=True, help="Target resource group")
    deploy_parser.add_argument("--cluster", required=True, help="Container service name")
    deploy_parser.add_argument(
        "--orchestrator", required=True, type=_orchestrator,
        help="dcos | swarm | kubernetes",
    )
    deploy_parser.add_argument(
        "--config-files", required=True,
        help="Comma separated glob patterns of the files to deploy",
    )
    deploy_parser.add_argument("--location", default=None, help="Location for new resources")
    deploy_parser.add_argument(
        "--build-result", default=None,
        help="Result of the upstream build (SUCCESS, UNSTABLE, FAILURE, ...)",
    )
    deploy_parser.add_argument(
        "--run-on", choices=["Success", "SuccessOrUnstable"], default=None,
        help="Build results on which to deploy",
    )

    # ports 子命令 - 只解析端口
    ports_parser = subparsers.add_parser(
        "ports", help="Print the service ports published by config files"
    )
    ports_parser.add_argument(
        "--orchestrator", required=True, type=_orchestrator,
        help="dcos | swarm | kubernetes",
    )
    ports_parser.add_argument("files", nargs="+", help="Config files or glob patterns")
    ports_parser.add_argument(
        "--json", action="store_true", dest="as_json",
        help="Print the ports as JSON",
    )

    # logs 子命令 - 查看部署日志
    logs_parser = subparsers.add_parser(
        "logs", help="View deployment run logs"
    )
    logs_parser.add_argument(
        "--list", "-l", action="store_true", dest="list_logs",
        help="List all available logs"
    )
    logs_parser.add_argument(
        "--latest", action="store_true",
        help="Show the latest deployment log"
    )
    logs_parser.add_argument(
        "--file", "-f", type=str,
        help="Show a specific log file"
    )
    logs_parser.add_argument(
        "--summary", "-s", action="store_true",
        help="Show summary only (no status messages)"
    )

    return parser


def _build_context(args: argparse.Namespace) -> CLIContext:
    config = load_config(args.config)
    workspace = args.workspace or config.deployment.workspace_root
    return CLIContext(
        config=config,
        workspace=workspace,
    )


def _install_cancel_handlers(cancel_event: threading.Event) -> Dict[int, Any]:
    """Turn SIGINT/SIGTERM into a cancel request; a second signal interrupts."""

    def handle_signal(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        print("\n⏹️  Cancelling deployment, waiting for the current step to stop...")
        cancel_event.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handle_signal)
    return previous


def _restore_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def handle_deploy_command(args: argparse.Namespace, context: CLIContext) -> int:
    try:
        client = ControlPlaneClient(context.config.control_plane)
    except ValueError as exc:
        print(f"❌ {exc}")
        return 1

    workflow = DeploymentWorkflow(
        context.config,
        provisioner=client,
        remote=client,
        workspace=context.workspace,
    )
    request = DeploymentRequest(
        resource_group=args.resource_group,
        cluster_name=args.cluster,
        orchestrator=args.orchestrator,
        config_files=args.config_files,
        location=args.location,
        build_result=args.build_result,
        run_on=args.run_on,
    )
    previous = _install_cancel_handlers(workflow.cancel_event)
    try:
        outcome = workflow.run_deploy(request)
    except KeyboardInterrupt:
        print("⏹️  Deployment interrupted")
        return 130
    finally:
        _restore_handlers(previous)
    if workflow.cancel_event.is_set():
        print("⏹️  Deployment cancelled")
    return 0 if outcome.success else 1


def handle_ports_command(args: argparse.Namespace, context: CLIContext) -> int:
    try:
        config = build_deployment_config(
            args.orchestrator, ",".join(args.files), Path(context.workspace)
        )
        ports = config.service_ports()
    except (DeployerError, OSError, ValueError) as exc:
        print(f"❌ {exc}")
        return 1

    if args.as_json:
        print(json.dumps([port.to_dict() for port in ports], indent=2))
        return 0

    if not ports:
        print("No published ports found.")
        return 0
    print(f"{'External':<10} {'Internal':<10} {'Protocol'}")
    print("-" * 30)
    for port in ports:
        print(f"{port.external_port:<10} {port.internal_port:<10} {port.protocol.value}")
    return 0


def handle_logs_command(args: argparse.Namespace, context: CLIContext) -> int:
    """Handle the logs subcommand."""
    log_dir = Path(context.config.deployment.log_dir)

    if not log_dir.exists():
        print("📁 No deployment logs found. Run a deployment first.")
        return 0

    log_files = sorted(log_dir.glob("deploy_*.json"), key=lambda p: p.stat().st_mtime, reverse=True)

    if not log_files:
        print("📁 No deployment logs found.")
        return 0

    # 列出所有日志
    if args.list_logs:
        print(f"📁 Deployment logs in: {log_dir}\n")
        print(f"{'#':<4} {'Status':<12} {'Resource group':<24} {'Cluster':<20} {'Time':<20} {'File'}")
        print("-" * 110)
        for i, log_file in enumerate(log_files, 1):
            try:
                with open(log_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError):
                print(f"{i:<4} ❓ {'error':<10} {'?':<24} {'?':<20} {'?':<20} {log_file.name}")
                continue
            status = data.get("status", "unknown")
            start_time = (data.get("start_time") or "")[:19].replace("T", " ")
            status_emoji = {"success": "✅", "failed": "❌", "cancelled": "⏹️", "running": "🔄"}.get(status, "❓")
            print(
                f"{i:<4} {status_emoji} {status:<10} {data.get('resource_group', '?'):<24} "
                f"{data.get('cluster_name', '?'):<20} {start_time:<20} {log_file.name}"
            )
        return 0

    # 选择要显示的日志文件
    if args.file:
        target_file = Path(args.file)
        if not target_file.exists():
            target_file = log_dir / args.file
        if not target_file.exists():
            print(f"❌ Log file not found: {args.file}")
            return 1
    else:
        target_file = log_files[0]

    show_log_file(target_file, summary_only=args.summary)
    return 0


def show_log_file(log_file: Path, summary_only: bool = False) -> None:
    """Display a deployment run log."""
    with open(log_file, "r", encoding="utf-8") as f:
        data = json.load(f)

    status = data.get("status", "unknown")
    status_emoji = {"success": "✅", "failed": "❌", "cancelled": "⏹️", "running": "🔄"}.get(status, "❓")

    print(f"\n{'='*60}")
    print(f"📄 Deployment Log: {log_file.name}")
    print(f"{'='*60}")
    print(f"📦 Resource group: {data.get('resource_group', 'N/A')}")
    print(f"🖥️  Cluster:        {data.get('cluster_name', 'N/A')} ({data.get('orchestrator', 'N/A')})")
    print(f"⏰ Started:        {data.get('start_time', 'N/A')}")
    print(f"⏱️  Ended:          {data.get('end_time', 'N/A')}")
    print(f"{status_emoji} Status:         {status}")
    print(f"📊 Steps:          {len(data.get('steps', []))}")
    print(f"{'='*60}\n")

    for step in data.get("steps", []):
        state = step.get("state", "?")
        icon = {"Success": "✓", "HasError": "✗", "UnSuccessful": "↷", "Done": "■"}.get(state, "•")
        print(f"{icon} {step.get('step', '?'):<20} {state}")
        if step.get("error"):
            print(f"    ❌ {step['error']}")

    outputs = data.get("outputs") or {}
    if outputs.get("exposed_ports"):
        print(f"\n🔓 Ports: {', '.join(outputs['exposed_ports'])}")

    if not summary_only and data.get("messages"):
        print("\nMessages:")
        for line in data["messages"]:
            print(f"    {line}")


def dispatch_command(args: argparse.Namespace) -> int:
    context = _build_context(args)

    if args.command == "logs":
        return handle_logs_command(args, context)

    if args.command == "ports":
        return handle_ports_command(args, context)

    if args.command == "deploy":
        return handle_deploy_command(args, context)

    raise ValueError(f"Unsupported command: {args.command}")


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    get_logger(level=logging.DEBUG if args.verbose else logging.INFO)
    return dispatch_command(args)
