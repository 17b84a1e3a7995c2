"""Deployment command wiring for the dashbuilder CLI."""

from __future__ import annotations

import argparse
from dataclasses import replace
import threading
from typing import Any

from core.config import DashbuilderConfig
from core.errors import DashbuilderDeployError
from core.logging_config import get_logger
from core.types import DataSetDef, DeploymentReport
from store.definition_sdk import DashbuilderClient

_LOGGER = get_logger(__name__)


def add_deploy_command(subparsers: Any) -> None:
    """Register deploy subcommand."""
    parser = subparsers.add_parser(
        "deploy",
        help="Deploy definition files from a directory",
    )
    parser.add_argument("directory", help="Deployment directory to watch")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single deployment pass and exit",
    )
    parser.add_argument(
        "--polling-time",
        type=int,
        help="Polling interval in milliseconds; overrides DASHBUILDER_POLLING_TIME",
    )


def run_deploy_command(config: DashbuilderConfig, args: argparse.Namespace) -> int:
    """Run one pass or watch the directory until interrupted."""
    if args.polling_time is not None:
        config = replace(config, polling_time_ms=max(args.polling_time, 0))
    if args.once:
        client = DashbuilderClient(replace(config, deploy_directory=""))
        client.start()
        report = client.deploy_once(args.directory)
        if report is None:
            raise _invalid_directory_error(args.directory)
        print(render_deployment_report(report))
        return 0 if not report.failed else 1

    client = DashbuilderClient(replace(config, deploy_directory=args.directory))
    client.start()
    if not client.watcher.is_running:
        raise _invalid_directory_error(args.directory)
    print(render_deployment_report(client.watcher.last_report))
    if config.polling_time_ms == 0:
        client.close()
        return 0
    client.add_listener(DeploymentEventPrinter())
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        _LOGGER.info("deploy_command_interrupted", directory=args.directory)
    finally:
        client.close()
    return 0


def render_deployment_report(report: DeploymentReport) -> str:
    """Render a deployment pass report as ``key=value`` lines."""
    lines = [
        f"deployed={','.join(report.deployed) or '-'}",
        f"redeployed={','.join(report.redeployed) or '-'}",
        f"found={','.join(report.found) or '-'}",
        f"undeployed={','.join(report.undeployed) or '-'}",
        f"failed={','.join(report.failed) or '-'}",
    ]
    return "\n".join(lines)


def _invalid_directory_error(directory: str) -> DashbuilderDeployError:
    return DashbuilderDeployError(
        f"Invalid deployment directory '{directory}'. "
        "Pass an existing directory or create it first."
    )


class DeploymentEventPrinter:
    """Registry listener printing one ``key=uuid`` line per change in watch mode."""

    def on_registered(self, previous: DataSetDef | None, current: DataSetDef) -> None:
        key = "redeployed" if previous is not None else "deployed"
        print(f"{key}={current.uuid}", flush=True)

    def on_removed(self, definition: DataSetDef) -> None:
        print(f"undeployed={definition.uuid}", flush=True)
