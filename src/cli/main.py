"""Dashbuilder backend CLI entry points.
This module exposes commands for definition management and deployment.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
import sys
from typing import Any, Sequence

from cli.deploy_command import add_deploy_command, run_deploy_command
from core.config import DashbuilderConfig, load_config_file
from core.errors import DashbuilderError
from store.definition_sdk import DashbuilderClient


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="dashbuilder",
        description="Data set definition store and deployer",
    )
    parser.add_argument("--data-root", help="Override DASHBUILDER_DATA_ROOT for this command")
    parser.add_argument("--config", help="Optional YAML config file")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_list_command(subparsers)
    _add_show_command(subparsers)
    _add_register_command(subparsers)
    _add_remove_command(subparsers)
    add_deploy_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the dashbuilder CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args.data_root, args.config)
        if args.command == "deploy":
            return run_deploy_command(config, args)
        client = DashbuilderClient(replace(config, deploy_directory=""))
        client.start()
        if args.command == "list":
            return _run_list_command(client, args)
        if args.command == "show":
            return _run_show_command(client, args)
        if args.command == "register":
            return _run_register_command(client, args)
        if args.command == "remove":
            return _run_remove_command(client, args)
    except DashbuilderError as error:
        print(f"error: {error}", file=sys.stderr)
        return 1
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(data_root: str | None, config_file: str | None) -> DashbuilderConfig:
    """Build config with optional file overlay and data-root override.

    Args:
        data_root: Optional override path.
        config_file: Optional YAML config path.

    Returns:
        Effective runtime config.
    """
    config = DashbuilderConfig.from_env()
    if config_file:
        config = load_config_file(config_file, config)
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return config


def _run_list_command(client: DashbuilderClient, args: argparse.Namespace) -> int:
    """Handle list command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    for definition in client.list_definitions(public_only=args.public_only):
        print(
            f"{definition.uuid}\t"
            f"{definition.provider}\t"
            f"{definition.name or '-'}\t"
            f"{definition.vfs_path or '-'}"
        )
    return 0


def _run_show_command(client: DashbuilderClient, args: argparse.Namespace) -> int:
    """Handle show command."""
    definition = client.get(args.uuid)
    if definition is None:
        print(f"error: data set definition '{args.uuid}' not found", file=sys.stderr)
        return 1
    print(client.to_json(definition), end="")
    return 0


def _run_register_command(client: DashbuilderClient, args: argparse.Namespace) -> int:
    """Handle register command."""
    definition = client.register_file(args.definition_file, args.actor, args.message)
    print(definition.uuid)
    return 0


def _run_remove_command(client: DashbuilderClient, args: argparse.Namespace) -> int:
    """Handle remove command."""
    removed = client.remove(args.uuid, args.actor, args.message)
    if removed is None:
        print(f"error: data set definition '{args.uuid}' not found", file=sys.stderr)
        return 1
    print(removed.uuid)
    return 0


def _add_list_command(subparsers: Any) -> None:
    """Register list subcommand."""
    parser = subparsers.add_parser("list", help="List stored data set definitions")
    parser.add_argument(
        "--public-only",
        action="store_true",
        help="Only list definitions flagged public",
    )


def _add_show_command(subparsers: Any) -> None:
    """Register show subcommand."""
    parser = subparsers.add_parser("show", help="Print one definition as JSON")
    parser.add_argument("uuid", help="Definition uuid")


def _add_register_command(subparsers: Any) -> None:
    """Register register subcommand."""
    parser = subparsers.add_parser("register", help="Store a definition from a .dset file")
    parser.add_argument("definition_file", help="Path to a JSON definition document")
    _add_attribution_arguments(parser)


def _add_remove_command(subparsers: Any) -> None:
    """Register remove subcommand."""
    parser = subparsers.add_parser("remove", help="Delete a stored definition")
    parser.add_argument("uuid", help="Definition uuid")
    _add_attribution_arguments(parser)


def _add_attribution_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--actor", help="Commit author; requires --message")
    parser.add_argument("--message", help="Commit message; requires --actor")
