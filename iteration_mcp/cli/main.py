#!/usr/bin/env python3
"""CLI for the iteration-mcp server and its helpers."""

from __future__ import annotations

import argparse
import json
import sys

from iteration_mcp.core import (
    GitMetadataResolver,
    IterationError,
    RemoteServiceClient,
    TokenProvider,
    load_service_config,
    resolve_project_id,
    resolve_workspace,
)
from iteration_mcp.observability import configure_logging


def _client() -> RemoteServiceClient:
    config = load_service_config()
    tokens = TokenProvider(config_loader=lambda: config)
    return RemoteServiceClient(config, tokens.get_token)


def serve(args: argparse.Namespace) -> int:
    from iteration_mcp.server import run

    run(args.workdir, args.token_file)
    return 0


def git_info(args: argparse.Namespace) -> int:
    """Print the metadata derived from the workspace checkout."""
    workspace = resolve_workspace(args.workdir)
    snapshot = GitMetadataResolver().resolve(workspace)
    if args.json:
        print(json.dumps({"workspace": str(workspace), **snapshot.to_dict()}, indent=2))
        return 0

    print(f"[iteration-mcp] Workspace {workspace}")
    for key, value in snapshot.to_dict().items():
        print(f"  {key}: {value if value is not None else '-'}")
    return 0


def list_projects(args: argparse.Namespace) -> int:
    with _client() as client:
        projects = client.list_projects()
    if not projects:
        print("[iteration-mcp] No projects returned by the service.")
        return 0
    for project in projects:
        print(f"{project.id}\t{project.name}")
    return 0


def list_users(args: argparse.Namespace) -> int:
    with _client() as client:
        users = client.list_users()
    if not users:
        print("[iteration-mcp] No users returned by the service.")
        return 0
    for user in users:
        print(f"{user.id}\t{user.name}")
    return 0


def resolve_project(args: argparse.Namespace) -> int:
    """Show which project id a project line token resolves to."""
    with _client() as client:
        projects = client.list_projects()
    project_id = resolve_project_id(args.token, projects)
    name = next(project.name for project in projects if project.id == project_id)
    print(f"[iteration-mcp] {args.token!r} -> {name}({project_id})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--log-level",
        help="Logging level (defaults to ITERATION_MCP_LOG or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the MCP server over stdio")
    serve_parser.add_argument(
        "--workdir", help="Workspace used when the host provides none"
    )
    serve_parser.add_argument(
        "--token-file",
        help="File holding a personal token; it takes precedence over every other source",
    )
    serve_parser.set_defaults(handler=serve)

    git_parser = subparsers.add_parser(
        "git-info", help="Show git metadata derived from a workspace"
    )
    git_parser.add_argument("--workdir", help="Workspace directory to inspect")
    git_parser.add_argument("--json", action="store_true", help="Emit JSON")
    git_parser.set_defaults(handler=git_info)

    projects_parser = subparsers.add_parser("projects", help="List remote projects")
    projects_parser.set_defaults(handler=list_projects)

    users_parser = subparsers.add_parser("users", help="List remote users")
    users_parser.set_defaults(handler=list_users)

    resolve_parser = subparsers.add_parser(
        "resolve-project", help="Resolve a project line token to a project id"
    )
    resolve_parser.add_argument("token", help="Project id or (partial) project name")
    resolve_parser.set_defaults(handler=resolve_project)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        return args.handler(args)
    except IterationError as exc:
        print(f"[iteration-mcp] {exc.kind}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
