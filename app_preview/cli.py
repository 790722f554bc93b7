# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# APP PREVIEW - COMMAND LINE
# -----------------------------------------------------------------------------
# Commands:
# - up <template> --repo URL (--branch B | --pr N) [--root R]
# - up <template> --dir PATH [--root R]
# - down <app-name>
# - status <app-name>
# - serve [--host H] [--port P]      webhook receiver
# -----------------------------------------------------------------------------

import argparse
import sys
from collections.abc import Sequence

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from app_preview import settings
from app_preview.core.config_loader import ConfigError
from app_preview.core.env_providers import EnvProviderError
from app_preview.core.project import Project, ProjectStateError
from app_preview.core.source import SourceAcquisitionError
from app_preview.core.transformer import StackFileNotFoundError
from app_preview.domain.compose import SchemaValidationError
from app_preview.domain.models import GitSource, LocalSource, ProjectOptions, to_domain_name_part
from app_preview.infra.git_client import GitHubAPIError, get_pull_request_branch
from app_preview.infra.shell import EngineInvocationError

console = Console()

LIFECYCLE_ERRORS = (
    ConfigError,
    EngineInvocationError,
    EnvProviderError,
    GitHubAPIError,
    ProjectStateError,
    SchemaValidationError,
    SourceAcquisitionError,
    StackFileNotFoundError,
    ValidationError,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="app-preview", description="CLI for App Preview")
    sub = parser.add_subparsers(dest="command", required=True)

    up = sub.add_parser("up", help="Create (or replace) a preview and start it")
    up.add_argument("template", help="App template name; prefix of the app name")
    up.add_argument("--repo", help="Git repository URL")
    up.add_argument("--branch", help="Branch to preview")
    up.add_argument("--pr", type=int, help="Pull request number to preview")
    up.add_argument("--dir", dest="directory", help="Local directory to preview")
    up.add_argument("--root", help="Project root, relative to the checkout")

    down = sub.add_parser("down", help="Tear a preview down")
    down.add_argument("app_name")

    status = sub.add_parser("status", help="Show a preview's containers")
    status.add_argument("app_name")

    serve = sub.add_parser("serve", help="Run the GitHub webhook receiver")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def derive_app_name(template: str, branch: str | None = None, pr: int | None = None) -> str:
    """
    Example: ("shop", branch="feat/cart") -> "shop-branch-feat-cart"
    """
    if pr is not None:
        name = f"{template}-pr-{pr}"
    elif branch:
        name = f"{template}-branch-{branch}"
    else:
        name = template
    return to_domain_name_part(name)


def options_from_args(args: argparse.Namespace) -> ProjectOptions:
    """Resolve `up` arguments into project options."""
    if args.repo and (args.branch or args.pr is not None):
        branch = args.branch
        if branch is None:
            branch = get_pull_request_branch(settings.github_token(), args.repo, args.pr)
        source = GitSource(repo_url=args.repo, branch=branch)
        app_name = derive_app_name(args.template, branch=args.branch, pr=args.pr)
    elif args.directory:
        source = LocalSource(path=args.directory)
        app_name = derive_app_name(args.template)
    else:
        raise SystemExit("Please provide either --repo with --branch or --pr, or --dir")

    return ProjectOptions(app_name=app_name, source=source, root=args.root or ".")


def _existing(app_name: str) -> Project:
    return Project(ProjectOptions(app_name=app_name, source=LocalSource(path=".")))


def print_status(app_name: str, project: Project) -> None:
    statuses = project.status()
    if not statuses:
        reason = "no containers running" if project.has_stack() else "not deployed"
        console.print(f"[yellow]{app_name}: {reason}[/yellow]")
        return

    table = Table(title=app_name)
    for column in ("Name", "Service", "State", "Health", "Ports"):
        table.add_column(column)
    for item in statuses:
        table.add_row(item.Name, item.Service, item.State, item.Health, item.Ports)
    console.print(table)


def serve(host: str, port: int) -> None:
    import uvicorn

    from app_preview.api import create_app

    uvicorn.run(create_app(), host=host, port=port)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        if args.command == "up":
            options = options_from_args(args)
            console.print(f"[cyan]Creating project {options.app_name} from {options.source}[/cyan]")
            project = Project(options)
            project.initialize()
            project.up()
            return 0

        if args.command == "down":
            _existing(args.app_name).down()
            return 0

        if args.command == "status":
            print_status(args.app_name, _existing(args.app_name))
            return 0

        if args.command == "serve":
            serve(args.host, args.port)
            return 0

    except LIFECYCLE_ERRORS as e:
        console.print(f"[red][ERROR] {escape(str(e))}[/red]")
        return 1

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
