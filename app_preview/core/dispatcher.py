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
# LIFECYCLE DISPATCHER - PULL REQUEST EVENTS
# -----------------------------------------------------------------------------
# Responsibility: Decide what a pull-request lifecycle event means for its
# preview ({app_name, source, verb}) and run that verb on a Project.
#
#   opened / synchronize / reopened / ready_for_review (not draft) -> up
#   closed / converted_to_draft                                   -> down
#
# Signature verification and HTTP transport live in api.py.
# -----------------------------------------------------------------------------

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict
from rich.console import Console

from app_preview.core.project import Project
from app_preview.domain.models import GitSource, ProjectOptions, ProjectSource, to_domain_name_part
from app_preview.settings import ServerConfig

console = Console()

UP_ACTIONS = {"opened", "synchronize", "reopened", "ready_for_review"}
DOWN_ACTIONS = {"closed", "converted_to_draft"}

Verb = Literal["up", "down"]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class RepositoryRef(_Payload):
    name: str
    full_name: str
    html_url: str


class BranchRef(_Payload):
    ref: str


class PullRequestRef(_Payload):
    draft: bool = False
    head: BranchRef
    base: BranchRef | None = None


class PullRequestEvent(_Payload):
    """The part of a GitHub `pull_request` webhook payload we act on."""

    action: str
    number: int
    repository: RepositoryRef
    pull_request: PullRequestRef


@dataclass(frozen=True)
class LifecycleCommand:
    app_name: str
    source: ProjectSource
    verb: Verb


def pull_request_app_name(repository_name: str, number: int) -> str:
    return f"{to_domain_name_part(repository_name)}-pr-{number}"


def plan_pull_request(
    event: PullRequestEvent, server_config: ServerConfig | None = None
) -> LifecycleCommand | None:
    """
    Map a pull_request event to a lifecycle command.

    Returns:
        The command, or None if the event does not concern the preview.
    """
    app_name = pull_request_app_name(event.repository.name, event.number)
    source = GitSource(repo_url=event.repository.html_url, branch=event.pull_request.head.ref)

    if event.action in DOWN_ACTIONS:
        return LifecycleCommand(app_name, source, "down")

    if event.action not in UP_ACTIONS or event.pull_request.draft:
        return None

    repo_settings = (server_config or ServerConfig()).repositories.get(event.repository.full_name)
    if repo_settings is not None:
        if not repo_settings.enable_preview:
            console.print(f"[yellow][DISPATCH] Previews disabled for {event.repository.full_name}[/yellow]")
            return None
        base = event.pull_request.base.ref if event.pull_request.base else None
        if repo_settings.target_branch and base != repo_settings.target_branch:
            console.print(
                f"[yellow][DISPATCH] #{event.number} targets {base}, not "
                f"{repo_settings.target_branch}[/yellow]"
            )
            return None

    return LifecycleCommand(app_name, source, "up")


class LifecycleDispatcher:
    """Runs lifecycle commands coming from webhooks or the CLI."""

    def __init__(self, project_factory: Callable[[ProjectOptions], Project] = Project) -> None:
        self._project_factory = project_factory

    def dispatch(self, command: LifecycleCommand) -> list[str] | None:
        """
        Execute a command.

        Returns:
            The public domains for `up`, None for `down`.
        """
        console.print(f"[cyan][DISPATCH] {command.verb} {command.app_name}[/cyan]")
        options = ProjectOptions(app_name=command.app_name, source=command.source)
        project = self._project_factory(options)

        if command.verb == "down":
            project.down()
            return None

        project.initialize()
        return project.up()
