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
# STACK EXECUTOR - COMPOSE VERBS
# -----------------------------------------------------------------------------
# Responsibility: Drive `docker compose` against the processed artifacts of
# one project: up, down and ps.
#
# Every call is parameterized by project name, project root, processed
# stack file and (when present) the processed env file. No timeout is
# imposed beyond the engine's own --wait health semantics.
# -----------------------------------------------------------------------------

import json
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console

from app_preview.domain.models import ContainerStatus
from app_preview.infra.shell import EngineInvocationError, run_command

console = Console()

UP_ARGS = ["up", "--force-recreate", "--build", "-d", "--wait"]
DOWN_ARGS = ["down", "--volumes", "--remove-orphans"]
PS_ARGS = ["ps", "--format", "json"]


class StackExecutor:
    """Runs compose verbs for one project."""

    def __init__(self, project_name: str, project_root: Path, stack_file: Path, env_file: Path) -> None:
        """
        Args:
            project_name: Compose project name (the app name)
            project_root: --project-directory for relative paths in the stack
            stack_file: The processed stack file
            env_file: The processed env file (passed only if it exists)
        """
        self._project_name = project_name
        self._project_root = project_root
        self._stack_file = stack_file
        self._env_file = env_file

    def has_stack(self) -> bool:
        """True if processed artifacts exist for this project."""
        return self._stack_file.is_file()

    def command(self, args: list[str], use_env_file: bool = True) -> list[str]:
        """Build the full compose command line for `args`."""
        cmd = ["docker", "compose"]
        if use_env_file and self._env_file.is_file():
            cmd += ["--env-file", str(self._env_file)]
        cmd += [
            "--project-name", self._project_name,
            "--project-directory", str(self._project_root),
            "-f", str(self._stack_file),
        ]
        return cmd + args

    def compose(self, args: list[str], check: bool = True, use_env_file: bool = True):
        """
        Run a compose verb against the processed stack.

        Returns:
            CompletedProcess, or None when there is no processed stack file

        Raises:
            EngineInvocationError: If the verb fails and check=True
        """
        if not self.has_stack():
            console.print(f"[yellow][EXECUTOR] No processed stack at {self._stack_file}[/yellow]")
            return None
        return run_command(self.command(args, use_env_file), cwd=self._project_root, check=check)

    def up(self) -> None:
        """Force-recreate, build, detach, and wait until healthy."""
        console.print(f"[cyan][EXECUTOR] Starting stack {self._project_name}...[/cyan]")
        if self.compose(UP_ARGS) is None:
            raise EngineInvocationError(f"Cannot start {self._project_name}: no processed stack file")
        console.print(f"[green][EXECUTOR] Stack {self._project_name} is up[/green]")

    def down(self) -> None:
        """Remove containers, volumes and orphans. Best effort."""
        console.print(f"[cyan][EXECUTOR] Stopping stack {self._project_name}...[/cyan]")
        self.compose(DOWN_ARGS, check=False)

    def status(self) -> list[ContainerStatus] | None:
        """
        Snapshot the running containers.

        Returns:
            One ContainerStatus per container, or None when there is no
            processed stack file or the engine reports no containers.
        """
        result = self.compose(PS_ARGS)
        if result is None:
            return None

        statuses = parse_ps_output(result.stdout)
        return statuses or None


def parse_ps_output(output: str) -> list[ContainerStatus]:
    """
    Parse `compose ps --format json` output.

    Current engines print one JSON object per line; older ones print a single
    JSON array. Both are accepted.
    """
    records: list[dict] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            parsed = json.loads(line)
        except json.JSONDecodeError as e:
            raise EngineInvocationError(f"Unreadable status output: {line[:200]}") from e
        records.extend(parsed if isinstance(parsed, list) else [parsed])

    try:
        return [ContainerStatus.model_validate(record) for record in records]
    except ValidationError as e:
        raise EngineInvocationError(f"Unexpected status record: {e}") from e
