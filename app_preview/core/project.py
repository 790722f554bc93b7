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
# THE PROJECT - PREVIEW LIFECYCLE
# -----------------------------------------------------------------------------
# Orchestrates one preview instance through its lifecycle:
#
#   Uninitialized --initialize()--> Initialized --up()--> Up
#   down() from any state returns to a clean slate.
#
# - initialize: tear down any prior instance, acquire source, load config
# - up: transform the stack, layer the env, write artifacts, run the engine
# - down: compose down, remove the shared network, delete the directory
# - status: read-only snapshot
#
# There is no locking: concurrent calls for the SAME app name race, and
# serializing them is the caller's job. Different app names never share
# a directory, network, container or router name.
# -----------------------------------------------------------------------------

import asyncio
import shutil
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from app_preview import settings
from app_preview.core.config_loader import ConfigContext, ConfigLoader, merge_config
from app_preview.core.env_providers import (
    DotEnvFileProvider,
    EnvProviderFactory,
    layer_env_providers,
    render_env_file,
)
from app_preview.core.executor import StackExecutor
from app_preview.core.source import SourceProvider
from app_preview.core.transformer import StackTransformer, network_name, write_atomic
from app_preview.domain.env import EnvVars
from app_preview.domain.models import ContainerStatus, ProjectOptions
from app_preview.infra.docker_client import DockerProvider
from app_preview.infra.git_client import GitProvider
from app_preview.infra.shell import EngineInvocationError

console = Console()

TEMP_DIR_NAME = ".app-preview"
PROCESSED_STACK_NAME = "docker-compose.yml"
ENV_FILE_NAME = ".env"


class ProjectStateError(Exception):
    """Raised when a lifecycle call is made in the wrong state."""

    pass


class ProjectPaths:
    """Filesystem layout of one project, derived from its options."""

    def __init__(self, apps_dir: Path, options: ProjectOptions) -> None:
        self._apps_dir = apps_dir
        self._options = options

    @property
    def project_directory(self) -> Path:
        return self._apps_dir / self._options.app_name

    @property
    def root(self) -> Path:
        return self.project_directory / self._options.root

    @property
    def temp(self) -> Path:
        return self.root / TEMP_DIR_NAME

    @property
    def stack_file(self) -> Path:
        return self.root / self._options.stack_file_path

    @property
    def processed_stack(self) -> Path:
        return self.temp / PROCESSED_STACK_NAME

    @property
    def env_file(self) -> Path:
        return self.temp / ENV_FILE_NAME


class Project:
    """
    One preview deployment, identified by its app name.

    Collaborators are injectable; by default the source provider uses
    GITHUB_TOKEN and the Docker provider connects lazily on first use.
    """

    def __init__(
        self,
        options: ProjectOptions,
        apps_dir: Path | None = None,
        source_provider: SourceProvider | None = None,
        docker: DockerProvider | None = None,
        proxy_container: str | None = None,
    ) -> None:
        self._options = options
        # Compose runs from the project root, so every artifact path is absolute
        self._apps_dir = Path(apps_dir or settings.APPS_DIR).resolve()
        self._source_provider = source_provider or SourceProvider()
        self._docker = docker
        self._proxy_container = proxy_container or settings.PROXY_CONTAINER_NAME
        self._initialized = False

    @property
    def options(self) -> ProjectOptions:
        return self._options

    @property
    def app_name(self) -> str:
        return self._options.app_name

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def paths(self) -> ProjectPaths:
        return ProjectPaths(self._apps_dir, self._options)

    def _get_docker(self) -> DockerProvider:
        """Lazy init DockerProvider."""
        if self._docker is None:
            self._docker = DockerProvider()
        return self._docker

    def _executor(self) -> StackExecutor:
        """
        Executor for the processed stack of this app.

        A fresh Project (e.g. one built only to tear a preview down) does not
        know the configured root, so fall back to searching the project
        directory for processed artifacts.
        """
        paths = self.paths
        stack = paths.processed_stack
        if not stack.is_file() and paths.project_directory.is_dir():
            found = sorted(
                paths.project_directory.glob(f"**/{TEMP_DIR_NAME}/{PROCESSED_STACK_NAME}"),
                key=lambda p: len(p.parts),
            )
            if found:
                stack = found[0]

        root = stack.parent.parent
        return StackExecutor(self.app_name, root, stack, stack.parent / ENV_FILE_NAME)

    def initialize(self) -> "Project":
        """
        Tear down any prior instance, acquire the source and load the config.

        Idempotent: a second call on an initialized project does nothing.

        Raises:
            SourceAcquisitionError: If the source cannot be materialized
            ConfigError: If the project configuration is missing or invalid
            EngineInvocationError: If the prior instance cannot be torn down
        """
        if self._initialized:
            return self

        console.print(f"[cyan][PROJECT] Initializing {self.app_name}...[/cyan]")
        self._cleanup()

        self._source_provider.acquire(self._options.source, self.paths.project_directory)

        context = ConfigContext(
            app_name=self.app_name,
            app_name_domain_infix=self._options.app_name_domain_infix,
            env_providers=EnvProviderFactory(self.paths.project_directory),
        )
        config = ConfigLoader(self.paths.project_directory, context).load()
        self._options = merge_config(self._options, config)

        self._initialized = True
        console.print(f"[green][PROJECT] {self.app_name} initialized[/green]")
        return self

    def up(self) -> list[str]:
        """
        Transform the stack, layer the environment and start the stack.

        Returns:
            The public domains routed to this preview.

        Raises:
            ProjectStateError: If initialize() has not been called
        """
        if not self._initialized:
            raise ProjectStateError("Project not initialized. Please call initialize() first.")

        paths = self.paths
        transformer = StackTransformer(
            app_name=self.app_name,
            temp_dir=paths.temp,
            env_file=paths.env_file,
            expose=self._options.expose,
            network_manager=self._get_docker(),
            proxy_container=self._proxy_container,
        )

        # Everything that can fail on bad input happens before any write
        document = transformer.load(paths.stack_file)
        result = transformer.transform(document)
        env_content = self._render_env()

        transformer.write(result, paths.processed_stack)
        write_atomic(paths.env_file, env_content)

        StackExecutor(self.app_name, paths.root, paths.processed_stack, paths.env_file).up()

        listing = "\n".join(f" - http://{domain}" for domain in result.domains) or " (none exposed)"
        console.print(
            Panel(
                f"[green]Domains[/green]:\n{listing}",
                title=f'Project "{self.app_name}" is up',
                border_style="green",
            )
        )
        return result.domains

    def down(self) -> None:
        """Tear the preview down completely. Safe to call in any state."""
        self._cleanup()
        self._initialized = False
        console.print(Panel(f'Project "{self.app_name}" down', border_style="yellow"))

    def status(self) -> list[ContainerStatus] | None:
        """
        Running containers of this preview.

        Returns None both when nothing was ever brought up (no processed
        stack) and when no containers are running; has_stack() tells the
        two apart.
        """
        return self._executor().status()

    def has_stack(self) -> bool:
        """True if processed artifacts exist for this preview."""
        return self._executor().has_stack()

    def _render_env(self) -> str:
        paths = self.paths
        providers = self._options.env_providers or [DotEnvFileProvider(paths.root / ENV_FILE_NAME)]
        layered = asyncio.run(layer_env_providers(providers))

        machine = {
            "APP_NAME": self.app_name,
            "APP_NAME_DOMAIN_INFIX": self._options.app_name_domain_infix,
        }
        commit_sha = self._commit_sha()
        if commit_sha:
            machine["COMMIT_SHA"] = commit_sha

        return render_env_file(EnvVars(machine), layered)

    def _commit_sha(self) -> str | None:
        git = GitProvider(self.paths.project_directory)
        if not git.has_checkout():
            return None
        try:
            return git.head_sha()
        except EngineInvocationError as e:
            console.print(f"[yellow][PROJECT] Error getting commit SHA: {escape(str(e))}[/yellow]")
            return None

    def _cleanup(self) -> None:
        """Compose down, remove the shared network, delete the directory."""
        self._executor().down()
        self._get_docker().remove_network(network_name(self.app_name), detach=[self._proxy_container])

        directory = self.paths.project_directory
        if directory.exists():
            shutil.rmtree(directory)
            console.print(f"[cyan][PROJECT] Removed {directory}[/cyan]")
