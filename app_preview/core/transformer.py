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
# STACK TRANSFORMER - ISOLATION & ROUTING
# -----------------------------------------------------------------------------
# Responsibility: Turn a project's compose file into the processed stack the
# engine runs. Many previews share one host, one reverse proxy and one
# network fabric, so every name is prefixed with the app name.
#
# Mutation order (deterministic):
# 1. Stack name := app name
# 2. Shared network {app}_default exists, proxy attached, network external
# 3. Per service, in document order: env file, container name, network,
#    baseline proxy labels, router labels, basic auth, inline volumes
# 4. Artifacts are written only after every mutation succeeded
#
# transform() touches only memory (and the engine's network state);
# write() puts the inline volume files and the stack file on disk, the
# stack file atomically, so the executor never sees a half-mutated stack.
# -----------------------------------------------------------------------------

import os
import posixpath
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from rich.console import Console

from app_preview import settings
from app_preview.domain.compose import (
    NetworkDefinition,
    SchemaValidationError,
    ServiceDefinition,
    ServiceVolume,
    StackDocument,
)
from app_preview.domain.models import ExposeRule

console = Console()

DYNAMIC_VOLUMES_DIR = "dynamic-volumes"

# Compose interpolates "$" in label values; each intended "$" is written as
# four literal "$" characters.
DOLLAR_ESCAPE = "$$$$"


class StackFileNotFoundError(FileNotFoundError):
    """Raised when the project's declared stack file does not exist."""

    pass


class NetworkManager(Protocol):
    """What the transformer needs from the Docker provider."""

    def ensure_network(self, name: str): ...

    def attach_container(self, network_name: str, container_name: str) -> None: ...


def network_name(app_name: str) -> str:
    """The shared network of a preview."""
    return f"{app_name}_default"


def router_name(app_name: str, service_name: str) -> str:
    """The proxy router (and middleware prefix) of one service of a preview."""
    return f"{app_name}_{service_name}"


def escape_dollars(value: str) -> str:
    return value.replace("$", DOLLAR_ESCAPE)


@dataclass
class TransformResult:
    """A fully mutated stack, ready to be written."""

    document: StackDocument
    domains: list[str] = field(default_factory=list)
    # Host path -> inline content to materialize before the stack runs
    volume_files: dict[Path, str] = field(default_factory=dict)


class StackTransformer:
    """
    Namespaces, networks and labels a stack document for one app name.

    Why the network manager is injected: the shared network and the proxy
    are host-wide resources, and tests replace them with mocks.
    """

    def __init__(
        self,
        app_name: str,
        temp_dir: Path,
        env_file: Path,
        expose: dict[str, ExposeRule] | None = None,
        network_manager: NetworkManager | None = None,
        proxy_container: str | None = None,
        entrypoint: str | None = None,
    ) -> None:
        """
        Args:
            app_name: The preview's identity
            temp_dir: Processed-artifact directory (.app-preview)
            env_file: Path of the processed env file added to every service
            expose: Exposure rules keyed by service name
            network_manager: Creates networks and attaches the proxy
            proxy_container: Name of the shared reverse-proxy container
            entrypoint: Proxy entry point routers bind to
        """
        self._app_name = app_name
        self._temp_dir = temp_dir
        self._env_file = env_file
        self._expose = expose or {}
        self._network_manager = network_manager
        self._proxy_container = proxy_container or settings.PROXY_CONTAINER_NAME
        self._entrypoint = entrypoint or settings.PROXY_ENTRYPOINT

    @property
    def network(self) -> str:
        return network_name(self._app_name)

    @property
    def dynamic_volumes_dir(self) -> Path:
        return self._temp_dir / DYNAMIC_VOLUMES_DIR

    def load(self, stack_file: Path) -> StackDocument:
        """
        Read and validate the stack file.

        Raises:
            StackFileNotFoundError: If the file does not exist
            SchemaValidationError: If the document is invalid
        """
        if not stack_file.is_file():
            raise StackFileNotFoundError(f'No stack file found at "{stack_file}"')
        return StackDocument.from_yaml(stack_file.read_text())

    def transform(self, document: StackDocument) -> TransformResult:
        """
        Apply every isolation and routing mutation to an already validated
        document. Nothing is written to disk here.
        """
        result = TransformResult(document=document)

        # 1. Stack name
        document.name = self._app_name

        # 2. Shared network + proxy attachment
        self._setup_network()
        networks = dict(document.networks or {})
        networks[self.network] = NetworkDefinition(external=True)
        document.networks = networks

        # 3. Services, in document order
        for name, service in document.services.items():
            console.print(f"[cyan][TRANSFORMER] Processing service {name}[/cyan]")
            self._add_env_file(service)
            self._namespace_container(name, service)
            self._attach_network(service)
            self._add_labels(name, service, result)
            self._collect_inline_volumes(name, service, result)

        console.print(
            f"[green][TRANSFORMER] {len(document.services)} services prepared for "
            f"{self._app_name}[/green]"
        )
        return result

    def write(self, result: TransformResult, target: Path) -> Path:
        """
        Materialize inline volumes, then write the processed stack file.

        The stack file is written to a temporary file and moved into place,
        so readers see either the previous file or the complete new one.
        """
        for path, content in result.volume_files.items():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)

        write_atomic(target, result.document.to_yaml())
        console.print(f"[green][TRANSFORMER] Processed stack written: {target}[/green]")
        return target

    def _setup_network(self) -> None:
        if self._network_manager is None:
            raise RuntimeError("StackTransformer needs a network manager to prepare the network")

        self._network_manager.ensure_network(self.network)
        self._network_manager.attach_container(self.network, self._proxy_container)

    def _add_env_file(self, service: ServiceDefinition) -> None:
        env_files = service.env_file or []
        if isinstance(env_files, str):
            env_files = [env_files]
        service.env_file = [*env_files, str(self._env_file)]

    def _namespace_container(self, name: str, service: ServiceDefinition) -> None:
        service.container_name = f"{self._app_name}_{service.container_name or name}"

    def _attach_network(self, service: ServiceDefinition) -> None:
        networks = service.networks
        if networks is None:
            service.networks = [self.network]
        elif isinstance(networks, list):
            if self.network not in networks:
                service.networks = [*networks, self.network]
        else:
            service.networks = {**networks, self.network: networks.get(self.network)}

    def _add_labels(self, name: str, service: ServiceDefinition, result: TransformResult) -> None:
        labels = service.labels or []
        if isinstance(labels, dict):
            labels = [f"{key}={value}" for key, value in labels.items()]
        labels = list(labels)

        rule = self._expose.get(name) or ExposeRule()
        router = router_name(self._app_name, name)

        labels.append(f"traefik.docker.network={self.network}")
        labels.append(f"traefik.port={rule.port}")

        if rule.domain:
            labels.append("traefik.enable=true")
            labels.append(f"traefik.http.routers.{router}.rule=Host(`{rule.domain}`)")
            labels.append(f"traefik.http.routers.{router}.entrypoints={self._entrypoint}")
            result.domains.append(rule.domain)

        if rule.basic_auth:
            users = escape_dollars(",".join(rule.basic_auth))
            labels.append(f"traefik.http.middlewares.{router}-auth.basicAuth.users={users}")
            labels.append(f"traefik.http.routers.{router}.middlewares={router}-auth")

        service.labels = labels

    def _collect_inline_volumes(
        self, name: str, service: ServiceDefinition, result: TransformResult
    ) -> None:
        if not service.volumes:
            return

        volumes: list[str | ServiceVolume] = []
        for volume in service.volumes:
            if isinstance(volume, str) or volume.content is None:
                volumes.append(volume)
                continue

            data = volume.model_dump(exclude_unset=True, exclude={"content"})

            if volume.type != "bind" or volume.source:
                console.print(
                    f"[yellow][TRANSFORMER] {name}: inline content ignored for "
                    f"{volume.type} volume {volume.target}[/yellow]"
                )
            else:
                basename = posixpath.basename(volume.target.rstrip("/"))
                if basename in ("", ".", ".."):
                    raise SchemaValidationError(
                        f"{name}: inline volume target {volume.target!r} has no file name"
                    )
                path = self.dynamic_volumes_dir / basename
                existing = result.volume_files.get(path)
                if existing is not None and existing != volume.content:
                    raise SchemaValidationError(
                        f"Inline volumes collide on {path.name}: two mounts share the target "
                        f"basename with different content"
                    )
                result.volume_files[path] = volume.content
                data["source"] = str(path)

            volumes.append(ServiceVolume.model_validate(data))

        service.volumes = volumes


def write_atomic(target: Path, content: str) -> None:
    """Write a file via a temporary sibling and an atomic rename."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.replace(tmp_path, target)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise
