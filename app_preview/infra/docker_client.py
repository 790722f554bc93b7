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
# DOCKER PROVIDER - SHARED NETWORK FABRIC
# -----------------------------------------------------------------------------
# Responsibility: A wrapper around the Docker SDK for the host-wide resources
# every preview contends for: per-app networks and the shared reverse-proxy
# container attached to them.
#
# Outcomes are decided by inspecting state first (list, then create only if
# absent). Two previews racing on the same host can still collide between
# the inspection and the mutation, so an "already exists" answer from the
# daemon is success too.
# -----------------------------------------------------------------------------

import os

import docker
from docker import DockerClient
from docker.errors import APIError, DockerException, NotFound
from docker.models.networks import Network
from rich.console import Console

from app_preview.infra.shell import EngineInvocationError

console = Console()

MANAGED_LABEL = "app-preview.managed"
ALREADY_EXISTS = "already exists"


class DockerProviderError(EngineInvocationError):
    """Raised when the Docker daemon is unreachable or rejects a request."""

    pass


def _explanation(error: APIError) -> str:
    return str(getattr(error, "explanation", None) or error)


class DockerProvider:
    """
    Docker SDK wrapper for network and proxy-attachment management.

    Connects to DOCKER_HOST when set, otherwise to the local engine, and
    fails fast with a clear error if the daemon is not reachable.
    """

    def __init__(self, client: DockerClient | None = None) -> None:
        """
        Initialize the Docker provider.

        Args:
            client: An existing client (tests inject a mock); connects if None.
        """
        self._client = client or self._connect()

    def _connect(self) -> DockerClient:
        docker_host = os.getenv("DOCKER_HOST")
        try:
            if docker_host:
                client = docker.DockerClient(base_url=docker_host)
            else:
                client = docker.from_env()
            client.ping()
        except DockerException as e:
            console.print("[red][DOCKER] Engine unavailable[/red]")
            raise DockerProviderError(f"Docker Engine is not available: {e}") from e

        console.print(f"[green][DOCKER] Connected to {docker_host or 'local Docker'}[/green]")
        return client

    def find_network(self, name: str) -> Network | None:
        """Return the network with exactly this name, if any."""
        try:
            candidates = self._client.networks.list(names=[name])
        except APIError as e:
            raise DockerProviderError(f"Failed to list networks: {_explanation(e)}") from e

        # The daemon's name filter is a substring match
        for network in candidates:
            if network.name == name:
                return network
        return None

    def ensure_network(self, name: str) -> Network:
        """
        Make sure a bridge network with this name exists.

        Returns:
            The existing or newly created network.

        Raises:
            DockerProviderError: If creation fails for any other reason.
        """
        network = self.find_network(name)
        if network is not None:
            console.print(f"[cyan][DOCKER] Network {name} already present[/cyan]")
            return network

        try:
            network = self._client.networks.create(
                name, driver="bridge", labels={MANAGED_LABEL: "true"}
            )
            console.print(f"[green][DOCKER] Network {name} created[/green]")
            return network
        except APIError as e:
            if ALREADY_EXISTS in _explanation(e):
                console.print(f"[yellow][DOCKER] Network {name} created concurrently[/yellow]")
                network = self.find_network(name)
                if network is not None:
                    return network
            raise DockerProviderError(
                f"Failed to create network {name}: {_explanation(e)}"
            ) from e

    def is_attached(self, network: Network, container_name: str) -> bool:
        """Check whether a container is already an endpoint of the network."""
        network.reload()
        endpoints = network.attrs.get("Containers") or {}
        for container_id, endpoint in endpoints.items():
            if container_name in (container_id, endpoint.get("Name")):
                return True
        return False

    def attach_container(self, network_name: str, container_name: str) -> None:
        """
        Connect a container (the reverse proxy) to a network, once.

        Raises:
            DockerProviderError: If the network or container is missing, or
                the daemon rejects the connection for any other reason.
        """
        network = self.find_network(network_name)
        if network is None:
            raise DockerProviderError(f"Network {network_name} does not exist")

        if self.is_attached(network, container_name):
            console.print(
                f"[cyan][DOCKER] {container_name} already attached to {network_name}[/cyan]"
            )
            return

        try:
            container = self._client.containers.get(container_name)
        except NotFound as e:
            raise DockerProviderError(
                f"Proxy container {container_name} not found - is the reverse proxy running?"
            ) from e

        try:
            network.connect(container)
            console.print(f"[green][DOCKER] {container_name} attached to {network_name}[/green]")
        except APIError as e:
            if ALREADY_EXISTS in _explanation(e):
                console.print(
                    f"[yellow][DOCKER] {container_name} attached concurrently to {network_name}[/yellow]"
                )
                return
            raise DockerProviderError(
                f"Failed to attach {container_name} to {network_name}: {_explanation(e)}"
            ) from e

    def remove_network(self, name: str, detach: list[str] | None = None) -> None:
        """
        Remove a network, disconnecting the given containers first.

        Missing networks and containers that are not connected are fine.
        """
        network = self.find_network(name)
        if network is None:
            return

        for container_name in detach or []:
            try:
                network.disconnect(container_name, force=True)
                console.print(f"[cyan][DOCKER] {container_name} detached from {name}[/cyan]")
            except NotFound:
                pass
            except APIError as e:
                if "is not connected" not in _explanation(e):
                    raise DockerProviderError(
                        f"Failed to detach {container_name} from {name}: {_explanation(e)}"
                    ) from e

        try:
            network.remove()
            console.print(f"[green][DOCKER] Network {name} removed[/green]")
        except NotFound:
            pass
        except APIError as e:
            raise DockerProviderError(f"Failed to remove network {name}: {_explanation(e)}") from e
