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
# STACK DOCUMENT SCHEMA
# -----------------------------------------------------------------------------
# A strict Pydantic rendition of the compose file format. Only recognized
# top-level and per-service keys are accepted; unknown keys or malformed
# shapes are rejected at the gate, before any transformation runs.
#
# Extension: bind volumes may carry inline `content` instead of a host
# `source`. The transformer materializes it to disk and drops the field.
# -----------------------------------------------------------------------------

from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

StringOrNumber = str | int | float
StringOrList = str | list[str]
MapOrList = dict[str, str] | list[str]
EnvValue = str | int | float | bool | None
ExternalRef = bool | dict[str, str]


class SchemaValidationError(Exception):
    """Raised when a stack document is not a valid compose document."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class StrictModel(BaseModel):
    """Base for every schema node: unknown keys are an error."""

    model_config = ConfigDict(extra="forbid")


class PortMapping(StrictModel):
    target: int
    published: int | str | None = None
    host_ip: str | None = None
    protocol: Literal["tcp", "udp"] | None = None
    mode: Literal["host", "ingress"] | None = None


class BindOptions(StrictModel):
    propagation: str | None = None
    create_host_path: bool | None = None
    selinux: Literal["z", "Z"] | None = None


class VolumeOptions(StrictModel):
    nocopy: bool | None = None
    subpath: str | None = None


class TmpfsOptions(StrictModel):
    size: int | str | None = None
    mode: int | None = None


class ServiceVolume(StrictModel):
    type: Literal["volume", "bind", "tmpfs", "npipe"]
    source: str | None = None
    target: str
    read_only: bool | None = None
    consistency: str | None = None
    bind: BindOptions | None = None
    volume: VolumeOptions | None = None
    tmpfs: TmpfsOptions | None = None
    content: str | None = None


class ServiceNetwork(StrictModel):
    aliases: list[str] | None = None
    ipv4_address: str | None = None
    ipv6_address: str | None = None
    link_local_ips: list[str] | None = None
    priority: int | None = None


class HealthCheck(StrictModel):
    test: StringOrList | None = None
    interval: str | None = None
    timeout: str | None = None
    retries: int | None = None
    start_period: str | None = None
    start_interval: str | None = None
    disable: bool | None = None


class Logging(StrictModel):
    driver: str | None = None
    options: dict[str, str] | None = None


class ResourceLimits(StrictModel):
    cpus: StringOrNumber | None = None
    memory: str | None = None
    pids: int | None = None


class ResourceReservations(StrictModel):
    cpus: StringOrNumber | None = None
    memory: str | None = None
    generic_resources: list[dict[str, Any]] | None = None
    devices: list[dict[str, Any]] | None = None


class Resources(StrictModel):
    limits: ResourceLimits | None = None
    reservations: ResourceReservations | None = None


class UpdateConfig(StrictModel):
    parallelism: int | None = None
    delay: str | None = None
    failure_action: Literal["continue", "rollback", "pause"] | None = None
    monitor: str | None = None
    max_failure_ratio: float | None = None
    order: Literal["stop-first", "start-first"] | None = None


class RestartPolicy(StrictModel):
    condition: Literal["none", "on-failure", "any"] | None = None
    delay: str | None = None
    max_attempts: int | None = None
    window: str | None = None


class Placement(StrictModel):
    constraints: list[str] | None = None
    preferences: list[dict[str, Any]] | None = None
    max_replicas_per_node: int | None = None


class Deploy(StrictModel):
    mode: Literal["global", "replicated"] | None = None
    replicas: int | None = None
    labels: MapOrList | None = None
    update_config: UpdateConfig | None = None
    rollback_config: UpdateConfig | None = None
    resources: Resources | None = None
    restart_policy: RestartPolicy | None = None
    placement: Placement | None = None
    endpoint_mode: Literal["vip", "dnsrr"] | None = None


class Build(StrictModel):
    context: str | None = None
    dockerfile: str | None = None
    dockerfile_inline: str | None = None
    args: dict[str, EnvValue] | list[str] | None = None
    cache_from: list[str] | None = None
    labels: MapOrList | None = None
    network: str | None = None
    shm_size: StringOrNumber | None = None
    target: str | None = None
    extra_hosts: MapOrList | None = None
    isolation: str | None = None
    platforms: list[str] | None = None


class DependsOnCondition(StrictModel):
    condition: Literal[
        "service_started", "service_healthy", "service_completed_successfully"
    ] | None = None
    restart: bool | None = None
    required: bool | None = None


class Extends(StrictModel):
    service: str
    file: str | None = None


class Ulimit(StrictModel):
    soft: int
    hard: int


class ServiceDefinition(StrictModel):
    """One entry under `services:`."""

    image: str | None = None
    build: str | Build | None = None
    container_name: str | None = None
    command: StringOrList | None = None
    entrypoint: StringOrList | None = None
    environment: dict[str, EnvValue] | list[str] | None = None
    env_file: StringOrList | None = None
    ports: list[str | int | PortMapping] | None = None
    expose: list[StringOrNumber] | None = None
    volumes: list[str | ServiceVolume] | None = None
    networks: list[str] | dict[str, ServiceNetwork | None] | None = None
    depends_on: list[str] | dict[str, DependsOnCondition] | None = None
    restart: Literal["no", "always", "on-failure", "unless-stopped"] | None = None
    deploy: Deploy | None = None
    healthcheck: HealthCheck | None = None
    labels: MapOrList | None = None
    logging: Logging | None = None
    working_dir: str | None = None
    user: str | None = None
    hostname: str | None = None
    domainname: str | None = None
    mac_address: str | None = None
    privileged: bool | None = None
    read_only: bool | None = None
    stdin_open: bool | None = None
    tty: bool | None = None
    stop_signal: str | None = None
    stop_grace_period: str | None = None
    security_opt: list[str] | None = None
    cap_add: list[str] | None = None
    cap_drop: list[str] | None = None
    dns: StringOrList | None = None
    dns_search: StringOrList | None = None
    dns_opt: list[str] | None = None
    tmpfs: StringOrList | None = None
    extra_hosts: MapOrList | None = None
    links: list[str] | None = None
    external_links: list[str] | None = None
    ulimits: dict[str, int | Ulimit] | None = None
    sysctls: dict[str, StringOrNumber] | list[str] | None = None
    userns_mode: str | None = None
    pid: str | None = None
    ipc: str | None = None
    cgroup_parent: str | None = None
    devices: list[str] | None = None
    isolation: str | None = None
    init: bool | None = None
    platform: str | None = None
    profiles: list[str] | None = None
    pull_policy: Literal["always", "never", "missing", "build", "if_not_present"] | None = None
    shm_size: StringOrNumber | None = None
    extends: str | Extends | None = None


class VolumeDefinition(StrictModel):
    driver: str | None = None
    driver_opts: dict[str, StringOrNumber] | None = None
    external: ExternalRef | None = None
    labels: MapOrList | None = None
    name: str | None = None


class IpamPool(StrictModel):
    subnet: str | None = None
    ip_range: str | None = None
    gateway: str | None = None
    aux_addresses: dict[str, str] | None = None


class Ipam(StrictModel):
    driver: str | None = None
    config: list[IpamPool] | None = None
    options: dict[str, str] | None = None


class NetworkDefinition(StrictModel):
    driver: str | None = None
    driver_opts: dict[str, StringOrNumber] | None = None
    attachable: bool | None = None
    enable_ipv6: bool | None = None
    ipam: Ipam | None = None
    external: ExternalRef | None = None
    internal: bool | None = None
    labels: MapOrList | None = None
    name: str | None = None


class FileObject(StrictModel):
    """Shape shared by top-level `configs` and `secrets` entries."""

    file: str | None = None
    environment: str | None = None
    content: str | None = None
    external: ExternalRef | None = None
    name: str | None = None
    driver: str | None = None
    driver_opts: dict[str, StringOrNumber] | None = None
    template_driver: str | None = None


class StackDocument(StrictModel):
    """A whole compose document."""

    version: str | None = None
    name: str | None = None
    services: dict[str, ServiceDefinition]
    networks: dict[str, NetworkDefinition | None] | None = None
    volumes: dict[str, VolumeDefinition | None] | None = None
    configs: dict[str, FileObject | None] | None = None
    secrets: dict[str, FileObject | None] | None = None

    @classmethod
    def from_yaml(cls, text: str) -> "StackDocument":
        """
        Parse and validate a compose document.

        Raises:
            SchemaValidationError: If the text is not YAML or not a valid stack.
        """
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise SchemaValidationError(f"Stack document is not valid YAML: {e}") from e

        if not isinstance(data, dict):
            raise SchemaValidationError("Stack document must be a mapping with a 'services' key")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            raise SchemaValidationError(
                f"Stack document failed validation ({len(errors)} errors)", errors
            ) from e

    def to_yaml(self) -> str:
        """Serialize, keeping only keys that were present or set."""
        data = self.model_dump(mode="json", exclude_unset=True)
        return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
