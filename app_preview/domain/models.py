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
# DOMAIN MODELS - PROJECTS & RUNTIME SNAPSHOTS
# -----------------------------------------------------------------------------
# These Pydantic models define what a preview Project is: where its source
# comes from, how it is configured, and what the engine reports back.
#
# The app name is the identity of a preview. It decides the project
# directory, the shared network ({app_name}_default) and every container
# and router prefix, so it is validated as a DNS label at the gate.
# -----------------------------------------------------------------------------

import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app_preview.domain.env import EnvProvider

APP_NAME_PATTERN = r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$"
DEFAULT_STACK_FILE = "docker-compose.yml"
DEFAULT_ROUTED_PORT = 80


def to_domain_name_part(name: str) -> str:
    """
    Convert an arbitrary string into something usable inside a domain name.

    Example: "My App_2" -> "my-app-2"
    """
    part = re.sub(r"[^a-z0-9-]", "-", name.lower())
    part = re.sub(r"--+", "-", part)
    return part.strip("-")


class GitSource(BaseModel):
    """A branch of a remote git repository."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["git"] = "git"
    repo_url: str = Field(..., min_length=1, alias="repoUrl")
    branch: str = Field(..., min_length=1)


class LocalSource(BaseModel):
    """A directory on this host, copied verbatim."""

    type: Literal["local"] = "local"
    path: str = Field(..., min_length=1)


ProjectSource = Annotated[GitSource | LocalSource, Field(discriminator="type")]


class ExposeRule(BaseModel):
    """
    Exposure intent for one service of the stack.

    Fields:
    - domain: Public host name routed to the service by the proxy
    - basic_auth: "user:hashed_password" entries (htpasswd -nbB <user> <pass>)
    - port: Container port the proxy routes to
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    domain: str | None = None
    basic_auth: list[str] = Field(default_factory=list, alias="basicAuth")
    port: int = DEFAULT_ROUTED_PORT

    @field_validator("basic_auth", mode="before")
    @classmethod
    def _coerce_basic_auth(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class ProjectConfig(BaseModel):
    """
    Per-project options, usually produced by app-preview.config.py.

    root and stack_file_path are relative to the project directory and
    project root respectively.
    """

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    root: str = "."
    stack_file_path: str = Field(DEFAULT_STACK_FILE, alias="dockerComposePath")
    env_providers: list[EnvProvider] = Field(default_factory=list, alias="envGenerator")
    expose: dict[str, ExposeRule] = Field(default_factory=dict)

    @field_validator("env_providers", mode="before")
    @classmethod
    def _coerce_providers(cls, value):
        if value is None:
            return []
        if isinstance(value, EnvProvider):
            return [value]
        return value

    @field_validator("root", "stack_file_path")
    @classmethod
    def _relative_path(cls, value: str) -> str:
        if value.startswith("/") or ".." in value.replace("\\", "/").split("/"):
            raise ValueError(f"must be a relative path inside the project: {value!r}")
        return value


class ProjectOptions(ProjectConfig):
    """Everything a Project needs: identity, source and configuration."""

    app_name: str = Field(..., pattern=APP_NAME_PATTERN, alias="appName")
    source: ProjectSource

    @property
    def app_name_domain_infix(self) -> str:
        return to_domain_name_part(self.app_name)


class Publisher(BaseModel):
    URL: str = ""
    TargetPort: int = 0
    PublishedPort: int = 0
    Protocol: str = ""


class ContainerStatus(BaseModel):
    """
    One runtime snapshot record per container, as reported by
    `docker compose ps --format json`.

    Field names follow the engine's own JSON keys.
    """

    model_config = ConfigDict(extra="ignore")

    ID: str = ""
    Name: str
    Service: str = ""
    Image: str = ""
    Project: str = ""
    State: str = ""
    Health: str = ""
    Status: str = ""
    Ports: str = ""
    ExitCode: int = 0
    Publishers: list[Publisher] | None = None
