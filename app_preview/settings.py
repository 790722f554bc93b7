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
# SETTINGS - PROCESS CONFIGURATION
# -----------------------------------------------------------------------------
# Responsibility: Resolve host-wide settings from the environment (.env is
# loaded first) and the optional server config file (app-preview.config.json).
#
# Per-project options live in each project's app-preview.config.py and are
# handled by core/config_loader.py, not here.
# -----------------------------------------------------------------------------

import json
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from rich.console import Console
from rich.markup import escape

load_dotenv()

console = Console()

# Parent directory of every project checkout (one subdirectory per app name)
APPS_DIR = Path(os.getenv("APP_PREVIEW_APPS_DIR", "apps")).resolve()

# The externally managed reverse proxy discovering routes via container labels
PROXY_CONTAINER_NAME = os.getenv("APP_PREVIEW_PROXY_CONTAINER", "app-preview-traefik")
PROXY_ENTRYPOINT = os.getenv("APP_PREVIEW_PROXY_ENTRYPOINT", "web")

SERVER_CONFIG_PATH = Path(os.getenv("APP_PREVIEW_CONFIG", "app-preview.config.json"))


class RepositorySettings(BaseModel):
    """Preview policy for one repository (keyed by its full name)."""

    model_config = ConfigDict(populate_by_name=True)

    enable_preview: bool = Field(True, alias="enablePreview")
    target_branch: str | None = Field(None, alias="targetBranch")


class ServerConfig(BaseModel):
    """
    Host-wide server configuration.

    Loaded from app-preview.config.json. GitHub App credentials are issued
    elsewhere; only the pieces the lifecycle engine reads are modelled.
    """

    model_config = ConfigDict(populate_by_name=True)

    public_url: str | None = Field(None, alias="publicUrl")
    webhook_secret: str | None = Field(None, alias="webhookSecret")
    repositories: dict[str, RepositorySettings] = Field(default_factory=dict)


def load_server_config(path: Path | None = None) -> ServerConfig:
    """
    Load the server config file.

    A missing file yields the empty config. A malformed file is reported and
    also yields the empty config. GITHUB_WEBHOOK_SECRET overrides the file.
    """
    path = path or SERVER_CONFIG_PATH
    config = ServerConfig()

    if path.exists():
        try:
            with open(path) as f:
                config = ServerConfig.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            console.print(f"[red][SETTINGS] Ignoring malformed {path}: {escape(str(e))}[/red]")

    secret = os.getenv("GITHUB_WEBHOOK_SECRET")
    if secret:
        config.webhook_secret = secret

    return config


def github_token() -> str | None:
    """Default source-auth provider: the GITHUB_TOKEN environment variable."""
    return os.getenv("GITHUB_TOKEN") or None
