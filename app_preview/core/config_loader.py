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
# CONFIG LOADER - PER-PROJECT CONFIGURATION
# -----------------------------------------------------------------------------
# Responsibility: Locate the project's app-preview.config.py, evaluate it
# and turn its result into a ProjectConfig.
#
# The builder (define_config) is handed to the config module as a parameter
# of its evaluation; nothing process-wide is touched. The builder returns a
# typed result, ValidConfig (stamped with a token private to this loader)
# or InvalidConfig, which the loader matches explicitly.
#
# Example app-preview.config.py:
#
#   config = define_config(lambda ctx: {
#       "expose": {"web": {"domain": f"{ctx.app_name_domain_infix}.traefik.me"}},
#       "env_providers": [ctx.env_providers.one_password("op://Work/app/env")],
#   })
# -----------------------------------------------------------------------------

import asyncio
import importlib.util
import inspect
import os
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from app_preview.core.env_providers import EnvProviderFactory
from app_preview.domain.models import ProjectConfig, ProjectOptions

console = Console()

CONFIG_FILE_NAME = "app-preview.config.py"
CONFIG_ATTRIBUTE = "config"
SKIPPED_DIRS = {".git", ".app-preview", "node_modules", "__pycache__", ".venv", "venv"}


class ConfigError(Exception):
    """Raised when the project configuration is missing, ambiguous or invalid."""

    pass


@dataclass(frozen=True)
class ConfigContext:
    """What define_config getters receive."""

    app_name: str
    app_name_domain_infix: str
    env_providers: EnvProviderFactory


@dataclass(frozen=True)
class ValidConfig:
    config: ProjectConfig
    issuer: object = field(repr=False, compare=False)


@dataclass(frozen=True)
class InvalidConfig:
    reason: str


ConfigResult = ValidConfig | InvalidConfig
Getter = Callable[[ConfigContext], Any]


def find_config_files(directory: Path) -> list[Path]:
    """
    Find every config entry point under `directory`, shallowest first.
    """
    found: list[Path] = []
    for current, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
        if CONFIG_FILE_NAME in filenames:
            found.append(Path(current) / CONFIG_FILE_NAME)

    return sorted(found, key=lambda p: (len(p.relative_to(directory).parts), str(p)))


def merge_config(options: ProjectOptions, config: ProjectConfig) -> ProjectOptions:
    """Shallow-merge a loaded config onto base options; config fields win."""
    update = {name: getattr(config, name) for name in config.model_fields_set}
    return options.model_copy(update=update)


class ConfigLoader:
    """
    Evaluates a project's app-preview.config.py.

    Why a fresh module per load: each evaluation gets its own builder and
    issuer token, so results from other loads cannot be replayed.
    """

    def __init__(self, directory: Path, context: ConfigContext) -> None:
        """
        Args:
            directory: The project directory to search.
            context: Values passed to the config getter.
        """
        self._directory = directory
        self._context = context

    def locate(self) -> Path:
        """
        Pick the single config entry point of the tree.

        The shallowest candidate wins; several candidates at that depth make
        the tree ambiguous.

        Raises:
            ConfigError: If there is no candidate or the tree is ambiguous
        """
        candidates = find_config_files(self._directory)
        if not candidates:
            raise ConfigError(f"No {CONFIG_FILE_NAME} found in {self._directory}")

        depth = len(candidates[0].relative_to(self._directory).parts)
        shallowest = [p for p in candidates if len(p.relative_to(self._directory).parts) == depth]
        if len(shallowest) > 1:
            listing = ", ".join(str(p.relative_to(self._directory)) for p in shallowest)
            raise ConfigError(f"Ambiguous configuration: several {CONFIG_FILE_NAME} files ({listing})")

        if len(candidates) > 1:
            console.print(
                f"[yellow][CONFIG] Using {shallowest[0].relative_to(self._directory)}, "
                f"ignoring {len(candidates) - 1} nested config file(s)[/yellow]"
            )
        return shallowest[0]

    def make_builder(self, issuer: object) -> Callable[[Getter], ConfigResult | Awaitable[ConfigResult]]:
        """Create the define_config function for one evaluation."""

        def define_config(getter: Getter):
            value = getter(self._context)
            if inspect.isawaitable(value):
                return _resolve_later(value, issuer)
            return _to_result(value, issuer)

        return define_config

    def load(self) -> ProjectConfig:
        """
        Locate and evaluate the config entry point.

        Raises:
            ConfigError: On any missing, failing, untagged or invalid configuration
        """
        path = self.locate()
        console.print(f"[cyan][CONFIG] Loading {path.relative_to(self._directory)}[/cyan]")

        issuer = object()
        result = self._evaluate(path, self.make_builder(issuer))

        if isinstance(result, ValidConfig) and result.issuer is issuer:
            console.print("[green][CONFIG] Configuration loaded[/green]")
            return result.config

        if isinstance(result, InvalidConfig):
            raise ConfigError(f"{CONFIG_FILE_NAME} produced an invalid configuration: {result.reason}")

        console.print(f"[red][CONFIG] Unexpected `{CONFIG_ATTRIBUTE}`: {escape(repr(result))}[/red]")
        raise ConfigError(
            f"{CONFIG_FILE_NAME} must bind the result of define_config to "
            f"`{CONFIG_ATTRIBUTE}` (config = define_config(...))"
        )

    def _evaluate(self, path: Path, builder: Callable) -> Any:
        spec = importlib.util.spec_from_file_location(
            f"app_preview_config_{uuid.uuid4().hex}", path
        )
        if spec is None or spec.loader is None:
            raise ConfigError(f"Cannot load {path}")

        module = importlib.util.module_from_spec(spec)
        module.define_config = builder

        try:
            spec.loader.exec_module(module)
            result = getattr(module, CONFIG_ATTRIBUTE, None)
            if inspect.isawaitable(result):
                result = asyncio.run(_await(result))
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"Failed to evaluate {path.name}: {e}") from e

        return result


def _to_result(value: Any, issuer: object) -> ConfigResult:
    if isinstance(value, ProjectConfig):
        return ValidConfig(value, issuer)
    if isinstance(value, Mapping):
        try:
            return ValidConfig(ProjectConfig.model_validate(dict(value)), issuer)
        except ValidationError as e:
            return InvalidConfig(str(e))
    return InvalidConfig(f"getter must return a mapping or ProjectConfig, got {type(value).__name__}")


async def _resolve_later(value: Awaitable[Any], issuer: object) -> ConfigResult:
    return _to_result(await value, issuer)


async def _await(value: Awaitable[Any]) -> Any:
    return await value
