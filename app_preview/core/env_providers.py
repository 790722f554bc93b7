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
# ENV PROVIDERS - LAYERED ENVIRONMENT
# -----------------------------------------------------------------------------
# Responsibility: Produce EnvVars snapshots from pluggable sources and layer
# them into the content of a stack's env file.
#
# Providers are independent and read-only, so they are queried concurrently;
# results are merged only after all of them have completed, left to right,
# later providers preferred. Machine-derived keys always win.
# -----------------------------------------------------------------------------

import asyncio
import os
import re
from collections.abc import Mapping, Sequence
from pathlib import Path

from rich.console import Console

from app_preview.domain.env import EnvProvider, EnvVars
from app_preview.infra.shell import EngineInvocationError, run_command

console = Console()

ADDED_HEADER = "# ---------- ADDED ----------"
ORIGINAL_HEADER = "# ---------- ORIGINAL ----------"

# Lines a secret item may contain and still be a (more or less) valid env file
_ENV_LIKE_LINE = re.compile(r"^[A-Z#\s]")


class EnvProviderError(Exception):
    """Raised when an env provider fails to produce a snapshot."""

    pass


class StaticEnvProvider(EnvProvider):
    """Fixed values, mostly useful in app-preview.config.py and tests."""

    def __init__(self, values: Mapping[str, str]) -> None:
        self._values = EnvVars({k: str(v) for k, v in values.items()})

    async def generate(self) -> EnvVars:
        return self._values


class DotEnvFileProvider(EnvProvider):
    """Reads a KEY=VALUE file from disk."""

    def __init__(self, path: Path | str, required: bool = False) -> None:
        self._path = Path(path)
        self._required = required

    async def generate(self) -> EnvVars:
        if not self._path.exists():
            if self._required:
                raise EnvProviderError(f"Env file {self._path} not found")
            console.print(f"[yellow][ENV] No .env file found at {self._path}[/yellow]")
            return EnvVars()

        text = await asyncio.to_thread(self._path.read_text)
        return EnvVars.parse(text)


class OnePasswordEnvProvider(EnvProvider):
    """
    Resolves an env file stored as a 1Password secret.

    Uses the 1Password CLI (`op read <item_uri>`) authenticated with a
    service account token. Lines that cannot belong to an env file are
    filtered out before parsing.
    """

    def __init__(self, item_uri: str, access_token: str | None = None) -> None:
        self._item_uri = item_uri
        self._access_token = access_token or os.getenv("OP_SERVICE_ACCOUNT_TOKEN")

    def _read(self) -> str:
        if not self._access_token:
            raise EnvProviderError("No 1Password service account token configured")

        env = {**os.environ, "OP_SERVICE_ACCOUNT_TOKEN": self._access_token}
        result = run_command(
            ["op", "read", "--no-newline", self._item_uri],
            env=env,
            secrets=[self._access_token],
        )
        return result.stdout

    async def generate(self) -> EnvVars:
        try:
            text = await asyncio.to_thread(self._read)
        except EngineInvocationError as e:
            raise EnvProviderError(f"Failed to resolve {self._item_uri}: {e}") from e

        lines = [line for line in text.splitlines() if not line or _ENV_LIKE_LINE.match(line)]
        return EnvVars.parse("\n".join(lines))


class EnvProviderFactory:
    """
    Builds providers for app-preview.config.py.

    Relative paths are resolved against the project root.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    def one_password(self, item_uri: str, access_token: str | None = None) -> OnePasswordEnvProvider:
        return OnePasswordEnvProvider(item_uri, access_token)

    def dotenv(self, path: str = ".env", required: bool = False) -> DotEnvFileProvider:
        return DotEnvFileProvider(self._root / path, required=required)

    def static(self, values: Mapping[str, str]) -> StaticEnvProvider:
        return StaticEnvProvider(values)


async def layer_env_providers(providers: Sequence[EnvProvider]) -> EnvVars:
    """
    Query all providers concurrently and merge their snapshots.

    Raises:
        EnvProviderError: If any provider fails
    """
    results = await asyncio.gather(
        *(provider.generate() for provider in providers), return_exceptions=True
    )

    layered = EnvVars()
    for provider, result in zip(providers, results):
        if isinstance(result, BaseException):
            if isinstance(result, EnvProviderError):
                raise result
            raise EnvProviderError(f"{type(provider).__name__} failed: {result}") from result
        layered = layered.merge(result)

    console.print(f"[cyan][ENV] Layered {len(providers)} providers into {len(layered)} vars[/cyan]")
    return layered


def render_env_file(machine: EnvVars, layered: EnvVars) -> str:
    """
    Render the final env file: machine-derived section first, then the
    layered section without any key the machine section defines.
    """
    original = layered.without(list(machine))
    return (
        f"{ADDED_HEADER}\n\n"
        f"{machine.stringify()}\n\n"
        f"{ORIGINAL_HEADER}\n\n"
        f"{original.stringify()}\n"
    )
