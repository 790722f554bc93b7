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
# SOURCE PROVIDER - PROJECT TREES
# -----------------------------------------------------------------------------
# Responsibility: Materialize the filesystem tree of a project, either from
# a git branch (shallow clone, or fast-forward pull of a prior checkout) or
# from a local directory (fresh copy).
#
# On success the project directory holds exactly the new tree. Every
# failure is fatal and surfaces as SourceAcquisitionError.
# -----------------------------------------------------------------------------

import shutil
from pathlib import Path

from rich.console import Console

from app_preview import settings
from app_preview.domain.models import GitSource, LocalSource, ProjectSource
from app_preview.infra.git_client import GitError, GitProvider, TokenProvider

console = Console()


class SourceAcquisitionError(Exception):
    """Raised when a project's source tree cannot be cloned, pulled or copied."""

    pass


def reset_directory(path: Path) -> None:
    """Remove a directory (if present) and recreate it empty."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    path.mkdir(parents=True, exist_ok=True)


class SourceProvider:
    """
    Acquires project sources into a target directory.

    The git transport is authenticated with a bearer token obtained from the
    injected token provider (GITHUB_TOKEN by default).
    """

    def __init__(self, token_provider: TokenProvider | None = None) -> None:
        self._token_provider = token_provider or settings.github_token

    def acquire(self, source: ProjectSource, target: Path) -> None:
        """
        Materialize `source` into `target`.

        Raises:
            SourceAcquisitionError: If the tree cannot be produced
        """
        if isinstance(source, GitSource):
            self._acquire_git(source, target)
        elif isinstance(source, LocalSource):
            self._copy_local(Path(source.path), target)
        else:
            raise SourceAcquisitionError(f"Unknown project source type: {source!r}")

    def _acquire_git(self, source: GitSource, target: Path) -> None:
        git = GitProvider(target)
        token = self._token_provider()
        if not token:
            raise SourceAcquisitionError("Failed to get a GitHub token for the git transport")

        try:
            if git.has_checkout():
                git.pull(source.branch, token=token)
            else:
                reset_directory(target)
                git.clone(source.repo_url, source.branch, token)
        except GitError as e:
            raise SourceAcquisitionError(f"Failed to fetch {source.repo_url}@{source.branch}: {e}") from e
        except OSError as e:
            raise SourceAcquisitionError(f"Failed to prepare {target}: {e}") from e

    def _copy_local(self, source_path: Path, target: Path) -> None:
        source_path = source_path.expanduser().resolve()
        if not source_path.is_dir():
            raise SourceAcquisitionError(f"Local source {source_path} is not a directory")

        console.print(f"[cyan][SOURCE] Copying {source_path}...[/cyan]")
        try:
            reset_directory(target)
            shutil.copytree(source_path, target, symlinks=True, dirs_exist_ok=True)
        except (OSError, shutil.Error) as e:
            raise SourceAcquisitionError(f"Failed to copy {source_path} to {target}: {e}") from e

        console.print(f"[green][SOURCE] Copied {source_path} -> {target}[/green]")
