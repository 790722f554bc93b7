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
# SHELL - ENGINE INVOCATION
# -----------------------------------------------------------------------------
# Responsibility: Run external engine processes (docker compose, git, op)
# and classify failures.
#
# A non-zero exit is either "expected" (stderr matches a known-benign
# pattern, logged and swallowed) or "unexpected" (EngineInvocationError with
# the full diagnostic). There are no retries.
# -----------------------------------------------------------------------------

import subprocess
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from rich.console import Console
from rich.markup import escape

console = Console()


class EngineInvocationError(Exception):
    """Raised when an external engine process exits non-zero unexpectedly."""

    def __init__(
        self,
        message: str,
        command: Sequence[str] = (),
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr


def redact(text: str, secrets: Iterable[str | None] = ()) -> str:
    """Replace every secret occurring in text with [REDACTED]."""
    for secret in secrets:
        if secret and secret in text:
            text = text.replace(secret, "[REDACTED]")
    return text


def matches_expected(stderr: str, expected_errors: Iterable[str]) -> bool:
    """Check whether a failure's stderr contains one of the benign patterns."""
    return any(pattern in stderr for pattern in expected_errors)


def run_command(
    cmd: Sequence[str],
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    expected_errors: Iterable[str] = (),
    check: bool = True,
    secrets: Iterable[str | None] = (),
    timeout: float | None = None,
) -> subprocess.CompletedProcess:
    """
    Run an engine command and capture its output.

    Args:
        cmd: Command parts (e.g. ["docker", "compose", "ps"])
        cwd: Working directory
        env: Full environment for the child (inherits ours if None)
        expected_errors: stderr substrings that make a failure benign
        check: Raise on unexpected non-zero exit
        secrets: Values to redact from anything logged or raised
        timeout: Seconds before the process is killed (None = wait forever)

    Returns:
        CompletedProcess with text stdout/stderr

    Raises:
        EngineInvocationError: If the command cannot start, times out, or
            fails unexpectedly with check=True
    """
    secrets = [s for s in secrets if s]
    safe_parts = [redact(str(part), secrets) for part in cmd]
    printable = " ".join(safe_parts)
    console.print(f"[dim][CMD] {escape(printable)}[/dim]")

    try:
        result = subprocess.run(
            [str(part) for part in cmd],
            cwd=cwd,
            env=dict(env) if env is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise EngineInvocationError(
            f"Command timed out after {timeout}s: {printable}", command=safe_parts
        ) from e
    except (OSError, subprocess.SubprocessError) as e:
        raise EngineInvocationError(
            f"Command could not be started: {printable}: {e}", command=safe_parts
        ) from e

    if result.returncode == 0:
        return result

    stderr = redact(result.stderr or result.stdout or "", secrets)

    if matches_expected(stderr, expected_errors):
        console.print(f"[yellow][CMD] Expected error tolerated: {escape(stderr.strip()[:200])}[/yellow]")
        return result

    if check:
        console.print(f"[red][CMD] Failed ({result.returncode}): {escape(printable)}[/red]")
        raise EngineInvocationError(
            f"Command failed with exit code {result.returncode}: {printable}\n{stderr.strip()}",
            command=safe_parts,
            returncode=result.returncode,
            stderr=stderr,
        )

    console.print(f"[yellow][CMD] Exited {result.returncode} (ignored): {escape(printable)}[/yellow]")
    return result
