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
# ENV VARS - THE ENV FILE VALUE TYPE
# -----------------------------------------------------------------------------
# Responsibility: Parse, render and merge KEY=VALUE env files.
#
# Precedence is explicit: merge() names the preferred side, and whether an
# empty value on that side counts as a value or as "absent".
# -----------------------------------------------------------------------------

import json
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from typing import Literal

ENV_LINE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_.-]*)\s*=\s*(.*?)\s*$")

# Raw values containing any of these cannot be written unquoted; the
# character class covers every line boundary str.splitlines() splits on
_NEEDS_QUOTING = re.compile(r"[\n\r\x0b\x0c\x1c-\x1e\x85\u2028\u2029#]|^\s|\s$|^[\"']")


class EnvVars(Mapping[str, str]):
    """
    Ordered, immutable mapping of environment variable names to values.

    Insertion order is preserved through parse/merge/stringify so generated
    env files stay diffable.
    """

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(values or {})

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return self._values == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"EnvVars({list(self._values)})"

    @classmethod
    def parse(cls, text: str) -> "EnvVars":
        """
        Extract KEY=VALUE pairs line by line.

        Lines that are not assignments (comments, blanks, garbage) are skipped.
        Double-quoted values are unescaped as JSON strings; single-quoted values
        have their quotes stripped and are otherwise kept verbatim.
        """
        values: dict[str, str] = {}

        for line in text.splitlines():
            match = ENV_LINE.match(line)
            if not match:
                continue

            key, raw = match.groups()
            values[key] = _unquote(raw)

        return cls(values)

    def stringify(self) -> str:
        """Render one KEY=VALUE line per entry."""
        return "\n".join(f"{key}={_quote(value)}" for key, value in self._values.items())

    def merge(
        self,
        other: Mapping[str, str],
        prefer: Literal["self", "other"] = "other",
        override_with_empty: bool = False,
    ) -> "EnvVars":
        """
        Combine two snapshots into a new one.

        Args:
            other: The snapshot to merge with.
            prefer: Which side wins on collision ("other" by default).
            override_with_empty: If False, the preferred side always wins,
                even with an empty string. If True, an empty or missing value
                on the preferred side falls back to the other side's value.

        Returns:
            A new EnvVars; neither input is modified.
        """
        if prefer not in ("self", "other"):
            raise ValueError(f"prefer must be 'self' or 'other', got {prefer!r}")

        mine = self._values
        theirs = dict(other)
        preferred, fallback = (theirs, mine) if prefer == "other" else (mine, theirs)

        if not override_with_empty:
            return EnvVars({**fallback, **preferred})

        merged: dict[str, str] = {}
        for key in [*mine, *(k for k in theirs if k not in mine)]:
            value = preferred.get(key)
            merged[key] = value if value else fallback.get(key, value or "")

        return EnvVars(merged)

    def without(self, keys: "Mapping[str, str] | list[str]") -> "EnvVars":
        """Return a copy without the given keys."""
        return EnvVars({k: v for k, v in self._values.items() if k not in keys})


def _unquote(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw[1:-1]
    if len(raw) >= 2 and raw[0] == raw[-1] == "'":
        return raw[1:-1]
    return raw


def _quote(value: str) -> str:
    if _NEEDS_QUOTING.search(value):
        return json.dumps(value)
    return value


class EnvProvider(ABC):
    """
    A pluggable source of environment variables (e.g. a secret store).

    generate() must be read-only: providers of one project run concurrently.
    """

    @abstractmethod
    async def generate(self) -> EnvVars:
        """Produce an EnvVars snapshot."""
        ...
