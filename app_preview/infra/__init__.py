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
# INFRASTRUCTURE LAYER
# -----------------------------------------------------------------------------
# Contains low-level wrappers around external engines:
# - run_command / EngineInvocationError: subprocess with expected-error tolerance
# - DockerProvider: Docker SDK wrapper for networks and proxy attachment
# - GitProvider: shallow clone / fast-forward pull / HEAD resolution
# -----------------------------------------------------------------------------

from .docker_client import DockerProvider, DockerProviderError
from .git_client import GitError, GitHubAPIError, GitProvider, TokenProvider
from .shell import EngineInvocationError, run_command

__all__ = [
    "DockerProvider", "DockerProviderError",
    "GitError", "GitHubAPIError", "GitProvider", "TokenProvider",
    "EngineInvocationError", "run_command",
]
