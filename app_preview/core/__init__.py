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
# CORE LAYER
# -----------------------------------------------------------------------------
# The project lifecycle engine:
# - SourceProvider: git clone/pull or local copy of a project tree
# - ConfigLoader: evaluates app-preview.config.py into a ProjectConfig
# - StackTransformer: namespacing, shared network, proxy labels, inline volumes
# - Env providers: layered env file construction
# - StackExecutor: compose up/down/ps
# - Project: initialize/up/down/status state machine
# - LifecycleDispatcher: pull-request events -> up/down
# -----------------------------------------------------------------------------

from .config_loader import ConfigContext, ConfigError, ConfigLoader, InvalidConfig, ValidConfig
from .dispatcher import LifecycleCommand, LifecycleDispatcher, PullRequestEvent, plan_pull_request
from .env_providers import (
    DotEnvFileProvider,
    EnvProviderError,
    EnvProviderFactory,
    OnePasswordEnvProvider,
    StaticEnvProvider,
    layer_env_providers,
)
from .executor import StackExecutor
from .project import Project, ProjectStateError
from .source import SourceAcquisitionError, SourceProvider
from .transformer import StackFileNotFoundError, StackTransformer, TransformResult

__all__ = [
    "ConfigContext", "ConfigError", "ConfigLoader", "InvalidConfig", "ValidConfig",
    "LifecycleCommand", "LifecycleDispatcher", "PullRequestEvent", "plan_pull_request",
    "DotEnvFileProvider", "EnvProviderError", "EnvProviderFactory",
    "OnePasswordEnvProvider", "StaticEnvProvider", "layer_env_providers",
    "StackExecutor",
    "Project", "ProjectStateError",
    "SourceAcquisitionError", "SourceProvider",
    "StackFileNotFoundError", "StackTransformer", "TransformResult",
]
