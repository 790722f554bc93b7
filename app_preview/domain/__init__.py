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
# DOMAIN LAYER
# -----------------------------------------------------------------------------
# Contains the Pydantic models and value types shared by every component:
# projects and their sources, the strict stack-document schema, and EnvVars.
# -----------------------------------------------------------------------------

from .compose import SchemaValidationError, ServiceDefinition, StackDocument
from .env import EnvProvider, EnvVars
from .models import (
    ContainerStatus,
    ExposeRule,
    GitSource,
    LocalSource,
    ProjectConfig,
    ProjectOptions,
    ProjectSource,
    to_domain_name_part,
)

__all__ = [
    "ContainerStatus", "EnvProvider", "EnvVars", "ExposeRule", "GitSource",
    "LocalSource", "ProjectConfig", "ProjectOptions", "ProjectSource",
    "SchemaValidationError", "ServiceDefinition", "StackDocument",
    "to_domain_name_part",
]
