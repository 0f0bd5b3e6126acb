# Copyright 2024 The Cloud Deployer Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from enum import Enum
from typing import Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict


class DeploymentState(Enum):
    deploying = "deploying"
    deployed = "deployed"
    undeployed = "undeployed"
    partial = "partial"
    failed = "failed"
    error = "error"
    unknown = "unknown"


class LaunchState(Enum):
    launching = "launching"
    running = "running"
    cancelled = "cancelled"
    complete = "complete"
    failed = "failed"
    error = "error"
    unknown = "unknown"


class AppDefinition(BaseModel):
    name: str
    properties: Dict[str, str] = {}

    model_config = ConfigDict(frozen=True)


class Resource(BaseModel):
    """Opaque artifact reference, e.g. "file:///apps/app.jar"."""

    uri: str

    model_config = ConfigDict(frozen=True)

    def get_uri(self) -> str:
        return self.uri

    def get_file(self) -> str:
        parsed = urlparse(self.uri)
        return parsed.path if parsed.scheme in ("", "file") else self.uri


class DockerResource(Resource):
    """Container image reference, e.g. "docker:springcloud/app:latest"."""

    @property
    def image(self) -> str:
        if self.uri.startswith("docker:"):
            return self.uri[len("docker:"):]
        return self.uri


class DeploymentRequest(BaseModel):
    definition: AppDefinition
    resource: Resource
    deployment_properties: Dict[str, str] = {}
    commandline_arguments: List[str] = []

    model_config = ConfigDict(frozen=True)


class AppScaleRequest(BaseModel):
    deployment_id: str
    count: int
    properties: Dict[str, str] = {}

    model_config = ConfigDict(frozen=True)


class AppInstanceStatus(BaseModel):
    id: str
    state: DeploymentState
    attributes: Dict[str, str] = {}


class AppStatus(BaseModel):
    deployment_id: str
    instances: Dict[str, AppInstanceStatus] = {}

    @property
    def state(self) -> DeploymentState:
        """Aggregate the per-instance states into one deployment state."""
        states = {instance.state for instance in self.instances.values()}
        if not states:
            return DeploymentState.unknown
        if len(states) == 1:
            return next(iter(states))
        if DeploymentState.error in states:
            return DeploymentState.error
        if DeploymentState.deploying in states:
            return DeploymentState.deploying
        if DeploymentState.deployed in states or DeploymentState.partial in states:
            return DeploymentState.partial
        return DeploymentState.failed

    def add_instance(self, instance: AppInstanceStatus):
        self.instances[instance.id] = instance


class TaskStatus(BaseModel):
    task_id: str
    state: LaunchState
    attributes: Optional[Dict[str, str]] = None
