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

from __future__ import absolute_import

from .models import (
    AppDefinition,
    AppInstanceStatus,
    AppScaleRequest,
    AppStatus,
    DeploymentRequest,
    DeploymentState,
    DockerResource,
    LaunchState,
    Resource,
    TaskStatus,
)
from .deployer_properties import (
    KubernetesDeployerProperties,
    KubernetesTaskLauncherProperties,
    load_deployer_properties,
)
from .resolver import DeploymentPropertiesResolver
from .container_factory import DefaultContainerFactory
from .pod_spec import PodSpecBuilder
from .app_deployer import KubernetesAppDeployer
from .task_launcher import KubernetesTaskLauncher
from .log_accessor import ApplicationLogAccessor, LogCacheClient
from .actuator import ActuatorTemplate, AppAdmin
from .local.local_deployer import LocalAppDeployer, LocalDeployerProperties
from .errors import (
    ConcurrentTaskLimitReached,
    DeploymentStateError,
    InvalidDeploymentProperty,
    PlatformError,
)
from .logging import configure_logging
from .constants import constants
from .utils import utils

# import client apis into clouddeployer package
from .api.platform_client import KubernetesPlatformClient
from .api.watch import wait_for_status
