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

import os
from enum import Enum

CLOUDDEPLOYER_LOGLEVEL = os.environ.get("CLOUDDEPLOYER_LOGLEVEL", "INFO").upper()

# Deployment request property keys
DEPLOYER_PROPERTIES_PREFIX = "spring.cloud.deployer"
COUNT_PROPERTY_KEY = DEPLOYER_PROPERTIES_PREFIX + ".count"
INDEXED_PROPERTY_KEY = DEPLOYER_PROPERTIES_PREFIX + ".indexed"
GROUP_PROPERTY_KEY = DEPLOYER_PROPERTIES_PREFIX + ".group"
APP_NAME_PROPERTY_KEY = DEPLOYER_PROPERTIES_PREFIX + ".appName"

# Kubernetes deployer property keys
KUBERNETES_DEPLOYER_PROPERTIES_PREFIX = DEPLOYER_PROPERTIES_PREFIX + ".kubernetes"
KUBERNETES_DEPLOYMENT_NODE_SELECTOR = (
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX + ".deployment.nodeSelector"
)
# Spellings accepted for the node selector, in lookup order.
NODE_SELECTOR_PROPERTY_KEYS = [
    KUBERNETES_DEPLOYMENT_NODE_SELECTOR,
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX + ".deployment.node-selector",
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX + ".deployment.node_selector",
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX + ".nodeSelector",
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX + ".node-selector",
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX + ".node_selector",
]

# K8S label constants
SPRING_APP_KEY = "spring-app-id"
SPRING_GROUP_KEY = "spring-group-id"
SPRING_DEPLOYMENT_KEY = "spring-deployment-id"
APP_NAME_KEY = "spring-application-name"
SPRING_MARKER_KEY = "role"
SPRING_MARKER_VALUE = "spring-app"
TASK_NAME_KEY = "task-name"
JOB_NAME_KEY = "job-name"

# Application container constants
SERVER_PORT_KEY = "server.port"
DEFAULT_SERVER_PORT = 8080
APPLICATION_GUID_ENV = "SPRING_CLOUD_APPLICATION_GUID"
APPLICATION_JSON_ENV = "SPRING_APPLICATION_JSON"
LOG_TAIL_LINES = 500

# StatefulSet constants
STATEFUL_SET_IMAGE_NAME = "busybox"
STATEFUL_SET_INIT_CONTAINER_NAME = "index-provider"
STATEFUL_SET_CONFIG_VOLUME = "config"
STATEFUL_SET_CONFIG_MOUNT_PATH = "/config"
STATEFUL_SET_DEFAULT_STORAGE = "10g"
INSTANCE_INDEX_PROPERTIES = ["INSTANCE_INDEX", "spring.cloud.stream.instanceIndex"]

DEFAULT_TASK_SERVICE_ACCOUNT_NAME = "default"
DEFAULT_MAXIMUM_CONCURRENT_TASKS = 20
DEFAULT_SCALE_TIMEOUT_SECONDS = 60

# Patterns used to mask property values before they are logged
SANITIZE_KEYS = [
    ".*password$",
    ".*secret$",
    ".*key$",
    ".*token$",
    ".*credentials.*",
    "vcap_services",
]
SANITIZED_VALUE = "******"


class ImagePullPolicy(Enum):
    Always = "Always"
    IfNotPresent = "IfNotPresent"
    Never = "Never"


class RestartPolicy(Enum):
    Always = "Always"
    OnFailure = "OnFailure"
    Never = "Never"


class EntryPointStyle(Enum):
    exec = "exec"
    shell = "shell"
    boot = "boot"


class ProbeType(Enum):
    HTTP = "HTTP"
    TCP = "TCP"
    COMMAND = "COMMAND"
