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

import logging
from typing import Dict, List, Optional

from kubernetes.client import V1Pod

from .api.platform_client import KubernetesPlatformClient
from .constants.constants import (
    APP_NAME_KEY,
    APPLICATION_GUID_ENV,
    APP_NAME_PROPERTY_KEY,
    DEFAULT_SERVER_PORT,
    GROUP_PROPERTY_KEY,
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX,
    LOG_TAIL_LINES,
    SERVER_PORT_KEY,
    SPRING_APP_KEY,
    SPRING_DEPLOYMENT_KEY,
    SPRING_GROUP_KEY,
)
from .container_factory import DefaultContainerFactory
from .deployer_properties import KubernetesDeployerProperties
from .errors import InvalidDeploymentProperty
from .logging import logger, trace_logger
from .models import DeploymentRequest
from .pod_spec import PodSpecBuilder
from .resolver import DeploymentPropertiesResolver
from .utils.utils import to_k8s_dict


class KubernetesDeployerBase(object):
    """Shared plumbing of the app deployer and the task launcher."""

    def __init__(
        self,
        properties: KubernetesDeployerProperties,
        platform_client: KubernetesPlatformClient,
        container_factory: Optional[DefaultContainerFactory] = None,
    ):
        self.properties = properties
        self.client = platform_client
        self.resolver = DeploymentPropertiesResolver(
            KUBERNETES_DEPLOYER_PROPERTIES_PREFIX, properties
        )
        self.pod_spec_builder = PodSpecBuilder(
            properties,
            container_factory or DefaultContainerFactory(properties),
            KUBERNETES_DEPLOYER_PROPERTIES_PREFIX,
        )

    @staticmethod
    def trace_submission(kind: str, obj):
        """Dump the object about to be submitted, in its API form, to the trace logger."""
        if trace_logger.isEnabledFor(logging.DEBUG):
            trace_logger.debug("Submitting %s: %s", kind, to_k8s_dict(obj))

    @staticmethod
    def create_id_map(app_id: str, request: DeploymentRequest) -> Dict[str, str]:
        """Identifying labels shared by every object created for one app."""
        deployment_properties = request.deployment_properties
        id_map = {SPRING_APP_KEY: app_id}
        group_id = deployment_properties.get(GROUP_PROPERTY_KEY)
        if group_id is not None:
            id_map[SPRING_GROUP_KEY] = group_id
        id_map[SPRING_DEPLOYMENT_KEY] = app_id
        app_name = deployment_properties.get(APP_NAME_PROPERTY_KEY)
        if app_name is not None:
            id_map[APP_NAME_KEY] = app_name
        return id_map

    @staticmethod
    def get_external_port(request: DeploymentRequest) -> int:
        value = (request.definition.properties or {}).get(SERVER_PORT_KEY)
        if value is None:
            return DEFAULT_SERVER_PORT
        try:
            return int(value)
        except ValueError as e:
            raise InvalidDeploymentProperty(
                f"Invalid {SERVER_PORT_KEY} value: '{value}'"
            ) from e

    def read_container_logs(self, pods: List[V1Pod], all_containers: bool) -> str:
        """
        Concatenate the tail of the pod logs.
        With all_containers False a multi-container pod contributes only the
        container carrying the application GUID variable.
        """
        log = []
        for pod in pods:
            name = pod.metadata.name
            containers = pod.spec.containers if pod.spec is not None else []
            if all_containers:
                for container in containers:
                    log.append(
                        self.client.read_pod_log(name, container.name, LOG_TAIL_LINES)
                    )
            elif len(containers) > 1:
                for container in containers:
                    if any(env.name == APPLICATION_GUID_ENV for env in container.env or []):
                        log.append(
                            self.client.read_pod_log(name, container.name, LOG_TAIL_LINES)
                        )
                        break
            else:
                log.append(self.client.read_pod_log(name, tail_lines=LOG_TAIL_LINES))
        logger.debug("Read logs of %d pods", len(pods))
        return "".join(log)
