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

import json
from typing import Dict, List, Optional

from kubernetes.client import (
    V1Container,
    V1ContainerPort,
    V1EnvVar,
    V1EnvVarSource,
    V1ObjectFieldSelector,
    V1ResourceRequirements,
)
from pydantic import BaseModel, ConfigDict

from .constants.constants import (
    APPLICATION_GUID_ENV,
    APPLICATION_JSON_ENV,
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX,
    EntryPointStyle,
    ProbeType,
)
from .deployer_properties import KubernetesDeployerProperties
from .logging import logger
from .models import DeploymentRequest, DockerResource
from .probes import LIVENESS, READINESS, STARTUP, create_probe, startup_probe_requested
from .resolver import DeploymentPropertiesResolver
from .utils.property_parser import parse_key_value_pairs
from .utils.utils import sanitize_arguments


class ContainerConfiguration(BaseModel):
    """Inputs of the primary container besides the deployment properties."""

    app_id: str
    request: DeploymentRequest
    external_port: Optional[int] = None
    host_network: bool = False
    is_task: bool = False

    model_config = ConfigDict(frozen=True)


def to_env_name(key: str) -> str:
    """Shell-style variable name of an app property, e.g. "server.port" -> "SERVER_PORT"."""
    return key.replace(".", "_").replace("-", "_").upper()


def get_image(request: DeploymentRequest) -> str:
    if isinstance(request.resource, DockerResource):
        return request.resource.image
    return request.resource.get_uri()


class DefaultContainerFactory:
    """
    Creates the primary application container of a pod, container[0].

    :param properties: global KubernetesDeployerProperties
    :param property_prefix: deployment property key prefix
    """

    def __init__(
        self,
        properties: KubernetesDeployerProperties,
        property_prefix: str = KUBERNETES_DEPLOYER_PROPERTIES_PREFIX,
    ):
        self.properties = properties
        self.property_prefix = property_prefix
        self.resolver = DeploymentPropertiesResolver(property_prefix, properties)

    def create(self, container_configuration: ContainerConfiguration) -> V1Container:
        request = container_configuration.request
        deployment_properties = request.deployment_properties
        resolver = self.resolver

        entry_point_style = resolver.get_entry_point_style(deployment_properties)
        args, style_env = self._entry_point(request, entry_point_style)
        logger.debug(
            "Using %s entry point style for %s with args %s",
            entry_point_style.value,
            container_configuration.app_id,
            sanitize_arguments(args),
        )

        env_values = parse_key_value_pairs(self.properties.environment_variables)
        env_values.update(resolver.get_app_environment_variables(deployment_properties))
        env_values.update(style_env)
        env = [V1EnvVar(name=name, value=value) for name, value in env_values.items()]
        env.extend(resolver.get_config_map_key_refs(deployment_properties))
        env.extend(resolver.get_secret_key_refs(deployment_properties))
        env.extend(resolver.get_environment_variables_from_field_refs(deployment_properties))
        env.append(
            V1EnvVar(
                name=APPLICATION_GUID_ENV,
                value_from=V1EnvVarSource(
                    field_ref=V1ObjectFieldSelector(field_path="metadata.uid")
                ),
            )
        )
        env_from = resolver.get_config_map_refs(deployment_properties)
        env_from.extend(resolver.get_secret_refs(deployment_properties))

        ports = self._ports(container_configuration)
        container = V1Container(
            name=container_configuration.app_id,
            image=get_image(request),
            image_pull_policy=resolver.get_image_pull_policy(deployment_properties),
            args=args or None,
            env=env,
            env_from=env_from or None,
            ports=ports or None,
            volume_mounts=resolver.get_volume_mounts(deployment_properties) or None,
            security_context=resolver.get_container_security_context(
                deployment_properties
            ),
        )

        limits = resolver.get_resource_limits(deployment_properties)
        requests = resolver.get_resource_requests(deployment_properties)
        if limits or requests:
            container.resources = V1ResourceRequirements(
                limits=limits or None, requests=requests or None
            )

        command = resolver.get_container_command(deployment_properties)
        if command:
            container.command = command

        lifecycle = resolver.get_lifecycle(deployment_properties)
        if lifecycle.post_start is not None or lifecycle.pre_stop is not None:
            container.lifecycle = lifecycle.to_k8s()

        if not container_configuration.is_task:
            self._add_probes(container, container_configuration, ports)
        return container

    def _entry_point(self, request: DeploymentRequest, style: EntryPointStyle):
        app_properties = request.definition.properties or {}
        args = list(request.commandline_arguments)
        env = {}
        if style is EntryPointStyle.exec:
            args.extend(f"--{key}={value}" for key, value in app_properties.items())
        elif style is EntryPointStyle.shell:
            env = {to_env_name(key): value for key, value in app_properties.items()}
        elif app_properties:
            env = {APPLICATION_JSON_ENV: json.dumps(app_properties)}
        return args, env

    def _ports(self, container_configuration: ContainerConfiguration) -> List[V1ContainerPort]:
        port_numbers = []
        if container_configuration.external_port is not None:
            port_numbers.append(container_configuration.external_port)
        for port in self.resolver.get_container_ports(
            container_configuration.request.deployment_properties
        ):
            if port not in port_numbers:
                port_numbers.append(port)
        ports = []
        for port in port_numbers:
            container_port = V1ContainerPort(container_port=port)
            if container_configuration.host_network:
                container_port.host_port = port
            ports.append(container_port)
        return ports

    def _add_probes(
        self,
        container: V1Container,
        container_configuration: ContainerConfiguration,
        ports: List[V1ContainerPort],
    ):
        deployment_properties: Dict[str, str] = (
            container_configuration.request.deployment_properties
        )
        probe_type = self.resolver.get_probe_type(deployment_properties)
        if not ports and probe_type is not ProbeType.COMMAND:
            return
        default_port = container_configuration.external_port
        if default_port is None and ports:
            default_port = ports[0].container_port

        def probe(kind):
            return create_probe(
                kind,
                probe_type,
                deployment_properties,
                self.properties,
                self.property_prefix,
                default_port,
            )

        container.liveness_probe = probe(LIVENESS)
        container.readiness_probe = probe(READINESS)
        if startup_probe_requested(
            deployment_properties, self.properties, self.property_prefix
        ):
            container.startup_probe = probe(STARTUP)
