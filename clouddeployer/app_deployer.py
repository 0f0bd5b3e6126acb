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

import time
from typing import Dict, List

from kubernetes.client import (
    V1Deployment,
    V1DeploymentSpec,
    V1LabelSelector,
    V1ObjectMeta,
    V1PodTemplateSpec,
    V1Service,
    V1ServicePort,
    V1ServiceSpec,
    V1StatefulSet,
    V1StatefulSetSpec,
)

from .base_deployer import KubernetesDeployerBase
from .constants.constants import (
    APP_NAME_KEY,
    APP_NAME_PROPERTY_KEY,
    COUNT_PROPERTY_KEY,
    GROUP_PROPERTY_KEY,
    INDEXED_PROPERTY_KEY,
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX,
    SPRING_APP_KEY,
    SPRING_DEPLOYMENT_KEY,
    SPRING_GROUP_KEY,
    SPRING_MARKER_KEY,
    SPRING_MARKER_VALUE,
)
from .errors import DeploymentStateError, InvalidDeploymentProperty, PlatformError
from .logging import logger, trace_logger
from .models import AppScaleRequest, AppStatus, DeploymentRequest, DeploymentState
from .status import build_app_status
from .utils.property_parser import get_deployment_property_value
from .utils.utils import has_text, sanitize_arguments, sanitize_properties

SCALE_POLLING_INTERVAL = 1


def create_deployment_id(request: DeploymentRequest) -> str:
    """
    Deterministic app id, "<group>-<name>" or "<name>", lowercase without dots.
    """
    group_id = request.deployment_properties.get(GROUP_PROPERTY_KEY)
    if group_id is None:
        deployment_id = request.definition.name
    else:
        deployment_id = f"{group_id}-{request.definition.name}"
    return deployment_id.replace(".", "-").lower()


def get_count(request: DeploymentRequest) -> int:
    value = request.deployment_properties.get(COUNT_PROPERTY_KEY)
    if value is None:
        return 1
    try:
        return int(value)
    except ValueError as e:
        raise InvalidDeploymentProperty(
            f"Invalid {COUNT_PROPERTY_KEY} value: '{value}'"
        ) from e


class KubernetesAppDeployer(KubernetesDeployerBase):
    """Deploys long-running apps as a service plus a deployment or statefulset."""

    def deploy(self, request: DeploymentRequest) -> str:
        app_id = create_deployment_id(request)
        trace_logger.debug(
            "Deploying app: %s, request: commandlineArguments=%s, deploymentProperties=%s, resource=%s",
            app_id,
            sanitize_arguments(request.commandline_arguments),
            sanitize_properties(request.deployment_properties),
            request.resource.get_uri(),
        )
        status = self.status(app_id)
        if status.state is not DeploymentState.unknown:
            raise DeploymentStateError(f"App '{app_id}' is already deployed")

        indexed = (
            request.deployment_properties.get(INDEXED_PROPERTY_KEY, "").lower() == "true"
        )
        try:
            self.create_service(request)
            if indexed:
                self.create_stateful_set(request)
            else:
                self.create_deployment(request)
        except Exception as e:
            logger.error("Failed to deploy app %s: %s", app_id, e)
            raise
        return app_id

    def undeploy(self, app_id: str):
        logger.debug("Undeploying app: %s", app_id)
        status = self.status(app_id)
        if status.state is DeploymentState.unknown:
            # Remove leftovers of a failed deployment before reporting.
            try:
                self.delete_all_objects(app_id)
            except PlatformError as e:
                logger.warning("Failed to clean up leftovers of app %s: %s", app_id, e)
            raise DeploymentStateError(f"App '{app_id}' is not deployed")
        self.delete_all_objects(app_id)

    def status(self, app_id: str) -> AppStatus:
        labels = {SPRING_APP_KEY: app_id}
        services = self.client.list_services(labels)
        pods = self.client.list_pods(labels)
        logger.debug("Pods for appId %s: %d", app_id, len(pods))
        port = None
        if services and services[0].spec is not None and services[0].spec.ports:
            port = services[0].spec.ports[0].port
        status = build_app_status(app_id, pods, port)
        for instance in status.instances.values():
            logger.debug(
                "status:%s:%s:%s", instance.id, instance.state.value, instance.attributes
            )
        return status

    def get_log(self, app_id: str) -> str:
        pods = self.client.list_pods({SPRING_APP_KEY: app_id})
        return self.read_container_logs(pods, all_containers=False)

    def scale(self, scale_request: AppScaleRequest):
        deployment_id = scale_request.deployment_id
        logger.debug("Scale app: %s to: %s", deployment_id, scale_request.count)
        if self.client.get_deployment(deployment_id) is not None:
            self.client.scale_deployment(deployment_id, scale_request.count)
            get = self.client.get_deployment
        elif self.client.get_stateful_set(deployment_id) is not None:
            self.client.scale_stateful_set(deployment_id, scale_request.count)
            get = self.client.get_stateful_set
        else:
            raise DeploymentStateError(f"App '{deployment_id}' is not deployed")

        deadline = time.monotonic() + self.properties.scale_timeout_seconds
        while True:
            scaled = get(deployment_id)
            replicas = scaled.status.replicas if scaled and scaled.status else None
            if (replicas or 0) == scale_request.count:
                return
            if time.monotonic() >= deadline:
                raise DeploymentStateError(
                    "Timeout scaling app '%s' to %d replicas, %s replicas reported"
                    % (deployment_id, scale_request.count, replicas)
                )
            time.sleep(SCALE_POLLING_INTERVAL)

    def _labels(self, id_map: Dict[str, str], deployment_labels: Dict[str, str]):
        labels = dict(id_map)
        labels[SPRING_MARKER_KEY] = SPRING_MARKER_VALUE
        labels.update(deployment_labels)
        return labels

    def create_deployment(self, request: DeploymentRequest) -> V1Deployment:
        app_id = create_deployment_id(request)
        logger.debug("Creating Deployment: %s", app_id)
        deployment_properties = request.deployment_properties
        id_map = self.create_id_map(app_id, request)
        annotations = self.resolver.get_pod_annotations(deployment_properties)
        labels = self._labels(
            id_map, self.resolver.get_deployment_labels(deployment_properties)
        )
        pod_spec = self.pod_spec_builder.create_pod_spec(
            request, app_id, self.get_external_port(request)
        )
        deployment = V1Deployment(
            api_version="apps/v1",
            kind="Deployment",
            metadata=V1ObjectMeta(name=app_id, labels=labels),
            spec=V1DeploymentSpec(
                selector=V1LabelSelector(match_labels=dict(id_map)),
                replicas=get_count(request),
                template=V1PodTemplateSpec(
                    metadata=V1ObjectMeta(
                        labels=dict(labels), annotations=annotations or None
                    ),
                    spec=pod_spec,
                ),
            ),
        )
        self.trace_submission("deployment", deployment)
        return self.client.create_deployment(deployment)

    def create_stateful_set(self, request: DeploymentRequest) -> V1StatefulSet:
        app_id = create_deployment_id(request)
        deployment_properties = request.deployment_properties
        replicas = get_count(request)
        external_port = self.get_external_port(request)
        logger.debug(
            "Creating StatefulSet: %s on %d with %d replicas",
            app_id,
            external_port,
            replicas,
        )
        id_map = self.create_id_map(app_id, request)
        selector_labels = dict(id_map)
        selector_labels[SPRING_MARKER_KEY] = SPRING_MARKER_VALUE

        claim_template = self.pod_spec_builder.create_volume_claim_template(
            app_id, deployment_properties
        )
        claim_template.metadata.labels = dict(selector_labels)

        pod_spec = self.pod_spec_builder.create_pod_spec(request, app_id, external_port)
        self.pod_spec_builder.add_stateful_set_topology(pod_spec, deployment_properties)

        labels = self._labels(
            id_map, self.resolver.get_deployment_labels(deployment_properties)
        )
        annotations = self.resolver.get_pod_annotations(deployment_properties)
        stateful_set = V1StatefulSet(
            api_version="apps/v1",
            kind="StatefulSet",
            metadata=V1ObjectMeta(name=app_id, labels=labels),
            spec=V1StatefulSetSpec(
                selector=V1LabelSelector(match_labels=selector_labels),
                volume_claim_templates=[claim_template],
                service_name=app_id,
                pod_management_policy="Parallel",
                replicas=replicas,
                template=V1PodTemplateSpec(
                    metadata=V1ObjectMeta(
                        labels=dict(labels), annotations=annotations or None
                    ),
                    spec=pod_spec,
                ),
            ),
        )
        self.trace_submission("stateful set", stateful_set)
        return self.client.create_stateful_set(stateful_set)

    def create_service(self, request: DeploymentRequest) -> V1Service:
        app_id = create_deployment_id(request)
        deployment_properties = request.deployment_properties
        external_port = self.get_external_port(request)
        logger.debug(
            "Creating Service: %s on %d using %s",
            app_id,
            external_port,
            sanitize_properties(deployment_properties),
        )
        id_map = self.create_id_map(app_id, request)

        create_load_balancer = get_deployment_property_value(
            deployment_properties,
            KUBERNETES_DEPLOYER_PROPERTIES_PREFIX + ".createLoadBalancer",
        )
        create_node_port = get_deployment_property_value(
            deployment_properties, KUBERNETES_DEPLOYER_PROPERTIES_PREFIX + ".createNodePort"
        )
        additional_service_ports = get_deployment_property_value(
            deployment_properties, KUBERNETES_DEPLOYER_PROPERTIES_PREFIX + ".servicePorts"
        )
        if create_load_balancer is not None and create_node_port is not None:
            raise InvalidDeploymentProperty(
                "Cannot create NodePort and LoadBalancer at the same time."
            )

        spec = V1ServiceSpec()
        if create_load_balancer is None:
            is_load_balancer = self.properties.create_load_balancer
        else:
            is_load_balancer = create_load_balancer.lower() == "true"
        if is_load_balancer:
            spec.type = "LoadBalancer"

        service_port = V1ServicePort(port=external_port, name=f"port-{external_port}")
        if create_node_port is not None:
            spec.type = "NodePort"
            if create_node_port.lower() != "true":
                try:
                    service_port.node_port = int(create_node_port)
                except ValueError as e:
                    raise InvalidDeploymentProperty(
                        f"Invalid value: {create_node_port}: provided port is not valid."
                    ) from e

        ports = [service_port]
        if has_text(additional_service_ports):
            for port in self._additional_service_ports(additional_service_ports):
                if all(p.port != port.port for p in ports):
                    ports.append(port)
        spec.ports = ports

        if APP_NAME_PROPERTY_KEY in deployment_properties:
            selector = {APP_NAME_KEY: deployment_properties[APP_NAME_PROPERTY_KEY]}
            group_id = deployment_properties.get(GROUP_PROPERTY_KEY)
            if group_id is not None:
                selector[SPRING_GROUP_KEY] = group_id
            spec.selector = selector
        else:
            spec.selector = dict(id_map)

        labels = dict(id_map)
        labels[SPRING_MARKER_KEY] = SPRING_MARKER_VALUE
        annotations = self.resolver.get_service_annotations(deployment_properties)
        service = V1Service(
            api_version="v1",
            kind="Service",
            metadata=V1ObjectMeta(
                name=self.get_service_name(request, app_id),
                labels=labels,
                annotations=annotations or None,
            ),
            spec=spec,
        )
        self.trace_submission("service", service)
        return self.client.create_service(service)

    def get_service_name(self, request: DeploymentRequest, app_id: str) -> str:
        """
        The un-versioned "<group>-<appName>" name when the app name key is set,
        unless a versioned "<name>-v*" service already exists.
        """
        app_name = request.deployment_properties.get(APP_NAME_PROPERTY_KEY)
        if not has_text(app_name):
            return app_id
        group_id = request.deployment_properties.get(GROUP_PROPERTY_KEY)
        service_name = app_name if group_id is None else f"{group_id}-{app_name}"
        service_name = service_name.replace(".", "-").lower()
        for service in self.client.list_services({SPRING_DEPLOYMENT_KEY: None}):
            if service.metadata.name.startswith(service_name + "-v"):
                return app_id
        return service_name

    @staticmethod
    def _additional_service_ports(value: str) -> List[V1ServicePort]:
        ports = []
        for port in value.split(","):
            try:
                number = int(port.strip())
            except ValueError as e:
                raise InvalidDeploymentProperty(f"Invalid service port: '{port}'") from e
            ports.append(V1ServicePort(port=number, name=f"port-{number}"))
        return ports

    def delete_all_objects(self, app_id: str):
        labels = {SPRING_APP_KEY: app_id}
        logger.debug("deleteAllObjects:%s:%s", app_id, labels)
        for kind, delete in (
            ("Service", self.client.delete_services),
            ("Deployment", self.client.delete_deployments),
            ("StatefulSet", self.client.delete_stateful_sets),
            ("Pod", self.client.delete_pods),
            ("PersistentVolumeClaim", self.client.delete_persistent_volume_claims),
        ):
            deleted = delete(labels)
            logger.debug("%s deleted for: %s - %s", kind, labels, deleted)
