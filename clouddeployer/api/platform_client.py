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

from typing import Dict, List, Optional

from kubernetes import client, config

from ..errors import PlatformError
from ..logging import logger
from ..utils import utils

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


def label_selector(labels: Dict[str, str]) -> str:
    """Label selector string, a None value selects on the presence of the key."""
    return ",".join(
        key if value is None else f"{key}={value}" for key, value in labels.items()
    )


def _platform_error(api: str, method: str, e: client.rest.ApiException) -> PlatformError:
    logger.error("Exception when calling %s->%s", api, method, exc_info=e)
    return PlatformError(f"Exception when calling {api}->{method}: {e}", status=e.status)


class KubernetesPlatformClient(object):
    """
    Thin wrapper of the Kubernetes API scoped to one namespace.
    Every API failure surfaces as PlatformError, except 404 on get and delete
    which mean the object does not exist.
    """

    def __init__(
        self,
        namespace=None,
        config_file=None,
        config_dict=None,
        context=None,  # pylint: disable=too-many-arguments
        client_configuration=None,
        persist_config=True,
    ):
        """
        Platform client constructor
        :param namespace: target namespace, defaults to current or default namespace
        :param config_file: kubeconfig file, defaults to ~/.kube/config
        :param config_dict: Takes the config file as a dict.
        :param context: kubernetes context
        :param client_configuration: kubernetes configuration object
        :param persist_config:
        """
        if config_file or config_dict or not utils.is_running_in_k8s():
            if config_dict:
                config.load_kube_config_from_dict(
                    config_dict=config_dict,
                    context=context,
                    client_configuration=None,
                    persist_config=persist_config,
                )
            else:
                config.load_kube_config(
                    config_file=config_file,
                    context=context,
                    client_configuration=client_configuration,
                    persist_config=persist_config,
                )
        else:
            config.load_incluster_config()
        self.namespace = namespace or utils.get_default_target_namespace()
        self.core_api = client.CoreV1Api()
        self.app_api = client.AppsV1Api()
        self.batch_api = client.BatchV1Api()

    @classmethod
    def for_properties(cls, properties, **kwargs) -> "KubernetesPlatformClient":
        """Client scoped to the `namespace` deployer property, when one is set."""
        return cls(namespace=properties.namespace, **kwargs)

    # Services

    def create_service(self, service: client.V1Service) -> client.V1Service:
        """Create the service, or replace it when one of the same name exists."""
        try:
            return self.core_api.create_namespaced_service(self.namespace, service)
        except client.rest.ApiException as e:
            if e.status != HTTP_CONFLICT:
                raise _platform_error("CoreV1Api", "create_namespaced_service", e)
        try:
            return self.core_api.replace_namespaced_service(
                service.metadata.name, self.namespace, service
            )
        except client.rest.ApiException as e:
            raise _platform_error("CoreV1Api", "replace_namespaced_service", e)

    def get_service(self, name: str) -> Optional[client.V1Service]:
        try:
            return self.core_api.read_namespaced_service(name, self.namespace)
        except client.rest.ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise _platform_error("CoreV1Api", "read_namespaced_service", e)

    def list_services(self, labels: Optional[Dict[str, str]] = None) -> List[client.V1Service]:
        try:
            return self.core_api.list_namespaced_service(
                self.namespace, label_selector=label_selector(labels or {})
            ).items
        except client.rest.ApiException as e:
            raise _platform_error("CoreV1Api", "list_namespaced_service", e)

    def delete_services(self, labels: Dict[str, str]) -> List[str]:
        return self._delete_all(
            self.list_services(labels),
            self.core_api.delete_namespaced_service,
            "CoreV1Api",
            "delete_namespaced_service",
        )

    # Deployments

    def create_deployment(self, deployment: client.V1Deployment) -> client.V1Deployment:
        try:
            return self.app_api.create_namespaced_deployment(self.namespace, deployment)
        except client.rest.ApiException as e:
            raise _platform_error("AppsV1Api", "create_namespaced_deployment", e)

    def get_deployment(self, name: str) -> Optional[client.V1Deployment]:
        try:
            return self.app_api.read_namespaced_deployment(name, self.namespace)
        except client.rest.ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise _platform_error("AppsV1Api", "read_namespaced_deployment", e)

    def list_deployments(self, labels: Dict[str, str]) -> List[client.V1Deployment]:
        try:
            return self.app_api.list_namespaced_deployment(
                self.namespace, label_selector=label_selector(labels)
            ).items
        except client.rest.ApiException as e:
            raise _platform_error("AppsV1Api", "list_namespaced_deployment", e)

    def scale_deployment(self, name: str, replicas: int):
        try:
            return self.app_api.patch_namespaced_deployment_scale(
                name, self.namespace, {"spec": {"replicas": replicas}}
            )
        except client.rest.ApiException as e:
            raise _platform_error("AppsV1Api", "patch_namespaced_deployment_scale", e)

    def delete_deployments(self, labels: Dict[str, str]) -> List[str]:
        return self._delete_all(
            self.list_deployments(labels),
            self.app_api.delete_namespaced_deployment,
            "AppsV1Api",
            "delete_namespaced_deployment",
        )

    # StatefulSets

    def create_stateful_set(self, stateful_set: client.V1StatefulSet) -> client.V1StatefulSet:
        try:
            return self.app_api.create_namespaced_stateful_set(self.namespace, stateful_set)
        except client.rest.ApiException as e:
            raise _platform_error("AppsV1Api", "create_namespaced_stateful_set", e)

    def get_stateful_set(self, name: str) -> Optional[client.V1StatefulSet]:
        try:
            return self.app_api.read_namespaced_stateful_set(name, self.namespace)
        except client.rest.ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise _platform_error("AppsV1Api", "read_namespaced_stateful_set", e)

    def list_stateful_sets(self, labels: Dict[str, str]) -> List[client.V1StatefulSet]:
        try:
            return self.app_api.list_namespaced_stateful_set(
                self.namespace, label_selector=label_selector(labels)
            ).items
        except client.rest.ApiException as e:
            raise _platform_error("AppsV1Api", "list_namespaced_stateful_set", e)

    def scale_stateful_set(self, name: str, replicas: int):
        try:
            return self.app_api.patch_namespaced_stateful_set_scale(
                name, self.namespace, {"spec": {"replicas": replicas}}
            )
        except client.rest.ApiException as e:
            raise _platform_error("AppsV1Api", "patch_namespaced_stateful_set_scale", e)

    def delete_stateful_sets(self, labels: Dict[str, str]) -> List[str]:
        return self._delete_all(
            self.list_stateful_sets(labels),
            self.app_api.delete_namespaced_stateful_set,
            "AppsV1Api",
            "delete_namespaced_stateful_set",
        )

    # Jobs

    def create_job(self, job: client.V1Job) -> client.V1Job:
        try:
            return self.batch_api.create_namespaced_job(self.namespace, job)
        except client.rest.ApiException as e:
            raise _platform_error("BatchV1Api", "create_namespaced_job", e)

    def get_job(self, name: str) -> Optional[client.V1Job]:
        try:
            return self.batch_api.read_namespaced_job(name, self.namespace)
        except client.rest.ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise _platform_error("BatchV1Api", "read_namespaced_job", e)

    def list_jobs(self, labels: Dict[str, str]) -> List[client.V1Job]:
        try:
            return self.batch_api.list_namespaced_job(
                self.namespace, label_selector=label_selector(labels)
            ).items
        except client.rest.ApiException as e:
            raise _platform_error("BatchV1Api", "list_namespaced_job", e)

    def delete_jobs(self, labels: Dict[str, str]) -> List[str]:
        return self._delete_all(
            self.list_jobs(labels),
            self.batch_api.delete_namespaced_job,
            "BatchV1Api",
            "delete_namespaced_job",
            body=client.V1DeleteOptions(propagation_policy="Background"),
        )

    # Pods

    def create_pod(self, pod: client.V1Pod) -> client.V1Pod:
        try:
            return self.core_api.create_namespaced_pod(self.namespace, pod)
        except client.rest.ApiException as e:
            raise _platform_error("CoreV1Api", "create_namespaced_pod", e)

    def get_pod(self, name: str) -> Optional[client.V1Pod]:
        try:
            return self.core_api.read_namespaced_pod(name, self.namespace)
        except client.rest.ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise _platform_error("CoreV1Api", "read_namespaced_pod", e)

    def list_pods(self, labels: Dict[str, str]) -> List[client.V1Pod]:
        try:
            return self.core_api.list_namespaced_pod(
                self.namespace, label_selector=label_selector(labels)
            ).items
        except client.rest.ApiException as e:
            raise _platform_error("CoreV1Api", "list_namespaced_pod", e)

    def delete_pods(self, labels: Dict[str, str]) -> List[str]:
        return self._delete_all(
            self.list_pods(labels),
            self.core_api.delete_namespaced_pod,
            "CoreV1Api",
            "delete_namespaced_pod",
        )

    def read_pod_log(
        self, name: str, container: Optional[str] = None, tail_lines: Optional[int] = None
    ) -> str:
        kwargs = {}
        if container:
            kwargs["container"] = container
        if tail_lines:
            kwargs["tail_lines"] = tail_lines
        try:
            return self.core_api.read_namespaced_pod_log(name, self.namespace, **kwargs)
        except client.rest.ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return ""
            raise _platform_error("CoreV1Api", "read_namespaced_pod_log", e)

    # Persistent volume claims

    def list_persistent_volume_claims(
        self, labels: Dict[str, str]
    ) -> List[client.V1PersistentVolumeClaim]:
        try:
            return self.core_api.list_namespaced_persistent_volume_claim(
                self.namespace, label_selector=label_selector(labels)
            ).items
        except client.rest.ApiException as e:
            raise _platform_error(
                "CoreV1Api", "list_namespaced_persistent_volume_claim", e
            )

    def delete_persistent_volume_claims(self, labels: Dict[str, str]) -> List[str]:
        return self._delete_all(
            self.list_persistent_volume_claims(labels),
            self.core_api.delete_namespaced_persistent_volume_claim,
            "CoreV1Api",
            "delete_namespaced_persistent_volume_claim",
        )

    def _delete_all(self, items, delete, api: str, method: str, **kwargs) -> List[str]:
        deleted = []
        for item in items:
            name = item.metadata.name
            try:
                delete(name, self.namespace, **kwargs)
            except client.rest.ApiException as e:
                if e.status == HTTP_NOT_FOUND:
                    continue
                raise _platform_error(api, method, e)
            deleted.append(name)
        return deleted
