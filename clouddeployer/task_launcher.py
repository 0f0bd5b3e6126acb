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

import random
import threading
import time
from typing import List, Optional

from kubernetes.client import (
    V1Job,
    V1JobSpec,
    V1ObjectMeta,
    V1Pod,
    V1PodTemplateSpec,
)

from .api.platform_client import KubernetesPlatformClient
from .base_deployer import KubernetesDeployerBase
from .constants.constants import (
    JOB_NAME_KEY,
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX,
    LOG_TAIL_LINES,
    RestartPolicy,
    SPRING_APP_KEY,
    SPRING_MARKER_KEY,
    SPRING_MARKER_VALUE,
    TASK_NAME_KEY,
)
from .container_factory import DefaultContainerFactory
from .deployer_properties import (
    KubernetesDeployerProperties,
    KubernetesTaskLauncherProperties,
)
from .errors import (
    ConcurrentTaskLimitReached,
    DeploymentStateError,
    InvalidDeploymentProperty,
)
from .logging import logger, trace_logger
from .models import DeploymentRequest, LaunchState, TaskStatus
from .status import build_task_status, job_launch_state, pod_launch_state
from .utils.property_parser import get_deployment_property_value
from .utils.utils import has_text, sanitize_arguments, sanitize_properties

_BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(number: int) -> str:
    digits = []
    while True:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_ALPHABET[remainder])
        if number == 0:
            break
    return "".join(reversed(digits))


def create_task_id(request: DeploymentRequest) -> str:
    """
    Unique task id, "<name>-<suffix>" with a base36 suffix derived from the
    current time. Lowercase without dots.
    """
    seed = int(time.time() * 1000) + random.randint(0, 999)
    task_id = f"{request.definition.name}-{_to_base36(seed)}"
    return task_id.replace(".", "-").lower()


class KubernetesTaskLauncher(KubernetesDeployerBase):
    """
    Launches short-lived tasks as bare pods, or as jobs when the global
    `create_job` property is set.
    """

    def __init__(
        self,
        properties: KubernetesDeployerProperties,
        task_launcher_properties: KubernetesTaskLauncherProperties,
        platform_client: KubernetesPlatformClient,
        container_factory: Optional[DefaultContainerFactory] = None,
    ):
        super().__init__(properties, platform_client, container_factory)
        self.task_launcher_properties = task_launcher_properties
        self._launch_lock = threading.Lock()

    def launch(self, request: DeploymentRequest) -> str:
        task_id = create_task_id(request)
        trace_logger.debug(
            "Launching task: %s, request: commandlineArguments=%s, deploymentProperties=%s, resource=%s",
            task_id,
            sanitize_arguments(request.commandline_arguments),
            sanitize_properties(request.deployment_properties),
            request.resource.get_uri(),
        )
        status = self.status(task_id)
        if status.state is not LaunchState.unknown:
            raise DeploymentStateError(
                f"Task {task_id} already exists with a state of {status.state.value}"
            )
        if self.get_running_task_execution_count() >= self.maximum_concurrent_tasks:
            raise ConcurrentTaskLimitReached(
                request.definition.name, self.maximum_concurrent_tasks
            )
        try:
            self._launch(task_id, request)
        except Exception as e:
            logger.error("Failed to launch task %s: %s", task_id, e)
            raise
        return task_id

    def _launch(self, task_id: str, request: DeploymentRequest):
        with self._launch_lock:
            deployment_properties = request.deployment_properties
            id_map = self.create_id_map(task_id, request)
            pod_labels = {
                TASK_NAME_KEY: request.definition.name,
                SPRING_MARKER_KEY: SPRING_MARKER_VALUE,
            }
            deployment_labels = self.resolver.get_deployment_labels(deployment_properties)
            if deployment_labels:
                logger.debug("Adding deploymentLabels: %s", deployment_labels)
            restart_policy = self.get_restart_policy(request)
            pod_spec = self.pod_spec_builder.create_pod_spec(
                request, task_id, is_task=True, restart_policy=restart_policy
            )
            job_annotations = self.resolver.get_job_annotations(deployment_properties)
            pod_annotations = dict(job_annotations)
            pod_annotations.update(self.resolver.get_pod_annotations(deployment_properties))

            labels = dict(pod_labels)
            labels.update(deployment_labels)
            labels.update(id_map)

            if self.properties.create_job:
                logger.debug(
                    "Launching Job for task: %s with properties %s",
                    task_id,
                    sanitize_properties(deployment_properties),
                )
                job_labels = {TASK_NAME_KEY: request.definition.name}
                job_labels.update(id_map)
                job = V1Job(
                    api_version="batch/v1",
                    kind="Job",
                    metadata=V1ObjectMeta(
                        name=task_id,
                        labels=job_labels,
                        annotations=job_annotations or None,
                    ),
                    spec=V1JobSpec(
                        template=V1PodTemplateSpec(
                            metadata=V1ObjectMeta(
                                labels=labels, annotations=pod_annotations or None
                            ),
                            spec=pod_spec,
                        ),
                        backoff_limit=self.get_backoff_limit(request),
                        ttl_seconds_after_finished=self.get_ttl_seconds_after_finished(
                            request
                        ),
                    ),
                )
                self.trace_submission("job", job)
                self.client.create_job(job)
            else:
                logger.debug(
                    "Launching Pod for task: %s with properties %s",
                    task_id,
                    sanitize_properties(deployment_properties),
                )
                pod = V1Pod(
                    api_version="v1",
                    kind="Pod",
                    metadata=V1ObjectMeta(
                        name=task_id,
                        labels=labels,
                        annotations=pod_annotations or None,
                    ),
                    spec=pod_spec,
                )
                self.trace_submission("pod", pod)
                self.client.create_pod(pod)

    def cancel(self, task_id: str):
        logger.debug("Cancelling task: %s", task_id)
        # Kubernetes has no stop for pods or jobs, cancelling removes them.
        self.cleanup(task_id)

    def cleanup(self, task_id: str):
        labels = {SPRING_APP_KEY: task_id}
        if self.properties.create_job:
            kind, find, delete = "job", self.client.list_jobs, self.client.delete_jobs
        else:
            kind, find, delete = "pod", self.client.list_pods, self.client.delete_pods
        if not find(labels):
            logger.warning(
                'Cannot delete %s for task "%s" (reason: %s does not exist)',
                kind,
                task_id,
                kind,
            )
            return
        logger.debug("Deleting %s for task: %s", kind, task_id)
        deleted = delete(labels)
        logger.debug(
            "%s was%s deleted for task: %s",
            kind.capitalize(),
            "" if deleted else " not",
            task_id,
        )

    def destroy(self, app_name: str):
        for task_id in self._get_task_ids(app_name, self.properties.create_job):
            self.cleanup(task_id)

    def status(self, task_id: str) -> TaskStatus:
        if self.properties.create_job:
            status = build_task_status(task_id, job_launch_state(self._get_job(task_id)))
        else:
            status = self._pod_status(task_id)
        logger.debug("Status for task: %s is %s", task_id, status.state.value)
        return status

    def _pod_status(self, task_id: str) -> TaskStatus:
        return build_task_status(task_id, pod_launch_state(self.client.get_pod(task_id)))

    @property
    def maximum_concurrent_tasks(self) -> int:
        return self.properties.maximum_concurrent_tasks

    def get_running_task_execution_count(self) -> int:
        """Count task pods in the running phase, in both pod and job mode."""
        return sum(
            1
            for task_id in self._get_task_ids(None, False)
            if self._pod_status(task_id).state is LaunchState.running
        )

    def get_log(self, task_id: str) -> str:
        selector = {SPRING_APP_KEY: task_id}
        if self.properties.create_job:
            job = self._get_job(task_id)
            if job is None:
                logger.debug("No job found for task: %s", task_id)
                return ""
            selector[JOB_NAME_KEY] = job.metadata.name
        log = []
        for pod in self.client.list_pods(selector):
            for container in pod.spec.containers:
                log.append(
                    self.client.read_pod_log(
                        pod.metadata.name, container.name, LOG_TAIL_LINES
                    )
                )
        return "".join(log)

    def _get_task_ids(self, task_name: Optional[str], is_create_job: bool) -> List[str]:
        labels = {TASK_NAME_KEY: task_name}
        if is_create_job:
            resources = self.client.list_jobs(labels)
        else:
            resources = self.client.list_pods(labels)
        return [resource.metadata.name for resource in resources]

    def _get_job(self, task_id: str) -> Optional[V1Job]:
        for job in self.client.list_jobs({SPRING_APP_KEY: task_id}):
            if job.metadata.name == task_id:
                return job
        return None

    def get_restart_policy(self, request: DeploymentRequest) -> RestartPolicy:
        restart_policy = self.resolver.get_restart_policy(
            request.deployment_properties, self.task_launcher_properties.restart_policy
        )
        if self.properties.create_job and restart_policy is RestartPolicy.Always:
            raise DeploymentStateError(
                "RestartPolicy should not be 'Always' when the JobSpec is used."
            )
        return restart_policy

    def get_backoff_limit(self, request: DeploymentRequest) -> Optional[int]:
        return self._int_property(
            request, "backoffLimit", self.task_launcher_properties.backoff_limit
        )

    def get_ttl_seconds_after_finished(self, request: DeploymentRequest) -> Optional[int]:
        return self._int_property(
            request,
            "ttlSecondsAfterFinished",
            self.task_launcher_properties.ttl_seconds_after_finished,
        )

    @staticmethod
    def _int_property(
        request: DeploymentRequest, name: str, default: Optional[int]
    ) -> Optional[int]:
        value = get_deployment_property_value(
            request.deployment_properties, KUBERNETES_DEPLOYER_PROPERTIES_PREFIX + "." + name
        )
        if not has_text(value):
            return default
        try:
            return int(value)
        except ValueError as e:
            raise InvalidDeploymentProperty(f"Invalid {name} value: '{value}'") from e
