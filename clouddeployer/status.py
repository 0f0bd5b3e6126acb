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

"""Translation of observed pod and job state into deployment and launch states."""

from typing import Dict, List, Optional

from kubernetes.client import V1Job, V1Pod

from .models import (
    AppInstanceStatus,
    AppStatus,
    DeploymentState,
    LaunchState,
    TaskStatus,
)

POD_PHASE_PENDING = "Pending"
POD_PHASE_FAILED = "Failed"
POD_PHASE_SUCCEEDED = "Succeeded"


def app_instance_state(pod: V1Pod) -> DeploymentState:
    phase = pod.status.phase if pod.status is not None else None
    if phase == POD_PHASE_PENDING:
        return DeploymentState.deploying
    if phase == POD_PHASE_FAILED:
        return DeploymentState.failed
    if phase == POD_PHASE_SUCCEEDED:
        return DeploymentState.undeployed
    return DeploymentState.deployed


def _instance_attributes(pod: V1Pod, port: Optional[int]) -> Dict[str, str]:
    attributes = {"pod.name": pod.metadata.name}
    if pod.metadata.uid:
        attributes["guid"] = pod.metadata.uid
    status = pod.status
    if status is not None:
        if status.phase:
            attributes["pod.phase"] = status.phase
        if status.pod_ip:
            attributes["pod.ip"] = status.pod_ip
            if port is not None:
                attributes["actuator.path"] = "/actuator"
                attributes["actuator.port"] = str(port)
                attributes["url"] = f"http://{status.pod_ip}:{port}"
        if status.host_ip:
            attributes["host.ip"] = status.host_ip
        if status.start_time:
            attributes["pod.startTime"] = str(status.start_time)
        for container_status in status.container_statuses or []:
            attributes[f"container.{container_status.name}.restartCount"] = str(
                container_status.restart_count
            )
    return attributes


def build_app_status(
    deployment_id: str, pods: List[V1Pod], port: Optional[int] = None
) -> AppStatus:
    """One instance per pod. No pods means the app state is unknown."""
    status = AppStatus(deployment_id=deployment_id)
    for pod in pods:
        status.add_instance(
            AppInstanceStatus(
                id=pod.metadata.name,
                state=app_instance_state(pod),
                attributes=_instance_attributes(pod, port),
            )
        )
    return status


def pod_launch_state(pod: Optional[V1Pod]) -> LaunchState:
    if pod is None or pod.status is None:
        return LaunchState.unknown
    phase = pod.status.phase
    if phase == POD_PHASE_PENDING:
        return LaunchState.launching
    if phase == POD_PHASE_FAILED:
        return LaunchState.failed
    if phase == POD_PHASE_SUCCEEDED:
        return LaunchState.complete
    return LaunchState.running


def job_launch_state(job: Optional[V1Job]) -> LaunchState:
    if job is None or job.status is None:
        return LaunchState.unknown
    if job.status.failed is not None and job.status.failed > 0:
        return LaunchState.failed
    if job.status.succeeded is not None and job.status.succeeded > 0:
        return LaunchState.complete
    return LaunchState.launching


def build_task_status(task_id: str, state: LaunchState) -> TaskStatus:
    return TaskStatus(task_id=task_id, state=state, attributes={})
