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

import pytest
from kubernetes.client import (
    V1ContainerStatus,
    V1Job,
    V1JobStatus,
    V1ObjectMeta,
    V1Pod,
    V1PodStatus,
)

from clouddeployer.models import (
    AppInstanceStatus,
    AppStatus,
    DeploymentState,
    LaunchState,
)
from clouddeployer.status import (
    app_instance_state,
    build_app_status,
    build_task_status,
    job_launch_state,
    pod_launch_state,
)


def pod(name="app-0", phase="Running", pod_ip=None, uid=None, container_statuses=None):
    return V1Pod(
        metadata=V1ObjectMeta(name=name, uid=uid),
        status=V1PodStatus(
            phase=phase, pod_ip=pod_ip, container_statuses=container_statuses
        ),
    )


@pytest.mark.parametrize(
    "phase,state",
    [
        ("Pending", DeploymentState.deploying),
        ("Running", DeploymentState.deployed),
        ("Failed", DeploymentState.failed),
        ("Succeeded", DeploymentState.undeployed),
        ("Unknown", DeploymentState.deployed),
    ],
)
def test_app_instance_state(phase, state):
    assert app_instance_state(pod(phase=phase)) == state


@pytest.mark.parametrize(
    "phase,state",
    [
        ("Pending", LaunchState.launching),
        ("Running", LaunchState.running),
        ("Failed", LaunchState.failed),
        ("Succeeded", LaunchState.complete),
    ],
)
def test_pod_launch_state(phase, state):
    assert pod_launch_state(pod(phase=phase)) == state


def test_pod_launch_state_without_pod():
    assert pod_launch_state(None) == LaunchState.unknown
    assert pod_launch_state(V1Pod(metadata=V1ObjectMeta(name="p"))) == LaunchState.unknown


@pytest.mark.parametrize(
    "job_status,state",
    [
        (V1JobStatus(failed=1, succeeded=1), LaunchState.failed),
        (V1JobStatus(succeeded=1), LaunchState.complete),
        (V1JobStatus(active=1), LaunchState.launching),
        (V1JobStatus(failed=0, succeeded=0), LaunchState.launching),
    ],
)
def test_job_launch_state(job_status, state):
    assert job_launch_state(V1Job(status=job_status)) == state


def test_job_launch_state_without_job():
    assert job_launch_state(None) == LaunchState.unknown


def test_build_app_status_attributes():
    status = build_app_status(
        "app-test",
        [
            pod(
                "app-test-abc",
                pod_ip="10.0.0.5",
                uid="1234",
                container_statuses=[
                    V1ContainerStatus(
                        name="app-test",
                        image="app",
                        image_id="id",
                        ready=True,
                        restart_count=2,
                    )
                ],
            )
        ],
        8080,
    )
    attributes = status.instances["app-test-abc"].attributes
    assert attributes["pod.name"] == "app-test-abc"
    assert attributes["guid"] == "1234"
    assert attributes["pod.ip"] == "10.0.0.5"
    assert attributes["url"] == "http://10.0.0.5:8080"
    assert attributes["actuator.port"] == "8080"
    assert attributes["container.app-test.restartCount"] == "2"
    assert status.state == DeploymentState.deployed


def test_build_app_status_without_pods():
    assert build_app_status("app-test", []).state == DeploymentState.unknown


def test_app_status_aggregation():
    status = AppStatus(deployment_id="app")
    status.add_instance(AppInstanceStatus(id="a", state=DeploymentState.deployed))
    status.add_instance(AppInstanceStatus(id="b", state=DeploymentState.deploying))
    assert status.state == DeploymentState.deploying
    status.add_instance(AppInstanceStatus(id="c", state=DeploymentState.error))
    assert status.state == DeploymentState.error

    partial = AppStatus(deployment_id="app")
    partial.add_instance(AppInstanceStatus(id="a", state=DeploymentState.deployed))
    partial.add_instance(AppInstanceStatus(id="b", state=DeploymentState.failed))
    assert partial.state == DeploymentState.partial

    failed = AppStatus(deployment_id="app")
    failed.add_instance(AppInstanceStatus(id="a", state=DeploymentState.failed))
    failed.add_instance(AppInstanceStatus(id="b", state=DeploymentState.undeployed))
    assert failed.state == DeploymentState.failed


def test_build_task_status():
    status = build_task_status("task-1", LaunchState.running)
    assert status.task_id == "task-1"
    assert status.state == LaunchState.running
    assert status.attributes == {}
