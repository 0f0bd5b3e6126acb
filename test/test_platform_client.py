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

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from clouddeployer.api.platform_client import KubernetesPlatformClient, label_selector
from clouddeployer.deployer_properties import load_deployer_properties
from clouddeployer.errors import PlatformError


@pytest.fixture
def platform_client():
    with patch("clouddeployer.api.platform_client.config.load_kube_config"), patch(
        "clouddeployer.api.platform_client.utils.is_running_in_k8s", return_value=False
    ), patch("clouddeployer.api.platform_client.client.CoreV1Api"), patch(
        "clouddeployer.api.platform_client.client.AppsV1Api"
    ), patch(
        "clouddeployer.api.platform_client.client.BatchV1Api"
    ):
        yield KubernetesPlatformClient(namespace="test-ns")


def named(name):
    item = MagicMock()
    item.metadata.name = name
    return item


def items(*names):
    result = MagicMock()
    result.items = [named(name) for name in names]
    return result


@patch("clouddeployer.api.platform_client.config.load_kube_config")
@patch("clouddeployer.api.platform_client.utils.is_running_in_k8s", return_value=False)
@patch("clouddeployer.api.platform_client.client.CoreV1Api")
@patch("clouddeployer.api.platform_client.client.AppsV1Api")
@patch("clouddeployer.api.platform_client.client.BatchV1Api")
def test_init_loads_kube_config(mock_batch, mock_apps, mock_core, mock_is_k8s, mock_load_kube):
    platform_client = KubernetesPlatformClient()

    mock_load_kube.assert_called_once()
    mock_core.assert_called_once()
    mock_apps.assert_called_once()
    mock_batch.assert_called_once()
    assert platform_client.namespace == "default"


@patch("clouddeployer.api.platform_client.config.load_incluster_config")
@patch("clouddeployer.api.platform_client.utils.get_default_target_namespace", return_value="apps")
@patch("clouddeployer.api.platform_client.utils.is_running_in_k8s", return_value=True)
@patch("clouddeployer.api.platform_client.client.CoreV1Api")
@patch("clouddeployer.api.platform_client.client.AppsV1Api")
@patch("clouddeployer.api.platform_client.client.BatchV1Api")
def test_init_in_cluster(mock_batch, mock_apps, mock_core, mock_is_k8s, mock_ns, mock_incluster):
    platform_client = KubernetesPlatformClient()

    mock_incluster.assert_called_once()
    assert platform_client.namespace == "apps"


@patch("clouddeployer.api.platform_client.config.load_kube_config_from_dict")
@patch("clouddeployer.api.platform_client.client.CoreV1Api")
@patch("clouddeployer.api.platform_client.client.AppsV1Api")
@patch("clouddeployer.api.platform_client.client.BatchV1Api")
def test_init_from_config_dict(mock_batch, mock_apps, mock_core, mock_from_dict):
    KubernetesPlatformClient(namespace="ns", config_dict={"apiVersion": "v1"})

    mock_from_dict.assert_called_once()
    assert mock_from_dict.call_args.kwargs["config_dict"] == {"apiVersion": "v1"}


def test_label_selector():
    assert label_selector({"spring-app-id": "app", "task-name": None}) == "spring-app-id=app,task-name"
    assert label_selector({}) == ""


def test_create_service_replaces_on_conflict(platform_client):
    service = client.V1Service(metadata=client.V1ObjectMeta(name="app"))
    platform_client.core_api.create_namespaced_service.side_effect = ApiException(status=409)
    platform_client.core_api.replace_namespaced_service.return_value = service

    assert platform_client.create_service(service) is service
    platform_client.core_api.replace_namespaced_service.assert_called_once_with(
        "app", "test-ns", service
    )


def test_create_service_error(platform_client):
    platform_client.core_api.create_namespaced_service.side_effect = ApiException(status=500)

    with pytest.raises(PlatformError) as e:
        platform_client.create_service(client.V1Service(metadata=client.V1ObjectMeta(name="app")))
    assert e.value.status == 500
    assert "CoreV1Api->create_namespaced_service" in str(e.value)


def test_get_returns_none_when_not_found(platform_client):
    platform_client.app_api.read_namespaced_deployment.side_effect = ApiException(status=404)
    platform_client.app_api.read_namespaced_stateful_set.side_effect = ApiException(status=404)
    platform_client.core_api.read_namespaced_pod.side_effect = ApiException(status=404)
    platform_client.batch_api.read_namespaced_job.side_effect = ApiException(status=404)

    assert platform_client.get_deployment("app") is None
    assert platform_client.get_stateful_set("app") is None
    assert platform_client.get_pod("task") is None
    assert platform_client.get_job("task") is None


def test_get_raises_on_other_errors(platform_client):
    platform_client.app_api.read_namespaced_deployment.side_effect = ApiException(status=403)

    with pytest.raises(PlatformError):
        platform_client.get_deployment("app")


def test_list_uses_label_selector(platform_client):
    platform_client.core_api.list_namespaced_pod.return_value = items("p1", "p2")

    pods = platform_client.list_pods({"spring-app-id": "app"})

    assert [p.metadata.name for p in pods] == ["p1", "p2"]
    platform_client.core_api.list_namespaced_pod.assert_called_once_with(
        "test-ns", label_selector="spring-app-id=app"
    )


def test_delete_skips_objects_already_gone(platform_client):
    platform_client.app_api.list_namespaced_deployment.return_value = items("d1", "d2")
    platform_client.app_api.delete_namespaced_deployment.side_effect = [
        ApiException(status=404),
        None,
    ]

    assert platform_client.delete_deployments({"spring-app-id": "app"}) == ["d2"]


def test_delete_jobs_propagates_to_pods(platform_client):
    platform_client.batch_api.list_namespaced_job.return_value = items("job")

    assert platform_client.delete_jobs({"spring-app-id": "task"}) == ["job"]
    body = platform_client.batch_api.delete_namespaced_job.call_args.kwargs["body"]
    assert body.propagation_policy == "Background"


def test_delete_error(platform_client):
    platform_client.core_api.list_namespaced_service.return_value = items("svc")
    platform_client.core_api.delete_namespaced_service.side_effect = ApiException(status=500)

    with pytest.raises(PlatformError):
        platform_client.delete_services({"spring-app-id": "app"})


def test_scale(platform_client):
    platform_client.scale_deployment("app", 3)
    platform_client.app_api.patch_namespaced_deployment_scale.assert_called_once_with(
        "app", "test-ns", {"spec": {"replicas": 3}}
    )
    platform_client.scale_stateful_set("app", 2)
    platform_client.app_api.patch_namespaced_stateful_set_scale.assert_called_once_with(
        "app", "test-ns", {"spec": {"replicas": 2}}
    )


def test_read_pod_log(platform_client):
    platform_client.core_api.read_namespaced_pod_log.return_value = "hello\n"

    assert platform_client.read_pod_log("pod", "app", 500) == "hello\n"
    platform_client.core_api.read_namespaced_pod_log.assert_called_once_with(
        "pod", "test-ns", container="app", tail_lines=500
    )

    platform_client.core_api.read_namespaced_pod_log.side_effect = ApiException(status=404)
    assert platform_client.read_pod_log("gone") == ""


@patch("clouddeployer.api.platform_client.config.load_kube_config")
@patch("clouddeployer.api.platform_client.utils.is_running_in_k8s", return_value=False)
@patch("clouddeployer.api.platform_client.client.CoreV1Api")
@patch("clouddeployer.api.platform_client.client.AppsV1Api")
@patch("clouddeployer.api.platform_client.client.BatchV1Api")
def test_for_properties_uses_configured_namespace(
    mock_batch, mock_apps, mock_core, mock_is_k8s, mock_load_kube
):
    scoped = KubernetesPlatformClient.for_properties(
        load_deployer_properties({"namespace": "streams"}), context="dev"
    )
    assert scoped.namespace == "streams"
    assert mock_load_kube.call_args.kwargs["context"] == "dev"

    assert KubernetesPlatformClient.for_properties(load_deployer_properties()).namespace == "default"
