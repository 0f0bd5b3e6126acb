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
import requests

from clouddeployer.actuator import ActuatorTemplate, AppAdmin
from clouddeployer.app_deployer import KubernetesAppDeployer
from clouddeployer.errors import DeploymentStateError, PlatformError
from clouddeployer.models import AppInstanceStatus, AppStatus, DeploymentState

DEPLOYMENT_ID = "test-application-id"
GUID = "test-application-0"
ACTUATOR_URL = "http://127.0.0.1:9393/actuator"
JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


def instance(state=DeploymentState.deployed, guid=GUID, name="test-application-abc", **extra):
    attributes = {
        "pod.ip": "127.0.0.1",
        "actuator.port": "9393",
        "actuator.path": "/actuator",
        "url": "http://127.0.0.1:9393",
        "guid": guid,
    }
    attributes.update(extra)
    return AppInstanceStatus(id=name, state=state, attributes=attributes)


def template_for(*instances, app_admin=None):
    app_deployer = MagicMock(spec=KubernetesAppDeployer)
    app_deployer.status.return_value = AppStatus(
        deployment_id=DEPLOYMENT_ID, instances={i.id: i for i in instances}
    )
    return ActuatorTemplate(app_deployer, app_admin), app_deployer


def json_response(body):
    response = MagicMock()
    response.content = b"{}"
    response.json.return_value = body
    return response


@patch("clouddeployer.actuator.requests.request")
def test_get_info(mock_request):
    mock_request.return_value = json_response({"app": {"name": "log-sink-rabbit"}})
    template, app_deployer = template_for(instance())

    info = template.get_from_actuator(DEPLOYMENT_ID, GUID, "/info")

    assert info["app"]["name"] == "log-sink-rabbit"
    app_deployer.status.assert_called_once_with(DEPLOYMENT_ID)
    mock_request.assert_called_once_with(
        "GET",
        ACTUATOR_URL + "/info",
        json=None,
        headers=JSON_HEADERS,
        auth=None,
        timeout=None,
    )


@patch("clouddeployer.actuator.requests.request")
def test_get_bindings_by_instance_id_without_leading_slash(mock_request):
    mock_request.return_value = json_response([{"bindingName": "input"}])
    template, _ = template_for(instance())

    bindings = template.get_from_actuator(DEPLOYMENT_ID, "test-application-abc", "bindings")

    assert bindings[0]["bindingName"] == "input"
    assert mock_request.call_args.args == ("GET", ACTUATOR_URL + "/bindings")


@patch("clouddeployer.actuator.requests.request")
def test_post_binding_state(mock_request):
    mock_request.return_value = json_response({"state": "STOPPED"})
    template, _ = template_for(instance())

    state = template.post_to_actuator(
        DEPLOYMENT_ID, GUID, "/bindings/input", {"state": "STOPPED"}
    )

    assert state == {"state": "STOPPED"}
    assert mock_request.call_args.args == ("POST", ACTUATOR_URL + "/bindings/input")
    assert mock_request.call_args.kwargs["json"] == {"state": "STOPPED"}


@patch("clouddeployer.actuator.requests.request")
def test_empty_response_body(mock_request):
    mock_request.return_value.content = b""
    template, _ = template_for(instance())

    assert template.post_to_actuator(DEPLOYMENT_ID, GUID, "/refresh", None) is None


@patch("clouddeployer.actuator.requests.request")
def test_app_admin_credentials_and_caller_authorization(mock_request):
    mock_request.return_value = json_response({})
    template, _ = template_for(
        instance(), app_admin=AppAdmin(user="admin", password="secret")
    )

    template.get_from_actuator(DEPLOYMENT_ID, GUID, "/health")
    assert mock_request.call_args.kwargs["auth"] == ("admin", "secret")

    template.get_from_actuator(
        DEPLOYMENT_ID, GUID, "/health", headers={"Authorization": "Bearer token"}
    )
    assert mock_request.call_args.kwargs["auth"] is None
    assert mock_request.call_args.kwargs["headers"] == dict(
        JSON_HEADERS, Authorization="Bearer token"
    )


def test_default_actuator_path():
    local_instance = AppInstanceStatus(
        id="ticktock.log-0",
        state=DeploymentState.deployed,
        attributes={"url": "http://localhost:20001/"},
    )
    assert ActuatorTemplate.actuator_url(local_instance) == "http://localhost:20001/actuator"


def test_missing_url():
    with pytest.raises(ValueError, match=f"Unable to determine actuator url for app with guid {GUID}"):
        ActuatorTemplate.actuator_url(
            AppInstanceStatus(id="x", state=DeploymentState.deployed, attributes={"guid": GUID})
        )


@pytest.mark.parametrize(
    "instances",
    [
        (instance(state=DeploymentState.failed),),
        (instance(guid="other"),),
        (),
    ],
)
def test_instance_not_deployed(instances):
    template, _ = template_for(*instances)

    with pytest.raises(DeploymentStateError, match="not deployed"):
        template.get_from_actuator(DEPLOYMENT_ID, GUID, "/info")


def test_instance_guid_not_unique():
    template, _ = template_for(instance(name="a"), instance(name="b"))

    with pytest.raises(DeploymentStateError, match=f"guid {GUID} is not unique"):
        template.get_from_actuator(DEPLOYMENT_ID, GUID, "/info")


@patch("clouddeployer.actuator.requests.request")
def test_http_error(mock_request):
    error_response = MagicMock(status_code=503)
    mock_request.return_value.raise_for_status.side_effect = requests.HTTPError(
        "503 Server Error", response=error_response
    )
    template, _ = template_for(instance())

    with pytest.raises(PlatformError) as exc_info:
        template.get_from_actuator(DEPLOYMENT_ID, GUID, "/info")
    assert exc_info.value.status == 503


@patch("clouddeployer.actuator.requests.request")
def test_connection_error(mock_request):
    mock_request.side_effect = requests.ConnectionError("refused")
    template, _ = template_for(instance())

    with pytest.raises(PlatformError, match="Exception when calling actuator"):
        template.get_from_actuator(DEPLOYMENT_ID, GUID, "/info")


def test_app_deployer_required():
    with pytest.raises(ValueError, match="app_deployer must not be None"):
        ActuatorTemplate(None)
