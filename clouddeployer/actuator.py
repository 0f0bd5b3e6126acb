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

"""Calls to the actuator endpoints of one deployed app instance."""

from typing import Any, Dict, Optional, Tuple

import requests
from pydantic import BaseModel

from .errors import DeploymentStateError, PlatformError
from .logging import logger
from .models import AppInstanceStatus, DeploymentState
from .utils.utils import has_text

DEFAULT_ACTUATOR_PATH = "/actuator"
JSON_CONTENT_TYPE = "application/json"


class AppAdmin(BaseModel):
    """Credentials sent as basic auth to every actuator unless the caller passes its own."""

    user: Optional[str] = None
    password: Optional[str] = None

    def has_credentials(self) -> bool:
        return has_text(self.user) and has_text(self.password)


def _normalize_path(path: str) -> str:
    return path if path.startswith("/") else "/" + path


class ActuatorTemplate(object):
    """
    GET and POST against the actuator of a deployed app instance.

    The instance is looked up through `app_deployer.status(deployment_id)`; any
    deployer returning an AppStatus works, the Kubernetes and local ones alike.
    Its `url` attribute and optional `actuator.path` attribute (default
    "/actuator") give the actuator base URL.

    :param app_deployer: deployer used to resolve instances
    :param app_admin: (Optional) default basic auth credentials
    :param timeout: (Optional) request timeout in seconds
    """

    def __init__(self, app_deployer, app_admin: Optional[AppAdmin] = None, timeout=None):
        if app_deployer is None:
            raise ValueError("app_deployer must not be None")
        self.app_deployer = app_deployer
        self.app_admin = app_admin or AppAdmin()
        self.timeout = timeout
        if not self.app_admin.has_credentials():
            logger.warning("No app admin credentials have been configured for actuator calls")

    def get_from_actuator(
        self,
        deployment_id: str,
        instance_id: str,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        GET `<url><actuator.path><endpoint>` of an instance and return the decoded JSON body.

        :param deployment_id: deployment owning the instance
        :param instance_id: instance id or its `guid` attribute
        :param endpoint: e.g. "/info" or "bindings/input"
        :param headers: (Optional) extra request headers, an Authorization header
                        replaces the app admin credentials
        """
        return self._exchange("GET", deployment_id, instance_id, endpoint, None, headers)

    def post_to_actuator(
        self,
        deployment_id: str,
        instance_id: str,
        endpoint: str,
        body: Any,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """POST `body` as JSON to an actuator endpoint of an instance."""
        return self._exchange("POST", deployment_id, instance_id, endpoint, body, headers)

    def get_deployed_instance(
        self, deployment_id: str, instance_id: str
    ) -> AppInstanceStatus:
        status = self.app_deployer.status(deployment_id)
        matches = [
            instance
            for instance in status.instances.values()
            if instance_id in (instance.id, instance.attributes.get("guid"))
        ]
        if len(matches) > 1:
            raise DeploymentStateError(
                f"guid {instance_id} is not unique for instances of deploymentId {deployment_id}"
            )
        if not matches or matches[0].state is not DeploymentState.deployed:
            raise DeploymentStateError(
                f"App with deploymentId {deployment_id} and guid {instance_id} not deployed"
            )
        return matches[0]

    @staticmethod
    def actuator_url(instance: AppInstanceStatus) -> str:
        url = instance.attributes.get("url")
        if not has_text(url):
            raise ValueError(
                f"Unable to determine actuator url for app with guid "
                f"{instance.attributes.get('guid', instance.id)}"
            )
        path = instance.attributes.get("actuator.path") or DEFAULT_ACTUATOR_PATH
        return url.rstrip("/") + _normalize_path(path)

    def _request_headers(
        self, headers: Optional[Dict[str, str]]
    ) -> Tuple[Dict[str, str], Optional[Tuple[str, str]]]:
        """Caller headers plus JSON content negotiation, and the basic auth to use if any."""
        request_headers = dict(headers or {})
        auth = None
        if not any(key.lower() == "authorization" for key in request_headers):
            if self.app_admin.has_credentials():
                auth = (self.app_admin.user, self.app_admin.password)
        request_headers["Accept"] = JSON_CONTENT_TYPE
        request_headers["Content-Type"] = JSON_CONTENT_TYPE
        return request_headers, auth

    def _exchange(self, method, deployment_id, instance_id, endpoint, body, headers):
        instance = self.get_deployed_instance(deployment_id, instance_id)
        url = self.actuator_url(instance) + _normalize_path(endpoint)
        request_headers, auth = self._request_headers(headers)
        logger.debug("%s actuator endpoint %s of %s", method, url, deployment_id)
        try:
            response = requests.request(
                method,
                url,
                json=body,
                headers=request_headers,
                auth=auth,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            logger.error("Actuator call %s %s failed: %s", method, url, e)
            raise PlatformError(
                f"Exception when calling actuator {url}: {e}",
                e.response.status_code if e.response is not None else None,
            ) from e
        except requests.RequestException as e:
            raise PlatformError(f"Exception when calling actuator {url}: {e}") from e
        if not response.content:
            return None
        return response.json()
