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

import os
import socket
import subprocess
import tempfile
import threading
import time
from typing import Dict, List, Optional

import requests
from pydantic import BaseModel

from ..constants.constants import (
    COUNT_PROPERTY_KEY,
    DEFAULT_SERVER_PORT,
    GROUP_PROPERTY_KEY,
    SERVER_PORT_KEY,
)
from ..errors import DeploymentStateError, InvalidDeploymentProperty
from ..logging import logger
from ..models import AppInstanceStatus, AppStatus, DeploymentRequest, DeploymentState

GROUP_DEPLOYMENT_ID_KEY = "dataflow.group-deployment-id"
SHUTDOWN_PATH = "/actuator/shutdown"
# Environment variables handed down to the spawned processes.
INHERITED_ENV_VARS = ["PATH", "TMP", "TMPDIR", "JAVA_HOME"]


class LocalDeployerProperties(BaseModel):
    java_cmd: str = "java"
    working_directories_root: Optional[str] = None
    shutdown_timeout: float = 30
    health_check_timeout: float = 1


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        return s.getsockname()[1]


class Instance(object):
    """One spawned application process and its log files."""

    def __init__(
        self,
        deployment_id: str,
        instance_number: int,
        command: List[str],
        env: Dict[str, str],
        work_dir: str,
        port: int,
    ):
        self.deployment_id = deployment_id
        self.instance_number = instance_number
        self.work_dir = work_dir
        self.port = port
        self.url = f"http://localhost:{port}"
        self.stdout = os.path.join(work_dir, f"stdout_{instance_number}.log")
        self.stderr = os.path.join(work_dir, f"stderr_{instance_number}.log")
        env = dict(env)
        env["INSTANCE_INDEX"] = str(instance_number)
        with open(self.stdout, "w") as stdout, open(self.stderr, "w") as stderr:
            self.process = subprocess.Popen(
                command, cwd=work_dir, env=env, stdout=stdout, stderr=stderr
            )

    @property
    def id(self) -> str:
        return f"{self.deployment_id}-{self.instance_number}"

    def is_alive(self) -> bool:
        return self.process.poll() is None

    def get_state(self, timeout: float = 1) -> DeploymentState:
        exit_code = self.process.poll()
        if exit_code is not None:
            return DeploymentState.undeployed if exit_code == 0 else DeploymentState.failed
        try:
            requests.get(self.url, timeout=timeout)
        except requests.RequestException:
            return DeploymentState.deploying
        return DeploymentState.deployed

    def get_attributes(self) -> Dict[str, str]:
        return {
            "working.dir": self.work_dir,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "port": str(self.port),
            "url": self.url,
        }


class LocalAppDeployer(object):
    """
    Runs applications as child processes of the current interpreter.

    Each deployment id owns its own lock so that the "already running" check
    and the process creation happen atomically for that id.
    """

    def __init__(self, properties: Optional[LocalDeployerProperties] = None):
        self.properties = properties or LocalDeployerProperties()
        self.running: Dict[str, List[Instance]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self.log_path_root = tempfile.mkdtemp(
            prefix="spring-cloud-dataflow-", dir=self.properties.working_directories_root
        )

    def _lock_for(self, deployment_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(deployment_id, threading.Lock())

    @staticmethod
    def create_deployment_id(request: DeploymentRequest) -> str:
        group = request.deployment_properties.get(GROUP_PROPERTY_KEY)
        if group is None:
            return request.definition.name
        return f"{group}.{request.definition.name}"

    def deploy(self, request: DeploymentRequest) -> str:
        deployment_id = self.create_deployment_id(request)
        with self._lock_for(deployment_id):
            if deployment_id in self.running:
                raise DeploymentStateError(f"App for '{deployment_id}' is already running")
            self.running[deployment_id] = self._launch(deployment_id, request)
        return deployment_id

    def _launch(self, deployment_id: str, request: DeploymentRequest) -> List[Instance]:
        app_properties = dict(request.definition.properties)
        group = request.deployment_properties.get(GROUP_PROPERTY_KEY)
        group_deployment_id = request.deployment_properties.get(GROUP_DEPLOYMENT_ID_KEY)
        if group_deployment_id is None:
            group_deployment_id = f"{group or deployment_id}-{int(time.time() * 1000)}"
        work_dir = os.path.join(self.log_path_root, group_deployment_id, deployment_id)
        os.makedirs(work_dir)

        use_dynamic_port = SERVER_PORT_KEY not in app_properties
        count = self._count(request)
        command = [self.properties.java_cmd, "-jar", request.resource.get_file()]
        command.extend(request.commandline_arguments)
        env = {
            name: os.environ[name] for name in INHERITED_ENV_VARS if name in os.environ
        }

        instances = []
        try:
            for i in range(count):
                if use_dynamic_port:
                    port = find_free_port()
                    app_properties[SERVER_PORT_KEY] = str(port)
                else:
                    port = self._server_port(app_properties)
                env.update(app_properties)
                instance = Instance(deployment_id, i, command, env, work_dir, port)
                instances.append(instance)
                logger.info(
                    "deploying app %s instance %d\n   Logs will be in %s",
                    deployment_id,
                    i,
                    work_dir,
                )
        except OSError as e:
            for instance in instances:
                instance.process.terminate()
            raise DeploymentStateError(
                f"Exception trying to deploy {deployment_id}: {e}"
            ) from e
        return instances

    @staticmethod
    def _count(request: DeploymentRequest) -> int:
        value = request.deployment_properties.get(COUNT_PROPERTY_KEY)
        if value is None:
            return 1
        try:
            return int(value)
        except ValueError as e:
            raise InvalidDeploymentProperty(
                f"Invalid {COUNT_PROPERTY_KEY} value: '{value}'"
            ) from e

    @staticmethod
    def _server_port(app_properties: Dict[str, str]) -> int:
        value = app_properties.get(SERVER_PORT_KEY, str(DEFAULT_SERVER_PORT))
        try:
            return int(value)
        except ValueError as e:
            raise InvalidDeploymentProperty(
                f"Invalid {SERVER_PORT_KEY} value: '{value}'"
            ) from e

    def undeploy(self, deployment_id: str):
        with self._lock_for(deployment_id):
            instances = self.running.pop(deployment_id, None)
        if instances is None:
            logger.debug("No running app for %s", deployment_id)
            return
        for instance in instances:
            if instance.is_alive():
                self._shutdown_and_wait(instance)

    def _shutdown_and_wait(self, instance: Instance):
        try:
            requests.post(
                instance.url + SHUTDOWN_PATH, timeout=self.properties.shutdown_timeout
            )
            instance.process.wait(timeout=self.properties.shutdown_timeout)
        except (requests.RequestException, subprocess.TimeoutExpired) as e:
            logger.warning(
                "Graceful shutdown of %s failed, terminating: %s", instance.id, e
            )
            instance.process.terminate()

    def status(self, deployment_id: str) -> AppStatus:
        status = AppStatus(deployment_id=deployment_id)
        for instance in self.running.get(deployment_id, []):
            status.add_instance(
                AppInstanceStatus(
                    id=instance.id,
                    state=instance.get_state(self.properties.health_check_timeout),
                    attributes=instance.get_attributes(),
                )
            )
        return status

    def shutdown(self):
        for deployment_id in list(self.running):
            self.undeploy(deployment_id)
