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

from clouddeployer.constants.constants import (
    APPLICATION_GUID_ENV,
    APPLICATION_JSON_ENV,
    KUBERNETES_DEPLOYER_PROPERTIES_PREFIX,
)
from clouddeployer.container_factory import (
    ContainerConfiguration,
    DefaultContainerFactory,
    get_image,
    to_env_name,
)
from clouddeployer.deployer_properties import load_deployer_properties
from clouddeployer.models import AppDefinition, DeploymentRequest, DockerResource

PREFIX = KUBERNETES_DEPLOYER_PROPERTIES_PREFIX


def request_for(deployment_properties=None, app_properties=None, args=None):
    return DeploymentRequest(
        definition=AppDefinition(name="app-test", properties=app_properties or {}),
        resource=DockerResource(uri="docker:springcloud/app:latest"),
        deployment_properties=deployment_properties or {},
        commandline_arguments=args or [],
    )


def create(request, config=None, port=8080, host_network=False, is_task=False):
    factory = DefaultContainerFactory(load_deployer_properties(config or {}))
    return factory.create(
        ContainerConfiguration(
            app_id="app-test",
            request=request,
            external_port=port,
            host_network=host_network,
            is_task=is_task,
        )
    )


def env_dict(container):
    return {e.name: e.value for e in container.env if e.value_from is None}


def test_to_env_name():
    assert to_env_name("server.port") == "SERVER_PORT"
    assert to_env_name("spring.cloud-app.name") == "SPRING_CLOUD_APP_NAME"


def test_get_image():
    assert get_image(request_for()) == "springcloud/app:latest"


def test_exec_entry_point_style():
    container = create(request_for(app_properties={"foo.bar": "baz"}, args=["--x=1"]))
    assert container.name == "app-test"
    assert container.image == "springcloud/app:latest"
    assert container.args == ["--x=1", "--foo.bar=baz"]
    assert "FOO_BAR" not in env_dict(container)


def test_shell_entry_point_style():
    container = create(
        request_for(
            deployment_properties={PREFIX + ".entryPointStyle": "shell"},
            app_properties={"foo.bar": "baz"},
            args=["--x=1"],
        )
    )
    assert container.args == ["--x=1"]
    assert env_dict(container)["FOO_BAR"] == "baz"


def test_boot_entry_point_style():
    container = create(
        request_for(
            deployment_properties={PREFIX + ".entryPointStyle": "boot"},
            app_properties={"foo.bar": "baz"},
        )
    )
    assert container.args is None
    assert json.loads(env_dict(container)[APPLICATION_JSON_ENV]) == {"foo.bar": "baz"}


def test_environment_variables_order_and_guid():
    container = create(
        request_for(
            deployment_properties={
                PREFIX + ".environmentVariables": "FOO=request,BAR=bar",
                PREFIX + ".secretKeyRefs": "[{envVarName: 'PASSWORD', secretName: 'db', dataKey: 'pw'}]",
            }
        ),
        config={"environmentVariables": "FOO=global,GLOBAL=yes"},
    )
    assert env_dict(container) == {"FOO": "request", "GLOBAL": "yes", "BAR": "bar"}
    names = [e.name for e in container.env]
    assert names == ["FOO", "GLOBAL", "BAR", "PASSWORD", APPLICATION_GUID_ENV]
    assert container.env[-1].value_from.field_ref.field_path == "metadata.uid"


def test_env_from_config_map_and_secret_refs():
    container = create(
        request_for(
            deployment_properties={
                PREFIX + ".configMapRefs": "cm1",
                PREFIX + ".secretRefs": "[s1, s2]",
            }
        )
    )
    assert [r.config_map_ref.name for r in container.env_from if r.config_map_ref] == ["cm1"]
    assert [r.secret_ref.name for r in container.env_from if r.secret_ref] == ["s1", "s2"]


def test_ports_and_host_network():
    container = create(
        request_for(deployment_properties={PREFIX + ".containerPorts": "8081, 8080"}),
        host_network=True,
    )
    assert [(p.container_port, p.host_port) for p in container.ports] == [
        (8080, 8080),
        (8081, 8081),
    ]


def test_resources():
    container = create(
        request_for(
            deployment_properties={
                PREFIX + ".limits.memory": "1Gi",
                PREFIX + ".requests.cpu": "250m",
            }
        )
    )
    assert container.resources.limits == {"memory": "1Gi"}
    assert container.resources.requests == {"cpu": "250m"}
    assert create(request_for()).resources is None


def test_container_command_and_lifecycle():
    container = create(
        request_for(
            deployment_properties={
                PREFIX + ".containerCommand": "java -jar app.jar",
                PREFIX + ".lifecycle.postStart.exec.command": "echo,hello",
            }
        )
    )
    assert container.command == ["java", "-jar", "app.jar"]
    assert container.lifecycle.post_start._exec.command == ["echo", "hello"]
    assert container.lifecycle.pre_stop is None


def test_http_probes_for_apps():
    container = create(request_for())
    assert container.liveness_probe.http_get.port == 8080
    assert container.readiness_probe.http_get.path == "/actuator/health/readiness"
    assert container.startup_probe is None


def test_startup_probe_when_requested():
    container = create(
        request_for(deployment_properties={PREFIX + ".startupHttpProbePeriod": "5"})
    )
    assert container.startup_probe.period_seconds == 5


def test_no_probes_for_tasks():
    container = create(request_for(), port=None, is_task=True)
    assert container.liveness_probe is None
    assert container.readiness_probe is None
    assert container.ports is None


def test_security_context_and_pull_policy():
    container = create(
        request_for(
            deployment_properties={
                PREFIX + ".containerSecurityContext": "{privileged: false}",
                PREFIX + ".imagePullPolicy": "Always",
            }
        )
    )
    assert container.security_context.privileged is False
    assert container.image_pull_policy == "Always"
