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

"""Liveness, readiness and startup probes built from one parameterized algorithm."""

from typing import Dict, Optional

from kubernetes.client import V1ExecAction, V1HTTPGetAction, V1Probe, V1TCPSocketAction
from pydantic import BaseModel, ConfigDict

from .constants.constants import ProbeType
from .deployer_properties import KubernetesDeployerProperties, ProbeSettings
from .errors import InvalidDeploymentProperty
from .utils.property_parser import get_deployment_property_value, tokenize_command_line
from .utils.utils import has_text

DEFAULT_PROBE_TIMEOUT = 2
DEFAULT_PROBE_SCHEME = "HTTP"

_TYPE_NAMES = {
    ProbeType.HTTP: "Http",
    ProbeType.TCP: "Tcp",
    ProbeType.COMMAND: "Command",
}


class ProbeKind(BaseModel):
    name: str
    path: str
    delay: int
    period: int
    failure: int
    success: int
    timeout: int = DEFAULT_PROBE_TIMEOUT

    model_config = ConfigDict(frozen=True)


LIVENESS = ProbeKind(
    name="liveness", path="/actuator/health/liveness", delay=10, period=60, failure=3, success=1
)
READINESS = ProbeKind(
    name="readiness", path="/actuator/health/readiness", delay=10, period=10, failure=3, success=1
)
STARTUP = ProbeKind(
    name="startup", path="/actuator/health", delay=30, period=3, failure=20, success=1
)


def _settings(kind: ProbeKind, properties: KubernetesDeployerProperties) -> ProbeSettings:
    return getattr(properties, f"{kind.name}_probe")


def create_probe(
    kind: ProbeKind,
    probe_type: ProbeType,
    deployment_properties: Dict[str, str],
    properties: KubernetesDeployerProperties,
    property_prefix: str,
    default_port: Optional[int] = None,
) -> V1Probe:
    """
    Build one probe.

    Every attribute is read from `<prefix>.<kind><Type>Probe<Attr>`, e.g.
    `spring.cloud.deployer.kubernetes.livenessHttpProbePath`, then from the
    global probe settings, then from the kind's defaults.

    :param kind: LIVENESS, READINESS or STARTUP
    :param probe_type: HTTP, TCP or COMMAND
    :param deployment_properties: request deployment properties
    :param properties: global deployer properties
    :param property_prefix: key prefix, e.g. "spring.cloud.deployer.kubernetes"
    :param default_port: the application port, used when no probe port is set
    :return: V1Probe
    """
    settings = _settings(kind, properties)
    key_prefix = f"{property_prefix}.{kind.name}{_TYPE_NAMES[probe_type]}Probe"

    def value(attribute: str, default):
        return get_deployment_property_value(
            deployment_properties, key_prefix + attribute, default
        )

    def int_value(attribute: str, default: int) -> int:
        raw = value(attribute, None)
        if not has_text(raw):
            return default
        try:
            return int(raw)
        except ValueError as e:
            raise InvalidDeploymentProperty(
                f"Invalid value for {key_prefix + attribute}: '{raw}'"
            ) from e

    exec_action = tcp_socket = http_get = None
    if probe_type is ProbeType.COMMAND:
        command = value("Command", settings.command)
        if not has_text(command):
            raise InvalidDeploymentProperty(
                f"The {kind.name}CommandProbeCommand property must be set."
            )
        exec_action = V1ExecAction(command=tokenize_command_line(command))
    else:
        port = int_value("Port", _pick(settings.port, default_port))
        if port is None:
            raise InvalidDeploymentProperty(
                f"The {kind.name}{_TYPE_NAMES[probe_type]}ProbePort property must be set."
            )
        if probe_type is ProbeType.TCP:
            tcp_socket = V1TCPSocketAction(port=port)
        else:
            http_get = V1HTTPGetAction(
                path=value("Path", settings.path or kind.path),
                port=port,
                scheme=value("Scheme", settings.scheme or DEFAULT_PROBE_SCHEME),
            )

    return V1Probe(
        _exec=exec_action,
        tcp_socket=tcp_socket,
        http_get=http_get,
        initial_delay_seconds=int_value("Delay", _pick(settings.delay, kind.delay)),
        period_seconds=int_value("Period", _pick(settings.period, kind.period)),
        failure_threshold=int_value("Failure", _pick(settings.failure, kind.failure)),
        success_threshold=int_value("Success", _pick(settings.success, kind.success)),
        timeout_seconds=int_value("Timeout", _pick(settings.timeout, kind.timeout)),
    )


def _pick(configured, default):
    return configured if configured is not None else default


def startup_probe_requested(
    deployment_properties: Dict[str, str],
    properties: KubernetesDeployerProperties,
    property_prefix: str,
) -> bool:
    prefix = f"{property_prefix}.{STARTUP.name}"
    return properties.startup_probe.enabled or any(
        key.startswith(prefix) for key in deployment_properties or {}
    )
