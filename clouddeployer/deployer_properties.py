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

"""Global defaults shared by every request a deployer or task launcher serves."""

from typing import Any, ClassVar, Dict, List, Optional, Union

import yaml
from kubernetes.client import (
    V1Container,
    V1NodeAffinity,
    V1PodAffinity,
    V1PodAntiAffinity,
    V1Toleration,
    V1Volume,
    V1VolumeMount,
)
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .constants.constants import (
    DEFAULT_MAXIMUM_CONCURRENT_TASKS,
    DEFAULT_SCALE_TIMEOUT_SECONDS,
    DEFAULT_TASK_SERVICE_ACCOUNT_NAME,
    STATEFUL_SET_DEFAULT_STORAGE,
    EntryPointStyle,
    ImagePullPolicy,
    ProbeType,
    RestartPolicy,
)
from .utils.property_parser import parse_nested_comma_delimited
from .utils.utils import to_k8s_model


def _normalize(key: str) -> str:
    return key.replace("-", "").replace("_", "").lower()


def _k8s_models(value: Any, klass: str) -> Any:
    if isinstance(value, dict):
        return to_k8s_model(value, klass)
    if isinstance(value, list):
        return [to_k8s_model(v, klass) if isinstance(v, dict) else v for v in value]
    return value


def _comma_list(value: Any) -> Any:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return value


class RelaxedModel(BaseModel):
    """
    Base model binding camelCase, kebab-case and snake_case keys alike.
    Subclasses may map extra spellings onto a field through `key_aliases`.
    """

    key_aliases: ClassVar[Dict[str, str]] = {}

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        arbitrary_types_allowed=True,
    )

    @model_validator(mode="before")
    @classmethod
    def relax_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        names = {}
        for name, field in cls.model_fields.items():
            alias = field.alias or name
            names[_normalize(name)] = alias
            names[_normalize(alias)] = alias
        for extra, target in cls.key_aliases.items():
            names[_normalize(extra)] = cls.model_fields[target].alias or target
        return {
            names.get(_normalize(key), key) if isinstance(key, str) else key: value
            for key, value in data.items()
        }


class ResourceQuantities(RelaxedModel):
    memory: Optional[str] = None
    cpu: Optional[str] = None
    ephemeral_storage: Optional[str] = None
    hugepages_2mi: Optional[str] = Field(default=None, alias="hugepages2Mi")
    hugepages_1gi: Optional[str] = Field(default=None, alias="hugepages1Gi")
    gpu_vendor: Optional[str] = None
    gpu_count: Optional[str] = None


class VolumeClaimTemplate(RelaxedModel):
    name: Optional[str] = None
    storage: str = STATEFUL_SET_DEFAULT_STORAGE
    storage_class_name: Optional[str] = None


class StatefulSetProperties(RelaxedModel):
    volume_claim_template: VolumeClaimTemplate = Field(
        default_factory=VolumeClaimTemplate
    )


class InitContainer(RelaxedModel):
    """An init container as declared in configuration or a deployment property."""

    key_aliases: ClassVar[Dict[str, str]] = {
        "containerName": "name",
        "imageName": "image",
        "commands": "command",
        "env": "environment_variables",
    }

    name: Optional[str] = None
    image: Optional[str] = None
    command: List[str] = []
    args: List[str] = []
    environment_variables: List[str] = []
    environment_variables_from_field_refs: List[str] = []
    config_map_ref_env_vars: List[str] = []
    secret_ref_env_vars: List[str] = []
    volume_mounts: List[V1VolumeMount] = []

    @field_validator(
        "command",
        "args",
        "environment_variables",
        "environment_variables_from_field_refs",
        "config_map_ref_env_vars",
        "secret_ref_env_vars",
        mode="before",
    )
    @classmethod
    def split_comma_list(cls, value):
        return _comma_list(value)

    @field_validator("volume_mounts", mode="before")
    @classmethod
    def bind_volume_mounts(cls, value):
        return _k8s_models(value, "V1VolumeMount")


class ConfigMapKeyRef(RelaxedModel):
    env_var_name: str
    config_map_name: str
    data_key: str


class SecretKeyRef(RelaxedModel):
    env_var_name: str
    secret_name: str
    data_key: str


class SeccompProfile(RelaxedModel):
    type: Optional[str] = None
    localhost_profile: Optional[str] = None


class SeLinuxOptions(RelaxedModel):
    level: Optional[str] = None
    role: Optional[str] = None
    type: Optional[str] = None
    user: Optional[str] = None


class Sysctl(RelaxedModel):
    name: str
    value: str


class WindowsOptions(RelaxedModel):
    gmsa_credential_spec: Optional[str] = None
    gmsa_credential_spec_name: Optional[str] = None
    host_process: Optional[bool] = None
    run_as_user_name: Optional[str] = None


class Capabilities(RelaxedModel):
    add: List[str] = []
    drop: List[str] = []


class PodSecurityContext(RelaxedModel):
    run_as_user: Optional[int] = None
    run_as_group: Optional[int] = None
    run_as_non_root: Optional[bool] = None
    fs_group: Optional[int] = None
    fs_group_change_policy: Optional[str] = None
    supplemental_groups: Optional[List[int]] = None
    seccomp_profile: Optional[SeccompProfile] = None
    se_linux_options: Optional[SeLinuxOptions] = None
    sysctls: Optional[List[Sysctl]] = None
    windows_options: Optional[WindowsOptions] = None

    def to_k8s(self):
        return to_k8s_model(
            self.model_dump(by_alias=True, exclude_none=True), "V1PodSecurityContext"
        )


class ContainerSecurityContext(RelaxedModel):
    allow_privilege_escalation: Optional[bool] = None
    capabilities: Optional[Capabilities] = None
    privileged: Optional[bool] = None
    proc_mount: Optional[str] = None
    read_only_root_filesystem: Optional[bool] = None
    run_as_user: Optional[int] = None
    run_as_group: Optional[int] = None
    run_as_non_root: Optional[bool] = None
    se_linux_options: Optional[SeLinuxOptions] = None
    seccomp_profile: Optional[SeccompProfile] = None
    windows_options: Optional[WindowsOptions] = None

    def to_k8s(self):
        return to_k8s_model(
            self.model_dump(by_alias=True, exclude_none=True), "V1SecurityContext"
        )


class LifecycleExec(RelaxedModel):
    command: List[str] = []

    @field_validator("command", mode="before")
    @classmethod
    def split_comma_list(cls, value):
        return _comma_list(value)


class LifecycleHook(RelaxedModel):
    exec: Optional[LifecycleExec] = None


class Lifecycle(RelaxedModel):
    post_start: Optional[LifecycleHook] = None
    pre_stop: Optional[LifecycleHook] = None

    def to_k8s(self):
        return to_k8s_model(
            self.model_dump(by_alias=True, exclude_none=True), "V1Lifecycle"
        )


class ProbeSettings(RelaxedModel):
    """Defaults for one probe kind. Unset values fall back to the kind's built-in defaults."""

    path: Optional[str] = None
    port: Optional[int] = None
    scheme: Optional[str] = None
    delay: Optional[int] = None
    period: Optional[int] = None
    failure: Optional[int] = None
    success: Optional[int] = None
    timeout: Optional[int] = None
    command: Optional[str] = None
    enabled: bool = False


class KubernetesDeployerProperties(RelaxedModel):
    namespace: Optional[str] = None
    environment_variables: List[str] = []
    entry_point_style: EntryPointStyle = EntryPointStyle.exec
    image_pull_policy: ImagePullPolicy = ImagePullPolicy.IfNotPresent
    image_pull_secret: Optional[str] = None
    image_pull_secrets: List[str] = []
    limits: ResourceQuantities = Field(default_factory=ResourceQuantities)
    requests: ResourceQuantities = Field(default_factory=ResourceQuantities)
    probe_type: ProbeType = ProbeType.HTTP
    liveness_probe: ProbeSettings = Field(default_factory=ProbeSettings)
    readiness_probe: ProbeSettings = Field(default_factory=ProbeSettings)
    startup_probe: ProbeSettings = Field(default_factory=ProbeSettings)
    create_load_balancer: bool = False
    service_annotations: Optional[str] = None
    pod_annotations: Optional[str] = None
    job_annotations: Optional[str] = None
    deployment_labels: Optional[str] = None
    node_selector: Optional[str] = None
    tolerations: List[V1Toleration] = []
    volumes: List[V1Volume] = []
    volume_mounts: List[V1VolumeMount] = []
    host_network: bool = False
    create_job: bool = False
    maximum_concurrent_tasks: int = DEFAULT_MAXIMUM_CONCURRENT_TASKS
    scale_timeout_seconds: int = DEFAULT_SCALE_TIMEOUT_SECONDS
    deployment_service_account_name: Optional[str] = None
    task_service_account_name: str = DEFAULT_TASK_SERVICE_ACCOUNT_NAME
    pod_security_context: Optional[PodSecurityContext] = None
    container_security_context: Optional[ContainerSecurityContext] = None
    node_affinity: Optional[V1NodeAffinity] = None
    pod_affinity: Optional[V1PodAffinity] = None
    pod_anti_affinity: Optional[V1PodAntiAffinity] = None
    stateful_set: StatefulSetProperties = Field(default_factory=StatefulSetProperties)
    stateful_set_init_container_image_name: Optional[str] = None
    init_container: Optional[InitContainer] = None
    init_containers: List[InitContainer] = []
    additional_containers: List[V1Container] = []
    config_map_key_refs: List[ConfigMapKeyRef] = []
    secret_key_refs: List[SecretKeyRef] = []
    config_map_refs: List[str] = []
    secret_refs: List[str] = []
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)
    termination_grace_period_seconds: Optional[int] = None
    restart_policy: RestartPolicy = RestartPolicy.Always
    priority_class_name: Optional[str] = None
    share_process_namespace: Optional[bool] = None

    @field_validator("environment_variables", mode="before")
    @classmethod
    def split_environment_variables(cls, value):
        if isinstance(value, str):
            return parse_nested_comma_delimited(value)
        return value

    @field_validator("image_pull_secrets", "config_map_refs", "secret_refs", mode="before")
    @classmethod
    def split_comma_list(cls, value):
        return _comma_list(value)

    @field_validator("tolerations", mode="before")
    @classmethod
    def bind_tolerations(cls, value):
        return _k8s_models(value, "V1Toleration")

    @field_validator("volumes", mode="before")
    @classmethod
    def bind_volumes(cls, value):
        return _k8s_models(value, "V1Volume")

    @field_validator("volume_mounts", mode="before")
    @classmethod
    def bind_volume_mounts(cls, value):
        return _k8s_models(value, "V1VolumeMount")

    @field_validator("additional_containers", mode="before")
    @classmethod
    def bind_additional_containers(cls, value):
        return _k8s_models(value, "V1Container")

    @field_validator("node_affinity", mode="before")
    @classmethod
    def bind_node_affinity(cls, value):
        return _k8s_models(value, "V1NodeAffinity")

    @field_validator("pod_affinity", mode="before")
    @classmethod
    def bind_pod_affinity(cls, value):
        return _k8s_models(value, "V1PodAffinity")

    @field_validator("pod_anti_affinity", mode="before")
    @classmethod
    def bind_pod_anti_affinity(cls, value):
        return _k8s_models(value, "V1PodAntiAffinity")


class KubernetesTaskLauncherProperties(RelaxedModel):
    restart_policy: RestartPolicy = RestartPolicy.Never
    backoff_limit: Optional[int] = None
    ttl_seconds_after_finished: Optional[int] = None


def load_deployer_properties(
    config: Optional[Union[Dict, str]] = None
) -> KubernetesDeployerProperties:
    """
    Build the global deployer properties.

    :param config: (Optional) dict or path to a YAML file. Keys may be written
                   in camelCase, kebab-case or snake_case.
    :return: KubernetesDeployerProperties
    """
    if config is None:
        return KubernetesDeployerProperties()
    if isinstance(config, str):
        with open(config) as file:
            config = yaml.safe_load(file) or {}
    return KubernetesDeployerProperties.model_validate(config)
