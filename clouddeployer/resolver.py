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

from typing import Callable, Dict, List, Optional

from kubernetes.client import (
    V1Affinity,
    V1ConfigMapEnvSource,
    V1ConfigMapKeySelector,
    V1Container,
    V1EnvFromSource,
    V1EnvVar,
    V1EnvVarSource,
    V1ObjectFieldSelector,
    V1PodSecurityContext,
    V1SecretEnvSource,
    V1SecretKeySelector,
    V1SecurityContext,
    V1Toleration,
    V1Volume,
    V1VolumeMount,
)

from .constants.constants import (
    NODE_SELECTOR_PROPERTY_KEYS,
    STATEFUL_SET_IMAGE_NAME,
    EntryPointStyle,
    ImagePullPolicy,
    ProbeType,
    RestartPolicy,
)
from .deployer_properties import (
    ConfigMapKeyRef,
    InitContainer,
    KubernetesDeployerProperties,
    Lifecycle,
    LifecycleExec,
    LifecycleHook,
    ResourceQuantities,
    SecretKeyRef,
)
from .errors import InvalidDeploymentProperty
from .logging import logger
from .utils.byte_size import parse_to_mebibytes
from .utils.property_parser import (
    bind_yaml_fragment,
    get_deployment_property_value,
    get_string_pairs_to_map,
    parse_key_value_pairs,
    parse_nested_comma_delimited,
    tokenize_command_line,
)
from .utils.utils import has_text


def _merge_by_key(overrides: List, defaults: List, key: Callable) -> List:
    """Append every default whose identity key is absent from the overrides."""
    merged = list(overrides)
    keys = {key(item) for item in overrides}
    merged.extend(item for item in defaults if key(item) not in keys)
    return merged


def get_first_property(
    deployment_properties: Dict[str, str], base_key: str, *suffixes: str
) -> Optional[str]:
    for suffix in suffixes:
        value = get_deployment_property_value(deployment_properties, base_key + suffix)
        if has_text(value):
            return value
    return None


def _to_env_vars(entries: List[str]) -> List[V1EnvVar]:
    return [
        V1EnvVar(name=name, value=value)
        for name, value in parse_key_value_pairs(entries).items()
    ]


def _to_field_ref_env_vars(entries: List[str]) -> List[V1EnvVar]:
    env_vars = []
    for entry in entries:
        tokens = entry.split("=", 1)
        if len(tokens) != 2 or not has_text(tokens[0]) or not has_text(tokens[1]):
            raise InvalidDeploymentProperty(
                "Invalid environment variable from field ref: " + entry
            )
        env_vars.append(
            V1EnvVar(
                name=tokens[0],
                value_from=V1EnvVarSource(
                    field_ref=V1ObjectFieldSelector(field_path=tokens[1])
                ),
            )
        )
    return env_vars


def build_config_map_ref(name: str) -> V1EnvFromSource:
    return V1EnvFromSource(config_map_ref=V1ConfigMapEnvSource(name=name))


def build_secret_ref(name: str) -> V1EnvFromSource:
    return V1EnvFromSource(secret_ref=V1SecretEnvSource(name=name))


def _config_map_key_ref_env_var(ref: ConfigMapKeyRef) -> V1EnvVar:
    return V1EnvVar(
        name=ref.env_var_name,
        value_from=V1EnvVarSource(
            config_map_key_ref=V1ConfigMapKeySelector(
                name=ref.config_map_name, key=ref.data_key
            )
        ),
    )


def _secret_key_ref_env_var(ref: SecretKeyRef) -> V1EnvVar:
    return V1EnvVar(
        name=ref.env_var_name,
        value_from=V1EnvVarSource(
            secret_key_ref=V1SecretKeySelector(name=ref.secret_name, key=ref.data_key)
        ),
    )


def container_from_init_container(init_container: InitContainer) -> V1Container:
    if not has_text(init_container.name):
        raise InvalidDeploymentProperty(
            f"Init container with image '{init_container.image}' must have a name"
        )
    env = _to_env_vars(init_container.environment_variables)
    env.extend(
        _to_field_ref_env_vars(init_container.environment_variables_from_field_refs)
    )
    env_from = [build_config_map_ref(n) for n in init_container.config_map_ref_env_vars]
    env_from.extend(build_secret_ref(n) for n in init_container.secret_ref_env_vars)
    return V1Container(
        name=init_container.name,
        image=init_container.image,
        command=init_container.command or None,
        args=init_container.args or None,
        env=env or None,
        env_from=env_from or None,
        volume_mounts=list(init_container.volume_mounts) or None,
    )


class DeploymentPropertiesResolver:
    """
    Resolves every configurable aspect of a workload from the request's
    deployment properties and the global deployer properties.

    Each method reads only its own keys, so aspects can be resolved in any
    order and repeated calls with the same inputs give equal results.

    :param property_prefix: key prefix, e.g. "spring.cloud.deployer.kubernetes"
    :param properties: global KubernetesDeployerProperties
    """

    def __init__(self, property_prefix: str, properties: KubernetesDeployerProperties):
        self.property_prefix = property_prefix
        self.properties = properties

    def _key(self, suffix: str) -> str:
        return self.property_prefix + suffix

    def _bind_properties(
        self, deployment_properties: Dict[str, str], property_key: str, yaml_label: str
    ) -> KubernetesDeployerProperties:
        value = get_deployment_property_value(deployment_properties, property_key)
        if not has_text(value):
            return KubernetesDeployerProperties()
        try:
            return KubernetesDeployerProperties.model_validate(
                {yaml_label: bind_yaml_fragment(value, yaml_label)}
            )
        except ValueError as e:
            raise InvalidDeploymentProperty(
                f"Invalid binding property '{value}'"
            ) from e

    def get_tolerations(self, deployment_properties: Dict[str, str]) -> List[V1Toleration]:
        bound = self._bind_properties(
            deployment_properties, self._key(".tolerations"), "tolerations"
        )
        return _merge_by_key(
            bound.tolerations, self.properties.tolerations, lambda t: t.key
        )

    def get_volumes(self, deployment_properties: Dict[str, str]) -> List[V1Volume]:
        """
        Volumes are declared in YAML form, e.g.
        `[{name: testhostpath, hostPath: {path: '/test/override/hostPath'}}]`.
        Request volumes mask global volumes of the same name.
        """
        bound = self._bind_properties(
            deployment_properties, self._key(".volumes"), "volumes"
        )
        return _merge_by_key(bound.volumes, self.properties.volumes, lambda v: v.name)

    def get_volume_mounts(
        self, deployment_properties: Dict[str, str]
    ) -> List[V1VolumeMount]:
        return self._get_volume_mounts(
            get_deployment_property_value(
                deployment_properties, self._key(".volumeMounts")
            )
        )

    def _parse_volume_mounts(self, value: Optional[str]) -> List[V1VolumeMount]:
        if not has_text(value):
            return []
        try:
            bound = KubernetesDeployerProperties.model_validate(
                {"volume-mounts": bind_yaml_fragment(value, "volume-mounts")}
            )
        except ValueError as e:
            raise InvalidDeploymentProperty(f"Invalid volume mount '{value}'") from e
        return bound.volume_mounts

    def _get_volume_mounts(self, value: Optional[str]) -> List[V1VolumeMount]:
        return _merge_by_key(
            self._parse_volume_mounts(value),
            self.properties.volume_mounts,
            lambda m: m.name,
        )

    def _resource_quantities(
        self,
        deployment_properties: Dict[str, str],
        section: str,
        defaults: ResourceQuantities,
        with_gpu: bool,
    ) -> Dict[str, str]:
        def value(name, default):
            return get_deployment_property_value(
                deployment_properties, self._key(f".{section}.{name}"), default
            )

        quantities = {}
        for name, default in (
            ("memory", defaults.memory),
            ("cpu", defaults.cpu),
            ("ephemeral-storage", defaults.ephemeral_storage),
            ("hugepages-2Mi", defaults.hugepages_2mi),
            ("hugepages-1Gi", defaults.hugepages_1gi),
        ):
            resolved = value(name, default)
            if has_text(resolved):
                quantities[name] = resolved
        if with_gpu:
            gpu_vendor = value("gpuVendor", defaults.gpu_vendor)
            gpu_count = value("gpuCount", defaults.gpu_count)
            if has_text(gpu_vendor) and has_text(gpu_count):
                quantities[gpu_vendor] = gpu_count
        return quantities

    def get_resource_limits(self, deployment_properties: Dict[str, str]) -> Dict[str, str]:
        """
        Resource limits for the main container, request keys first then the global limits.

        A GPU limit is added when both `limits.gpuVendor` and `limits.gpuCount`
        are set, the vendor being the resource name, e.g. {"nvidia.com/gpu": "2"}.
        """
        return self._resource_quantities(
            deployment_properties, "limits", self.properties.limits, True
        )

    def get_resource_requests(
        self, deployment_properties: Dict[str, str]
    ) -> Dict[str, str]:
        requests = self._resource_quantities(
            deployment_properties, "requests", self.properties.requests, False
        )
        logger.debug("Using requests %s", requests)
        return requests

    def get_image_pull_policy(self, deployment_properties: Dict[str, str]) -> str:
        override = get_deployment_property_value(
            deployment_properties, self._key(".imagePullPolicy")
        )
        if not has_text(override):
            pull_policy = self.properties.image_pull_policy
        else:
            pull_policy = next(
                (p for p in ImagePullPolicy if p.value.lower() == override.strip().lower()),
                None,
            )
            if pull_policy is None:
                logger.warning(
                    'Parsing of pull policy %s failed, using default "IfNotPresent".',
                    override,
                )
                pull_policy = ImagePullPolicy.IfNotPresent
        logger.debug("Using imagePullPolicy %s", pull_policy.value)
        return pull_policy.value

    def get_stateful_set_volume_claim_template_name(
        self, deployment_properties: Dict[str, str]
    ) -> Optional[str]:
        return get_deployment_property_value(
            deployment_properties,
            self._key(".statefulSet.volumeClaimTemplate.name"),
            self.properties.stateful_set.volume_claim_template.name,
        )

    def get_stateful_set_storage_class_name(
        self, deployment_properties: Dict[str, str]
    ) -> Optional[str]:
        return get_deployment_property_value(
            deployment_properties,
            self._key(".statefulSet.volumeClaimTemplate.storageClassName"),
            self.properties.stateful_set.volume_claim_template.storage_class_name,
        )

    def get_stateful_set_storage(self, deployment_properties: Dict[str, str]) -> str:
        """Claim size in mebibytes, e.g. "10g" -> "10240Mi"."""
        storage = get_deployment_property_value(
            deployment_properties,
            self._key(".statefulSet.volumeClaimTemplate.storage"),
            self.properties.stateful_set.volume_claim_template.storage,
        )
        return f"{parse_to_mebibytes(storage)}Mi"

    def get_host_network(self, deployment_properties: Dict[str, str]) -> bool:
        override = get_deployment_property_value(
            deployment_properties, self._key(".hostNetwork")
        )
        if not has_text(override):
            host_network = self.properties.host_network
        else:
            host_network = override.strip().lower() == "true"
        logger.debug("Using hostNetwork %s", host_network)
        return host_network

    def get_node_selectors(self, deployment_properties: Dict[str, str]) -> Dict[str, str]:
        """Global selectors updated key by key with the request selectors, e.g. "disktype:ssd"."""
        node_selectors = self._parse_node_selector(self.properties.node_selector)
        for key in NODE_SELECTOR_PROPERTY_KEYS:
            value = (deployment_properties or {}).get(key)
            if has_text(value):
                node_selectors.update(self._parse_node_selector(value))
                break
        return node_selectors

    @staticmethod
    def _parse_node_selector(value: Optional[str]) -> Dict[str, str]:
        node_selectors = {}
        if has_text(value):
            for pair in value.split(","):
                selector = pair.split(":")
                if len(selector) != 2:
                    raise InvalidDeploymentProperty(
                        f"Invalid nodeSelector value: '{pair}'"
                    )
                node_selectors[selector[0].strip()] = selector[1].strip()
        return node_selectors

    def get_image_pull_secret(self, deployment_properties: Dict[str, str]) -> Optional[str]:
        image_pull_secret = get_deployment_property_value(
            deployment_properties, self._key(".imagePullSecret"), ""
        )
        if not has_text(image_pull_secret):
            image_pull_secret = self.properties.image_pull_secret
        return image_pull_secret

    def get_image_pull_secrets(self, deployment_properties: Dict[str, str]) -> List[str]:
        bound = self._bind_properties(
            deployment_properties, self._key(".imagePullSecrets"), "imagePullSecrets"
        )
        return bound.image_pull_secrets or list(self.properties.image_pull_secrets)

    def get_deployment_service_account_name(
        self, deployment_properties: Dict[str, str]
    ) -> Optional[str]:
        name = get_deployment_property_value(
            deployment_properties, self._key(".deploymentServiceAccountName")
        )
        if not has_text(name):
            name = self.properties.deployment_service_account_name
        return name

    def get_task_service_account_name(self, deployment_properties: Dict[str, str]) -> str:
        name = get_deployment_property_value(
            deployment_properties, self._key(".taskServiceAccountName"), ""
        )
        if has_text(name):
            return name
        return self.properties.task_service_account_name

    def get_share_process_namespace(
        self, deployment_properties: Dict[str, str]
    ) -> Optional[bool]:
        return self._bind_properties(
            deployment_properties,
            self._key(".shareProcessNamespace"),
            "shareProcessNamespace",
        ).share_process_namespace

    def get_priority_class_name(
        self, deployment_properties: Dict[str, str]
    ) -> Optional[str]:
        return self._bind_properties(
            deployment_properties, self._key(".priorityClassName"), "priorityClassName"
        ).priority_class_name

    def get_pod_security_context(
        self, deployment_properties: Dict[str, str]
    ) -> Optional[V1PodSecurityContext]:
        """
        The request context, when present, replaces the global one as a whole.
        Fields it does not set stay unset, they are not inherited.
        """
        bound = self._bind_properties(
            deployment_properties,
            self._key(".podSecurityContext"),
            "podSecurityContext",
        )
        if bound.pod_security_context is not None:
            return bound.pod_security_context.to_k8s()
        if self.properties.pod_security_context is not None:
            return self.properties.pod_security_context.to_k8s()
        return None

    def get_container_security_context(
        self, deployment_properties: Dict[str, str]
    ) -> Optional[V1SecurityContext]:
        bound = self._bind_properties(
            deployment_properties,
            self._key(".containerSecurityContext"),
            "containerSecurityContext",
        )
        if bound.container_security_context is not None:
            return bound.container_security_context.to_k8s()
        if self.properties.container_security_context is not None:
            return self.properties.container_security_context.to_k8s()
        return None

    def get_affinity_rules(self, deployment_properties: Dict[str, str]) -> V1Affinity:
        affinity = V1Affinity()
        for label, attribute in (
            ("nodeAffinity", "node_affinity"),
            ("podAffinity", "pod_affinity"),
            ("podAntiAffinity", "pod_anti_affinity"),
        ):
            property_key = self._key(".affinity." + label)
            value = get_deployment_property_value(deployment_properties, property_key)
            default = getattr(self.properties, attribute)
            if default is not None and not has_text(value):
                setattr(affinity, attribute, default)
            elif has_text(value):
                bound = self._bind_properties(deployment_properties, property_key, label)
                setattr(affinity, attribute, getattr(bound, attribute))
        return affinity

    def get_init_containers(
        self, deployment_properties: Dict[str, str]
    ) -> List[V1Container]:
        """
        Init containers, in this order:

        - the single `.initContainer` (YAML, else its dotted fields, else the global one)
        - the inline `.initContainers` array, or when it is empty the indexed
          `.initContainers[i]` entries scanned until an index resolves to nothing
        - the global init containers beyond those already supplied
        """
        init_containers = []
        single_key = self._key(".initContainer")
        bound = self._bind_properties(deployment_properties, single_key, "initContainer")
        if bound.init_container is not None:
            init_containers.append(container_from_init_container(bound.init_container))
        else:
            container = self._init_container_from_properties(
                deployment_properties, single_key
            )
            if container is not None:
                init_containers.append(container)
            elif self.properties.init_container is not None:
                init_containers.append(
                    container_from_init_container(self.properties.init_container)
                )

        array = self._bind_properties(
            deployment_properties, self._key(".initContainers"), "initContainers"
        )
        init_containers.extend(
            container_from_init_container(c) for c in array.init_containers
        )
        defaults = self.properties.init_containers
        if not array.init_containers:
            i = 0
            while True:
                property_key = self._key(f".initContainers[{i}]")
                indexed = self._bind_properties(
                    deployment_properties, property_key, "initContainer"
                )
                if indexed.init_container is not None:
                    init_containers.append(
                        container_from_init_container(indexed.init_container)
                    )
                else:
                    container = self._init_container_from_properties(
                        deployment_properties, property_key
                    )
                    if container is None:
                        if len(defaults) > i:
                            init_containers.append(
                                container_from_init_container(defaults[i])
                            )
                        break
                    init_containers.append(container)
                i += 1
        for default in defaults[len(init_containers):]:
            init_containers.append(container_from_init_container(default))
        return init_containers

    def _init_container_from_properties(
        self, deployment_properties: Dict[str, str], property_key: str
    ) -> Optional[V1Container]:
        name = get_first_property(deployment_properties, property_key, ".name", ".containerName")
        image = get_first_property(deployment_properties, property_key, ".image", ".imageName")
        if not (has_text(name) and has_text(image)):
            return None
        command = get_first_property(
            deployment_properties, property_key, ".command", ".commands"
        )
        env = get_first_property(
            deployment_properties, property_key, ".env", ".environmentVariables"
        )
        volume_mounts = self._get_volume_mounts(
            get_deployment_property_value(
                deployment_properties, property_key + ".volumeMounts"
            )
        )
        return V1Container(
            name=name,
            image=image,
            command=command.split(",") if has_text(command) else [],
            env=_to_env_vars(env.split(",") if env is not None else []),
            volume_mounts=volume_mounts,
        )

    def get_additional_containers(
        self, deployment_properties: Dict[str, str]
    ) -> List[V1Container]:
        bound = self._bind_properties(
            deployment_properties,
            self._key(".additionalContainers"),
            "additionalContainers",
        )
        return _merge_by_key(
            bound.additional_containers,
            self.properties.additional_containers,
            lambda c: c.name,
        )

    def _annotations(
        self, deployment_properties: Dict[str, str], suffix: str, default: Optional[str]
    ) -> Dict[str, str]:
        value = get_deployment_property_value(deployment_properties, self._key(suffix), "")
        combined = ",".join(v for v in (value, default) if has_text(v))
        return get_string_pairs_to_map(combined)

    def get_pod_annotations(self, deployment_properties: Dict[str, str]) -> Dict[str, str]:
        """Request pairs followed by the global pairs, e.g. "iam.amazonaws.com/role:role-arn"."""
        return self._annotations(
            deployment_properties, ".podAnnotations", self.properties.pod_annotations
        )

    def get_service_annotations(
        self, deployment_properties: Dict[str, str]
    ) -> Dict[str, str]:
        return self._annotations(
            deployment_properties,
            ".serviceAnnotations",
            self.properties.service_annotations,
        )

    def get_job_annotations(self, deployment_properties: Dict[str, str]) -> Dict[str, str]:
        return self._annotations(
            deployment_properties, ".jobAnnotations", self.properties.job_annotations
        )

    def get_deployment_labels(
        self, deployment_properties: Dict[str, str]
    ) -> Dict[str, str]:
        deployment_labels = get_deployment_property_value(
            deployment_properties, self._key(".deploymentLabels"), ""
        )
        combined = ",".join(
            v for v in (deployment_labels, self.properties.deployment_labels) if has_text(v)
        )
        labels = {}
        if has_text(combined):
            for label in combined.split(","):
                pair = label.split(":")
                if len(pair) != 2:
                    raise InvalidDeploymentProperty(
                        "Invalid label format, expected 'labelKey:labelValue', got: '%s'"
                        % label
                    )
                labels[pair[0].strip()] = pair[1].strip()
        return labels

    def get_restart_policy(
        self,
        deployment_properties: Dict[str, str],
        default: Optional[RestartPolicy] = None,
    ) -> RestartPolicy:
        """
        The `.restartPolicy` request value, else `default`, else the global
        restart policy. Task launchers pass their own default.
        """
        value = get_deployment_property_value(
            deployment_properties, self._key(".restartPolicy"), ""
        )
        if has_text(value):
            try:
                return RestartPolicy(value.strip())
            except ValueError as e:
                raise InvalidDeploymentProperty(
                    f"Invalid restartPolicy value: '{value}'"
                ) from e
        if default is not None:
            return default
        return self.properties.restart_policy

    def get_stateful_set_init_container_image_name(
        self, deployment_properties: Dict[str, str]
    ) -> str:
        image = get_deployment_property_value(
            deployment_properties, self._key(".statefulSetInitContainerImageName"), ""
        )
        if has_text(image):
            return image
        if has_text(self.properties.stateful_set_init_container_image_name):
            return self.properties.stateful_set_init_container_image_name
        return STATEFUL_SET_IMAGE_NAME

    def get_container_command(self, deployment_properties: Dict[str, str]) -> List[str]:
        return tokenize_command_line(
            get_deployment_property_value(
                deployment_properties, self._key(".containerCommand"), ""
            )
        )

    def get_lifecycle(self, deployment_properties: Dict[str, str]) -> Lifecycle:
        """
        Lifecycle hooks. `.lifecycle.postStart.exec.command` and
        `.lifecycle.preStop.exec.command` each replace only their own hook.
        """
        lifecycle = self.properties.lifecycle
        if not any(
            key.startswith(self._key(".lifecycle")) for key in deployment_properties or {}
        ):
            return lifecycle
        updates = {}
        for attribute, suffix in (
            ("post_start", ".lifecycle.postStart.exec.command"),
            ("pre_stop", ".lifecycle.preStop.exec.command"),
        ):
            command = get_deployment_property_value(deployment_properties, self._key(suffix))
            if has_text(command):
                updates[attribute] = LifecycleHook(
                    exec=LifecycleExec(command=command.split(","))
                )
        return lifecycle.model_copy(update=updates)

    def get_termination_grace_period_seconds(
        self, deployment_properties: Dict[str, str]
    ) -> Optional[int]:
        value = get_deployment_property_value(
            deployment_properties, self._key(".terminationGracePeriodSeconds")
        )
        if has_text(value):
            try:
                return int(value)
            except ValueError as e:
                raise InvalidDeploymentProperty(
                    f"Invalid terminationGracePeriodSeconds value: '{value}'"
                ) from e
        return self.properties.termination_grace_period_seconds

    def get_container_ports(self, deployment_properties: Dict[str, str]) -> List[int]:
        value = get_deployment_property_value(
            deployment_properties, self._key(".containerPorts")
        )
        ports = []
        if has_text(value):
            for port in value.split(","):
                try:
                    ports.append(int(port.strip()))
                except ValueError as e:
                    raise InvalidDeploymentProperty(
                        f"Invalid container port: '{port}'"
                    ) from e
        return ports

    def get_app_environment_variables(
        self, deployment_properties: Dict[str, str]
    ) -> Dict[str, str]:
        """
        Parse `.environmentVariables`, e.g. "JAVA_TOOL_OPTIONS='a,b',foo=bar".
        Single-quoted values may contain commas.
        """
        value = get_deployment_property_value(
            deployment_properties, self._key(".environmentVariables")
        )
        return parse_key_value_pairs(parse_nested_comma_delimited(value))

    def get_environment_variables_from_field_refs(
        self, deployment_properties: Dict[str, str]
    ) -> List[V1EnvVar]:
        value = get_deployment_property_value(
            deployment_properties, self._key(".environmentVariablesFromFieldRefs")
        )
        if not has_text(value):
            return []
        return _to_field_ref_env_vars([v.strip() for v in value.split(",")])

    def get_entry_point_style(
        self, deployment_properties: Dict[str, str]
    ) -> EntryPointStyle:
        value = get_deployment_property_value(
            deployment_properties, self._key(".entryPointStyle")
        )
        if has_text(value):
            try:
                return EntryPointStyle(value.strip().lower())
            except ValueError:
                logger.debug("Unknown entryPointStyle %s, using the default", value)
        return self.properties.entry_point_style

    def get_probe_type(self, deployment_properties: Dict[str, str]) -> ProbeType:
        value = get_deployment_property_value(
            deployment_properties, self._key(".probeType")
        )
        if has_text(value):
            try:
                return ProbeType(value.strip().upper())
            except ValueError as e:
                raise InvalidDeploymentProperty(
                    f"Invalid probeType value: '{value}'"
                ) from e
        return self.properties.probe_type

    def get_config_map_key_refs(
        self, deployment_properties: Dict[str, str]
    ) -> List[V1EnvVar]:
        bound = self._bind_properties(
            deployment_properties, self._key(".configMapKeyRefs"), "configMapKeyRefs"
        )
        return [
            _config_map_key_ref_env_var(ref)
            for ref in _merge_by_key(
                bound.config_map_key_refs,
                self.properties.config_map_key_refs,
                lambda r: r.env_var_name,
            )
        ]

    def get_secret_key_refs(self, deployment_properties: Dict[str, str]) -> List[V1EnvVar]:
        bound = self._bind_properties(
            deployment_properties, self._key(".secretKeyRefs"), "secretKeyRefs"
        )
        return [
            _secret_key_ref_env_var(ref)
            for ref in _merge_by_key(
                bound.secret_key_refs,
                self.properties.secret_key_refs,
                lambda r: r.env_var_name,
            )
        ]

    def get_config_map_refs(
        self, deployment_properties: Dict[str, str]
    ) -> List[V1EnvFromSource]:
        bound = self._bind_properties(
            deployment_properties, self._key(".configMapRefs"), "configMapRefs"
        )
        names = bound.config_map_refs or self.properties.config_map_refs
        return [build_config_map_ref(name) for name in names]

    def get_secret_refs(self, deployment_properties: Dict[str, str]) -> List[V1EnvFromSource]:
        bound = self._bind_properties(
            deployment_properties, self._key(".secretRefs"), "secretRefs"
        )
        names = bound.secret_refs or self.properties.secret_refs
        return [build_secret_ref(name) for name in names]
