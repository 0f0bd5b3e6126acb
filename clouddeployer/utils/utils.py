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

import inspect
import json
import os
import re
from typing import Any, Dict, List, Optional

from kubernetes import client

from ..constants import constants
from ..errors import InvalidDeploymentProperty

_api_client = None

_SANITIZE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE) for pattern in constants.SANITIZE_KEYS
]


def is_running_in_k8s():
    return os.path.isdir("/var/run/secrets/kubernetes.io/")


def get_current_k8s_namespace():
    with open("/var/run/secrets/kubernetes.io/serviceaccount/namespace", "r") as f:
        return f.readline()


def get_default_target_namespace():
    if not is_running_in_k8s():
        return "default"
    return get_current_k8s_namespace()


def has_text(value: Optional[str]) -> bool:
    return value is not None and len(value.strip()) > 0


class _JsonPayload:
    def __init__(self, data):
        self.data = json.dumps(data)


def _get_api_client():
    global _api_client
    if _api_client is None:
        _api_client = client.ApiClient()
    return _api_client


def _deserialize(data: Any, klass: str):
    api_client = _get_api_client()
    # Clients generated since 37.x take the raw text and its content type.
    if "content_type" in inspect.signature(api_client.deserialize).parameters:
        return api_client.deserialize(json.dumps(data), klass, "application/json")
    return api_client.deserialize(_JsonPayload(data), klass)


def to_k8s_model(data: Any, klass: str):
    """Build a kubernetes client model from its camelCase dict form.

    :param data: dict (or list of dicts) shaped like the Kubernetes API JSON
    :param klass: model name understood by the client, e.g. "V1Volume". A list
                  of dicts yields a list of that model.
    :return: the deserialized model, or None when data is None
    """
    if data is None:
        return None
    try:
        if isinstance(data, list):
            return [_deserialize(item, klass) for item in data]
        return _deserialize(data, klass)
    except (ValueError, TypeError) as e:
        raise InvalidDeploymentProperty(f"Invalid {klass} value {data}: {e}") from e


def to_k8s_dict(model) -> Optional[Dict]:
    """Serialize a kubernetes client model back to its camelCase dict form."""
    if model is None:
        return None
    return _get_api_client().sanitize_for_serialization(model)


def _is_sensitive(key: str) -> bool:
    return any(pattern.match(key) for pattern in _SANITIZE_PATTERNS)


def sanitize_properties(properties: Optional[Dict[str, str]]) -> Dict[str, str]:
    if not properties:
        return {}
    return {
        key: constants.SANITIZED_VALUE if _is_sensitive(key) else value
        for key, value in properties.items()
    }


def sanitize_arguments(arguments: Optional[List[str]]) -> List[str]:
    sanitized = []
    for argument in arguments or []:
        key, sep, value = argument.partition("=")
        if sep and _is_sensitive(key.lstrip("-")):
            sanitized.append(key + "=" + constants.SANITIZED_VALUE)
        else:
            sanitized.append(argument)
    return sanitized
