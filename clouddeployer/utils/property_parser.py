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

"""Parsing helpers for the flat string deployment property namespace."""

import re
import shlex
from typing import Any, Dict, List, Optional

import yaml

from ..errors import InvalidDeploymentProperty
from .utils import has_text

_NESTED_VARIABLE_PATTERN = re.compile(r"(\w+='.+?'),?")
_UNQUOTED_COMMA_PATTERN = re.compile(r",(?=(?:[^\"']*[\"'][^\"']*[\"'])*[^\"']*$)")
_CAMEL_BOUNDARY_PATTERN = re.compile(r"(?<=[a-z0-9])([A-Z])")
_SEPARATOR_PATTERN = re.compile(r"[-_]([a-zA-Z0-9])")


def _to_separated(key: str, separator: str) -> str:
    key = _CAMEL_BOUNDARY_PATTERN.sub(lambda m: separator + m.group(1), key)
    return key.replace("-", separator).replace("_", separator).lower()


def _to_camel(key: str) -> str:
    return _SEPARATOR_PATTERN.sub(lambda m: m.group(1).upper(), key)


def relaxed_names(key: str) -> List[str]:
    """
    Candidate spellings of a property key, in lookup order.
    :param key: canonical key, e.g. "spring.cloud.deployer.kubernetes.podSecurityContext"
    :return: the key itself followed by its kebab-case, snake_case, camelCase and lowercase variants
    """
    names = [key]
    for variant in (
        _to_separated(key, "-"),
        _to_separated(key, "_"),
        _to_camel(key),
        key.lower(),
    ):
        if variant not in names:
            names.append(variant)
    return names


def get_deployment_property_value(
    properties: Optional[Dict[str, str]], key: str, default: Optional[str] = None
) -> Optional[str]:
    if not properties:
        return default
    for name in relaxed_names(key):
        if name in properties:
            return properties[name]
    return default


def tokenize_command_line(value: Optional[str]) -> List[str]:
    """Split a command line into shell-like tokens, keeping quoted segments whole."""
    if not has_text(value):
        return []
    try:
        return shlex.split(value)
    except ValueError as e:
        raise InvalidDeploymentProperty(
            f"Invalid command line '{value}': {e}"
        ) from e


def parse_nested_comma_delimited(value: Optional[str]) -> List[str]:
    """
    Parse `KEY1='v,1',KEY2=v2` into ["KEY1=v,1", "KEY2=v2"].

    Single-quoted values may contain commas. Unquoted values must not, they are
    split on every comma.
    """
    if not value:
        return []
    variables = []
    for match in _NESTED_VARIABLE_PATTERN.finditer(value):
        variable = match.group(1).replace("'", "")
        if has_text(variable):
            variables.append(variable)
    remainder = _NESTED_VARIABLE_PATTERN.sub("", value)
    if has_text(remainder):
        unquoted = remainder.split(",")
        while unquoted and unquoted[-1] == "":
            unquoted.pop()
        variables.extend(unquoted)
    return variables


def parse_key_value_pairs(
    entries: List[str], message: str = "Invalid environment variable declared: "
) -> Dict[str, str]:
    pairs = {}
    for entry in entries:
        parts = entry.split("=", 1)
        if len(parts) != 2:
            raise InvalidDeploymentProperty(message + entry)
        pairs[parts[0]] = parts[1]
    return pairs


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def get_string_pairs_to_map(value: Optional[str]) -> Dict[str, str]:
    """
    Parse `k1:v1,k2:'v,2'` into a dict; later duplicates overwrite earlier ones.

    Commas are only split on outside quotes, so an unbalanced apostrophe such as
    `a:b,c:it's` keeps the whole text as one value: {"a": "b,c:it's"}.
    """
    pairs = {}
    if not has_text(value):
        return pairs
    for pair in _UNQUOTED_COMMA_PATTERN.split(value):
        if not has_text(pair):
            continue
        parts = pair.split(":", 1)
        if len(parts) != 2:
            raise InvalidDeploymentProperty(f"Invalid pair value: '{pair}'")
        pairs[parts[0].strip()] = _strip_quotes(parts[1].strip())
    return pairs


def bind_yaml_fragment(value: str, label: str) -> Any:
    """
    Load a property value as the single field of a synthetic YAML document.

    :param value: raw property value, e.g. "[{name: v1, emptyDir: {}}]"
    :param label: field name the value occupies, e.g. "volumes"
    :return: the loaded python value of that field
    """
    fragment = "{ " + label + ": " + value + " }"
    try:
        loaded = yaml.safe_load(fragment)
    except yaml.YAMLError as e:
        raise InvalidDeploymentProperty(
            f"Invalid binding property '{value}'"
        ) from e
    if not isinstance(loaded, dict) or label not in loaded:
        raise InvalidDeploymentProperty(f"Invalid binding property '{value}'")
    return loaded[label]
