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

import base64
from typing import Dict, List, Optional

import requests

from .errors import PlatformError
from .logging import logger
from .utils.utils import has_text


class LogCacheClient(object):
    """
    Minimal client of a log-cache read endpoint.

    :param base_url: e.g. "https://log-cache.sys.example.com"
    :param token: (Optional) bearer token sent as the Authorization header
    """

    def __init__(self, base_url: str, token: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token

    def read(self, source_id: str, timeout: Optional[float] = None) -> Dict:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = f"{self.base_url}/api/v1/read/{source_id}"
        try:
            response = requests.get(
                url,
                params={"envelope_types": "LOG", "descending": "true"},
                headers=headers,
                timeout=timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            raise PlatformError(
                f"Exception when reading logs of {source_id}: {e}",
                e.response.status_code if e.response is not None else None,
            ) from e
        except requests.RequestException as e:
            raise PlatformError(f"Exception when reading logs of {source_id}: {e}") from e
        return response.json()


def _log_payloads(response: Optional[Dict]) -> List[str]:
    envelopes = ((response or {}).get("envelopes") or {}).get("batch") or []
    payloads = []
    for envelope in envelopes:
        log = envelope.get("log")
        if log is None or log.get("payload") is None:
            continue
        payloads.append(base64.b64decode(log["payload"]).decode("utf-8"))
    return payloads


class ApplicationLogAccessor(object):
    def __init__(self, log_cache_client: LogCacheClient):
        if log_cache_client is None:
            raise ValueError("log_cache_client must not be None")
        self.log_cache_client = log_cache_client

    def get_log(self, deployment_id: str, api_timeout: float) -> str:
        """
        Retrieve the logs of a deployment.

        Entries arrive most recent first and are returned in chronological
        order, one line per entry line.

        :param deployment_id: source id of the application
        :param api_timeout: seconds to wait for the log-cache API
        :return: the log text, or "" when no entries are available
        """
        logger.debug(
            "Retrieving log for deploymentId:%s with apiTimeout:%s",
            deployment_id,
            api_timeout,
        )
        if not has_text(deployment_id):
            raise ValueError("id must have text and not be None")
        if api_timeout is None:
            raise ValueError("api_timeout must not be None")
        response = self.log_cache_client.read(deployment_id, api_timeout)
        lines = []
        for payload in _log_payloads(response):
            lines.extend(payload.splitlines())
        lines.reverse()
        return "\n".join(lines)
