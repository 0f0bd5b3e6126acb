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

import threading
import time
from typing import Callable, Collection, Optional

from tabulate import tabulate

from ..errors import DeploymentStateError
from ..logging import logger
from ..models import AppStatus, DeploymentState, LaunchState

APP_TERMINAL_STATES = (
    DeploymentState.deployed,
    DeploymentState.undeployed,
    DeploymentState.failed,
    DeploymentState.error,
    DeploymentState.unknown,
)
TASK_TERMINAL_STATES = (LaunchState.complete, LaunchState.failed)


def _row(deployment_id, status):
    instances = len(status.instances) if isinstance(status, AppStatus) else ""
    return [deployment_id, status.state.value, instances]


def wait_for_status(
    status_fn: Callable,
    deployment_id: str,
    terminal_states: Collection = APP_TERMINAL_STATES,
    polling_interval: float = 2,
    max_attempts: int = 60,
    stop_event: Optional[threading.Event] = None,
    watch: bool = False,
):  # pylint:disable=too-many-arguments
    """
    Poll the status of a deployment or task until it reaches a terminal state.
    :param status_fn: callable returning an AppStatus or TaskStatus for an id
    :param deployment_id: deployment or task id
    :param terminal_states: states that end the wait
    :param polling_interval: the pause between two polls in seconds
    :param max_attempts: number of polls before giving up
    :param stop_event: (Optional) event the caller sets to stop waiting
    :param watch: True to print every polled status
    :return: the first terminal status, or the last status when stopped
    """
    headers = ["NAME", "STATE", "INSTANCES"]
    table_fmt = "plain"

    status = None
    for attempt in range(max_attempts):
        status = status_fn(deployment_id)
        if watch:
            print(
                tabulate(
                    [_row(deployment_id, status)], headers=headers, tablefmt=table_fmt
                )
            )
        if status.state in terminal_states:
            return status
        logger.debug(
            "Status of %s is %s after %d attempts",
            deployment_id,
            status.state.value,
            attempt + 1,
        )
        if stop_event is not None:
            if stop_event.wait(polling_interval):
                return status
        else:
            time.sleep(polling_interval)
    raise DeploymentStateError(
        "Timeout waiting for %s to reach one of %s, the last state was %s"
        % (
            deployment_id,
            [state.value for state in terminal_states],
            status.state.value if status is not None else None,
        )
    )
