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


class InvalidDeploymentProperty(ValueError):
    """
    Exception class indicating a malformed deployment property value.
    The message always carries the offending raw value.
    """

    def __init__(self, reason):
        self.reason = reason

    def __str__(self):
        return self.reason


class ByteSizeParseError(InvalidDeploymentProperty):
    def __init__(self, text, detail=None):
        reason = f"Could not parse '{text}' to a byte size"
        if detail:
            reason = reason + ". " + detail
        super().__init__(reason)


class DeploymentStateError(RuntimeError):
    """
    Exception class indicating an operation is illegal for the current
    state of a deployment or task.
    """

    def __init__(self, reason):
        self.reason = reason

    def __str__(self):
        return self.reason


class PlatformError(RuntimeError):
    """
    Exception class wrapping a failure reported by the target platform API.
    """

    def __init__(self, reason, status=None):
        self.reason = reason
        self.status = status

    def __str__(self):
        msg = self.reason
        if self.status is not None:
            msg = "[" + str(self.status) + "] " + msg
        return msg


class ConcurrentTaskLimitReached(DeploymentStateError):
    def __init__(self, task_name, limit):
        super().__init__(
            f"Cannot launch task {task_name}. The maximum concurrent task executions is at its limit [{limit}]."
        )
        self.limit = limit
