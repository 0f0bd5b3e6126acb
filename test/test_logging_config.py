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
import logging

import pytest
import yaml

from clouddeployer import logging as cd_logging


@pytest.fixture(autouse=True)
def restore_logger():
    root = logging.getLogger()
    root_handlers = list(root.handlers)
    root_level = root.level
    log = logging.getLogger(cd_logging.CLOUDDEPLOYER_LOGGER_NAME)
    handlers = list(log.handlers)
    level = log.level
    propagate = log.propagate

    yield

    root.handlers = root_handlers
    root.setLevel(root_level)
    log.handlers = handlers
    log.setLevel(level)
    log.propagate = propagate


def _config(level):
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {"null": {"class": "logging.NullHandler"}},
        "loggers": {
            "clouddeployer": {"handlers": ["null"], "level": level, "propagate": False}
        },
    }


def test_default_config():
    cd_logging.configure_logging()
    log = logging.getLogger("clouddeployer")
    assert len(log.handlers) == 1
    assert isinstance(log.handlers[0], logging.StreamHandler)
    assert log.propagate is False
    trace = logging.getLogger("clouddeployer.trace")
    assert trace.handlers[0].formatter._fmt == cd_logging.CLOUDDEPLOYER_TRACE_LOGGER_FORMAT


def test_dict_config():
    cd_logging.configure_logging(_config("WARNING"))
    log = logging.getLogger("clouddeployer")
    assert log.level == logging.WARNING
    assert isinstance(log.handlers[0], logging.NullHandler)


def test_json_config(tmp_path):
    path = tmp_path / "log.json"
    path.write_text(json.dumps(_config("ERROR")))
    cd_logging.configure_logging(str(path))
    assert logging.getLogger("clouddeployer").level == logging.ERROR


def test_yaml_config(tmp_path):
    path = tmp_path / "log.yaml"
    path.write_text(yaml.safe_dump(_config("DEBUG")))
    cd_logging.configure_logging(str(path))
    assert logging.getLogger("clouddeployer").level == logging.DEBUG


def test_file_config(tmp_path):
    path = tmp_path / "log.ini"
    path.write_text(
        "[loggers]\nkeys=root,clouddeployer\n\n"
        "[handlers]\nkeys=null\n\n"
        "[formatters]\nkeys=\n\n"
        "[logger_root]\nlevel=INFO\nhandlers=null\n\n"
        "[logger_clouddeployer]\nlevel=CRITICAL\nhandlers=null\n"
        "qualname=clouddeployer\npropagate=0\n\n"
        "[handler_null]\nclass=NullHandler\nargs=()\n"
    )
    cd_logging.configure_logging(str(path))
    assert logging.getLogger("clouddeployer").level == logging.CRITICAL
