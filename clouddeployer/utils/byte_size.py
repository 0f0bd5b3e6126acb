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

import re
from typing import Optional

from ..errors import ByteSizeParseError

_BYTE_SIZE_PATTERN = re.compile(r"(?P<amount>\d+)(?P<unit>[A-Za-z]*)")

KIBI = 1024
MEBI = KIBI * 1024
GIBI = MEBI * 1024

# Decimal suffixes are read as their binary counterpart, 1g == 1GiB.
_UNITS = {
    "b": 1,
    "k": KIBI,
    "kb": KIBI,
    "kib": KIBI,
    "m": MEBI,
    "mb": MEBI,
    "mib": MEBI,
    "g": GIBI,
    "gb": GIBI,
    "gib": GIBI,
}


def parse_to_bytes(text: Optional[str], default_unit: str = "m") -> int:
    if text is None:
        raise ByteSizeParseError(text, "text to parse must not be None")
    match = _BYTE_SIZE_PATTERN.fullmatch(text.strip())
    if match is None:
        raise ByteSizeParseError(text, "not a number")
    unit = match.group("unit").lower() or default_unit
    if unit not in _UNITS:
        raise ByteSizeParseError(
            text, "A valid unit must be specified among [%s]" % ", ".join(_UNITS)
        )
    return int(match.group("amount")) * _UNITS[unit]


def parse_to_mebibytes(text: Optional[str]) -> int:
    """
    Parse a memory or storage size into whole mebibytes.
    A missing unit means mebibytes, e.g. "512" -> 512, "1G" -> 1024.
    """
    return parse_to_bytes(text) // MEBI
