"""
RTDB Sweeper — Record normalizer.

Records under a root are stored either as a nested object or as a
JSON-encoded string of the same object, and keep their ``updateTime``
either at the top level or under a ``Devices`` sub-object. This module
turns any of those into one ``NormalizedRecord`` so the eviction policy
never has to look at raw shapes.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Reason(str, Enum):
    OK = "ok"
    SKIP = "skip"
    INVALID_JSON = "invalid_json"
    NO_UPDATE_TIME = "no_updateTime"
    INVALID_TIME = "invalid_time"


class Nesting(str, Enum):
    FLAT = "flat"
    NESTED_UNDER_DEVICES = "nested-under-devices"


@dataclass(frozen=True)
class NormalizedRecord:
    update_time: Optional[str]
    nesting: Optional[Nesting]
    reason: Reason

    @property
    def has_timestamp(self) -> bool:
        return self.update_time is not None


def _present(value: Any) -> bool:
    # empty string / null / 0 / false all count as "not set"
    return value is not None and value != "" and value is not False and value != 0


def _decode(raw_value: Any) -> tuple[Any, bool]:
    """Return (structured value, ok). Strings are parsed as JSON."""
    if isinstance(raw_value, (str, bytes)):
        try:
            return json.loads(raw_value), True
        except (ValueError, TypeError):
            return None, False
    return raw_value, True


def normalize(raw_value: Any, nested_only: bool = False) -> NormalizedRecord:
    """
    Extract the retention timestamp from a raw stored value. Never raises.

    Lookup order is fixed: ``Devices.updateTime`` first, then the top-level
    ``updateTime``. With ``nested_only`` the top-level fallback is ignored.
    """
    value, ok = _decode(raw_value)
    if not ok:
        return NormalizedRecord(None, None, Reason.INVALID_JSON)

    if not isinstance(value, dict):
        return NormalizedRecord(None, None, Reason.NO_UPDATE_TIME)

    devices = value.get("Devices")
    if isinstance(devices, dict) and _present(devices.get("updateTime")):
        return NormalizedRecord(
            str(devices["updateTime"]), Nesting.NESTED_UNDER_DEVICES, Reason.OK
        )

    if not nested_only and _present(value.get("updateTime")):
        return NormalizedRecord(str(value["updateTime"]), Nesting.FLAT, Reason.OK)

    return NormalizedRecord(None, None, Reason.NO_UPDATE_TIME)
