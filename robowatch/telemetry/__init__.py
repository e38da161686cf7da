"""Telemetry models derived from robot frames."""

from .battery import (
    classify_battery,
    classify_battery_state,
    coerce_number,
    estimate_time_remaining,
)
from .status import (
    merge_autonomous,
    merge_cameras,
    merge_can_status,
    parse_active_status,
)

__all__ = [
    "classify_battery",
    "classify_battery_state",
    "coerce_number",
    "estimate_time_remaining",
    "merge_autonomous",
    "merge_cameras",
    "merge_can_status",
    "parse_active_status",
]
