"""Battery telemetry classification."""

from __future__ import annotations

import math
from typing import Any, Mapping

from ..core import BatteryState, BatteryTelemetry

CHARGING_CURRENT_THRESHOLD = 0.5
FULL_SOC_THRESHOLD = 99.0
LOW_SOC_THRESHOLD = 20.0


def coerce_number(value: Any) -> float:
    """Return ``value`` as a float, treating missing, non-numeric or non-finite input as 0."""

    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def classify_battery_state(soc: float, current: float) -> BatteryState:
    # current wins over soc
    if current > CHARGING_CURRENT_THRESHOLD:
        return BatteryState.CHARGING
    if soc >= FULL_SOC_THRESHOLD:
        return BatteryState.FULL
    if soc < LOW_SOC_THRESHOLD:
        return BatteryState.LOW
    return BatteryState.DISCHARGING


def estimate_time_remaining(soc: float) -> str:
    """Rough "Xh Ym" estimate: one hour per 20% of charge.

    This is a display approximation, not a discharge model; dashboards depend
    on the exact numbers it produces.
    """

    hours = math.floor(soc / 20)
    minutes = math.floor(math.fmod(soc, 20) * 3)
    return f"{hours}h {minutes}m"


def classify_battery(data: Mapping[str, Any]) -> BatteryTelemetry:
    """Build a complete :class:`BatteryTelemetry` from a ``battery_information`` payload."""

    soc = coerce_number(data.get("soc"))
    current = coerce_number(data.get("current"))
    voltage = coerce_number(data.get("voltage"))
    power = coerce_number(data.get("power"))
    dod = coerce_number(data.get("dod"))

    return BatteryTelemetry(
        level=soc,
        status=classify_battery_state(soc, current),
        time_remaining=estimate_time_remaining(soc),
        voltage=voltage,
        current=current,
        power=power,
        dod=dod,
    )
