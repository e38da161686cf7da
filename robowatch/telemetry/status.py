"""Partial-update merges for auxiliary robot status frames.

Every merge follows the same rule: a key that is absent or ``null`` keeps the
previous value, it never falls back to the default.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping, Optional

from ..core import AutonomousState, CameraPair, CameraStatus, CanStatus


def _pick(data: Mapping[str, Any], key: str, previous: Any) -> Any:
    value = data.get(key)
    return previous if value is None else value


def merge_can_status(previous: CanStatus, data: Mapping[str, Any]) -> CanStatus:
    return CanStatus(
        can0=bool(_pick(data, "can0", previous.can0)),
        can1=bool(_pick(data, "can1", previous.can1)),
    )


def _merge_camera(previous: CameraStatus, data: Any) -> CameraStatus:
    if not isinstance(data, Mapping):
        return previous
    return replace(
        previous,
        connected=bool(_pick(data, "connected", previous.connected)),
        usb_speed=str(_pick(data, "usb_speed", previous.usb_speed)),
        profiles_ok=bool(_pick(data, "profiles_ok", previous.profiles_ok)),
        frames_ok=bool(_pick(data, "frames_ok", previous.frames_ok)),
    )


def merge_cameras(previous: CameraPair, data: Mapping[str, Any]) -> CameraPair:
    return CameraPair(
        left=_merge_camera(previous.left, data.get("left_camera")),
        right=_merge_camera(previous.right, data.get("right_camera")),
    )


def merge_autonomous(data: Mapping[str, Any]) -> AutonomousState:
    # Only a literal true enables autonomy; anything else reads as false.
    return AutonomousState(
        ready=data.get("status") is True,
        mode_active=data.get("mode_active") is True,
    )


def parse_active_status(data: Mapping[str, Any]) -> Optional[bool]:
    """Return the robot's active flag, or ``None`` when the frame carries no boolean."""

    value = data.get("status")
    if isinstance(value, bool):
        return value
    return None
