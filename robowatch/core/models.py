"""Domain models for robot telemetry and channel state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Mapping, Optional


class ChannelState(str, Enum):
    """Lifecycle state of a robot channel."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(slots=True, frozen=True)
class ChannelStatus:
    connected: bool
    state: ChannelState
    reconnect_attempts: int
    queued_messages: int
    last_error: Optional[str] = None


@dataclass(slots=True, frozen=True)
class InboundFrame:
    discriminator: str
    data: Mapping[str, Any]
    payload: Mapping[str, Any]


class BatteryState(str, Enum):
    CHARGING = "charging"
    DISCHARGING = "discharging"
    FULL = "full"
    LOW = "low"


@dataclass(slots=True, frozen=True)
class BatteryTelemetry:
    level: float = 0.0
    status: BatteryState = BatteryState.DISCHARGING
    time_remaining: str = "0h 0m"
    voltage: Optional[float] = None
    current: Optional[float] = None
    power: Optional[float] = None
    dod: Optional[float] = None


STATUS_FIELDS = ("braking", "emergency", "arm_moving")

# Wire keys as published by the robot.
STATUS_WIRE_KEYS = {
    "braking": "break_status",
    "emergency": "emergency_status",
    "arm_moving": "Arm_moving",
}


@dataclass(slots=True, frozen=True)
class SafetyStatusFlags:
    braking: bool = False
    emergency: bool = False
    arm_moving: bool = False


@dataclass(slots=True, frozen=True)
class PresentedStatus:
    """Status as it should be rendered, including decay and flash emphasis."""

    braking: bool = False
    emergency: bool = False
    arm_moving: bool = False
    flashing: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def flags(self) -> SafetyStatusFlags:
        return SafetyStatusFlags(
            braking=self.braking,
            emergency=self.emergency,
            arm_moving=self.arm_moving,
        )

    def is_flashing(self, name: str) -> bool:
        return name in self.flashing


@dataclass(slots=True, frozen=True)
class CanStatus:
    can0: bool = False
    can1: bool = False


@dataclass(slots=True, frozen=True)
class CameraStatus:
    connected: bool = False
    usb_speed: str = ""
    profiles_ok: bool = False
    frames_ok: bool = False


@dataclass(slots=True, frozen=True)
class CameraPair:
    left: CameraStatus = field(default_factory=CameraStatus)
    right: CameraStatus = field(default_factory=CameraStatus)


@dataclass(slots=True, frozen=True)
class AutonomousState:
    ready: bool = False
    mode_active: bool = False
