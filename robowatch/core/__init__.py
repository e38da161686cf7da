"""Core primitives for robowatch."""

from .models import (
    STATUS_FIELDS,
    STATUS_WIRE_KEYS,
    AutonomousState,
    BatteryState,
    BatteryTelemetry,
    CameraPair,
    CameraStatus,
    CanStatus,
    ChannelState,
    ChannelStatus,
    InboundFrame,
    PresentedStatus,
    SafetyStatusFlags,
)
from .protocols import CallbackType, Scheduler, TimerHandle, Transport
from .utils import CallbackTasks

__all__ = [
    "STATUS_FIELDS",
    "STATUS_WIRE_KEYS",
    "AutonomousState",
    "BatteryState",
    "BatteryTelemetry",
    "CallbackTasks",
    "CallbackType",
    "CameraPair",
    "CameraStatus",
    "CanStatus",
    "ChannelState",
    "ChannelStatus",
    "InboundFrame",
    "PresentedStatus",
    "SafetyStatusFlags",
    "Scheduler",
    "TimerHandle",
    "Transport",
]
