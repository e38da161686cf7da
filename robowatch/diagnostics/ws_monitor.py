"""Utility for inspecting live robot websocket traffic."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Optional, TextIO

from ..config import WatchConfig
from ..core import InboundFrame, Transport
from ..monitor import RobotMonitor


def format_frame(frame: InboundFrame, *, raw: bool) -> str:
    if raw:
        return json.dumps(dict(frame.payload), indent=2, sort_keys=True)
    return f"event: {frame.discriminator}\n  data: {json.dumps(dict(frame.data), sort_keys=True)}"


async def watch_robot(
    config: WatchConfig,
    robot_id: str,
    *,
    event: Optional[str] = None,
    raw: bool = False,
    stream: TextIO = sys.stdout,
    transport: Optional[Transport] = None,
) -> None:
    """Print frames and derived state for ``robot_id`` until cancelled."""

    monitor = RobotMonitor(
        config.channel_config(robot_id),
        presenter_config=config.presenter,
        transport=transport,
    )

    def _print(text: str) -> None:
        print(text, file=stream, flush=True)

    def _on_frame(frame: InboundFrame) -> None:
        if event and frame.discriminator != event:
            return
        _print(format_frame(frame, raw=raw))
        _print("-" * 60)

    def _on_change(name: str) -> None:
        if event:
            return
        if name == "connection":
            state = "connected" if monitor.connected else "disconnected"
            detail = f" ({monitor.error})" if monitor.error and not monitor.connected else ""
            _print(f"[{robot_id}] {state}{detail}")
        elif name == "status":
            status = monitor.presented_status
            _print(
                f"[{robot_id}] braking={status.braking} emergency={status.emergency} "
                f"arm_moving={status.arm_moving} flashing={sorted(status.flashing)}"
            )
        elif name == "battery":
            battery = monitor.battery
            _print(
                f"[{robot_id}] battery {battery.level:.1f}% {battery.status.value} "
                f"({battery.time_remaining})"
            )

    monitor.subscribe_frames(_on_frame)
    monitor.subscribe(_on_change)
    monitor.subscribe_schedule_changed(lambda: _print(f"[{robot_id}] schedule updated"))

    _print(f"Watching {monitor.channel.config.endpoint} (Ctrl+C to stop)...")
    monitor.start()
    try:
        await asyncio.Event().wait()
    finally:
        await monitor.aclose()
