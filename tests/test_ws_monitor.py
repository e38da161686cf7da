import asyncio
import contextlib
import io
import json
from pathlib import Path

import pytest

from conftest import FakeTransport, settle
from robowatch.config import load_config
from robowatch.core import InboundFrame
from robowatch.diagnostics.ws_monitor import format_frame, watch_robot

FRAME = InboundFrame(
    discriminator="can_status",
    data={"can1": False, "can0": True},
    payload={"event": "can_status", "data": {"can1": False, "can0": True}},
)


def test_format_frame_summary():
    text = format_frame(FRAME, raw=False)

    assert text.splitlines() == [
        "event: can_status",
        '  data: {"can0": true, "can1": false}',
    ]


def test_format_frame_raw_payload():
    text = format_frame(FRAME, raw=True)

    assert json.loads(text) == {"event": "can_status", "data": {"can0": True, "can1": False}}
    assert text.splitlines()[0] == "{"


@pytest.mark.asyncio
async def test_watch_robot_prints_frames_and_state(tmp_path: Path):
    config = load_config(tmp_path / "robowatch.cfg")
    transport = FakeTransport()
    stream = io.StringIO()

    task = asyncio.create_task(watch_robot(config, "RB-001", stream=stream, transport=transport))
    await settle()
    transport.push(json.dumps({"event": "battery_information", "data": {"soc": 80}}))
    transport.push(json.dumps({"type": "schedule_updated"}))
    await settle()

    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task

    output = stream.getvalue()
    assert "Watching ws://192.168.1.100:8002/ws/robot_message/RB-001/" in output
    assert "[RB-001] connected" in output
    assert "event: battery_information" in output
    assert "[RB-001] battery 80.0% discharging (4h 0m)" in output
    assert "[RB-001] schedule updated" in output
    assert transport.closed is True


@pytest.mark.asyncio
async def test_watch_robot_event_filter(tmp_path: Path):
    config = load_config(tmp_path / "robowatch.cfg")
    transport = FakeTransport()
    stream = io.StringIO()

    task = asyncio.create_task(
        watch_robot(config, "RB-001", event="can_status", stream=stream, transport=transport)
    )
    await settle()
    transport.push(json.dumps({"event": "battery_information", "data": {"soc": 80}}))
    transport.push(json.dumps({"event": "can_status", "data": {"can0": True}}))
    await settle()

    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task

    output = stream.getvalue()
    assert "event: can_status" in output
    assert "battery_information" not in output
    assert "connected" not in output
