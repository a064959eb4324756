"""Tests for lamp exchanges against the UDP simulator."""
from __future__ import annotations

import json
import time

import pytest

from errors import DeviceUnreachable, MalformedReply
from lamp_connection import LampConnection
from lamp_protocol import (
    DeviceAddress,
    DeviceState,
    PilotMode,
    RgbPilot,
    TempPilot,
    encode_get_state,
    encode_set_color,
)


def test_send_returns_reply(lamp, lamp_address, connection) -> None:
    reply = json.loads(connection.send(lamp_address, encode_get_state()))
    assert reply["method"] == "getPilot"
    assert reply["result"]["temp"] == 2700


def test_capture_state_merges_fade(lamp, lamp_address, connection) -> None:
    state = connection.capture_state(lamp_address)

    assert state.mode is PilotMode.TEMPERATURE
    assert state.pilot == TempPilot(temp=2700, dimming=80, state=True)
    assert (state.fade_in, state.fade_out) == (450, 500)
    assert lamp.methods == ["getPilot", "getUserConfig"]


def test_capture_rgb_state(lamp, lamp_address, connection) -> None:
    lamp.pilot = {"state": True, "sceneId": 0, "r": 10, "g": 20, "b": 30, "dimming": 55}
    state = connection.capture_state(lamp_address)
    assert state.pilot == RgbPilot(10, 20, 30, 55, True)


def test_set_pilot_updates_lamp(lamp, lamp_address, connection) -> None:
    connection.set_pilot(lamp_address, encode_set_color((255, 0, 0), 100, True))
    assert lamp.pilot["r"] == 255
    assert "temp" not in lamp.pilot


def test_restore_temperature_state(lamp, lamp_address, connection) -> None:
    lamp.pilot = {"state": True, "r": 255, "g": 0, "b": 0, "dimming": 100}
    state = DeviceState(TempPilot(3500, 60, False), fade_in=100, fade_out=900)

    connection.restore_state(lamp_address, state)

    set_pilot, set_fade = lamp.received
    assert set_pilot == {
        "method": "setPilot",
        "params": {"temp": 3500, "dimming": 60, "state": False},
    }
    assert set_fade == {"method": "setUserConfig", "params": {"fadeIn": 100, "fadeOut": 900}}
    assert lamp.pilot["temp"] == 3500
    assert "r" not in lamp.pilot
    assert lamp.user_config["fadeOut"] == 900


def test_capture_then_restore_round_trip(lamp, lamp_address, connection) -> None:
    captured = connection.capture_state(lamp_address)
    connection.set_pilot(lamp_address, encode_set_color((9, 9, 9), 100, True))
    connection.restore_state(lamp_address, captured)

    assert connection.capture_state(lamp_address) == captured


def test_silent_lamp_is_unreachable(lamp, lamp_address) -> None:
    lamp.respond = False
    with LampConnection(timeout=0.1, bind_host="127.0.0.1") as connection:
        started = time.monotonic()
        with pytest.raises(DeviceUnreachable) as excinfo:
            connection.capture_state(lamp_address)
        elapsed = time.monotonic() - started

    assert excinfo.value.address == lamp_address
    assert "no reply within 100 ms" in excinfo.value.detail
    assert elapsed < 1.0
    # No retry: exactly one request went out
    assert lamp.methods == ["getPilot"]


def test_closed_port_is_unreachable(connection) -> None:
    # Nothing listens here; Linux reports ICMP port unreachable, others time out
    with LampConnection(timeout=0.1, bind_host="127.0.0.1") as probe:
        free_port = probe.sock.getsockname()[1]
    with pytest.raises(DeviceUnreachable):
        connection.send(DeviceAddress("127.0.0.1", free_port), encode_get_state())


def test_empty_reply_is_malformed(lamp, lamp_address, connection) -> None:
    lamp.raw_reply = b""
    with pytest.raises(MalformedReply):
        connection.capture_state(lamp_address)


def test_garbage_reply_is_malformed(lamp, lamp_address, connection) -> None:
    lamp.raw_reply = b"<html>hello</html>"
    with pytest.raises(MalformedReply) as excinfo:
        connection.capture_state(lamp_address)
    assert excinfo.value.address == lamp_address


def test_send_after_close_fails(lamp_address) -> None:
    connection = LampConnection(timeout=0.1, bind_host="127.0.0.1")
    connection.close()
    connection.close()
    with pytest.raises(DeviceUnreachable):
        connection.send(lamp_address, encode_get_state())
