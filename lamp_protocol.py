"""
Lamp wire protocol.

Lamps speak a small JSON-RPC-like dialect over UDP. Every request is a
single object ``{"method": ..., "params": {...}}`` and every reply is either
``{"method": ..., "result": {...}}`` or ``{"method": ..., "error": {...}}``.

A lamp's pilot (what it is currently showing) comes in two shapes: an RGB
color or a white temperature. Replies tell them apart by the presence of a
``temp`` field in the result. Both shapes are modelled here as frozen
dataclasses tagged with a :class:`PilotMode`, so the rest of the code
switches on ``pilot.mode`` instead of probing dictionaries.
"""

import json
from dataclasses import dataclass, replace
from enum import Enum
from typing import NamedTuple, Optional, Tuple, Union

import config
from errors import MalformedReply

METHOD_SET_PILOT = "setPilot"
METHOD_GET_PILOT = "getPilot"
METHOD_GET_USER_CONFIG = "getUserConfig"
METHOD_SET_USER_CONFIG = "setUserConfig"


class DeviceAddress(NamedTuple):
    host: str
    port: int = config.LAMP_PORT

    def __str__(self):
        return f"{self.host}:{self.port}"


class Color(NamedTuple):
    r: int
    g: int
    b: int


class PilotMode(Enum):
    RGB = "rgb"
    TEMPERATURE = "temperature"


@dataclass(frozen=True)
class RgbPilot:
    r: int
    g: int
    b: int
    dimming: int
    state: bool

    mode = PilotMode.RGB

    @property
    def color(self) -> Color:
        return Color(self.r, self.g, self.b)


@dataclass(frozen=True)
class TempPilot:
    temp: int
    dimming: int
    state: bool

    mode = PilotMode.TEMPERATURE


Pilot = Union[RgbPilot, TempPilot]


@dataclass(frozen=True)
class DeviceState:
    """Snapshot of a lamp taken at startup so it can be put back on exit."""

    pilot: Pilot
    fade_in: Optional[int] = None
    fade_out: Optional[int] = None

    @property
    def mode(self) -> PilotMode:
        return self.pilot.mode

    @property
    def has_fade(self) -> bool:
        return self.fade_in is not None and self.fade_out is not None

    def with_fade(self, fade_in: int, fade_out: int) -> "DeviceState":
        return replace(self, fade_in=fade_in, fade_out=fade_out)


# ============================================================================
# ENCODING
# ============================================================================


def _encode(method: str, params: dict) -> bytes:
    return json.dumps({"method": method, "params": params}).encode()


def encode_set_color(rgb, dimming: int, power_on: bool) -> bytes:
    """RGB-mode setPilot."""
    r, g, b = rgb
    return _encode(
        METHOD_SET_PILOT,
        {
            "r": int(r),
            "g": int(g),
            "b": int(b),
            "dimming": int(dimming),
            "state": bool(power_on),
        },
    )


def encode_set_temperature(temp: int, dimming: int, power_on: bool) -> bytes:
    """Temperature-mode setPilot."""
    return _encode(
        METHOD_SET_PILOT,
        {"temp": int(temp), "dimming": int(dimming), "state": bool(power_on)},
    )


def encode_get_state() -> bytes:
    return _encode(METHOD_GET_PILOT, {})


def encode_get_user_config() -> bytes:
    return _encode(METHOD_GET_USER_CONFIG, {})


def encode_set_fade(fade_in_ms: int, fade_out_ms: int) -> bytes:
    return _encode(
        METHOD_SET_USER_CONFIG,
        {"fadeIn": int(fade_in_ms), "fadeOut": int(fade_out_ms)},
    )


def encode_restore(pilot: Pilot) -> bytes:
    """Build the setPilot that puts a captured pilot back on the lamp."""
    if pilot.mode is PilotMode.TEMPERATURE:
        return encode_set_temperature(pilot.temp, pilot.dimming, pilot.state)
    return encode_set_color(pilot.color, pilot.dimming, pilot.state)


# ============================================================================
# DECODING
# ============================================================================


def _load_reply(payload: bytes, address) -> dict:
    if not payload:
        raise MalformedReply(address, "empty reply")

    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedReply(address, f"reply is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedReply(address, "reply is not a JSON object")

    error = data.get("error")
    if error is not None:
        raise MalformedReply(address, f"lamp reported an error: {error}")
    return data


def _load_result(payload: bytes, address) -> dict:
    result = _load_reply(payload, address).get("result")
    if not isinstance(result, dict):
        raise MalformedReply(address, "reply has no result object")
    return result


def _int_field(result: dict, key: str, address) -> int:
    value = result.get(key)
    # bool is an int subclass, but never a valid channel or level
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise MalformedReply(address, f"field {key!r} missing or not a non-negative integer")
    return value


def _bool_field(result: dict, key: str, address) -> bool:
    value = result.get(key)
    if not isinstance(value, bool):
        raise MalformedReply(address, f"field {key!r} missing or not a boolean")
    return value


def pilot_mode(result: dict) -> PilotMode:
    """Discriminate a getPilot result: a temp field means temperature mode."""
    if "temp" in result:
        return PilotMode.TEMPERATURE
    return PilotMode.RGB


def decode_pilot(result: dict, address=None) -> Pilot:
    dimming = _int_field(result, "dimming", address)
    state = _bool_field(result, "state", address)

    if pilot_mode(result) is PilotMode.TEMPERATURE:
        return TempPilot(
            temp=_int_field(result, "temp", address),
            dimming=dimming,
            state=state,
        )
    return RgbPilot(
        r=_int_field(result, "r", address),
        g=_int_field(result, "g", address),
        b=_int_field(result, "b", address),
        dimming=dimming,
        state=state,
    )


def decode_state(payload: bytes, address=None) -> DeviceState:
    """Decode a getPilot reply. Fade timing is merged in separately."""
    return DeviceState(pilot=decode_pilot(_load_result(payload, address), address))


def decode_fade(payload: bytes, address=None) -> Tuple[int, int]:
    """Decode a getUserConfig reply into (fade_in, fade_out) milliseconds."""
    result = _load_result(payload, address)
    return (
        _int_field(result, "fadeIn", address),
        _int_field(result, "fadeOut", address),
    )


def decode_ack(payload: bytes, address=None) -> dict:
    """Check the reply to a set command. Returns the raw reply object."""
    return _load_reply(payload, address)
