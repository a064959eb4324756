import logging
from typing import Dict, Iterable, List

import config
from errors import ConfigError
from lamp_protocol import (
    DeviceAddress,
    DeviceState,
    encode_set_color,
    encode_set_temperature,
)

_LOGGER = logging.getLogger(__name__)

FleetState = Dict[DeviceAddress, DeviceState]


# ============================================================================
# ADDRESS LIST
# ============================================================================


def parse_address(entry: str, default_port: int = config.LAMP_PORT) -> DeviceAddress:
    """Parse 'host' or 'host:port'. Lamps are reached over IPv4 only."""
    entry = entry.strip()
    if entry.count(":") > 1 or entry.startswith("["):
        raise ConfigError(f"IPv6 lamp addresses are not supported: {entry!r}")
    host, sep, port = entry.rpartition(":")
    if not sep:
        return DeviceAddress(entry, default_port)
    if not host:
        raise ConfigError(f"Missing host in lamp address {entry!r}")
    try:
        return DeviceAddress(host, int(port))
    except ValueError:
        raise ConfigError(f"Invalid port in lamp address {entry!r}")


def parse_addresses(lines: Iterable[str], default_port: int = config.LAMP_PORT) -> List[DeviceAddress]:
    """Parse one address per line, skipping blanks and '#' comments."""
    addresses = []
    for line in lines:
        line = line.split("#", 1)[0].strip()
        if line:
            addresses.append(parse_address(line, default_port))
    return addresses


def load_addresses(path: str, default_port: int = config.LAMP_PORT) -> List[DeviceAddress]:
    """Read a newline-delimited lamp list. Empty or unreadable is an error."""
    try:
        with open(path, "r") as f:
            addresses = parse_addresses(f, default_port)
    except OSError as e:
        raise ConfigError(f"Could not read lamp list {path}: {e}")

    if not addresses:
        raise ConfigError(f"Lamp list {path} is empty")
    return addresses


# ============================================================================
# FLEET
# ============================================================================


class LampFleet:
    """Applies one command to every configured lamp, in order.

    There is no partial-fleet mode: the first lamp that fails stops the
    operation and the error propagates to the caller. Lamps already handled
    keep whatever they received.
    """

    def __init__(self, connection, addresses: Iterable[DeviceAddress]):
        self.connection = connection
        # dict.fromkeys keeps first-seen order while dropping duplicates
        self.addresses = list(dict.fromkeys(addresses))
        if not self.addresses:
            raise ConfigError("No lamp addresses configured")

    def capture_all(self) -> FleetState:
        """Snapshot every lamp. Nothing is returned if any lamp fails."""
        fleet_state = {}
        for address in self.addresses:
            state = self.connection.capture_state(address)
            _LOGGER.info("Captured %s: %s", address, state)
            fleet_state[address] = state
        return fleet_state

    def drive_all(self, color, dimming: int = config.DEFAULT_DIMMING,
                  power_on: bool = True, temperature: int = 0):
        """Send the same pilot to every lamp. Non-zero temperature selects white mode."""
        if temperature:
            command = encode_set_temperature(temperature, dimming, power_on)
        else:
            command = encode_set_color(color, dimming, power_on)

        for address in self.addresses:
            self.connection.set_pilot(address, command)

    def restore_all(self, fleet_state: FleetState):
        for address, state in fleet_state.items():
            _LOGGER.info("Restoring %s", address)
            self.connection.restore_state(address, state)
