import logging
import socket

import config
from errors import DeviceUnreachable
from lamp_protocol import (
    DeviceAddress,
    DeviceState,
    decode_ack,
    decode_fade,
    decode_state,
    encode_get_state,
    encode_get_user_config,
    encode_restore,
    encode_set_fade,
)

_LOGGER = logging.getLogger(__name__)


class LampConnection:
    """Talks to lamps over a single shared UDP socket.

    Lamps keep no session, so each call is one self-contained exchange: one
    datagram out, one datagram back within the timeout. Nothing is retried;
    a lost packet surfaces as DeviceUnreachable.
    """

    def __init__(self, timeout: float = config.LAMP_TIMEOUT, bind_host: str = "0.0.0.0"):
        self.timeout = timeout
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.settimeout(timeout)
        self.sock.bind((bind_host, 0))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        if self.sock is not None:
            self.sock.close()
            self.sock = None

    def send(self, address: DeviceAddress, command: bytes) -> bytes:
        """Send one command and wait for exactly one reply."""
        if self.sock is None:
            raise DeviceUnreachable(address, "connection is closed")

        try:
            self.sock.sendto(command, (address.host, address.port))
        except OSError as e:
            raise DeviceUnreachable(address, f"send failed: {e}") from e

        try:
            reply, _ = self.sock.recvfrom(config.RECV_BUFFER_SIZE)
        except socket.timeout as e:
            raise DeviceUnreachable(
                address, f"no reply within {int(self.timeout * 1000)} ms"
            ) from e
        except OSError as e:
            raise DeviceUnreachable(address, f"receive failed: {e}") from e

        _LOGGER.debug("%s: sent %s, got %s", address, command, reply)
        return reply

    def set_pilot(self, address: DeviceAddress, command: bytes):
        """Send a pre-encoded set command and check the lamp acknowledged it."""
        decode_ack(self.send(address, command), address)

    def capture_state(self, address: DeviceAddress) -> DeviceState:
        """Read the lamp's pilot, then its fade timing, and merge the two.

        getPilot does not report fadeIn/fadeOut, so they come from a second
        getUserConfig exchange.
        """
        state = decode_state(self.send(address, encode_get_state()), address)
        fade_in, fade_out = decode_fade(
            self.send(address, encode_get_user_config()), address
        )
        return state.with_fade(fade_in, fade_out)

    def restore_state(self, address: DeviceAddress, state: DeviceState):
        """Re-apply a captured pilot and its fade timing."""
        self.set_pilot(address, encode_restore(state.pilot))
        if state.has_fade:
            decode_ack(
                self.send(address, encode_set_fade(state.fade_in, state.fade_out)),
                address,
            )
