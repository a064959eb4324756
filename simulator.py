"""
Lamp Simulator

Answers the lamp UDP protocol (getPilot, setPilot, getUserConfig,
setUserConfig) so the ambilight can be run without real hardware.

Run this FIRST, then point main.py at it:

    python simulator.py --port 38899
    python main.py 127.0.0.1
"""

import argparse
import asyncio
import json
import logging
import threading

import config

_LOGGER = logging.getLogger(__name__)

DEFAULT_PILOT = {"state": True, "sceneId": 0, "temp": 2700, "dimming": 80}
DEFAULT_USER_CONFIG = {"fadeIn": 450, "fadeOut": 500, "fadeNight": False, "dftDim": 100}


class _LampProtocol(asyncio.DatagramProtocol):
    def __init__(self, simulator):
        self.simulator = simulator
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        reply = self.simulator.handle(data)
        if reply is not None:
            self.transport.sendto(reply, addr)


class LampSimulator:
    """One fake lamp listening on a UDP port in a background thread.

    Set ``respond = False`` to make it swallow requests (a powered-off lamp),
    or ``raw_reply`` to answer every request with fixed bytes.
    """

    def __init__(self, host="127.0.0.1", port=0, pilot=None, user_config=None):
        self.host = host
        self.port = port
        self.pilot = dict(DEFAULT_PILOT if pilot is None else pilot)
        self.user_config = dict(DEFAULT_USER_CONFIG if user_config is None else user_config)
        self.respond = True
        self.raw_reply = None
        self.received = []

        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._thread = None
        self._loop = None
        self._stop = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    @property
    def methods(self):
        with self._lock:
            return [msg.get("method") for msg in self.received]

    def start(self):
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout=5.0):
            raise RuntimeError("Lamp simulator did not start")
        return self

    def stop(self):
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._stop.set)
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    def wait(self):
        """Block until the simulator stops."""
        if self._thread is not None:
            self._thread.join()

    def _run(self):
        asyncio.run(self._serve())

    async def _serve(self):
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        transport, _ = await self._loop.create_datagram_endpoint(
            lambda: _LampProtocol(self), local_addr=(self.host, self.port)
        )
        self.port = transport.get_extra_info("sockname")[1]
        self._ready.set()
        try:
            await self._stop.wait()
        finally:
            transport.close()

    def handle(self, data: bytes):
        """Build the reply for one request, or None to stay silent."""
        try:
            message = json.loads(data)
        except (UnicodeDecodeError, json.JSONDecodeError):
            _LOGGER.debug("Simulator got non-JSON datagram: %r", data)
            return None
        if not isinstance(message, dict):
            _LOGGER.debug("Simulator got non-object request: %r", data)
            return None

        with self._lock:
            self.received.append(message)
            if not self.respond:
                return None
            if self.raw_reply is not None:
                return self.raw_reply

            method = message.get("method")
            params = message.get("params") or {}
            reply = {"method": method, "env": "pro"}

            if method == "getPilot":
                reply["result"] = {"mac": "a8bb50000000", "rssi": -55, **self.pilot}
            elif method == "setPilot":
                self._apply_pilot(params)
                reply["result"] = {"success": True}
            elif method == "getUserConfig":
                reply["result"] = dict(self.user_config)
            elif method == "setUserConfig":
                self.user_config.update(params)
                reply["result"] = {"success": True}
            else:
                reply["error"] = {"code": -32601, "message": "Method not found"}

        return json.dumps(reply).encode()

    def _apply_pilot(self, params):
        if "temp" in params:
            for key in ("r", "g", "b"):
                self.pilot.pop(key, None)
        elif {"r", "g", "b"} & set(params):
            self.pilot.pop("temp", None)
        self.pilot.update(params)
        _LOGGER.info("Pilot -> %s", self.pilot)


def main():
    parser = argparse.ArgumentParser(description="Simulate a UDP smart lamp.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=config.LAMP_PORT)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    simulator = LampSimulator(args.host, args.port).start()
    print(f"Simulating lamp on udp://{args.host}:{simulator.port} (Ctrl+C to quit)")
    try:
        simulator.wait()
    except KeyboardInterrupt:
        pass
    finally:
        simulator.stop()


if __name__ == "__main__":
    main()
