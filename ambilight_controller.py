"""
Screen-to-lamp drive loop.

Each tick grabs a frame, reduces it to one color, and pushes that color to
every lamp unless it is too close to the last color actually sent. Lamp
state is captured before the first tick and put back when the loop stops.
"""

import logging
import signal
import threading
import time
from enum import Enum

import config
import image_processor
from errors import CaptureError, LampError

_LOGGER = logging.getLogger(__name__)

# Log a summary line every N dispatched frames
LOG_EVERY = 30


class LoopState(Enum):
    IDLE = "idle"
    AWAITING_FRAME = "awaiting_frame"
    SAMPLED = "sampled"
    UNCHANGED = "unchanged"
    DISPATCHING = "dispatching"
    RESTORING = "restoring"
    STOPPED = "stopped"


class ChangeGate:
    """Suppresses dispatch while the sampled color stays near the last one sent."""

    def __init__(self, threshold=config.DEFAULT_VARIATION_THRESHOLD):
        self.threshold = threshold
        self.last_dispatched = None

    def should_dispatch(self, color) -> bool:
        if self.last_dispatched is None:
            return True
        return image_processor.color_variation(color, self.last_dispatched) > self.threshold

    def record(self, color):
        self.last_dispatched = color


class StopSignal:
    """Poll-based cancellation. Set by Ctrl+C once installed, or by calling set()."""

    def __init__(self):
        self._event = threading.Event()

    def __call__(self) -> bool:
        return self._event.is_set()

    def set(self):
        self._event.set()

    def install(self, signals=(signal.SIGINT,)):
        for sig in signals:
            signal.signal(sig, self._handle)
        return self

    def _handle(self, signum, frame):
        _LOGGER.debug("Received signal %s, stopping", signum)
        self._event.set()


class AmbilightController:
    """Owns the capture -> sample -> gate -> dispatch loop and lamp restoration."""

    def __init__(self, capturer, fleet, settings=None, should_stop=None,
                 sleep=time.sleep, clock=time.monotonic):
        self.capturer = capturer
        self.fleet = fleet
        self.settings = settings or config.Settings()
        self.should_stop = should_stop or StopSignal()
        self.sampler = image_processor.SAMPLERS[self.settings.sampler]
        self.gate = ChangeGate(self.settings.variation_threshold)

        self.state = LoopState.IDLE
        self.fleet_state = None
        self.previous_frame = None
        self.frame_count = 0

        self._sleep = sleep
        self._clock = clock

    def start(self):
        """Snapshot every lamp. Failing here leaves nothing to restore."""
        self.fleet_state = self.fleet.capture_all()
        return self.fleet_state

    def next_frame(self):
        """Fresh frame, or the previous one if capture failed. None if neither."""
        try:
            frame = self.capturer.capture_frame()
        except CaptureError as e:
            _LOGGER.debug("Capture failed, reusing previous frame: %s", e)
            return self.previous_frame
        self.previous_frame = frame
        return frame

    def tick(self) -> bool:
        """Run one cycle. Returns True if a color was sent to the lamps."""
        started = self._clock()
        self.state = LoopState.AWAITING_FRAME
        frame = self.next_frame()
        if frame is None:
            return False

        sampled = self.sampler(
            frame, self.settings.coverage_percent, self.settings.stride
        )
        self.state = LoopState.SAMPLED

        if not self.gate.should_dispatch(sampled.color):
            self.state = LoopState.UNCHANGED
            return False

        self.state = LoopState.DISPATCHING
        self.fleet.drive_all(sampled.color, config.DEFAULT_DIMMING, power_on=True)
        self.gate.record(sampled.color)

        self.frame_count += 1
        elapsed_ms = (self._clock() - started) * 1000
        _LOGGER.debug("Color set to %s - %.0fms", tuple(sampled.color), elapsed_ms)
        if self.frame_count % LOG_EVERY == 0:
            _LOGGER.info(
                "[Frame %d] Color: %s | kept %d/%d pixels",
                self.frame_count,
                tuple(sampled.color),
                sampled.kept_count,
                sampled.total_count,
            )
        return True

    def run(self):
        """Drive the lamps until should_stop() is true, then restore them.

        Any failure inside the loop still tries to restore every lamp before
        the original error is re-raised.
        """
        if self.fleet_state is None:
            self.start()

        try:
            while not self.should_stop():
                started = self._clock()
                self.tick()
                self._pace(started)
        except Exception:
            self._restore_after_failure()
            raise

        self.restore()

    def restore(self):
        self.state = LoopState.RESTORING
        self.fleet.restore_all(self.fleet_state)
        self.state = LoopState.STOPPED

    def _restore_after_failure(self):
        self.state = LoopState.RESTORING
        try:
            self.fleet.restore_all(self.fleet_state)
        except LampError as e:
            _LOGGER.error("Could not restore lamps after failure: %s", e)
        self.state = LoopState.STOPPED

    def _pace(self, started):
        if not self.settings.max_fps:
            if self.state is LoopState.AWAITING_FRAME:
                # no frame to sample yet
                self._sleep(config.CAPTURE_RETRY_DELAY)
            return
        delay = 1.0 / self.settings.max_fps - (self._clock() - started)
        if delay > 0:
            self._sleep(delay)
