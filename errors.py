"""Exception hierarchy shared by the capture, lamp and CLI layers."""


class AmbilightError(Exception):
    """Base error for the ambilight tool."""


class ConfigError(AmbilightError):
    """Address list or settings could not be loaded."""


class CaptureError(AmbilightError):
    """A screen frame could not be grabbed."""


class LampError(AmbilightError):
    """A lamp exchange failed. Always fatal for the run."""

    def __init__(self, address, detail: str):
        self.address = address
        self.detail = detail
        super().__init__(f"{address}: {detail}")


class DeviceUnreachable(LampError):
    """Sending to a lamp failed or its reply never arrived."""


class ProtocolError(LampError):
    """A lamp answered with something we cannot use."""


class MalformedReply(ProtocolError):
    """Reply is not well-formed JSON or lacks the expected result object."""
