"""Error types raised by the Landroid bridge core."""


class LandroidError(Exception):
    """Base class for all bridge errors."""


class MalformedField(LandroidError):
    """One telemetry field could not be decoded; the rest of the message is kept."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class OutOfRange(LandroidError):
    """Index or value outside the accepted domain. Nothing was mutated."""


class PreconditionFailed(LandroidError):
    """Intent rejected because the device is not in a state that allows it."""


class TransportFailure(LandroidError):
    """Publish or subscribe on the MQTT transport failed."""


class RegistryFailure(LandroidError):
    """Device registry call failed."""
