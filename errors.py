"""fluidkeys error taxonomy.

None of these are fatal. Each one is caught and logged at the boundary
where it is detected; the tick loop keeps running.
"""


class FluidKeysError(Exception):
    """Base class for all fluidkeys conditions."""


class UnknownKey(FluidKeysError):
    """Palette lookup miss. The trigger is skipped with no state change."""

    def __init__(self, key_id: str):
        super().__init__(f"No palette for key {key_id!r}")
        self.key_id = key_id


class PositionSamplingExhausted(FluidKeysError):
    """Every rejection-sampling attempt was too close to a remembered point."""

    def __init__(self, attempts: int, fallback):
        super().__init__(f"No spaced position after {attempts} attempts")
        self.attempts = attempts
        self.fallback = fallback


class RendererNotReady(FluidKeysError):
    """An outbound command had no connected renderer to go to."""


class MalformedMessage(FluidKeysError):
    """Inbound control message missing required fields or of unknown type."""

    def __init__(self, reason: str, raw=None):
        super().__init__(reason)
        self.reason = reason
        self.raw = raw
