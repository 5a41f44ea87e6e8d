"""Exception hierarchy."""


class NudgePushError(Exception):
    """Base class for service errors."""


class StoreError(NudgePushError):
    """Document store could not be read or written."""


class PushTransportError(NudgePushError):
    """Push transport failed before returning per-token results."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
