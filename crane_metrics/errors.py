"""Exception taxonomy shared by the submission gate and the store adapter."""


class CraneMetricsError(Exception):
    """Base class for errors raised by crane_metrics."""


class ValidationError(CraneMetricsError):
    """Malformed input rejected before it reaches the record store."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class InvalidRangeError(ValidationError):
    """A time range whose end is not after its start."""


class StoreError(CraneMetricsError):
    """A record store fetch, insert, update or subscribe call failed.

    The original message from the store is kept verbatim so it can be
    surfaced to the submitter unchanged.
    """

    def __init__(self, message: str, collection: str | None = None):
        super().__init__(message)
        self.collection = collection
