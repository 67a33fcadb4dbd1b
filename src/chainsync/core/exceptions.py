"""Error taxonomy of the synchronization core.

None of these escape the core as hard failures: probe-level errors become
unhealthy statuses, read failures fall back to the previous value, empty
pulls and stuck cycles are logged.
"""


class SyncError(Exception):
    """Base class for synchronization errors."""


class TransportError(SyncError):
    """RPC or HTTP request failed (network error, timeout, non-2xx)."""

    def __init__(self, endpoint: str, message: str):
        self.endpoint = endpoint
        super().__init__(f"{endpoint}: {message}")


class MalformedResponseError(SyncError):
    """Response payload did not have the expected shape."""

    def __init__(self, endpoint: str, message: str):
        self.endpoint = endpoint
        super().__init__(f"{endpoint}: {message}")


class PartialReadFailure(SyncError):
    """One live chain read among many failed."""

    def __init__(self, entity: str, key: str, field: str, cause: BaseException):
        self.entity = entity
        self.key = key
        self.field = field
        self.cause = cause
        super().__init__(f"{entity}[{key}].{field} read failed: {cause!r}")


class EmptyPullFailure(SyncError):
    """A reconciler's list query returned nothing usable."""

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"No {entity} found, keeping previous snapshot")


class StuckCycleError(SyncError):
    """A sync cycle stayed running for too many consecutive ticks."""

    def __init__(self, chain: str, ticks: int):
        self.chain = chain
        self.ticks = ticks
        super().__init__(
            f"Sync cycle for {chain} still running after {ticks} ticks, forcing reset"
        )
