"""Error taxonomy shared by the gateway, the stores and the backup coordinator.

Each error carries a stable ``category`` string (what callers of the
ingestion endpoint see) and the HTTP-equivalent ``status_code``.
"""


class PoseMasterError(Exception):
    category: str = "InternalError"
    status_code: int = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.category
        super().__init__(self.message)


class InvalidInput(PoseMasterError):
    """Empty or malformed submission, rejected before any external call."""

    category = "InvalidInput"
    status_code = 400


class ExtractionContractError(PoseMasterError):
    """The estimator returned a result that violates the structural contract."""

    category = "ExtractionContractError"
    status_code = 422


class UpstreamUnavailable(PoseMasterError):
    """The estimation or notification capability failed."""

    category = "UpstreamUnavailable"
    status_code = 502


class UpstreamTimeout(PoseMasterError):
    """The estimation or notification capability did not respond in time."""

    category = "UpstreamTimeout"
    status_code = 504


class PersistenceError(PoseMasterError):
    """A store write failed or an identifier collision was detected."""

    category = "PersistenceError"
    status_code = 500


class BackupInProgressError(PoseMasterError):
    """A backup was requested while another one is still running."""

    category = "BackupInProgressError"
    status_code = 409

    def __init__(self, message: str | None = None):
        super().__init__(message or "A backup run is already in progress")
