"""
exceptions.py — Error taxonomy for inventory reconciliation

Every error carries a machine code and the HTTP status it maps to, so the
API layer can render one envelope: {"error": {"code", "message"}}.

Business Rules:
- Pre-batch errors (validation, configuration, resolution) abort a run
- Batch-level errors (VendorError, PersistenceError) are recorded and the
  run continues with the next batch
- Tracker failures during progress updates are logged, never raised

Called by: connectors, services, routers
"""


class ReconcileError(Exception):
    """Base class for all reconciliation failures."""

    code = "REFRESH_FAILED"
    http_status = 500

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(ReconcileError):
    """Bad input (e.g. missing or empty productIds)."""

    code = "INVALID_REQUEST"


class ConfigurationError(ReconcileError):
    """Vendor credentials or store configuration missing."""

    code = "MISSING_CONFIGURATION"
    http_status = 400


class ResolutionError(ReconcileError):
    """Resolving products to inventory items failed or found nothing."""

    code = "RESOLUTION_FAILED"


class VendorError(ReconcileError):
    """Vendor inventory read failed after the retry budget was spent."""

    RATE_LIMIT_EXHAUSTED = "RATE_LIMIT_EXHAUSTED"
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"

    def __init__(
        self,
        message: str,
        *,
        kind: str = UPSTREAM_FAILURE,
        status_code: int | None = None,
        attempts: int = 0,
    ):
        super().__init__(message, code=kind)
        self.kind = kind
        self.status_code = status_code
        self.attempts = attempts


class PersistenceError(ReconcileError):
    """Writing inventory levels to the record store failed."""

    code = "PERSISTENCE_FAILED"


class TrackerError(ReconcileError):
    """Creating or updating a sync run audit record failed."""

    code = "TRACKER_FAILED"


class SyncCooldownError(ReconcileError):
    """Manual refresh refused: a run is in progress or cooldown not over."""

    code = "RATE_LIMITED"
    http_status = 429

    def __init__(self, message: str, *, code: str | None = None, next_allowed_time: str | None = None):
        super().__init__(message, code=code)
        self.next_allowed_time = next_allowed_time

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.next_allowed_time:
            data["nextAllowedTime"] = self.next_allowed_time
        return data
