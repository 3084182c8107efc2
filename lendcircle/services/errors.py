"""Service-layer exceptions.

Each exception carries the HTTP status the API reports it with, so routers
translate them with ``HTTPException(status_code=e.status_code, detail=str(e))``.
"""


class LendingCircleError(ValueError):
    """Base class for expected business-rule failures."""
    status_code = 400


class NotFoundError(LendingCircleError):
    status_code = 404


class ValidationError(LendingCircleError):
    """Input rejected before any write."""
    status_code = 400


class RecordFinalizedError(LendingCircleError):
    """Attempt to change a finalized monthly record."""
    status_code = 409


class StaleRecordError(LendingCircleError):
    """The record changed since the caller read it."""
    status_code = 409


class DuplicatePaymentError(LendingCircleError):
    status_code = 409
