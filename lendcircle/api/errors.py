from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from lendcircle.services.errors import LendingCircleError
from uuid import UUID
import logging

logger = logging.getLogger(__name__)


def parse_uuid(value: str, label: str = "ID") -> UUID:
    try:
        return UUID(value)
    except (ValueError, TypeError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label} format")


def http_error(e: Exception) -> HTTPException:
    """Map a service or database error onto an HTTP error."""
    if isinstance(e, LendingCircleError):
        return HTTPException(status_code=e.status_code, detail=str(e))
    if isinstance(e, IntegrityError):
        error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)
        logger.error(f"IntegrityError: {error_msg}")
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_msg)
    logger.error(f"Unexpected error: {e}", exc_info=True)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
