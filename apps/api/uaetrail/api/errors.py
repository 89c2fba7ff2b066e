import structlog
from fastapi import HTTPException

from uaetrail.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[ServiceError], int], ...] = (
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (ConflictError, 409),
    (ValidationError, 422),
)


def status_for(err: ServiceError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(err, error_type):
            return status
    return 500


def http_error_from_service(err: ServiceError) -> HTTPException:
    status = status_for(err)
    logger.info("service_error", code=err.code, status=status)
    return HTTPException(
        status_code=status,
        detail={"code": err.code, "message": err.message},
    )
