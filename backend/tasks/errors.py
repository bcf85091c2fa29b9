"""Error taxonomy for the task engine.

Every caller-facing failure is a DRF APIException so views can let them
propagate; the status code and error code travel with the exception.
Database connectivity faults are kept apart as StoreUnavailable.
"""

import structlog
from django.db import InterfaceError, OperationalError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler as drf_exception_handler

logger = structlog.get_logger(__name__)


class TaskError(APIException):
    """Base class for task engine errors."""


class NotFound(TaskError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class InvalidArgument(TaskError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid argument."
    default_code = "invalid_argument"


class Conflict(TaskError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"


class StoreUnavailable(TaskError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Task store temporarily unavailable, retry the request."
    default_code = "store_unavailable"


def exception_handler(exc, context):
    """DRF exception handler that maps database connectivity errors to 503."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        view = context.get("view")
        logger.error(
            "task_store_unavailable",
            view=type(view).__name__ if view is not None else None,
            error=str(exc),
        )
        exc = StoreUnavailable()
    response = drf_exception_handler(exc, context)
    if response is not None and isinstance(exc, TaskError):
        response.data = {"error": exc.default_code, "detail": response.data.get("detail")}
    return response
