"""
Error taxonomy shared by the services and the API layer.

Services raise these; the handlers registered in `suipic.main` render them
into the standard `{success: false, error: ...}` envelope.
"""
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger(__name__)


class SuipicError(Exception):
    """Base class for all domain errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(SuipicError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(SuipicError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(SuipicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(SuipicError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class ValidationFailed(SuipicError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class UpstreamFailure(SuipicError):
    """Storage or persistence backend failed; never retried in-process."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Upstream service failure"


def error_body(message: str) -> dict:
    return {"success": False, "error": message}


async def suipic_error_handler(request: Request, exc: SuipicError) -> JSONResponse:
    if isinstance(exc, UpstreamFailure):
        logger.error(f"{request.method} {request.url.path} failed upstream: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message), headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Validation failed", "message": details},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )
