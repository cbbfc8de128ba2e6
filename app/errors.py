import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.services.backend_errors import BackendError

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "configuration_error": 400,
    "validation_error": 400,
    "bundle_not_found": 404,
    "not_found": 404,
    "metadata_commit_failure": 500,
    "backend_unavailable": 502,
}


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def outcome_response(outcome: BaseModel) -> JSONResponse:
    """Serialize an operation outcome, choosing the status from its error kind."""
    status_code = 200
    if not getattr(outcome, "success", True):
        status_code = ERROR_STATUS.get(getattr(outcome, "error_kind", None) or "", 500)
    return JSONResponse(
        status_code=status_code,
        content=outcome.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def backend_error_response(exc: BackendError) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, 500),
        content={"success": False, "error": exc.message, "errorKind": exc.kind},
    )


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", exc.errors()),
        )

    @app.exception_handler(BackendError)
    async def backend_exception_handler(request: Request, exc: BackendError):
        return backend_error_response(exc)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
