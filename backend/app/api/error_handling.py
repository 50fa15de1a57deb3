"""Exception handlers: every failure leaves as {message, details?} and is logged first."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.core.errors import AuthServiceError

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, details: list | dict | None = None) -> JSONResponse:
    content: dict = {"message": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthServiceError)
    async def handle_service_error(request: Request, exc: AuthServiceError):
        cause = exc.__cause__
        if exc.status_code >= 500:
            logger.error(
                "Error (%s) %s %s: %s",
                exc.status_code,
                request.method,
                request.url.path,
                exc.message,
                exc_info=cause or exc,
            )
        else:
            logger.warning(
                "Error (%s) %s %s: %s%s",
                exc.status_code,
                request.method,
                request.url.path,
                exc.message,
                f" ({cause})" if cause else "",
            )
        return error_response(exc.status_code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(p) for p in err["loc"] if p not in ("body", "path", "query")),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        logger.warning("Error (400) %s %s: validation failed %s", request.method, request.url.path, details)
        return error_response(400, "Validation error", details)

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        logger.warning("Error (%s) %s %s: %s", exc.status_code, request.method, request.url.path, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Error (500) %s %s: unhandled %s", request.method, request.url.path, type(exc).__name__)
        return error_response(500, "Internal server error")
