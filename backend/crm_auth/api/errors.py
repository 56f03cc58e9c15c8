"""Exception handlers rendering the error envelope."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from crm_auth.errors import AuthServiceError
from crm_auth.schemas.common import ErrorEnvelope

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "Internal server error"

_STATUS_TO_CODE = {
    400: "invalid_input",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


def error_response(status_code: int, message: str, code: str, headers: dict | None = None) -> JSONResponse:
    body = ErrorEnvelope(error=message, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthServiceError)
    async def handle_service_error(request: Request, exc: AuthServiceError):
        if exc.http_status >= 500:
            logger.error(
                "%s %s failed with %s", request.method, request.url.path, exc.code,
                exc_info=exc.__cause__ or exc,
            )
            return error_response(exc.http_status, GENERIC_SERVER_ERROR, "server_error")

        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
        headers = {"WWW-Authenticate": "Bearer"} if exc.http_status == status.HTTP_401_UNAUTHORIZED else None
        return error_response(exc.http_status, exc.message, exc.code, headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response(status.HTTP_400_BAD_REQUEST, _validation_message(exc), "invalid_input")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = _STATUS_TO_CODE.get(exc.status_code, "server_error")
        return error_response(exc.status_code, str(exc.detail), code)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_SERVER_ERROR, "server_error")
