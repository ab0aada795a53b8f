from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import traceback

from prepwise.base.logging_config import setup_logger
from prepwise.base.metrics import api_exception_counter

logger = setup_logger("error_handler", log_file="errors.log")


class ExternalServiceError(Exception):
    """Raised when one of the third-party APIs (LLM, video, payments) fails."""

    service = "external"

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class LLMUnavailableError(ExternalServiceError):
    service = "openai"


def register_exception_handlers(app):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"[HTTPException] {exc.detail} | Path={request.url.path}")
        api_exception_counter.labels(type="http").inc()
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "status_code": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"[ValidationError] Path={request.url.path} | {exc.errors()}")
        api_exception_counter.labels(type="validation").inc()
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request parameters", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(ExternalServiceError)
    async def external_service_exception_handler(request: Request, exc: ExternalServiceError):
        logger.error(f"[ExternalServiceError:{exc.service}] {exc.message} | Path={request.url.path}")
        api_exception_counter.labels(type=exc.service).inc()
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "status_code": exc.status_code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"[UnhandledError] {str(exc)}\n{traceback.format_exc()}")
        api_exception_counter.labels(type="unhandled").inc()
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc)},
        )
