"""
Translation of core outcomes into HTTP error responses.

Every error body has the shape {"error": str, "details"?: any}; throttled
responses also carry "retryAfter" and a Retry-After header.
"""
from typing import TypeVar

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from generatorlog.core.logger import get_logger
from generatorlog.core.outcome import ErrorKind, Failure, Outcome

logger = get_logger(__name__)

T = TypeVar("T")

STATUS_BY_KIND = {
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ApiError(Exception):
    """Raised at the HTTP edge to short-circuit a request with a failure."""

    def __init__(self, failure: Failure):
        super().__init__(failure.message)
        self.failure = failure


def unwrap(outcome: Outcome[T]) -> T:
    """Return the outcome's value or raise ApiError with its failure."""
    if not outcome.ok:
        raise ApiError(outcome.failure)
    return outcome.value


def failure_response(failure: Failure) -> JSONResponse:
    body: dict = {"error": failure.message}
    headers = {}

    if failure.kind is ErrorKind.RATE_LIMITED and failure.retry_after is not None:
        body["retryAfter"] = failure.retry_after
        headers["Retry-After"] = str(failure.retry_after)

    if failure.details is not None:
        body["details"] = jsonable_encoder(failure.details)

    return JSONResponse(body, status_code=STATUS_BY_KIND[failure.kind], headers=headers or None)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.failure.kind is ErrorKind.INTERNAL:
        logger.error(f"{request.method} {request.url.path} failed: {exc.failure.message}")
    return failure_response(exc.failure)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return failure_response(Failure(ErrorKind.INVALID_INPUT, "Invalid request", details=details))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Auth rate limit exceeded on {request.url.path}: {exc.detail}")
    return JSONResponse(
        {"error": f"Rate limit exceeded: {exc.detail}"},
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return failure_response(Failure(ErrorKind.INTERNAL, "Internal server error"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
