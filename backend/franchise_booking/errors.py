import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)


def _code_from_status(status_code: int) -> str:
    mapping = {
        400: "VALIDATION_ERROR",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        500: "INTERNAL_ERROR",
        503: "DEPENDENCY_FAILURE",
    }
    return mapping.get(status_code, "HTTP_ERROR")


def _error_body(message: str, code: str, details: Optional[Any] = None) -> Dict[str, Any]:
    return {
        "error": message,
        "code": code,
        "details": jsonable_encoder(details) if details is not None else {},
    }


def _parse_detail(status_code: int, detail: Any) -> Dict[str, Any]:
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("error") or detail.get("detail")
        code = detail.get("code") if isinstance(detail.get("code"), str) else None
        return _error_body(
            message if isinstance(message, str) else "",
            code or _code_from_status(status_code),
            detail.get("details"),
        )
    if isinstance(detail, str):
        return _error_body(detail, _code_from_status(status_code))
    return _error_body("" if detail is None else str(detail), _code_from_status(status_code))


def register_error_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error", "code", "details"}``."""

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            _parse_detail(exc.status_code, exc.detail),
            status_code=exc.status_code,
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            _parse_detail(exc.status_code, exc.detail),
            status_code=exc.status_code,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        return JSONResponse(
            _error_body("Request validation failed", "VALIDATION_ERROR", {"errors": errors}),
            status_code=400,
        )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        http_exc = exc.to_http_exception()
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
        return JSONResponse(
            _parse_detail(http_exc.status_code, http_exc.detail),
            status_code=http_exc.status_code,
            headers=http_exc.headers,
        )
