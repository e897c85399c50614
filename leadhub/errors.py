from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from leadhub.services.lead_settlement import SettlementInconsistent
from leadhub.services.rate_limit import RateLimitExceeded

logger = logging.getLogger(__name__)


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
    return str(rid) if rid else "unknown"


def _json_safe(value):
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, dict):
        return {key: _json_safe(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for error in exc.errors():
        cleaned = {key: val for key, val in error.items() if key != "ctx"}
        if "input" in cleaned:
            cleaned["input"] = _json_safe(cleaned["input"])
        errors.append(cleaned)
    return errors


def _http_error_response(request: Request, status_code: int, detail: object) -> JSONResponse:
    code = f"http_{status_code}"
    message = "Request failed"
    details = None
    if isinstance(detail, dict):
        code = detail.get("code", code)
        message = detail.get("message", detail.get("error", message))
        details = detail.get("details")
    elif isinstance(detail, str):
        message = detail
    else:
        details = detail
    return JSONResponse(
        status_code=status_code,
        content=_error_payload(code, message, details, _request_id(request)),
    )


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _http_error_response(request, exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if getattr(exc, "detail", None) is not None else "Request failed"
        return _http_error_response(request, exc.status_code, detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error",
                "Validation error",
                _validation_errors(exc),
                _request_id(request),
            ),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests", "retry_after": exc.retry_after},
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(SettlementInconsistent)
    async def settlement_inconsistent_handler(request: Request, exc: SettlementInconsistent):
        logger.error(
            "settlement_inconsistent lead_id=%s path=%s",
            exc.lead_id,
            request.url.path,
            extra={"request_id": _request_id(request)},
        )
        return JSONResponse(
            status_code=500,
            content=_error_payload(
                "settlement_inconsistent",
                "Lead settlement could not be completed",
                {"lead_id": str(exc.lead_id)},
                _request_id(request),
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception method=%s path=%s",
            request.method,
            request.url.path,
            extra={"request_id": _request_id(request)},
        )
        return JSONResponse(
            status_code=500,
            content=_error_payload(
                "internal_error", "Internal server error", None, _request_id(request)
            ),
        )
