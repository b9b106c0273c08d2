import logging
import traceback
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from .exceptions import BaseAPIException, InternalServerError, ValidationError

logger = logging.getLogger("bookswap")


def _request_context(request: Request) -> Dict[str, Any]:
    return {
        "request_id": getattr(request.state, "request_id", "-"),
        "method": request.method,
        "path": request.url.path,
    }


def _error_body(code: str, message: str, details: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
    }


async def handle_base_api_exception(request: Request, exc: BaseAPIException):
    ctx = _request_context(request)
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"[{ctx['request_id']}] {ctx['method']} {ctx['path']} -> {exc.status_code} {exc.error_code}: {exc.message}"
    )
    return JSONResponse(status_code=exc.status_code, content=exc.detail)  # type: ignore[arg-type]


async def handle_http_exception(request: Request, exc: HTTPException):
    ctx = _request_context(request)
    logger.warning(
        f"[{ctx['request_id']}] {ctx['method']} {ctx['path']} -> {exc.status_code}: {exc.detail}"
    )
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = _error_body("HTTP_ERROR", str(exc.detail), {})
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


async def handle_validation_error(request: Request, exc: RequestValidationError):
    ctx = _request_context(request)
    logger.warning(
        f"[{ctx['request_id']}] {ctx['method']} {ctx['path']} -> 422: {exc.errors()}"
    )
    error = ValidationError(details={"errors": jsonable_encoder(exc.errors())})
    return JSONResponse(status_code=error.status_code, content=error.detail)  # type: ignore[arg-type]


async def handle_storage_unavailable(request: Request, exc: OperationalError):
    """원자 단위가 롤백된 저장소 장애 - 부분 반영이 없으므로 재시도 가능"""
    ctx = _request_context(request)
    logger.error(
        f"[{ctx['request_id']}] {ctx['method']} {ctx['path']} -> storage failure: {exc}"
    )
    return JSONResponse(
        status_code=503,
        content=_error_body(
            "STORAGE_001",
            "Storage temporarily unavailable, no changes were applied",
            {"retryable": True},
        ),
    )


async def handle_unexpected_error(request: Request, exc: Exception):
    ctx = _request_context(request)
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"[{ctx['request_id']}] {ctx['method']} {ctx['path']} unhandled {type(exc).__name__}: {exc}\n{tb_str}"
    )
    internal = InternalServerError()
    return JSONResponse(status_code=internal.status_code, content=internal.detail)  # type: ignore[arg-type]


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIException, handle_base_api_exception)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(OperationalError, handle_storage_unavailable)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)
