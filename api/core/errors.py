"""
Application error taxonomy and the HTTP translation step.

Services and the upload pipeline raise these; they never build responses
themselves. `install_error_handlers` turns them into a JSON body for `/api/`
paths and a rendered error page everywhere else.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.templating import Jinja2Templates

logger = logging.getLogger(__name__)

API_PATH_PREFIX = "/api/"


class AppError(RuntimeError):
    status_code = 500
    code = "internal_error"
    default_detail = "Internal server error."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    default_detail = "Invalid input."


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_detail = "Not found."


class ConstraintViolation(AppError):
    status_code = 409
    code = "constraint_violation"
    default_detail = "Database constraint violated."


class UploadRejected(AppError):
    status_code = 400
    code = "upload_rejected"
    default_detail = "Upload rejected."


class FileTypeRejected(UploadRejected):
    code = "file_type_rejected"
    default_detail = "Only image files are allowed."


class FileTooLarge(UploadRejected):
    status_code = 413
    code = "file_too_large"
    default_detail = "File too large."


class TooManyFiles(UploadRejected):
    code = "too_many_files"
    default_detail = "Too many files."


class MissingFile(UploadRejected):
    code = "missing_file"
    default_detail = "No file uploaded."


class TransientInfrastructureError(AppError):
    status_code = 503
    code = "service_unavailable"
    default_detail = "Database is unavailable. Try again later."


def is_api_request(request: Request) -> bool:
    return request.url.path.startswith(API_PATH_PREFIX)


def install_error_handlers(app: FastAPI, templates: Jinja2Templates) -> None:
    def _respond(
        request: Request,
        *,
        status_code: int,
        code: str,
        detail: str,
        extra: dict[str, Any] | None = None,
    ) -> Response:
        if is_api_request(request):
            body: dict[str, Any] = {"error": code, "detail": detail}
            if extra:
                body.update(extra)
            return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
        return templates.TemplateResponse(
            request,
            "error.html",
            {"status_code": status_code, "code": code, "detail": detail},
            status_code=status_code,
        )

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> Response:
        if isinstance(exc, TransientInfrastructureError):
            logger.error("infrastructure_error path=%s detail=%s", request.url.path, exc.detail)
        elif isinstance(exc, (UploadRejected, ConstraintViolation)):
            logger.warning("request_rejected path=%s code=%s detail=%s", request.url.path, exc.code, exc.detail)
        return _respond(request, status_code=exc.status_code, code=exc.code, detail=exc.detail)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> Response:
        return _respond(
            request,
            status_code=ValidationError.status_code,
            code=ValidationError.code,
            detail="Request validation failed.",
            extra={"errors": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> Response:
        logger.exception("unhandled_error path=%s", request.url.path)
        return _respond(
            request,
            status_code=AppError.status_code,
            code=AppError.code,
            detail=AppError.default_detail,
        )
