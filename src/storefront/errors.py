# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import traceback
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.security import client_ip

logger = logging.getLogger(__name__)


class ValidationFailedError(Exception):
    """First failing field rule of a request body; answered with HTTP 200."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class RateLimitExceededError(Exception):
    def __init__(self, message: str, headers: Optional[Dict[str, str]] = None):
        self.message = message
        self.headers = headers or {}
        super().__init__(message)


NOT_AUTHORIZED = "Not Authorized Login Again"


class NotAuthorizedError(Exception):
    def __init__(self, message: str = NOT_AUTHORIZED):
        self.message = message
        super().__init__(message)


class CSRFError(Exception):
    def __init__(self, message: str = "Invalid CSRF token"):
        self.message = message
        super().__init__(message)


def failure(message: str, status_code: int = 200, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code, headers=headers)


def install_error_handlers(app: FastAPI, *, production: bool) -> None:
    @app.exception_handler(ValidationFailedError)
    async def _validation_failed(request: Request, exc: ValidationFailedError):
        return failure(exc.message)

    @app.exception_handler(NotAuthorizedError)
    async def _not_authorized(request: Request, exc: NotAuthorizedError):
        return failure(exc.message)

    @app.exception_handler(RateLimitExceededError)
    async def _rate_limited(request: Request, exc: RateLimitExceededError):
        return failure(exc.message, status_code=429, headers=exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            message = f"Route not found -> {request.url.path}"
        else:
            message = str(exc.detail)
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, message)
        return failure(message, status_code=exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        status_code = int(getattr(exc, "status_code", 500) or 500)
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        details = {
            "message": str(exc),
            "statusCode": status_code,
            "method": request.method,
            "url": str(request.url),
            "ip": client_ip(request),
            "stack": stack,
        }
        logger.error("Unhandled error: %s", details)
        return JSONResponse(
            {"success": False, "message": str(exc), "stack": None if production else stack},
            status_code=status_code,
        )
