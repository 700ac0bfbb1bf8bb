# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from storefront.auth.passwords import PasswordHasher
from storefront.config import Settings, load_settings
from storefront.context import AppContext, get_context
from storefront.errors import CSRFError, RateLimitExceededError, failure, install_error_handlers
from storefront.logs import configure_logging
from storefront.routes import cart, users
from storefront.security.csrf import CSRF_HEADER_NAME
from storefront.security.sanitize import SanitizeMiddleware
from storefront.store.users import UserStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[UserStore] = None,
    hasher: Optional[PasswordHasher] = None,
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    ctx = AppContext.build(settings, store=store, hasher=hasher)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(ctx.store.open)
        try:
            yield
        finally:
            await run_in_threadpool(ctx.store.close)

    app = FastAPI(title="storefront", lifespan=lifespan)
    app.state.ctx = ctx

    # Registered innermost first: the guards run after CORS and sanitation.
    @app.middleware("http")
    async def _csrf_middleware(request: Request, call_next):
        guard = ctx.csrf
        guard.ensure_secret(request)
        try:
            guard.verify(request)
        except CSRFError as e:
            return failure(e.message, status_code=403)
        response = await call_next(request)
        guard.attach_cookie(request, response)
        return response

    @app.middleware("http")
    async def _global_rate_limit(request: Request, call_next):
        if not request.url.path.startswith("/api/"):
            return await call_next(request)
        try:
            decision = ctx.global_limiter.check(request)
        except RateLimitExceededError as e:
            return failure(e.message, status_code=429, headers=e.headers)
        response = await call_next(request)
        for k, v in decision.headers().items():
            response.headers.setdefault(k, v)
        return response

    app.add_middleware(SanitizeMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", CSRF_HEADER_NAME],
    )

    install_error_handlers(app, production=settings.is_production)
    app.include_router(users.router)
    app.include_router(cart.router)

    @app.get("/api/csrf-token")
    async def csrf_token(request: Request, ctx: AppContext = Depends(get_context)):
        secret = getattr(request.state, "csrf_secret", "") or ctx.csrf.ensure_secret(request)
        return {"csrfToken": ctx.csrf.make_token(secret)}

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "API Working"

    logger.info("storefront app created (env=%s, csrf=%s)", settings.env, settings.csrf_enabled)
    return app
