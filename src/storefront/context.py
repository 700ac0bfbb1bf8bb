# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request

from storefront.auth.passwords import PasswordHasher
from storefront.auth.tokens import TokenIssuer
from storefront.config import Settings
from storefront.security.csrf import CSRFGuard
from storefront.security.ratelimit import GLOBAL_MESSAGE, LOGIN_MESSAGE, SlidingWindowLimiter
from storefront.store.users import MongoUserStore, UserStore


@dataclass
class AppContext:
    """Everything the handlers share, built once per application."""

    settings: Settings
    store: UserStore
    hasher: PasswordHasher
    tokens: TokenIssuer
    global_limiter: SlidingWindowLimiter
    login_limiter: SlidingWindowLimiter
    csrf: CSRFGuard

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        store: Optional[UserStore] = None,
        hasher: Optional[PasswordHasher] = None,
    ) -> "AppContext":
        window = settings.rate_limit_window_seconds
        ttl = timedelta(hours=settings.session_ttl_hours) if settings.session_ttl_hours else None
        return cls(
            settings=settings,
            store=store or MongoUserStore(settings.mongodb_uri, settings.mongodb_db),
            hasher=hasher or PasswordHasher(settings.password_hash_cost),
            tokens=TokenIssuer(settings.jwt_secret, ttl=ttl),
            global_limiter=SlidingWindowLimiter(settings.rate_limit_global_max, window, GLOBAL_MESSAGE),
            login_limiter=SlidingWindowLimiter(settings.rate_limit_login_max, window, LOGIN_MESSAGE),
            csrf=CSRFGuard(
                settings.jwt_secret,
                max_age=settings.session_max_age,
                secure=settings.is_production,
                enabled=settings.csrf_enabled,
            ),
        )


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx
