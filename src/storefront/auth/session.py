# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from fastapi import Request, Response

from storefront.config import Settings

COOKIE_NAME = "token"


def cookie_settings(settings: Settings) -> dict:
    return {"httponly": True, "samesite": "strict", "secure": settings.is_production, "path": "/"}


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(COOKIE_NAME, token, max_age=settings.session_max_age, **cookie_settings(settings))


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(COOKIE_NAME, **cookie_settings(settings))


def read_session_token(request: Request) -> str:
    return request.cookies.get(COOKIE_NAME, "")
