# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import hmac
import logging
import secrets
from typing import Optional

from fastapi import Request, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from storefront.errors import CSRFError

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "_csrf"
CSRF_HEADER_NAME = "X-CSRF-Token"
SAFE_METHODS = {"GET", "HEAD", "OPTIONS", "TRACE"}


class CSRFGuard:
    """Anti-forgery tokens bound to a per-browser secret cookie.

    The secret lives in an HTTP-only cookie; the token handed to the frontend is
    that secret signed and timestamped, so it only verifies next to its cookie.
    """

    def __init__(self, secret_key: str, *, max_age: int = 86400, secure: bool = False, enabled: bool = True):
        self._serializer = URLSafeTimedSerializer(secret_key=secret_key, salt="storefront.csrf.v1")
        self.max_age = max_age
        self.secure = secure
        self.enabled = enabled

    @staticmethod
    def new_secret() -> str:
        return secrets.token_urlsafe(24)

    def make_token(self, secret: str) -> str:
        return self._serializer.dumps(secret)

    def token_matches(self, token: str, secret: str) -> bool:
        if not token or not secret:
            return False
        try:
            signed = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired:
            return False
        except BadSignature:
            return False
        return hmac.compare_digest(str(signed).encode("utf-8"), secret.encode("utf-8"))

    def ensure_secret(self, request: Request) -> str:
        """Return the request's secret, minting one (stashed on request.state) if absent."""
        secret = request.cookies.get(CSRF_COOKIE_NAME, "")
        if not secret:
            secret = self.new_secret()
            request.state.csrf_new_secret = secret
        request.state.csrf_secret = secret
        return secret

    def verify(self, request: Request) -> None:
        if not self.enabled or request.method.upper() in SAFE_METHODS:
            return
        secret = request.cookies.get(CSRF_COOKIE_NAME, "")
        token = request.headers.get(CSRF_HEADER_NAME, "")
        if not self.token_matches(token, secret):
            logger.warning("CSRF check failed for %s %s", request.method, request.url.path)
            raise CSRFError()

    def attach_cookie(self, request: Request, response: Response) -> None:
        secret: Optional[str] = getattr(request.state, "csrf_new_secret", None)
        if secret:
            response.set_cookie(
                CSRF_COOKIE_NAME,
                secret,
                httponly=True,
                samesite="strict",
                secure=self.secure,
                path="/",
            )
