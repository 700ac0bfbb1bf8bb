# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

ALGORITHM = "HS256"
ADMIN_SUBJECT = "admin"
ROLES = ("user", "admin")


class TokenError(Exception):
    """Token is malformed, tampered with, expired or carries unknown claims."""


@dataclass(frozen=True)
class SessionClaims:
    sub: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def for_user(cls, user_id: str, role: str = "user") -> "SessionClaims":
        return cls(sub=str(user_id), role=role or "user")

    @classmethod
    def for_admin(cls) -> "SessionClaims":
        return cls(sub=ADMIN_SUBJECT, role="admin")


class TokenIssuer:
    """Signs and decodes session tokens with the server secret.

    ttl=None (or a zero timedelta) issues tokens without an exp claim; they stay
    valid until the secret changes.
    """

    def __init__(self, secret: str, ttl: Optional[timedelta] = timedelta(hours=24)):
        if not secret:
            raise ValueError("Token secret is empty")
        self._secret = secret
        self.ttl = ttl if ttl else None

    def issue(self, claims: SessionClaims, *, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        payload = {"sub": claims.sub, "role": claims.role, "iat": now}
        if self.ttl is not None:
            payload["exp"] = now + self.ttl
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode(self, token: str) -> SessionClaims:
        if not token:
            raise TokenError("Token is empty")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["sub", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenError("Token expired")
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}")

        sub = str(payload.get("sub") or "").strip()
        role = str(payload.get("role") or "user")
        if not sub:
            raise TokenError("Token has no subject")
        if role not in ROLES:
            raise TokenError(f"Unknown role {role!r}")
        return SessionClaims(sub=sub, role=role)
