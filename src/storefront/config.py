# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv
from email_validator import EmailNotValidError, validate_email

ENVIRONMENTS = ("development", "test", "production")
DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://localhost:5174")
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_TRUTHY = {"1", "true", "yes", "y"}
_FALSY = {"0", "false", "no", "n"}


class ConfigError(Exception):
    """Raised when the environment does not describe a runnable service."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


@dataclass(frozen=True)
class Settings:
    mongodb_uri: str
    jwt_secret: str
    stripe_secret_key: str
    cloudinary_name: str
    cloudinary_api_key: str
    cloudinary_secret_key: str
    admin_email: str
    admin_password: str
    env: str = "development"
    host: str = "0.0.0.0"
    port: int = 4000
    mongodb_db: str = "ecommerce"
    session_ttl_hours: int = 24
    password_hash_cost: int = 10
    csrf_enabled: bool = True
    cors_origins: Tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    rate_limit_window_minutes: int = 15
    rate_limit_global_max: int = 100
    rate_limit_login_max: int = 5
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def session_max_age(self) -> int:
        """Cookie lifetime in seconds. A TTL of 0 still gets a one day cookie."""
        return (self.session_ttl_hours or 24) * 3600

    @property
    def rate_limit_window_seconds(self) -> int:
        return self.rate_limit_window_minutes * 60


class _Reader:
    """Collects every problem instead of stopping at the first one."""

    def __init__(self, environ: Mapping[str, str]):
        self.environ = environ
        self.problems: List[str] = []

    def raw(self, key: str) -> str:
        return str(self.environ.get(key) or "").strip()

    def required(self, key: str) -> str:
        v = self.raw(key)
        if not v:
            self.problems.append(f"{key} is required")
        return v

    def choice(self, key: str, choices, default: str, *, fallback: str = "") -> str:
        v = (self.raw(key) or (self.raw(fallback) if fallback else "")).lower() or default
        if v not in choices:
            self.problems.append(f"{key} must be one of {', '.join(choices)} (got {v!r})")
            return default
        return v

    def integer(self, key: str, default: int, *, minimum: int = 0, maximum: Optional[int] = None) -> int:
        v = self.raw(key)
        if not v:
            return default
        try:
            n = int(v)
        except ValueError:
            self.problems.append(f"{key} must be an integer (got {v!r})")
            return default
        if n < minimum or (maximum is not None and n > maximum):
            bound = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
            self.problems.append(f"{key} must be {bound} (got {n})")
            return default
        return n

    def boolean(self, key: str, default: bool) -> bool:
        v = self.raw(key).lower()
        if not v:
            return default
        if v in _TRUTHY:
            return True
        if v in _FALSY:
            return False
        self.problems.append(f"{key} must be a boolean (got {v!r})")
        return default

    def mongo_url(self, key: str) -> str:
        v = self.required(key)
        if v:
            parsed = urlparse(v)
            if parsed.scheme not in {"mongodb", "mongodb+srv"} or not parsed.netloc:
                self.problems.append(f"{key} must be a mongodb:// or mongodb+srv:// URL")
        return v

    def email(self, key: str) -> str:
        v = self.required(key)
        if v:
            try:
                validate_email(v, check_deliverability=False)
            except EmailNotValidError as e:
                self.problems.append(f"{key} is not a valid email: {e}")
        return v


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment (or an explicit mapping, for tests).

    When reading the real environment a local .env file is loaded first; values
    already present in the process environment win.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    r = _Reader(environ)
    origins = tuple(o.strip() for o in r.raw("CORS_ORIGINS").split(",") if o.strip()) or DEFAULT_CORS_ORIGINS
    log_level = (r.raw("LOG_LEVEL") or "INFO").upper()
    if log_level not in LOG_LEVELS:
        r.problems.append(f"LOG_LEVEL must be one of {', '.join(sorted(LOG_LEVELS))}")
        log_level = "INFO"

    values: Dict[str, object] = dict(
        env=r.choice("APP_ENV", ENVIRONMENTS, "development", fallback="NODE_ENV"),
        host=r.raw("HOST") or "0.0.0.0",
        port=r.integer("PORT", 4000, minimum=1, maximum=65535),
        mongodb_uri=r.mongo_url("MONGODB_URI"),
        mongodb_db=r.raw("MONGODB_DB") or "ecommerce",
        jwt_secret=r.required("JWT_SECRET"),
        stripe_secret_key=r.required("STRIPE_SECRET_KEY"),
        cloudinary_name=r.required("CLOUDINARY_NAME"),
        cloudinary_api_key=r.required("CLOUDINARY_API_KEY"),
        cloudinary_secret_key=r.required("CLOUDINARY_SECRET_KEY"),
        admin_email=r.email("ADMIN_EMAIL"),
        admin_password=r.required("ADMIN_PASSWORD"),
        session_ttl_hours=r.integer("SESSION_TTL_HOURS", 24, minimum=0),
        password_hash_cost=r.integer("PASSWORD_HASH_COST", 10, minimum=1),
        csrf_enabled=r.boolean("CSRF_ENABLED", True),
        cors_origins=origins,
        rate_limit_window_minutes=r.integer("RATE_LIMIT_WINDOW_MINUTES", 15, minimum=1),
        rate_limit_global_max=r.integer("RATE_LIMIT_GLOBAL_MAX", 100, minimum=1),
        rate_limit_login_max=r.integer("RATE_LIMIT_LOGIN_MAX", 5, minimum=1),
        log_level=log_level,
    )
    if r.problems:
        raise ConfigError(r.problems)
    return Settings(**values)  # type: ignore[arg-type]
