# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Request contracts for the JSON endpoints.

Each model normalizes its fields and raises one message per failing field; the
route only ever reports the first one (``{"success": false, "message": ...}``).
"""

from __future__ import annotations

import html
import json
import math
import re
from typing import Any, Dict, Type, TypeVar

from email_validator import EmailNotValidError, validate_email
from fastapi import Request
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from storefront.errors import ValidationFailedError

M = TypeVar("M", bound=BaseModel)

_DIGIT = re.compile(r"\d")
_UPPER = re.compile(r"[A-Z]")


def _text(v: Any) -> str:
    """Coerce a JSON value to text; objects and arrays never count as text."""
    if v is None or isinstance(v, (dict, list)):
        return ""
    return str(v)


def _cart_key(v: Any, required: str, invalid: str) -> str:
    v = _text(v).strip()
    if not v:
        raise PydanticCustomError("required", required)
    if v.startswith("$") or "." in v:
        raise PydanticCustomError("cart_key", invalid)
    return v


def _normalize_email(v: Any, message: str) -> str:
    raw = _text(v).strip()
    if not raw:
        raise PydanticCustomError("email", message)
    try:
        return validate_email(raw, check_deliverability=False).normalized.lower()
    except EmailNotValidError:
        raise PydanticCustomError("email", message)


class _Contract(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_default=True, frozen=True)


class RegisterRequest(_Contract):
    name: str = ""
    email: str = ""
    password: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v: Any) -> str:
        v = _text(v).strip()
        if not v:
            raise PydanticCustomError("required", "Name is required")
        return html.escape(v)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, v: Any) -> str:
        return _normalize_email(v, "Please enter a valid email")

    @field_validator("password", mode="before")
    @classmethod
    def _password(cls, v: Any) -> str:
        v = _text(v)
        if len(v) < 8:
            raise PydanticCustomError("password_policy", "Password must be at least 8 characters")
        if not _DIGIT.search(v):
            raise PydanticCustomError("password_policy", "Password must contain a number")
        if not _UPPER.search(v):
            raise PydanticCustomError("password_policy", "Password must contain an uppercase letter")
        return v


class LoginRequest(_Contract):
    email: str = ""
    password: str = ""

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, v: Any) -> str:
        return _normalize_email(v, "Invalid email format")

    # Format rules were applied at registration; here only presence matters.
    @field_validator("password", mode="before")
    @classmethod
    def _password(cls, v: Any) -> str:
        v = _text(v)
        if not v:
            raise PydanticCustomError("required", "Password is required")
        return v


class AdminLoginRequest(_Contract):
    email: str = ""
    password: str = ""

    @field_validator("email", "password", mode="before")
    @classmethod
    def _plain(cls, v: Any) -> str:
        return _text(v)


class CartItemRequest(_Contract):
    itemId: str = ""
    size: str = ""

    @field_validator("itemId", mode="before")
    @classmethod
    def _item(cls, v: Any) -> str:
        return _cart_key(v, "Item id is required", "Item id is invalid")

    @field_validator("size", mode="before")
    @classmethod
    def _size(cls, v: Any) -> str:
        return _cart_key(v, "Select Product Size", "Size is invalid")


class CartUpdateRequest(CartItemRequest):
    quantity: int = -1

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, v: Any) -> int:
        if isinstance(v, bool) or (isinstance(v, float) and not math.isfinite(v)):
            v = None
        try:
            n = int(v)
        except (TypeError, ValueError, OverflowError):
            n = -1
        if n < 0 or (isinstance(v, float) and not v.is_integer()):
            raise PydanticCustomError("quantity", "Quantity must be a non-negative integer")
        return n


def first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    return str(errors[0].get("msg") or "Invalid request")


async def read_json_object(request: Request) -> Dict[str, Any]:
    """Request body as a JSON object; anything else reads as {}."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def validated(model: Type[M]):
    """Dependency factory: parse the body into ``model`` or stop the chain."""

    async def _dep(request: Request) -> M:
        payload = await read_json_object(request)
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailedError(first_error(e))

    _dep.__name__ = f"validate_{model.__name__}"
    return _dep
