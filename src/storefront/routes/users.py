# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, Request, Response
from starlette.concurrency import run_in_threadpool

from storefront.auth.session import clear_session_cookie, set_session_cookie
from storefront.auth.tokens import SessionClaims
from storefront.context import AppContext, get_context
from storefront.schemas import AdminLoginRequest, LoginRequest, RegisterRequest, validated
from storefront.security import client_ip
from storefront.security.ratelimit import limit_dependency
from storefront.store.users import DuplicateEmailError, InvalidRecordError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user"])

login_limit = limit_dependency(lambda request: get_context(request).login_limiter)


def _ok(message: str) -> dict:
    return {"success": True, "message": message}


def _fail(message: str) -> dict:
    return {"success": False, "message": message}


def _same(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


@router.post("/register")
async def register(
    response: Response,
    payload: RegisterRequest = Depends(validated(RegisterRequest)),
    ctx: AppContext = Depends(get_context),
):
    if await run_in_threadpool(ctx.store.find_by_email, payload.email):
        return _fail("User Already Exists")

    password_hash = await run_in_threadpool(ctx.hasher.hash, payload.password)
    try:
        user = await run_in_threadpool(ctx.store.create, payload.name, payload.email, password_hash)
    except DuplicateEmailError:
        return _fail("User Already Exists")
    except InvalidRecordError as e:
        return _fail(str(e))

    token = ctx.tokens.issue(SessionClaims.for_user(user.id, user.role))
    set_session_cookie(response, token, ctx.settings)
    logger.info("Registered user %s", user.id)
    return _ok("Registered successfully")


@router.post("/login", dependencies=[Depends(login_limit)])
async def login(
    response: Response,
    payload: LoginRequest = Depends(validated(LoginRequest)),
    ctx: AppContext = Depends(get_context),
):
    user = await run_in_threadpool(ctx.store.find_by_email, payload.email)
    if user is None:
        return _fail("User doesn't exist")

    if not await run_in_threadpool(ctx.hasher.verify, user.password_hash, payload.password):
        logger.info("Failed login for user %s", user.id)
        return _fail("Invalid Credentials")

    token = ctx.tokens.issue(SessionClaims.for_user(user.id, user.role))
    set_session_cookie(response, token, ctx.settings)
    return _ok("Logged in successfully")


@router.post("/admin", dependencies=[Depends(login_limit)])
async def admin_login(
    request: Request,
    response: Response,
    payload: AdminLoginRequest = Depends(validated(AdminLoginRequest)),
    ctx: AppContext = Depends(get_context),
):
    s = ctx.settings
    # Evaluate both comparisons so timing does not reveal which field was wrong.
    email_ok = _same(payload.email, s.admin_email)
    password_ok = _same(payload.password, s.admin_password)
    if not (email_ok and password_ok):
        logger.warning("Failed admin login from %s", client_ip(request))
        return _fail("Invalid Credentials")

    token = ctx.tokens.issue(SessionClaims.for_admin())
    set_session_cookie(response, token, ctx.settings)
    return _ok("Admin logged in")


@router.post("/logout")
async def logout(response: Response, ctx: AppContext = Depends(get_context)):
    clear_session_cookie(response, ctx.settings)
    return _ok("Logged out successfully")
