# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from starlette.concurrency import run_in_threadpool

from storefront.auth.session import read_session_token
from storefront.auth.tokens import SessionClaims, TokenError
from storefront.context import AppContext, get_context
from storefront.errors import NotAuthorizedError
from storefront.store.users import UserRecord

logger = logging.getLogger(__name__)


def claims_from_request(request: Request, ctx: AppContext) -> Optional[SessionClaims]:
    token = read_session_token(request)
    if not token:
        return None
    try:
        return ctx.tokens.decode(token)
    except TokenError as e:
        logger.info("Rejected session token: %s", e)
        return None


async def require_user(request: Request, ctx: AppContext = Depends(get_context)) -> UserRecord:
    """The stored user behind the session cookie. Admin sessions carry no user."""
    claims = claims_from_request(request, ctx)
    if claims is None or claims.is_admin:
        raise NotAuthorizedError()
    user = await run_in_threadpool(ctx.store.get, claims.sub)
    if user is None:
        raise NotAuthorizedError()
    return user
