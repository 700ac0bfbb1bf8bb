# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Request guards applied before the route handlers run."""

from __future__ import annotations

from starlette.requests import Request


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"
