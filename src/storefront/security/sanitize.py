# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import json
import logging
from typing import Any, Tuple
from urllib.parse import parse_qsl, urlencode

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


def is_operator_key(key: Any) -> bool:
    """Keys MongoDB would read as operators ($gt, $where) or dotted paths."""
    return isinstance(key, str) and (key.startswith("$") or "." in key)


def strip_operator_keys(value: Any) -> Tuple[Any, int]:
    """Return (clean copy, number of removed keys), walking dicts and lists."""
    removed = 0
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if is_operator_key(k):
                removed += 1
                continue
            out[k], n = strip_operator_keys(v)
            removed += n
        return out, removed
    if isinstance(value, list):
        items = []
        for v in value:
            clean, n = strip_operator_keys(v)
            items.append(clean)
            removed += n
        return items, removed
    return value, 0


def sanitize_query_string(query: bytes) -> Tuple[bytes, int]:
    pairs = parse_qsl(query.decode("latin-1"), keep_blank_values=True)
    kept = [(k, v) for k, v in pairs if not is_operator_key(k)]
    removed = len(pairs) - len(kept)
    if not removed:
        return query, 0
    return urlencode(kept).encode("latin-1"), removed


class SanitizeMiddleware:
    """Drops operator-looking keys from query strings and JSON bodies of every request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        removed = 0
        query = scope.get("query_string", b"")
        if query:
            clean_query, n = sanitize_query_string(query)
            if n:
                scope = dict(scope, query_string=clean_query)
                removed += n

        content_type = ""
        for name, value in scope.get("headers", []):
            if name == b"content-type":
                content_type = value.decode("latin-1").lower()
                break

        if "json" in content_type:
            body = await self._read_body(receive)
            body, n = self._clean_body(body)
            removed += n
            receive = self._replay(body)

        if removed:
            logger.warning("Removed %d operator key(s) from %s %s", removed, scope.get("method"), scope.get("path"))
        await self.app(scope, receive, send)

    @staticmethod
    async def _read_body(receive: Receive) -> bytes:
        chunks = []
        more = True
        while more:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            chunks.append(message.get("body", b""))
            more = message.get("more_body", False)
        return b"".join(chunks)

    @staticmethod
    def _clean_body(body: bytes) -> Tuple[bytes, int]:
        if not body:
            return body, 0
        try:
            data = json.loads(body)
        except ValueError:
            return body, 0
        clean, n = strip_operator_keys(data)
        if not n:
            return body, 0
        return json.dumps(clean).encode("utf-8"), n

    @staticmethod
    def _replay(body: bytes) -> Receive:
        sent = False

        async def receive() -> Message:
            nonlocal sent
            if not sent:
                sent = True
                return {"type": "http.request", "body": body, "more_body": False}
            return {"type": "http.disconnect"}

        return receive
