# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict

from fastapi import Request, Response

from storefront.errors import RateLimitExceededError
from storefront.security import client_ip

logger = logging.getLogger(__name__)

GLOBAL_MESSAGE = "Too many requests from this IP. Try again after 15 minutes."
LOGIN_MESSAGE = "Too many login attempts. Try again after 15 minutes."


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int
    window_seconds: int

    def headers(self) -> Dict[str, str]:
        h = {
            "RateLimit-Policy": f"{self.limit};w={self.window_seconds}",
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }
        if not self.allowed:
            h["Retry-After"] = str(self.reset_after)
        return h


class SlidingWindowLimiter:
    """In-memory sliding window counter keyed by client IP.

    Counters are per process; several workers each keep their own.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        message: str,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._next_sweep = 0.0
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateDecision:
        now = self._clock()
        with self._lock:
            hits = self._hits.get(key) or deque()
            while hits and hits[0] <= now - self.window_seconds:
                hits.popleft()

            allowed = len(hits) < self.max_requests
            if allowed:
                hits.append(now)
            self._hits[key] = hits
            self._sweep(now)
            reset_after = max(0, math.ceil(hits[0] + self.window_seconds - now)) if hits else self.window_seconds
            return RateDecision(
                allowed=allowed,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - len(hits)),
                reset_after=reset_after,
                window_seconds=self.window_seconds,
            )

    def _sweep(self, now: float) -> None:
        """Drop keys whose hits all left the window. Runs at most once per window."""
        if now < self._next_sweep:
            return
        self._next_sweep = now + self.window_seconds
        cutoff = now - self.window_seconds
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self, key: str = "") -> None:
        with self._lock:
            if key:
                self._hits.pop(key, None)
            else:
                self._hits.clear()

    def check(self, request: Request) -> RateDecision:
        """Count the request; raise RateLimitExceededError past the cap."""
        ip = client_ip(request)
        decision = self.hit(ip)
        if not decision.allowed:
            logger.warning("Rate limit hit for %s on %s %s", ip, request.method, request.url.path)
            raise RateLimitExceededError(self.message, headers=decision.headers())
        return decision


def limit_dependency(pick: Callable[[Request], SlidingWindowLimiter]):
    """Route dependency applying the limiter chosen from the app context."""

    async def _dep(request: Request, response: Response) -> None:
        decision = pick(request).check(request)
        for k, v in decision.headers().items():
            response.headers[k] = v

    return _dep
