# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

DEFAULT_COST = 10
DEFAULT_MEMORY_KIB = 65536


class PasswordHasher:
    """Salted argon2 hashes with a fixed work factor (argon2 time cost)."""

    def __init__(self, cost: int = DEFAULT_COST, *, memory_kib: int = DEFAULT_MEMORY_KIB):
        self.cost = cost
        self._ph = _Argon2Hasher(time_cost=cost, memory_cost=memory_kib)

    def hash(self, plain: str) -> str:
        if not plain:
            raise ValueError("Password is empty")
        return self._ph.hash(plain)

    def verify(self, hash_value: str, plain: str) -> bool:
        if not hash_value or not plain:
            return False
        try:
            return self._ph.verify(hash_value, plain)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

