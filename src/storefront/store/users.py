# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import copy
import logging
import re
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

logger = logging.getLogger(__name__)

ROLES = ("user", "admin")
NAME_RE = re.compile(r"^[a-zA-Z0-9 ]+$")

CartData = Dict[str, Dict[str, int]]


class StoreError(Exception):
    pass


class DuplicateEmailError(StoreError):
    def __init__(self, email: str):
        self.email = email
        super().__init__("User Already Exists")


class InvalidRecordError(StoreError):
    """A record failed the field rules before reaching the store."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UserRecord:
    id: str
    name: str
    email: str
    password_hash: str
    role: str = "user"
    cart_data: CartData = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def check_new_user(name: str, email: str, password_hash: str, role: str = "user") -> Dict[str, Any]:
    """Apply the field rules for a new user and return the document to insert."""
    name = (name or "").strip()
    if not name:
        raise InvalidRecordError("Name is required")
    if len(name) < 2 or len(name) > 50:
        raise InvalidRecordError("Name must be between 2 and 50 characters")
    if not NAME_RE.match(name):
        raise InvalidRecordError("Name can only contain letters and numbers")
    email = normalize_email(email)
    if not email:
        raise InvalidRecordError("Email is required")
    if not password_hash:
        raise InvalidRecordError("Password is required")
    role = (role or "user").strip().lower()
    if role not in ROLES:
        raise InvalidRecordError(f"Role must be one of {', '.join(ROLES)}")
    now = _now()
    return {
        "name": name,
        "email": email,
        "password": password_hash,
        "role": role,
        "cartData": {},
        "createdAt": now,
        "updatedAt": now,
    }


def _record_from_doc(doc: Dict[str, Any]) -> UserRecord:
    return UserRecord(
        id=str(doc["_id"]),
        name=str(doc.get("name") or ""),
        email=str(doc.get("email") or ""),
        password_hash=str(doc.get("password") or ""),
        role=str(doc.get("role") or "user"),
        cart_data=dict(doc.get("cartData") or {}),
        created_at=doc.get("createdAt"),
        updated_at=doc.get("updatedAt"),
    )


class UserStore:
    """Credential store interface used by the routes.

    Implementations are synchronous; callers push them onto the threadpool.
    """

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        raise NotImplementedError

    def get(self, user_id: str) -> Optional[UserRecord]:
        raise NotImplementedError

    def create(self, name: str, email: str, password_hash: str, role: str = "user") -> UserRecord:
        raise NotImplementedError

    def add_cart_item(self, user_id: str, item_id: str, size: str) -> Optional[UserRecord]:
        """Increment one cart entry by one; None when the user is gone."""
        raise NotImplementedError

    def set_cart_quantity(self, user_id: str, item_id: str, size: str, quantity: int) -> Optional[UserRecord]:
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError


class MemoryUserStore(UserStore):
    """Process-local store. Used by the tests and for running without MongoDB."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_id: Dict[str, UserRecord] = {}
        self._by_email: Dict[str, str] = {}

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        with self._lock:
            uid = self._by_email.get(normalize_email(email))
            return self._by_id.get(uid) if uid else None

    def get(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            return self._by_id.get(user_id)

    def create(self, name: str, email: str, password_hash: str, role: str = "user") -> UserRecord:
        doc = check_new_user(name, email, password_hash, role)
        with self._lock:
            if doc["email"] in self._by_email:
                raise DuplicateEmailError(doc["email"])
            doc["_id"] = uuid.uuid4().hex
            rec = _record_from_doc(doc)
            self._by_id[rec.id] = rec
            self._by_email[rec.email] = rec.id
        return rec

    def _update_cart(self, user_id: str, item_id: str, size: str, change) -> Optional[UserRecord]:
        with self._lock:
            rec = self._by_id.get(user_id)
            if rec is None:
                return None
            cart = copy.deepcopy(rec.cart_data)
            sizes = cart.setdefault(item_id, {})
            sizes[size] = change(int(sizes.get(size, 0)))
            rec = replace(rec, cart_data=cart, updated_at=_now())
            self._by_id[user_id] = rec
            return rec

    def add_cart_item(self, user_id: str, item_id: str, size: str) -> Optional[UserRecord]:
        return self._update_cart(user_id, item_id, size, lambda n: n + 1)

    def set_cart_quantity(self, user_id: str, item_id: str, size: str, quantity: int) -> Optional[UserRecord]:
        return self._update_cart(user_id, item_id, size, lambda n: quantity)

    def count(self) -> int:
        with self._lock:
            return len(self._by_id)


class MongoUserStore(UserStore):
    """Users collection in MongoDB; email uniqueness comes from a unique index."""

    def __init__(self, uri: str, db_name: str, *, collection: str = "users", client: Optional[MongoClient] = None):
        self._client = client or MongoClient(uri, tz_aware=True)
        self._col = self._client[db_name][collection]

    def open(self) -> None:
        self._client.admin.command("ping")
        self.ensure_indexes()
        logger.info("DB connected (%s)", self._col.full_name)

    def ensure_indexes(self) -> None:
        self._col.create_index([("email", ASCENDING)], unique=True)

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _oid(user_id: str) -> Optional[ObjectId]:
        try:
            return ObjectId(user_id)
        except (InvalidId, TypeError):
            return None

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        doc = self._col.find_one({"email": normalize_email(email)})
        return _record_from_doc(doc) if doc else None

    def get(self, user_id: str) -> Optional[UserRecord]:
        oid = self._oid(user_id)
        if oid is None:
            return None
        doc = self._col.find_one({"_id": oid})
        return _record_from_doc(doc) if doc else None

    def create(self, name: str, email: str, password_hash: str, role: str = "user") -> UserRecord:
        doc = check_new_user(name, email, password_hash, role)
        try:
            res = self._col.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateEmailError(doc["email"])
        doc["_id"] = res.inserted_id
        return _record_from_doc(doc)

    def _update_cart(self, user_id: str, update: Dict[str, Any]) -> Optional[UserRecord]:
        oid = self._oid(user_id)
        if oid is None:
            return None
        update.setdefault("$set", {})["updatedAt"] = _now()
        doc = self._col.find_one_and_update({"_id": oid}, update, return_document=ReturnDocument.AFTER)
        return _record_from_doc(doc) if doc else None

    # Item ids and sizes become field path segments; the request contract
    # rejects "." and a leading "$" in both.
    def add_cart_item(self, user_id: str, item_id: str, size: str) -> Optional[UserRecord]:
        return self._update_cart(user_id, {"$inc": {f"cartData.{item_id}.{size}": 1}})

    def set_cart_quantity(self, user_id: str, item_id: str, size: str, quantity: int) -> Optional[UserRecord]:
        return self._update_cart(user_id, {"$set": {f"cartData.{item_id}.{size}": quantity}})

    def count(self) -> int:
        return self._col.count_documents({})
