#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from storefront.auth.passwords import PasswordHasher
from storefront.config import load_settings
from storefront.store.users import DuplicateEmailError, InvalidRecordError, MongoUserStore


def main() -> None:
    settings = load_settings()
    store = MongoUserStore(settings.mongodb_uri, settings.mongodb_db)
    store.open()
    try:
        name = input("Name: ").strip()
        email = input("Email: ").strip()
        role = (input("Role [user/admin]: ").strip().lower() or "user")

        pw1 = getpass("Password: ")
        pw2 = getpass("Repeat password: ")
        if pw1 != pw2:
            raise SystemExit("Passwords do not match")

        hasher = PasswordHasher(settings.password_hash_cost)
        try:
            user = store.create(name, email, hasher.hash(pw1), role=role)
        except (DuplicateEmailError, InvalidRecordError) as e:
            raise SystemExit(str(e))
        print(f"OK -> {user.id} ({user.email}, {user.role})")
    finally:
        store.close()


if __name__ == "__main__":
    main()
