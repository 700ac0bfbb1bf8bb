import threading

import pytest

from storefront.store.users import DuplicateEmailError, InvalidRecordError, MemoryUserStore, check_new_user


def test_create_and_lookup(store):
    u = store.create("Jane Doe", " Jane@Example.com ", "hash")
    assert u.email == "jane@example.com"
    assert u.role == "user"
    assert u.created_at is not None and u.created_at == u.updated_at
    assert store.get(u.id) == u
    assert store.find_by_email("JANE@example.com") == u
    assert store.get("missing") is None
    assert store.find_by_email("nobody@example.com") is None


def test_email_is_unique(store):
    store.create("Jane Doe", "jane@example.com", "hash")
    with pytest.raises(DuplicateEmailError):
        store.create("Jane Two", "JANE@example.com", "hash")
    assert store.count() == 1


@pytest.mark.parametrize(
    "name,email,password_hash,role",
    [
        ("J", "j@example.com", "hash", "user"),
        ("x" * 51, "j@example.com", "hash", "user"),
        ("Jane_Doe", "j@example.com", "hash", "user"),
        ("Jane", "", "hash", "user"),
        ("Jane", "j@example.com", "", "user"),
        ("Jane", "j@example.com", "hash", "root"),
    ],
)
def test_record_rules(name, email, password_hash, role):
    with pytest.raises(InvalidRecordError):
        check_new_user(name, email, password_hash, role)


def test_cart_add_and_set(store):
    u = store.create("Jane Doe", "jane@example.com", "hash")
    store.add_cart_item(u.id, "p1", "M")
    updated = store.add_cart_item(u.id, "p1", "M")
    assert updated.cart_data == {"p1": {"M": 2}}

    updated = store.set_cart_quantity(u.id, "p1", "L", 3)
    assert updated.cart_data == {"p1": {"M": 2, "L": 3}}
    assert store.get(u.id).cart_data == {"p1": {"M": 2, "L": 3}}

    assert store.add_cart_item("missing", "p1", "M") is None
    assert store.set_cart_quantity("missing", "p1", "M", 1) is None


def test_concurrent_adds_are_not_lost(store):
    u = store.create("Jane Doe", "jane@example.com", "hash")

    def add():
        for _ in range(50):
            store.add_cart_item(u.id, "p1", "M")

    threads = [threading.Thread(target=add) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert store.get(u.id).cart_data == {"p1": {"M": 400}}


def test_admin_role_allowed():
    store = MemoryUserStore()
    assert store.create("Shop Admin", "boss@example.com", "hash", role="admin").role == "admin"
