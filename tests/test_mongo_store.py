import pytest
from bson import ObjectId

from storefront.store.users import DuplicateEmailError, InvalidRecordError, MongoUserStore

mongomock = pytest.importorskip("mongomock")


@pytest.fixture()
def mongo_store():
    s = MongoUserStore("mongodb://localhost:27017", "storefront_test", client=mongomock.MongoClient())
    s.ensure_indexes()
    return s


def test_create_and_lookup(mongo_store):
    u = mongo_store.create("Jane Doe", " Jane@Example.com ", "hash")
    assert ObjectId.is_valid(u.id)
    assert u.email == "jane@example.com"
    assert u.cart_data == {}
    assert mongo_store.get(u.id) == u
    assert mongo_store.find_by_email(" JANE@example.com ") == u
    assert mongo_store.find_by_email("nobody@example.com") is None
    assert mongo_store.count() == 1


def test_duplicate_email(mongo_store):
    mongo_store.create("Jane Doe", "jane@example.com", "hash")
    with pytest.raises(DuplicateEmailError) as ei:
        mongo_store.create("Jane Two", "JANE@example.com", "hash")
    assert ei.value.email == "jane@example.com"
    assert str(ei.value) == "User Already Exists"
    assert mongo_store.count() == 1


def test_record_rules_apply(mongo_store):
    with pytest.raises(InvalidRecordError):
        mongo_store.create("J", "j@example.com", "hash")
    assert mongo_store.count() == 0


@pytest.mark.parametrize("user_id", ["not-an-id", "", None, "admin"])
def test_unparseable_ids(mongo_store, user_id):
    assert mongo_store.get(user_id) is None
    assert mongo_store.add_cart_item(user_id, "p1", "M") is None
    assert mongo_store.set_cart_quantity(user_id, "p1", "M", 1) is None


def test_cart_round_trip(mongo_store):
    u = mongo_store.create("Jane Doe", "jane@example.com", "hash")
    mongo_store.add_cart_item(u.id, "p1", "M")
    updated = mongo_store.add_cart_item(u.id, "p1", "M")
    assert updated.cart_data == {"p1": {"M": 2}}

    updated = mongo_store.set_cart_quantity(u.id, "p1", "L", 0)
    assert updated.cart_data == {"p1": {"M": 2, "L": 0}}
    assert mongo_store.get(u.id).cart_data == {"p1": {"M": 2, "L": 0}}


def test_cart_update_for_missing_user(mongo_store):
    missing = str(ObjectId())
    assert mongo_store.add_cart_item(missing, "p1", "M") is None
    assert mongo_store.set_cart_quantity(missing, "p1", "M", 1) is None
    assert mongo_store.count() == 0
