from conftest import make_item

from errors import ConflictError, NotFoundError, StoreError
from models import UserProfile
from schemas import ItemRead, from_document
from seed import seed_sample_data
from store import generate_id


def test_generate_id_is_unique():
    ids = {generate_id() for _ in range(200)}
    assert len(ids) == 200


def test_create_and_get_by_id(store):
    make_item(store, "item_a")

    result = store.items.get_by_id("item_a")
    assert result.ok
    assert result.value.name == "Denim Jacket"


def test_get_missing_document_is_not_found(store):
    result = store.items.get_by_id("nope")
    assert not result.ok
    assert isinstance(result.error, NotFoundError)


def test_query_skips_absent_filters(store):
    make_item(store, "a", status="approved")
    make_item(store, "b", status="pending")

    everything = store.items.query({"status": None}).unwrap()
    pending = store.items.query({"status": "pending"}).unwrap()

    assert {item.id for item in everything} == {"a", "b"}
    assert [item.id for item in pending] == ["b"]


def test_query_filters_are_conjunctive_and_ordered(store):
    make_item(store, "old", created_at=1000)
    make_item(store, "new", created_at=2000)
    make_item(store, "free", created_at=3000, free_for_ngo=True)

    rows = store.items.query(
        {"status": "approved", "free_for_ngo": False}, order_by="created_at"
    ).unwrap()
    assert [row.id for row in rows] == ["new", "old"]

    oldest = store.items.query(order_by="created_at", order="asc", limit=1).unwrap()
    assert [row.id for row in oldest] == ["old"]


def test_query_on_unknown_field_fails(store):
    result = store.items.query({"colour": "red"})
    assert not result.ok
    assert isinstance(result.error, StoreError)


def test_update_missing_document_is_not_found(store):
    result = store.items.update("missing", {"status": "approved"})
    assert isinstance(result.error, NotFoundError)


def test_update_changes_only_given_fields(store):
    make_item(store, "x", status="pending")

    updated = store.items.update("x", {"status": "approved"}).unwrap()

    assert updated.status == "approved"
    assert updated.price == 750


def test_count_and_delete(store):
    store.users.create(UserProfile(id="u1", email="a@example.com", name="A")).unwrap()
    store.users.create(UserProfile(id="u2", email="b@example.com", name="B", role="donor")).unwrap()

    assert store.users.count().unwrap() == 2
    assert store.users.count({"role": "donor"}).unwrap() == 1

    store.users.delete("u1").unwrap()
    assert store.users.count().unwrap() == 1


def test_missing_cart_reads_as_empty(store):
    cart = store.get_cart("nobody").unwrap()
    assert cart.items == []
    assert cart.version == 0


def test_save_cart_bumps_version(store):
    first = store.save_cart("u1", [{"id": "a", "price": 100}]).unwrap()
    second = store.save_cart("u1", [{"id": "b", "price": 200}]).unwrap()

    assert (first.version, second.version) == (1, 2)
    assert store.get_cart("u1").unwrap().items == [{"id": "b", "price": 200}]


def test_save_cart_with_stale_version_conflicts(store):
    store.save_cart("u1", [{"id": "a", "price": 100}]).unwrap()

    stale = store.save_cart("u1", [], expected_version=0)
    assert isinstance(stale.error, ConflictError)

    current = store.get_cart("u1").unwrap()
    saved = store.save_cart("u1", [], expected_version=current.version).unwrap()
    assert saved.version == current.version + 1
    assert store.get_cart("u1").unwrap().items == []


def test_wishlist_is_separate_from_cart(store):
    store.save_wishlist("u1", [{"id": "w"}], expected_version=0).unwrap()

    assert store.get_wishlist("u1").unwrap().items == [{"id": "w"}]
    assert store.get_cart("u1").unwrap().items == []


def test_upload_writes_under_media_root(store):
    url = store.upload(b"data", "docs/u1/cert.pdf").unwrap()

    assert url == "/media/docs/u1/cert.pdf"
    assert (store.media_root / "docs" / "u1" / "cert.pdf").read_bytes() == b"data"


def test_upload_rejects_paths_outside_media_root(store):
    result = store.upload(b"data", "../escape.txt")
    assert isinstance(result.error, StoreError)


def test_seed_sample_data_runs_once(store):
    assert seed_sample_data(store) is True
    assert seed_sample_data(store) is False

    approved = store.items.query({"status": "approved"}).unwrap()
    assert {item.id for item in approved} == {"prod_1", "prod_2", "prod_3", "prod_4"}
    assert store.ngo_requests.count({"status": "pending"}).unwrap() == 1


def test_query_with_zero_limit_returns_nothing(store):
    make_item(store, "a")

    assert store.items.query(limit=0).unwrap() == []


def test_from_document_reloads_expired_documents(store, session):
    stored = make_item(store, "x")
    # any later commit on the session expires loaded documents
    session.expire_all()

    item = from_document(ItemRead, stored)

    assert (item.id, item.price, item.donor_id) == ("x", 750, "donor_1")
