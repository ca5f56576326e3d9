import pytest
from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, federated_assertion, login, make_item, register
from sqlmodel import Session

from identity import IdentityGateway
from store import DocumentStore

NGO_FORM = {
    "ngoName": "Helping Hands",
    "registrationNumber": "REG-1",
    "contactPerson": "Priya",
    "designation": "Director",
    "phone": "9876543210",
    "email": "contact@helping.org",
    "address": "Mumbai",
    "serviceAreas": "Mumbai",
    "description": "Clothes for all",
}


@pytest.fixture
def db(engine, tmp_path):
    with Session(engine) as session:
        yield DocumentStore(session, media_root=str(tmp_path / "media"))


@pytest.fixture
def provisioned_admin(db):
    return IdentityGateway(db).provision_admin(ADMIN_EMAIL, ADMIN_PASSWORD, "Site Admin")


def test_root_for_anonymous_visitor(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["login"] == "/login"


def test_register_signs_in_and_redirects_to_landing(client):
    user = register(client, role="donor", email="donor@example.com")

    assert user["role"] == "donor"
    me = client.get("/me")
    assert me.status_code == 200
    assert me.json()["email"] == "donor@example.com"

    landing = client.get("/", follow_redirects=False)
    assert landing.status_code == 303
    assert landing.headers["location"] == "/donor"


def test_register_validation_error_is_a_notice(client):
    response = client.post(
        "/register",
        json={"role": "donor", "name": "X", "email": "x@example.com", "phone": "1",
              "password": "secret1", "confirmPassword": "secret2"},
    )

    assert response.status_code == 400
    assert response.json()["notice"] == {"kind": "error", "text": "Passwords do not match"}


def test_register_form_post_redirects(client):
    response = client.post(
        "/register",
        data={"role": "customer", "name": "Form User", "email": "form@example.com",
              "phone": "1", "password": "secret1", "confirmPassword": "secret1"},
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.headers["location"] == "/customer"
    assert "session" in response.cookies


def test_bad_login_is_rejected(client):
    register(client, email="user@example.com")
    client.post("/logout")

    response = client.post("/login", json={"email": "user@example.com", "password": "nope!!"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_me_requires_login(client):
    assert client.get("/me").status_code == 401


def test_dashboard_redirects_by_role(client):
    anonymous = client.get("/donor", follow_redirects=False)
    assert anonymous.status_code == 303
    assert anonymous.headers["location"] == "/login"

    register(client, role="customer")
    wrong_role = client.get("/donor", follow_redirects=False)
    assert wrong_role.status_code == 303
    assert wrong_role.headers["location"] == "/customer"

    own = client.get("/customer")
    assert own.status_code == 200
    assert own.json()["cart"]["totals"]["finalTotal"] == 50


def test_logout_clears_session(client):
    register(client)

    response = client.post("/logout", follow_redirects=False)

    assert response.status_code == 303
    client.cookies.clear()
    assert client.get("/me").status_code == 401


def test_federated_login_then_role_selection(client):
    response = client.post("/login/federated", json={"assertion": federated_assertion()})

    body = response.json()
    assert response.status_code == 200
    assert body["isNewUser"] is True
    assert body["user"]["roleSelected"] is False

    chosen = client.post("/me/role", json={"role": "donor"})
    assert chosen.status_code == 200
    assert chosen.json()["redirect"] == "/donor"

    again = client.post("/me/role", json={"role": "ngo"})
    assert again.status_code == 403


def test_federated_popup_error(client):
    response = client.post("/login/federated", json={"error": "auth/popup-blocked"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Popup was blocked. Please allow popups and try again."


def test_customer_cart_and_wishlist(client, db):
    make_item(db, "jacket", price=750)
    make_item(db, "dress", price=600, name="Floral Dress", type="dress")
    register(client, role="customer")

    assert client.post("/cart/jacket").json()["notice"]["text"] == "Item added to cart"
    duplicate = client.post("/cart/jacket").json()
    assert duplicate["notice"] == {"kind": "info", "text": "Item already in cart"}
    cart = client.post("/cart/dress").json()
    assert [entry["id"] for entry in cart["items"]] == ["jacket", "dress"]
    assert cart["totals"] == {"itemsTotal": 1350, "platformFee": 135, "deliveryFee": 50, "finalTotal": 1535}

    checkout = client.post("/cart/checkout").json()
    assert checkout["notice"]["text"] == "Processing payment for ₹1,535"

    removed = client.delete("/cart/jacket").json()
    assert [entry["id"] for entry in removed["items"]] == ["dress"]

    assert client.post("/wishlist/dress").json()["inWishlist"] is True
    assert client.post("/wishlist/dress").json()["inWishlist"] is False
    assert client.get("/wishlist").json()["items"] == []


def test_add_to_cart_requires_login(client, db):
    make_item(db, "jacket")
    assert client.post("/cart/jacket").status_code == 401


def test_catalog_filters(client, db):
    make_item(db, "jacket", price=750)
    make_item(db, "dress", price=600, name="Floral Dress", type="dress")
    make_item(db, "free", free_for_ngo=True)
    make_item(db, "waiting", status="pending")

    everything = client.get("/items/").json()
    dresses = client.get("/items/", params={"type": "dress"}).json()

    assert {item["id"] for item in everything} == {"jacket", "dress"}
    assert [item["id"] for item in dresses] == ["dress"]
    assert client.get("/items/waiting").status_code == 404
    assert client.get("/items/jacket").json()["originalPrice"] == 3000


def test_donor_lists_item_for_review(client):
    register(client, role="donor", email="donor@example.com")

    response = client.post(
        "/items/",
        json={"itemName": "Wool Coat", "itemType": "jacket", "size": "L", "gender": "women",
              "condition": "excellent", "originalPrice": 3000, "freeNgo": False},
    )

    assert response.status_code == 201
    item = response.json()["item"]
    assert (item["price"], item["status"]) == (750, "pending")

    mine = client.get("/items/my").json()
    assert [i["id"] for i in mine["items"]] == [item["id"]]
    assert mine["stats"]["totalEarnings"] == 0
    assert client.get(f"/items/{item['id']}").status_code == 200


def test_donor_form_upload_with_images(client):
    register(client, role="donor", email="donor@example.com")

    response = client.post(
        "/items/",
        data={"itemName": "Wool Coat", "itemType": "jacket", "size": "L", "gender": "women",
              "condition": "excellent", "originalPrice": "3000", "freeNgo": "on"},
        files=[("images", ("coat.jpg", b"jpeg-bytes", "image/jpeg"))],
    )

    assert response.status_code == 201
    item = response.json()["item"]
    assert item["freeForNGO"] is True
    assert item["images"][0].startswith("/media/items/")


def test_admin_routes_are_admin_only(client):
    register(client, role="customer")
    assert client.get("/admin/overview").status_code == 403
    assert client.get("/users/").status_code == 403


def test_ngo_verification_scenario(client, provisioned_admin):
    user = register(client, role="ngo", email="a@b.com")
    assert user["role"] == "ngo"
    assert user["ngoStatus"] is None

    submitted = client.post("/ngo/requests", json=NGO_FORM)
    assert submitted.status_code == 201
    assert submitted.json()["ngoStatus"] == "pending"
    request_id = submitted.json()["request"]["id"]
    assert client.get("/me").json()["ngoStatus"] == "pending"
    assert client.get("/items/free").status_code == 403

    client.post("/logout")
    client.cookies.clear()
    login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

    queue = client.get("/admin/ngo-requests", params={"status": "pending"}).json()
    assert [ngo["id"] for ngo in queue] == [request_id]

    approved = client.post(f"/admin/ngo-requests/{request_id}/approve").json()
    assert approved["notice"]["text"] == "NGO approved successfully"
    assert approved["overview"]["activeNGOs"] == 1
    assert [ngo["id"] for ngo in client.get("/admin/ngos/approved").json()] == [request_id]

    again = client.post(f"/admin/ngo-requests/{request_id}/reject")
    assert again.status_code == 400

    client.post("/logout")
    client.cookies.clear()
    login(client, "a@b.com", "secret1")

    assert client.get("/me").json()["ngoStatus"] == "approved"
    assert client.get("/ngo/status").json()["ngoStatus"] == "approved"
    assert client.get("/items/free").status_code == 200


def test_admin_moderates_items(client, db, provisioned_admin):
    make_item(db, "new", status="pending")
    login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

    dashboard = client.get("/admin").json()
    assert [item["id"] for item in dashboard["pendingItems"]] == ["new"]

    result = client.post("/admin/items/new/approve").json()
    assert result["notice"]["text"] == "Item approved successfully"
    assert result["overview"]["pendingItems"] == 0

    assert client.post("/admin/items/new/reject").status_code == 400
    assert client.post("/admin/items/ghost/approve").status_code == 404
    assert [item["id"] for item in client.get("/admin/items", params={"status": "approved"}).json()] == ["new"]


@pytest.mark.parametrize("original_price", ["inf", 1e20])
def test_unusable_price_is_an_error_notice(client, original_price):
    register(client, role="donor", email="donor@example.com")

    response = client.post(
        "/items/",
        json={"itemName": "Wool Coat", "itemType": "jacket", "size": "L", "gender": "women",
              "condition": "excellent", "originalPrice": original_price},
    )

    assert response.status_code == 400
    assert response.json()["notice"] == {"kind": "error", "text": "Please enter a valid original price"}


def test_admin_activity_feed(client, db, provisioned_admin):
    make_item(db, "new", status="pending", name="Wool Coat")
    login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

    feed = client.get("/admin/activity", params={"limit": 1}).json()
    dashboard = client.get("/admin").json()

    assert feed == [dashboard["recentActivity"][0]]
    assert feed[0]["refId"] == "new"
    assert feed[0]["text"] == "New item uploaded: Wool Coat"
