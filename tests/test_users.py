import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

import users
from auth import check_password, create_token


def user_payload(**overrides):
    data = {
        "UserName": "Nimali",
        "email": "nimali@example.com",
        "password": "s3cret-pass",
        "mobile": "0771234567",
    }
    data.update(overrides)
    return data


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_create_user_hides_password(client, db):
    response = client.post("/api/users", json=user_payload(role="superuser"))
    assert response.status_code == 201
    user = response.json()["data"]
    assert user["userID"] == 1
    assert user["role"] == "customer"
    assert "password" not in user

    stored = db["user"].find_one({"email": "nimali@example.com"})
    assert stored["password"] != "s3cret-pass"
    assert check_password("s3cret-pass", stored["password"])

    listed = client.get("/api/users").json()["data"]
    assert all("password" not in u for u in listed)
    fetched = client.get(f"/api/users/{user['_id']}").json()["data"]
    assert fetched["email"] == "nimali@example.com"
    assert "password" not in fetched


def test_create_user_validation(client):
    missing = client.post("/api/users", json=user_payload(password=None))
    assert missing.status_code == 400
    assert missing.json()["message"] == "Required fields are missing"

    short = client.post("/api/users", json=user_payload(mobile="12345"))
    assert short.status_code == 400
    assert short.json()["message"] == "Mobile number must be exactly 10 digits"

    bad_email = client.post("/api/users", json=user_payload(email="not-an-email"))
    assert bad_email.status_code == 400
    assert "email" in bad_email.json()["errors"]

    client.post("/api/users", json=user_payload())
    duplicate = client.post("/api/users", json=user_payload(UserName="Other"))
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "Email already registered"


def test_admin_role_only_when_asked(client):
    user = client.post("/api/users", json=user_payload(role="admin")).json()["data"]
    assert user["role"] == "admin"


def test_update_user(client, db):
    user = client.post("/api/users", json=user_payload()).json()["data"]
    client.post("/api/users", json=user_payload(email="taken@example.com"))
    url = f"/api/users/{user['_id']}"

    response = client.put(url, json={"UserName": "Nimali P", "mobile": "0711111111", "password": "changed-pass"})
    assert response.status_code == 200
    assert response.json()["data"]["UserName"] == "Nimali P"
    assert "password" not in response.json()["data"]
    stored = db["user"].find_one({"_id": ObjectId(user["_id"])})
    assert check_password("changed-pass", stored["password"])

    assert client.put(url, json={"mobile": "0711111111"}).json()["message"] == "UserName is required"
    assert client.put(url, json={"UserName": "N", "mobile": "07111"}).status_code == 400
    clash = client.put(url, json={"UserName": "N", "mobile": "0711111111", "email": "taken@example.com"})
    assert clash.status_code == 400
    missing = client.put(f"/api/users/{ObjectId()}", json={"UserName": "N", "mobile": "0711111111"})
    assert missing.status_code == 404


def test_get_and_delete_missing_user(client):
    bad = client.get("/api/users/123")
    assert bad.status_code == 400
    assert bad.json()["message"] == "Invalid user ID format"
    assert client.get(f"/api/users/{ObjectId()}").status_code == 404

    user = client.post("/api/users", json=user_payload()).json()["data"]
    assert client.delete(f"/api/users/{user['_id']}").status_code == 200
    assert client.delete(f"/api/users/{user['_id']}").status_code == 404


def test_signup_and_signin(client):
    signup = client.post("/api/auth/signup", json=user_payload())
    assert signup.status_code == 201
    assert signup.json()["role"] == "customer"
    assert signup.json()["token"]

    again = client.post("/api/auth/signup", json=user_payload())
    assert again.status_code == 400

    signin = client.post("/api/auth/signin", json={"email": "nimali@example.com", "password": "s3cret-pass"})
    assert signin.status_code == 200
    assert signin.json()["id"] == signup.json()["id"]

    wrong = client.post("/api/auth/signin", json={"email": "nimali@example.com", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"success": False, "message": "Invalid credentials"}


def test_designs_belong_to_their_owner(client):
    owner = client.post("/api/auth/signup", json=user_payload()).json()["token"]
    other = client.post("/api/auth/signup", json=user_payload(email="other@example.com")).json()["token"]

    assert client.get("/api/designs").status_code == 401
    assert client.get("/api/designs", headers=bearer("garbage")).json()["message"] == "Invalid token."

    created = client.post(
        "/api/designs",
        json={"imageUrl": "http://cdn/design.png", "clothingType": "jacket", "prompt": "floral"},
        headers=bearer(owner),
    )
    assert created.status_code == 201
    design = created.json()["design"]
    assert design["isFavorite"] is False
    assert design["dateCreated"]

    assert client.get(f"/api/designs/{design['_id']}", headers=bearer(other)).status_code == 404
    assert client.get("/api/designs", headers=bearer(other)).json()["data"] == []
    assert [d["_id"] for d in client.get("/api/designs", headers=bearer(owner)).json()["data"]] == [design["_id"]]

    toggled = client.put(f"/api/designs/{design['_id']}/favorite", headers=bearer(owner))
    assert toggled.json()["data"]["isFavorite"] is True
    toggled = client.put(f"/api/designs/{design['_id']}/favorite", headers=bearer(owner))
    assert toggled.json()["data"]["isFavorite"] is False

    assert client.delete(f"/api/designs/{design['_id']}", headers=bearer(other)).status_code == 404
    assert client.delete(f"/api/designs/{design['_id']}", headers=bearer(owner)).status_code == 200
    assert client.get(f"/api/designs/{design['_id']}", headers=bearer(owner)).status_code == 404


def test_admin_stats(client, make_item, make_custom_order):
    make_item(Quantity=0)
    make_item(Quantity=3)
    make_custom_order()

    customer = create_token({"_id": ObjectId(), "email": "c@example.com", "role": "customer"})
    assert client.get("/api/admin/stats", headers=bearer(customer)).status_code == 403

    admin = create_token({"_id": ObjectId(), "email": "a@example.com", "role": "admin"})
    response = client.get("/api/admin/stats", headers=bearer(admin))
    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["inventory"] == 2
    assert stats["outOfStock"] == 1
    assert stats["lowStock"] == 1
    assert stats["pendingCustomOrders"] == 1
    assert stats["unconvertedCustomOrders"] == 0


def test_health_and_schema(client):
    assert client.get("/").json()["status"] == "ok"
    assert client.get("/test").json()["database"] == "connected"
    schema = client.get("/schema").json()
    assert "customorder" in schema["collections"]
    assert "StockStatus" in schema["schemas"]["inventory"]["properties"]


def test_simultaneous_creates_keep_email_unique(client, db, monkeypatch):
    real_hash = users.hash_password
    overlapping = []

    def hash_while_another_signs_up(password):
        if not overlapping:
            overlapping.append(None)
            overlapping[0] = client.post("/api/users", json=user_payload(UserName="Twin"))
        return real_hash(password)

    monkeypatch.setattr(users, "hash_password", hash_while_another_signs_up)
    response = client.post("/api/users", json=user_payload())

    assert overlapping[0].status_code == 201
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Email already registered"}
    assert db["user"].count_documents({"email": "nimali@example.com"}) == 1


@pytest.mark.parametrize("collection,field,value", [
    ("user", "email", "dup@example.com"),
    ("inventory", "inventoryID", 7),
    ("promotion", "promotionID", 3),
])
def test_business_keys_have_unique_indexes(client, db, collection, field, value):
    db[collection].insert_one({field: value})
    with pytest.raises(DuplicateKeyError):
        db[collection].insert_one({field: value})
