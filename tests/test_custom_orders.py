from bson import ObjectId
from pymongo.errors import PyMongoError

import custom_orders
from conftest import custom_order_payload


def test_create_prices_and_stays_pending(client, db):
    response = client.post("/api/custom-orders/create", json=custom_order_payload(
        specialInstructions="  longer sleeves  ",
        customerInfo={"name": "Ama", "mobile": 771234567},
    ))
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Custom order request submitted successfully"
    order = body["order"]
    assert order["price"] == 91.98
    assert order["status"] == "pending"
    assert order["convertedToOrder"] is False
    assert order["specialInstructions"] == "longer sleeves"
    assert order["customerInfo"]["mobile"] == "771234567"
    assert "designId" not in order
    assert db["customorder"].count_documents({}) == 1


def test_create_requires_fields(client):
    payload = custom_order_payload()
    del payload["userId"]
    response = client.post("/api/custom-orders/create", json=payload)
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Missing required fields"}


def test_create_rejects_unknown_garment_and_zero_quantity(client):
    response = client.post("/api/custom-orders/create", json=custom_order_payload(clothingType="hat", quantity=0))
    assert response.status_code == 400
    assert set(response.json()["errors"]) == {"clothingType", "quantity"}


def test_design_id_kept_only_when_valid(client, db, make_custom_order):
    design_id = str(ObjectId())
    order = make_custom_order(designId=design_id)
    assert order["designId"] == design_id
    assert isinstance(db["customorder"].find_one()["designId"], ObjectId)

    order = make_custom_order(designId="sketch-42")
    assert "designId" not in order


def test_list_newest_first_and_by_user(client, make_custom_order):
    first = make_custom_order()
    second = make_custom_order(userId="u2")
    listed = client.get("/api/custom-orders").json()
    assert [o["_id"] for o in listed] == [second["_id"], first["_id"]]
    mine = client.get("/api/custom-orders/user/u2").json()
    assert [o["_id"] for o in mine] == [second["_id"]]


def test_get_by_id(client, make_custom_order):
    order = make_custom_order()
    assert client.get(f"/api/custom-orders/{order['_id']}").json()["_id"] == order["_id"]
    assert client.get(f"/api/custom-orders/{ObjectId()}").status_code == 404
    missing = client.get("/api/custom-orders/nope")
    assert missing.status_code == 400
    assert missing.json()["message"] == "Invalid order ID format"


def test_approve_converts_to_order(client, db, make_custom_order):
    design_id = str(ObjectId())
    custom = make_custom_order(designId=design_id, deliveryInfo={"city": "Kandy"})

    response = client.put(f"/api/custom-orders/{custom['_id']}/approve")
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Custom order approved and converted to regular order"
    assert body["customOrder"]["status"] == "approved"
    assert body["customOrder"]["convertedToOrder"] is True
    assert body["customOrder"]["orderId"] == body["order"]["_id"]

    order = body["order"]
    assert order["status"] == "processing"
    assert order["orderId"].startswith("CUSTOM-")
    assert order["paymentMethod"] == "Cash"
    assert order["total"] == 91.98
    assert order["customerInfo"] == {"name": "Customer", "email": "Not provided", "mobile": "Not provided"}
    assert order["deliveryInfo"] == {"address": "Not provided", "city": "Kandy", "postalCode": "Not provided"}
    [item] = order["items"]
    assert item["itemId"] == design_id
    assert item["quantity"] == 2
    assert item["price"] == 45.99
    assert item["title"] == "Custom Dress"
    assert item["img"] == "http://x/y.png"
    assert db["order"].count_documents({}) == 1


def test_approve_twice_or_after_reject(client, db, make_custom_order):
    custom = make_custom_order()
    client.put(f"/api/custom-orders/{custom['_id']}/approve")
    approved = db["customorder"].find_one({"_id": ObjectId(custom["_id"])})
    again = client.put(f"/api/custom-orders/{custom['_id']}/approve")
    assert again.status_code == 400
    assert again.json()["message"] == "Order is already approved"
    assert db["customorder"].find_one({"_id": ObjectId(custom["_id"])}) == approved
    assert db["order"].count_documents({}) == 1

    rejected = make_custom_order()
    client.put(f"/api/custom-orders/{rejected['_id']}/reject", json={"reason": "Out of fabric"})
    before = db["customorder"].find_one({"_id": ObjectId(rejected["_id"])})
    response = client.put(f"/api/custom-orders/{rejected['_id']}/approve")
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Order is already rejected"}
    after = db["customorder"].find_one({"_id": ObjectId(rejected["_id"])})
    assert after == before
    assert (after["status"], after["convertedToOrder"], after["updatedAt"]) == ("rejected", False, before["updatedAt"])


def test_approve_bad_and_missing_ids(client):
    assert client.put("/api/custom-orders/abc/approve").status_code == 400
    assert client.put(f"/api/custom-orders/{ObjectId()}/approve").status_code == 404


def test_failed_conversion_is_recorded_then_retried(client, db, make_custom_order, monkeypatch):
    custom = make_custom_order()
    real_create = custom_orders.create_document

    def failing_create(database, collection_name, data):
        if collection_name == "order":
            raise PyMongoError("write concern timeout")
        return real_create(database, collection_name, data)

    monkeypatch.setattr(custom_orders, "create_document", failing_create)
    response = client.put(f"/api/custom-orders/{custom['_id']}/approve")
    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Error creating regular order"
    assert body["error"] == "write concern timeout"
    assert body["customOrder"]["status"] == "approved"
    assert body["customOrder"]["convertedToOrder"] is False
    assert body["customOrder"]["conversionError"] == "write concern timeout"
    assert db["order"].count_documents({}) == 0

    stored = db["customorder"].find_one({"_id": ObjectId(custom["_id"])})
    assert stored["status"] == "approved"

    monkeypatch.undo()
    retried = client.put(f"/api/custom-orders/{custom['_id']}/retry-conversion")
    assert retried.status_code == 200
    assert retried.json()["customOrder"]["convertedToOrder"] is True
    assert retried.json()["customOrder"]["conversionError"] is None
    assert db["order"].count_documents({}) == 1

    done = client.put(f"/api/custom-orders/{custom['_id']}/retry-conversion")
    assert done.status_code == 400
    assert done.json()["message"] == "Custom order is not awaiting conversion"


def test_order_removed_when_back_reference_fails(client, db, make_custom_order, monkeypatch):
    custom = make_custom_order()
    real_create = custom_orders.create_document

    def create_then_lose_custom_order(database, collection_name, data):
        new_id = real_create(database, collection_name, data)
        if collection_name == "order":
            database["customorder"].delete_one({"_id": ObjectId(custom["_id"])})
        return new_id

    monkeypatch.setattr(custom_orders, "create_document", create_then_lose_custom_order)
    response = client.put(f"/api/custom-orders/{custom['_id']}/approve")
    assert response.status_code == 500
    assert response.json()["error"] == "Custom order disappeared during conversion"
    assert db["order"].count_documents({}) == 0


def test_retry_requires_pending_conversion(client, make_custom_order):
    custom = make_custom_order()
    response = client.put(f"/api/custom-orders/{custom['_id']}/retry-conversion")
    assert response.status_code == 400


def test_reject_defaults_reason(client, make_custom_order):
    custom = make_custom_order()
    response = client.put(f"/api/custom-orders/{custom['_id']}/reject")
    assert response.status_code == 200
    rejected = response.json()["customOrder"]
    assert rejected["status"] == "rejected"
    assert rejected["rejectionReason"] == "No reason provided"

    again = client.put(f"/api/custom-orders/{custom['_id']}/reject", json={"reason": "late"})
    assert again.status_code == 400
    assert again.json()["message"] == "Cannot change custom order status from rejected to rejected"


def test_status_follows_workflow(client, make_custom_order):
    custom = make_custom_order()
    url = f"/api/custom-orders/{custom['_id']}/status"

    skipped = client.put(url, json={"status": "shipped"})
    assert skipped.status_code == 400
    assert skipped.json()["message"] == "Cannot change custom order status from pending to shipped"

    direct = client.put(url, json={"status": "approved"})
    assert direct.status_code == 400
    assert direct.json()["message"] == "Use the approve endpoint to approve a custom order"

    assert client.put(url, json={}).json()["message"] == "Status is required"
    assert client.put(url, json={"status": "lost"}).status_code == 400

    client.put(f"/api/custom-orders/{custom['_id']}/approve")
    for status in ("processing", "shipped", "delivered"):
        response = client.put(url, json={"status": status})
        assert response.status_code == 200
        assert response.json()["customOrder"]["status"] == status

    assert client.put(url, json={"status": "cancelled"}).status_code == 400


def test_cancel_pending(client, make_custom_order):
    custom = make_custom_order()
    response = client.put(f"/api/custom-orders/{custom['_id']}/status", json={"status": "cancelled"})
    assert response.status_code == 200
    assert response.json()["customOrder"]["status"] == "cancelled"


def test_delete(client, make_custom_order):
    custom = make_custom_order()
    assert client.delete(f"/api/custom-orders/{custom['_id']}").status_code == 200
    assert client.delete(f"/api/custom-orders/{custom['_id']}").status_code == 404
    assert client.delete("/api/custom-orders/xyz").status_code == 400
