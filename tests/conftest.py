import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app


@pytest.fixture
def db():
    return mongomock.MongoClient().fashion_commerce_test


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def inventory_payload(**overrides):
    data = {
        "ItemName": "Linen Shirt",
        "Category": "Shirts",
        "Brand": "Threadline",
        "Sizes": "S, M,L",
        "Colors": "white,navy",
        "Gender": "Men",
        "Style": "Casual",
        "Location": "Warehouse A",
        "Quantity": "20",
        "reorderThreshold": 5,
        "SupplierName": "Cotton Mills",
        "SupplierContact": "0771234567",
        "image": "C:\\srv\\api\\uploads\\inventory\\linen-shirt.png",
    }
    data.update(overrides)
    return data


def custom_order_payload(**overrides):
    data = {
        "userId": "u1",
        "imageUrl": "http://x/y.png",
        "clothingType": "dress",
        "size": "M",
        "quantity": 2,
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_item(client):
    def _make(**overrides):
        response = client.post("/api/inventory", json=inventory_payload(**overrides))
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def make_custom_order(client):
    def _make(**overrides):
        response = client.post("/api/custom-orders/create", json=custom_order_payload(**overrides))
        assert response.status_code == 201, response.text
        return response.json()["order"]
    return _make
