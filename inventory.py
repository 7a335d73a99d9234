import logging
import math
import os
import re
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import (
    bump_sequence,
    create_document,
    get_db,
    get_document,
    next_sequence,
    now_utc,
    serialize,
    to_object_id,
)
from pricing import discounted_price, is_expired
from schemas import (
    Inventory,
    InventoryCreate,
    InventoryUpdate,
    RetrievedInventory,
    RetrievedPriceUpdate,
    SendToStoreRequest,
    StockStatusUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/inventory", tags=["inventory"])

UPLOAD_PREFIX = "uploads/"
INVENTORY_UPLOAD_DIR = "uploads/inventory/"


def stock_status(quantity: int, reorder_threshold: int) -> str:
    if quantity <= 0:
        return "out-of-stock"
    if quantity <= reorder_threshold:
        return "low-stock"
    return "in-stock"


def normalize_image_path(image: str) -> str:
    """Keep remote URLs, rewrite local file paths to ``uploads/...``."""
    image = image.strip()
    if re.match(r"^https?://", image, re.IGNORECASE):
        return image
    path = image.replace("\\", "/")
    marker = path.rfind(UPLOAD_PREFIX)
    if marker != -1:
        return path[marker:]
    return INVENTORY_UPLOAD_DIR + os.path.basename(path.rstrip("/"))


def parse_inventory_id(raw: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid inventory ID")


def parse_quantity(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() and raw >= 0 else None
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def find_item(db, inventory_id: int) -> dict:
    item = db["inventory"].find_one({"inventoryID": inventory_id})
    if not item:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return item


def retrieved_object_id(retrieved_id: str):
    oid = to_object_id(retrieved_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid retrieved inventory ID")
    return oid


def retrieval_snapshot(item: dict, retrieved_quantity: int, unit_price: Optional[float]) -> RetrievedInventory:
    return RetrievedInventory(
        inventoryID=item["inventoryID"],
        ItemName=item["ItemName"],
        Category=item["Category"],
        Brand=item["Brand"],
        Sizes=list(item.get("Sizes") or []),
        Colors=list(item.get("Colors") or []),
        Gender=item.get("Gender"),
        Style=item["Style"],
        image=item["image"],
        retrievedQuantity=retrieved_quantity,
        unitPrice=unit_price,
        retrievedDate=now_utc(),
    )


# ---------- Retrieved stock and storefront listings ----------

@router.get("/retrieved/all")
def list_retrieved_inventory(db=Depends(get_db)):
    records = db["retrievedinventory"].find().sort([("retrievedDate", -1), ("_id", -1)])
    return {"success": True, "data": [serialize(r) for r in records]}


@router.put("/retrieved/{retrieved_id}")
def update_retrieved_price(retrieved_id: str, payload: RetrievedPriceUpdate, db=Depends(get_db)):
    oid = retrieved_object_id(retrieved_id)
    updates = payload.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="Nothing to update")
    updates["updatedAt"] = now_utc()
    record = db["retrievedinventory"].find_one_and_update(
        {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not record:
        raise HTTPException(status_code=404, detail="Retrieved inventory item not found")
    return {"success": True, "data": serialize(record), "message": "Price updated successfully"}


@router.post("/retrieved/{retrieved_id}/send-to-store")
def send_to_store(retrieved_id: str, payload: SendToStoreRequest, db=Depends(get_db)):
    oid = retrieved_object_id(retrieved_id)
    record = db["retrievedinventory"].find_one({"_id": oid})
    if not record:
        raise HTTPException(status_code=404, detail="Retrieved inventory item not found")

    unit_price = payload.unitPrice if payload.unitPrice is not None else record.get("unitPrice")
    if unit_price is None:
        raise HTTPException(status_code=400, detail="Unit price is required to send an item to the store")

    promotion = None
    if payload.promotionID is not None:
        promotion = db["promotion"].find_one({"promotionID": payload.promotionID})
        if not promotion:
            raise HTTPException(status_code=404, detail="Promotion not found")
        if is_expired(promotion):
            raise HTTPException(status_code=400, detail="Promotion has expired")

    updates = {
        "unitPrice": unit_price,
        "finalPrice": discounted_price(promotion, unit_price),
        "promotionID": payload.promotionID,
        "sentToStore": True,
        "sentToStoreDate": now_utc(),
        "updatedAt": now_utc(),
    }
    record = db["retrievedinventory"].find_one_and_update(
        {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    logger.info(
        "Listed retrieved item %s (inventory %s) at %.2f",
        retrieved_id, record["inventoryID"], updates["finalPrice"],
    )
    return {"success": True, "data": serialize(record), "message": "Item sent to store"}


@router.get("/store/listings")
def list_store_listings(db=Depends(get_db)):
    records = db["retrievedinventory"].find({"sentToStore": True}).sort([("sentToStoreDate", -1), ("_id", -1)])
    return {"success": True, "data": [serialize(r) for r in records]}


# ---------- Filtered reads ----------

@router.get("/category/{category}")
def get_inventory_by_category(category: str, db=Depends(get_db)):
    items = [serialize(i) for i in db["inventory"].find({"Category": category})]
    if not items:
        raise HTTPException(status_code=404, detail="No items found in this category")
    return items


@router.get("/status/low-stock")
def get_low_stock_items(db=Depends(get_db)):
    return [serialize(i) for i in db["inventory"].find({"StockStatus": "low-stock"})]


# ---------- CRUD ----------

@router.post("", status_code=201)
def create_inventory(payload: InventoryCreate, db=Depends(get_db)):
    if not payload.image or not payload.image.strip():
        raise HTTPException(status_code=400, detail="Image is required")

    if payload.inventoryID is not None:
        if db["inventory"].find_one({"inventoryID": payload.inventoryID}):
            raise HTTPException(status_code=400, detail="Inventory ID already exists")
        inventory_id = payload.inventoryID
        bump_sequence(db, "inventoryID", inventory_id)
    else:
        inventory_id = next_sequence(db, "inventoryID")

    data = payload.model_dump(exclude={"inventoryID", "image"})
    item = Inventory(
        **data,
        inventoryID=inventory_id,
        image=normalize_image_path(payload.image),
        StockStatus=stock_status(payload.Quantity, payload.reorderThreshold),
    )
    try:
        new_id = create_document(db, "inventory", item)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Inventory ID already exists")
    logger.info("Created inventory item %s (%s)", inventory_id, item.StockStatus)
    return serialize(get_document(db, "inventory", new_id))


@router.get("")
def list_inventory(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db=Depends(get_db),
):
    skip = (page - 1) * limit
    cursor = db["inventory"].find().sort("inventoryID", 1).skip(skip).limit(limit)
    total = db["inventory"].count_documents({})
    return {
        "items": [serialize(i) for i in cursor],
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if total else 0,
    }


@router.get("/{inventory_id}")
def get_inventory(inventory_id: str, db=Depends(get_db)):
    return serialize(find_item(db, parse_inventory_id(inventory_id)))


@router.put("/{inventory_id}")
def update_inventory(inventory_id: str, payload: InventoryUpdate, db=Depends(get_db)):
    key = parse_inventory_id(inventory_id)
    item = find_item(db, key)

    updates = payload.model_dump(exclude_unset=True)
    for field in ("ItemName", "Category", "Brand", "Gender", "Style", "Location", "SupplierName", "SupplierContact"):
        if field in updates and not updates[field]:
            raise HTTPException(status_code=400, detail=f"{field} cannot be empty")
    if "Quantity" in updates and updates["Quantity"] is None:
        raise HTTPException(status_code=400, detail="Quantity must be a non-negative integer")
    if "reorderThreshold" in updates and updates["reorderThreshold"] is None:
        raise HTTPException(status_code=400, detail="reorderThreshold must be a non-negative integer")
    if updates.get("image"):
        updates["image"] = normalize_image_path(updates["image"])
    else:
        updates.pop("image", None)
    for field in ("Sizes", "Colors"):
        if field in updates and updates[field] is None:
            updates[field] = []
    if "Quantity" in updates or "reorderThreshold" in updates:
        updates["StockStatus"] = stock_status(
            updates.get("Quantity", item["Quantity"]),
            updates.get("reorderThreshold", item["reorderThreshold"]),
        )
    updates["updatedAt"] = now_utc()

    updated = db["inventory"].find_one_and_update(
        {"inventoryID": key}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return serialize(updated)


@router.delete("/{inventory_id}")
def delete_inventory(inventory_id: str, db=Depends(get_db)):
    key = parse_inventory_id(inventory_id)
    result = db["inventory"].delete_one({"inventoryID": key})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    logger.info("Deleted inventory item %s", key)
    return {"success": True, "message": "Inventory item deleted successfully", "inventoryID": key}


@router.put("/{inventory_id}/stock-status")
def update_stock_status(inventory_id: str, payload: StockStatusUpdate, db=Depends(get_db)):
    """Set a new quantity and re-derive the stock status.

    ``action="retrieve"`` moves the difference between the current and the
    new quantity into the retrieved-inventory staging collection.
    ``action="add"`` may also carry a new unit price.
    """
    key = parse_inventory_id(inventory_id)
    item = find_item(db, key)
    current = item["Quantity"]

    if payload.Quantity is None:
        if payload.action == "retrieve":
            raise HTTPException(status_code=400, detail="Quantity is required to retrieve stock")
        new_quantity = current
    else:
        new_quantity = parse_quantity(payload.Quantity)
        if new_quantity is None:
            raise HTTPException(status_code=400, detail="Quantity must be a non-negative integer")

    if payload.action == "retrieve":
        retrieved_quantity = current - new_quantity
        if retrieved_quantity <= 0:
            raise HTTPException(
                status_code=400,
                detail=f"Retrieved quantity must be positive (current stock is {current})",
            )

    updates = {
        "Quantity": new_quantity,
        "StockStatus": stock_status(new_quantity, item["reorderThreshold"]),
        "updatedAt": now_utc(),
    }
    if payload.action == "add" and payload.unitPrice is not None:
        updates["unitPrice"] = payload.unitPrice

    updated = db["inventory"].find_one_and_update(
        {"inventoryID": key, "Quantity": current},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        find_item(db, key)
        raise HTTPException(status_code=409, detail="Inventory quantity was changed by another request")

    if payload.action == "retrieve":
        unit_price = payload.unitPrice if payload.unitPrice is not None else item.get("unitPrice")
        snapshot = retrieval_snapshot(updated, retrieved_quantity, unit_price)
        create_document(db, "retrievedinventory", snapshot)
        logger.info("Retrieved %s units of inventory item %s", retrieved_quantity, key)
    return serialize(updated)
