"""
Custom design orders and their conversion into regular orders.

Approval claims the custom order (pending -> approved) with a conditional
update, then writes the regular order and the back-reference. The two writes
are not a transaction: when the second step fails the inserted order is
removed again and the custom order keeps ``status="approved"`` with
``convertedToOrder=False`` and a ``conversionError``, from which
``retry-conversion`` can finish the job.
"""

import logging
from typing import Optional, Tuple

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from database import (
    NEWEST_FIRST,
    create_document,
    get_db,
    get_document,
    get_documents,
    now_utc,
    serialize,
    to_object_id,
)
from orders import generate_order_id
from pricing import custom_order_price
from schemas import (
    CustomerInfo,
    CustomOrder,
    CustomOrderCreate,
    DeliveryInfo,
    Order,
    OrderItem,
    RejectRequest,
    StatusUpdate,
)
from workflow import CUSTOM_ORDER_STATUS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/custom-orders", tags=["custom-orders"])

NOT_PROVIDED = "Not provided"


class ConversionFailed(Exception):
    def __init__(self, message: str, custom_order: dict):
        super().__init__(message)
        self.custom_order = custom_order


def custom_order_object_id(raw: str) -> ObjectId:
    oid = to_object_id(raw)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid order ID format")
    return oid


def find_custom_order(db, raw: str) -> dict:
    custom_order = db["customorder"].find_one({"_id": custom_order_object_id(raw)})
    if not custom_order:
        raise HTTPException(status_code=404, detail="Custom order not found")
    return custom_order


def conversion_line_item(custom_order: dict) -> OrderItem:
    quantity = custom_order.get("quantity") or 1
    total = custom_order.get("price") or 0
    clothing_type = custom_order.get("clothingType")
    return OrderItem(
        itemId=str(custom_order.get("designId") or "custom-design"),
        quantity=quantity,
        price=round(total / quantity, 2),
        title=f"Custom {clothing_type.capitalize() if clothing_type else 'Design'}",
        size=custom_order.get("size") or "M",
        color=custom_order.get("color") or "custom",
        img=custom_order.get("imageUrl") or "",
    )


def conversion_order(custom_order: dict) -> Order:
    customer = custom_order.get("customerInfo") or {}
    delivery = custom_order.get("deliveryInfo") or {}
    return Order(
        orderId=generate_order_id("CUSTOM"),
        userId=custom_order.get("userId"),
        items=[conversion_line_item(custom_order)],
        total=custom_order.get("price") or 0,
        customerInfo=CustomerInfo(
            name=customer.get("name") or "Customer",
            email=customer.get("email") or NOT_PROVIDED,
            mobile=customer.get("mobile") or NOT_PROVIDED,
        ),
        deliveryInfo=DeliveryInfo(
            address=delivery.get("address") or NOT_PROVIDED,
            city=delivery.get("city") or NOT_PROVIDED,
            postalCode=delivery.get("postalCode") or NOT_PROVIDED,
        ),
        paymentMethod="Cash",
        status="processing",
    )


def record_conversion_error(db, custom_order: dict, error: Exception) -> dict:
    logger.error("Converting custom order %s failed: %s", custom_order["_id"], error)
    return db["customorder"].find_one_and_update(
        {"_id": custom_order["_id"]},
        {"$set": {
            "status": "approved",
            "convertedToOrder": False,
            "conversionError": str(error) or error.__class__.__name__,
            "updatedAt": now_utc(),
        }},
        return_document=ReturnDocument.AFTER,
    )


def convert_to_order(db, custom_order: dict) -> Tuple[dict, dict]:
    """Create the regular order for an approved custom order.

    Returns the updated custom order and the new order, or raises
    ConversionFailed carrying the custom order with its recorded error.
    """
    order_id: Optional[str] = None
    try:
        order = conversion_order(custom_order)
        order_id = create_document(db, "order", order)
        updated = db["customorder"].find_one_and_update(
            {"_id": custom_order["_id"]},
            {"$set": {
                "convertedToOrder": True,
                "orderId": order_id,
                "conversionError": None,
                "updatedAt": now_utc(),
            }},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise PyMongoError("Custom order disappeared during conversion")
    except (PyMongoError, ValueError) as exc:
        if order_id is not None:
            # compensate: the back-reference could not be stored
            db["order"].delete_one({"_id": ObjectId(order_id)})
        failed = record_conversion_error(db, custom_order, exc)
        raise ConversionFailed(str(exc), failed or custom_order)

    logger.info("Custom order %s converted to order %s", custom_order["_id"], order.orderId)
    return updated, get_document(db, "order", order_id)


def conversion_failed_response(exc: ConversionFailed) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content=jsonable_encoder({
            "success": False,
            "message": "Error creating regular order",
            "error": str(exc),
            "customOrder": serialize(exc.custom_order),
        }),
    )


@router.post("/create", status_code=201)
def create_custom_order(payload: CustomOrderCreate, db=Depends(get_db)):
    if not payload.userId or not payload.imageUrl or not payload.clothingType or not payload.size:
        raise HTTPException(status_code=400, detail="Missing required fields")

    custom_order = CustomOrder(
        userId=payload.userId,
        imageUrl=payload.imageUrl,
        clothingType=payload.clothingType,
        size=payload.size,
        quantity=payload.quantity,
        specialInstructions=payload.specialInstructions,
        customerInfo=payload.customerInfo,
        deliveryInfo=payload.deliveryInfo,
        price=custom_order_price(payload.clothingType, payload.quantity),
    )
    doc = custom_order.model_dump()
    design_id = to_object_id(payload.designId)
    if design_id is not None:
        doc["designId"] = design_id
    else:
        doc.pop("designId")

    new_id = create_document(db, "customorder", doc)
    logger.info("Custom %s order %s submitted by %s", payload.clothingType, new_id, payload.userId)
    return {
        "success": True,
        "message": "Custom order request submitted successfully",
        "order": serialize(get_document(db, "customorder", new_id)),
    }


@router.get("")
def list_custom_orders(db=Depends(get_db)):
    return get_documents(db, "customorder", sort=NEWEST_FIRST)


@router.get("/user/{user_id}")
def list_user_custom_orders(user_id: str, db=Depends(get_db)):
    return get_documents(db, "customorder", {"userId": user_id}, sort=NEWEST_FIRST)


@router.get("/{custom_order_id}")
def get_custom_order(custom_order_id: str, db=Depends(get_db)):
    return serialize(find_custom_order(db, custom_order_id))


@router.put("/{custom_order_id}/status")
def update_custom_order_status(custom_order_id: str, payload: StatusUpdate, db=Depends(get_db)):
    if not payload.status:
        raise HTTPException(status_code=400, detail="Status is required")
    if payload.status not in CUSTOM_ORDER_STATUS.states:
        raise HTTPException(status_code=400, detail=f"Unknown custom order status: {payload.status}")
    if payload.status == "approved":
        raise HTTPException(status_code=400, detail="Use the approve endpoint to approve a custom order")

    custom_order = find_custom_order(db, custom_order_id)
    target = CUSTOM_ORDER_STATUS.transition(custom_order["status"], payload.status)
    updated = db["customorder"].find_one_and_update(
        {"_id": custom_order["_id"], "status": custom_order["status"]},
        {"$set": {"status": target, "updatedAt": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=409, detail="Custom order status was changed by another request")
    return {"success": True, "message": "Status updated successfully", "customOrder": serialize(updated)}


@router.put("/{custom_order_id}/approve")
def approve_custom_order(custom_order_id: str, db=Depends(get_db)):
    custom_order = find_custom_order(db, custom_order_id)
    if custom_order["status"] != "pending":
        raise HTTPException(status_code=400, detail=f"Order is already {custom_order['status']}")
    CUSTOM_ORDER_STATUS.transition(custom_order["status"], "approved")

    claimed = db["customorder"].find_one_and_update(
        {"_id": custom_order["_id"], "status": "pending"},
        {"$set": {"status": "approved", "updatedAt": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if claimed is None:
        current = find_custom_order(db, custom_order_id)
        raise HTTPException(status_code=400, detail=f"Order is already {current['status']}")

    try:
        updated, order = convert_to_order(db, claimed)
    except ConversionFailed as exc:
        return conversion_failed_response(exc)
    return {
        "success": True,
        "message": "Custom order approved and converted to regular order",
        "customOrder": serialize(updated),
        "order": serialize(order),
    }


@router.put("/{custom_order_id}/retry-conversion")
def retry_conversion(custom_order_id: str, db=Depends(get_db)):
    custom_order = find_custom_order(db, custom_order_id)
    if custom_order["status"] != "approved" or custom_order.get("convertedToOrder"):
        raise HTTPException(status_code=400, detail="Custom order is not awaiting conversion")

    try:
        updated, order = convert_to_order(db, custom_order)
    except ConversionFailed as exc:
        return conversion_failed_response(exc)
    return {
        "success": True,
        "message": "Custom order converted to regular order",
        "customOrder": serialize(updated),
        "order": serialize(order),
    }


@router.put("/{custom_order_id}/reject")
def reject_custom_order(custom_order_id: str, payload: Optional[RejectRequest] = None, db=Depends(get_db)):
    custom_order = find_custom_order(db, custom_order_id)
    CUSTOM_ORDER_STATUS.transition(custom_order["status"], "rejected")
    reason = (payload.reason if payload else None) or "No reason provided"
    updated = db["customorder"].find_one_and_update(
        {"_id": custom_order["_id"], "status": custom_order["status"]},
        {"$set": {"status": "rejected", "rejectionReason": reason, "updatedAt": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=409, detail="Custom order status was changed by another request")
    logger.info("Custom order %s rejected: %s", custom_order_id, reason)
    return {"success": True, "message": "Custom order rejected", "customOrder": serialize(updated)}


@router.delete("/{custom_order_id}")
def delete_custom_order(custom_order_id: str, db=Depends(get_db)):
    result = db["customorder"].delete_one({"_id": custom_order_object_id(custom_order_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Custom order not found")
    return {"success": True, "message": "Custom order deleted successfully"}
