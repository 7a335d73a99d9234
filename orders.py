import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument

from database import (
    NEWEST_FIRST,
    create_document,
    get_db,
    get_document,
    get_documents,
    is_object_id,
    now_utc,
    serialize,
    to_object_id,
)
from pricing import PromotionNotApplicable, promotion_discount
from schemas import CheckoutRequest, Order, StatusUpdate
from workflow import ORDER_STATUS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


def generate_order_id(prefix: str) -> str:
    return f"{prefix}-{secrets.token_hex(3).upper()}"


def order_filter(order_id: str) -> dict:
    # accepts either the document id or the human readable orderId
    if is_object_id(order_id):
        return {"_id": to_object_id(order_id)}
    return {"orderId": order_id}


def find_order(db, order_id: str) -> dict:
    order = db["order"].find_one(order_filter(order_id))
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("", status_code=201)
def create_order(payload: CheckoutRequest, db=Depends(get_db)):
    items = [item.model_dump() for item in payload.items]
    subtotal = round(sum(i["price"] * i["quantity"] for i in items), 2)

    discount = 0.0
    promotion = None
    if payload.promoCode:
        promotion = db["promotion"].find_one({"promoCode": payload.promoCode})
        if not promotion:
            raise HTTPException(status_code=404, detail="Invalid promotion code")
        try:
            discount, _ = promotion_discount(promotion, items)
        except PromotionNotApplicable as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    order = Order(
        orderId=generate_order_id("ORD"),
        userId=payload.userId,
        items=payload.items,
        total=round(max(0.0, subtotal - discount), 2),
        discount=discount,
        promoCode=payload.promoCode if promotion else None,
        customerInfo=payload.customerInfo,
        deliveryInfo=payload.deliveryInfo,
        paymentMethod=payload.paymentMethod,
        status="pending",
    )
    new_id = create_document(db, "order", order)
    if promotion:
        db["promotion"].update_one({"_id": promotion["_id"]}, {"$inc": {"usageCount": 1}})
    logger.info("Created order %s total %.2f", order.orderId, order.total)
    return {"success": True, "message": "Order placed successfully", "order": serialize(get_document(db, "order", new_id))}


@router.get("")
def list_orders(db=Depends(get_db)):
    return get_documents(db, "order", sort=NEWEST_FIRST)


@router.get("/user/{user_id}")
def list_user_orders(user_id: str, db=Depends(get_db)):
    return get_documents(db, "order", {"userId": user_id}, sort=NEWEST_FIRST)


@router.get("/{order_id}")
def get_order(order_id: str, db=Depends(get_db)):
    return serialize(find_order(db, order_id))


@router.put("/{order_id}/status")
def update_order_status(order_id: str, payload: StatusUpdate, db=Depends(get_db)):
    if not payload.status:
        raise HTTPException(status_code=400, detail="Status is required")
    if payload.status not in ORDER_STATUS.states:
        raise HTTPException(status_code=400, detail=f"Unknown order status: {payload.status}")

    order = find_order(db, order_id)
    target = ORDER_STATUS.transition(order["status"], payload.status)
    updated = db["order"].find_one_and_update(
        {"_id": order["_id"], "status": order["status"]},
        {"$set": {"status": target, "updatedAt": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=409, detail="Order status was changed by another request")
    return {"success": True, "message": "Status updated successfully", "order": serialize(updated)}


@router.delete("/{order_id}")
def delete_order(order_id: str, db=Depends(get_db)):
    result = db["order"].delete_one(order_filter(order_id))
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"success": True, "message": "Order deleted successfully"}
