import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument

from database import create_document, get_db, get_document, next_sequence, now_utc, serialize, to_object_id
from orders import order_filter
from schemas import Feedback, FeedbackCreate, FeedbackItem, FeedbackUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/feedbacks", tags=["feedback"])


def feedback_object_id(raw: str):
    oid = to_object_id(raw)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid feedback ID format")
    return oid


def snapshot_items(order: dict, item_ids=None):
    """Copy titles and prices out of the order as it is right now."""
    wanted = set(item_ids) if item_ids else None
    items = []
    for item in order.get("items") or []:
        if wanted is not None and str(item.get("itemId")) not in wanted:
            continue
        items.append(FeedbackItem(
            itemTitle=item.get("title") or "",
            quantity=item.get("quantity") or 1,
            price=item.get("price") or 0,
            img=item.get("img"),
        ))
    return items


@router.post("/create", status_code=201)
def create_feedback(payload: FeedbackCreate, db=Depends(get_db)):
    if not payload.userId or not payload.orderId or not payload.rating:
        raise HTTPException(status_code=400, detail="Missing required fields")

    order = db["order"].find_one(order_filter(payload.orderId))
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    items = snapshot_items(order, payload.items)
    if not items:
        raise HTTPException(status_code=400, detail="None of the items belong to this order")

    feedback = Feedback(
        feedbackID=next_sequence(db, "feedbackID"),
        userId=payload.userId,
        orderId=str(order["_id"]),
        orderDate=order.get("createdAt"),
        items=items,
        rating=payload.rating,
        comment=payload.comment,
    )
    new_id = create_document(db, "feedback", feedback)
    logger.info("Feedback %s recorded for order %s", feedback.feedbackID, feedback.orderId)
    return {
        "success": True,
        "message": "Feedback created successfully",
        "data": serialize(get_document(db, "feedback", new_id)),
    }


@router.get("")
def list_feedback(db=Depends(get_db)):
    return {"success": True, "data": [serialize(f) for f in db["feedback"].find().sort("feedbackID", -1)]}


@router.get("/user/{user_id}")
def list_user_feedback(user_id: str, db=Depends(get_db)):
    feedbacks = db["feedback"].find({"userId": user_id}).sort("feedbackID", -1)
    return {"success": True, "data": [serialize(f) for f in feedbacks]}


@router.get("/{feedback_id}")
def get_feedback(feedback_id: str, db=Depends(get_db)):
    feedback = db["feedback"].find_one({"_id": feedback_object_id(feedback_id)})
    if not feedback:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return {"success": True, "data": serialize(feedback)}


@router.put("/{feedback_id}")
def update_feedback(feedback_id: str, payload: FeedbackUpdate, db=Depends(get_db)):
    oid = feedback_object_id(feedback_id)
    updates = payload.model_dump(exclude_unset=True)
    if "rating" in updates and not updates["rating"]:
        raise HTTPException(status_code=400, detail="Rating is required")
    updates["updatedAt"] = now_utc()
    feedback = db["feedback"].find_one_and_update(
        {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not feedback:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return {"success": True, "data": serialize(feedback), "message": "Feedback updated successfully"}


@router.delete("/{feedback_id}")
def delete_feedback(feedback_id: str, db=Depends(get_db)):
    result = db["feedback"].delete_one({"_id": feedback_object_id(feedback_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return {"success": True, "message": "Feedback deleted successfully"}
