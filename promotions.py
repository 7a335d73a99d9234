import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import bump_sequence, create_document, get_db, get_document, next_sequence, now_utc, serialize
from schemas import Promotion, PromotionCreate, PromotionUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/promotions", tags=["promotions"])


def parse_promotion_id(raw: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid promotion ID")


def find_by_code(db, promo_code: str):
    return db["promotion"].find_one({"promoCode": promo_code})


@router.post("", status_code=201)
def create_promotion(payload: PromotionCreate, db=Depends(get_db)):
    if payload.promotionID is not None:
        if db["promotion"].find_one({"promotionID": payload.promotionID}):
            raise HTTPException(status_code=400, detail="Promotion ID already exists")
        promotion_id = payload.promotionID
        bump_sequence(db, "promotionID", promotion_id)
    else:
        promotion_id = next_sequence(db, "promotionID")

    if payload.promoCode and find_by_code(db, payload.promoCode):
        raise HTTPException(status_code=400, detail="Promo code already in use")

    promotion = Promotion(
        **payload.model_dump(exclude={"promotionID"}),
        promotionID=promotion_id,
        promoCreatedDate=now_utc(),
    )
    try:
        new_id = create_document(db, "promotion", promotion)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Promotion ID already exists")
    logger.info("Created promotion %s (%s)", promotion_id, promotion.type)
    return {
        "success": True,
        "data": serialize(get_document(db, "promotion", new_id)),
        "message": "Promotion created successfully",
    }


@router.get("")
def list_promotions(db=Depends(get_db)):
    promotions = [serialize(p) for p in db["promotion"].find().sort("promotionID", 1)]
    return {"success": True, "data": promotions, "message": "Promotions retrieved successfully"}


@router.get("/code/{promo_code}")
def get_promotion_by_code(promo_code: str, db=Depends(get_db)):
    promotion = find_by_code(db, promo_code)
    if not promotion:
        raise HTTPException(status_code=404, detail="Invalid promotion code")
    return {"success": True, "data": serialize(promotion), "message": "Promotion retrieved successfully"}


@router.get("/{promotion_id}")
def get_promotion(promotion_id: str, db=Depends(get_db)):
    promotion = db["promotion"].find_one({"promotionID": parse_promotion_id(promotion_id)})
    if not promotion:
        raise HTTPException(status_code=404, detail="Promotion not found")
    return {"success": True, "data": serialize(promotion), "message": "Promotion retrieved successfully"}


@router.put("/{promotion_id}")
def update_promotion(promotion_id: str, payload: PromotionUpdate, db=Depends(get_db)):
    key = parse_promotion_id(promotion_id)
    updates = payload.model_dump(exclude_unset=True)
    for field in ("type", "validUntil"):
        if field in updates and updates[field] is None:
            raise HTTPException(status_code=400, detail=f"{field} is required")
    if updates.get("promoCode"):
        clash = find_by_code(db, updates["promoCode"])
        if clash and clash.get("promotionID") != key:
            raise HTTPException(status_code=400, detail="Promo code already in use")
    updates["updatedAt"] = now_utc()

    promotion = db["promotion"].find_one_and_update(
        {"promotionID": key}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not promotion:
        raise HTTPException(status_code=404, detail="Promotion not found")
    return {"success": True, "data": serialize(promotion), "message": "Promotion updated successfully"}


@router.delete("/{promotion_id}")
def delete_promotion(promotion_id: str, db=Depends(get_db)):
    result = db["promotion"].delete_one({"promotionID": parse_promotion_id(promotion_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Promotion not found")
    return {"success": True, "message": "Promotion deleted successfully"}
