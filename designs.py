import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument

from auth import get_current_user_id
from database import create_document, get_db, get_document, now_utc, serialize, to_object_id
from schemas import Design, DesignCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/designs", tags=["designs"])


def find_own_design(db, design_id: str, user_id: str) -> dict:
    oid = to_object_id(design_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid design ID format")
    design = db["design"].find_one({"_id": oid, "userId": user_id})
    if not design:
        raise HTTPException(status_code=404, detail="Design not found")
    return design


@router.post("", status_code=201)
def save_design(payload: DesignCreate, user_id: str = Depends(get_current_user_id), db=Depends(get_db)):
    design = Design(userId=user_id, **payload.model_dump())
    doc = design.model_dump()
    doc["dateCreated"] = now_utc()
    new_id = create_document(db, "design", doc)
    logger.info("Saved %s design %s for user %s", design.clothingType, new_id, user_id)
    return {"success": True, "message": "Design saved successfully", "design": serialize(get_document(db, "design", new_id))}


@router.get("")
def list_designs(user_id: str = Depends(get_current_user_id), db=Depends(get_db)):
    designs = db["design"].find({"userId": user_id}).sort([("dateCreated", -1), ("_id", -1)])
    return {"success": True, "data": [serialize(d) for d in designs]}


@router.get("/{design_id}")
def get_design(design_id: str, user_id: str = Depends(get_current_user_id), db=Depends(get_db)):
    return {"success": True, "data": serialize(find_own_design(db, design_id, user_id))}


@router.put("/{design_id}/favorite")
def toggle_favorite(design_id: str, user_id: str = Depends(get_current_user_id), db=Depends(get_db)):
    design = find_own_design(db, design_id, user_id)
    updated = db["design"].find_one_and_update(
        {"_id": design["_id"]},
        {"$set": {"isFavorite": not design.get("isFavorite", False), "updatedAt": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    return {"success": True, "data": serialize(updated)}


@router.delete("/{design_id}")
def delete_design(design_id: str, user_id: str = Depends(get_current_user_id), db=Depends(get_db)):
    design = find_own_design(db, design_id, user_id)
    db["design"].delete_one({"_id": design["_id"]})
    return {"success": True, "message": "Design deleted successfully"}
