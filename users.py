import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo.errors import DuplicateKeyError

from auth import hash_password
from database import get_db, next_sequence, now_utc, public_document, to_object_id
from schemas import User, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

HIDDEN_FIELDS = ("password",)


def user_object_id(user_id: str):
    oid = to_object_id(user_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid user ID format")
    return oid


def to_public(doc):
    return public_document(doc, hidden=HIDDEN_FIELDS)


@router.post("", status_code=201)
def create_user(payload: UserCreate, db=Depends(get_db)):
    if not payload.UserName or not payload.email or not payload.password or not payload.mobile:
        raise HTTPException(status_code=400, detail="Required fields are missing")
    if not (payload.mobile.isdigit() and len(payload.mobile) == 10):
        raise HTTPException(status_code=400, detail="Mobile number must be exactly 10 digits")
    if db["user"].find_one({"email": payload.email}):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        userID=next_sequence(db, "userID"),
        UserName=payload.UserName,
        email=payload.email,
        password=hash_password(payload.password),
        mobile=payload.mobile,
        role="admin" if payload.role == "admin" else "customer",
        address=payload.address or None,
        image=payload.image,
    )
    doc = user.model_dump()
    doc["createdAt"] = doc["updatedAt"] = now_utc()
    try:
        db["user"].insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already registered")
    logger.info("Created user %s (%s)", user.userID, user.role)
    return {"success": True, "message": "User created successfully", "data": to_public(doc)}


@router.get("")
def list_users(db=Depends(get_db)):
    users = [to_public(u) for u in db["user"].find().sort("userID", 1)]
    return {"success": True, "data": users}


@router.get("/{user_id}")
def get_user(user_id: str, db=Depends(get_db)):
    user = db["user"].find_one({"_id": user_object_id(user_id)})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True, "data": to_public(user)}


@router.put("/{user_id}")
def update_user(user_id: str, payload: UserUpdate, db=Depends(get_db)):
    oid = user_object_id(user_id)
    if not payload.UserName:
        raise HTTPException(status_code=400, detail="UserName is required")
    if not payload.mobile or not (payload.mobile.isdigit() and len(payload.mobile) == 10):
        raise HTTPException(status_code=400, detail="Mobile number must be exactly 10 digits")

    updates = payload.model_dump(exclude_unset=True)
    if "password" in updates:
        if not updates["password"]:
            raise HTTPException(status_code=400, detail="Password cannot be empty")
        updates["password"] = hash_password(updates["password"])
    if "email" in updates:
        clash = db["user"].find_one({"email": updates["email"], "_id": {"$ne": oid}})
        if clash:
            raise HTTPException(status_code=400, detail="Email already registered")
    updates["updatedAt"] = now_utc()

    try:
        result = db["user"].update_one({"_id": oid}, {"$set": updates})
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already registered")
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    user = db["user"].find_one({"_id": oid})
    return {"success": True, "data": to_public(user), "message": "User updated successfully"}


@router.delete("/{user_id}")
def delete_user(user_id: str, db=Depends(get_db)):
    result = db["user"].delete_one({"_id": user_object_id(user_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Deleted user %s", user_id)
    return {"success": True, "message": "User deleted successfully"}
