import logging
import os
from datetime import timedelta
from typing import Optional

import bcrypt
import jwt
from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from database import get_db, next_sequence, now_utc
from schemas import LoginRequest, SignupRequest, User

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", "7"))

router = APIRouter(prefix="/api/auth", tags=["auth"])


class TokenResponse(BaseModel):
    token: str
    id: str
    UserName: str
    email: str
    role: str


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode(), salt).decode()


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def create_token(user_doc: dict) -> str:
    payload = {
        "id": str(user_doc.get("_id")),
        "email": user_doc["email"],
        "role": user_doc.get("role", "customer"),
        "exp": now_utc() + timedelta(days=JWT_EXPIRES_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(authorization: Optional[str]) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")
    token = authorization.split(" ", 1)[1].strip()
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")


def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    payload = decode_token(authorization)
    user_id = payload.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token.")
    return user_id


def require_admin(authorization: Optional[str] = Header(None)) -> dict:
    payload = decode_token(authorization)
    if payload.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin only")
    return payload


def token_response(user_doc: dict) -> TokenResponse:
    return TokenResponse(
        token=create_token(user_doc),
        id=str(user_doc["_id"]),
        UserName=user_doc["UserName"],
        email=user_doc["email"],
        role=user_doc.get("role", "customer"),
    )


@router.post("/signup", response_model=TokenResponse, status_code=201)
def signup(payload: SignupRequest, db=Depends(get_db)):
    if db["user"].find_one({"email": payload.email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(
        userID=next_sequence(db, "userID"),
        UserName=payload.UserName,
        email=payload.email,
        password=hash_password(payload.password),
        mobile=payload.mobile,
        address=payload.address,
        role="customer",
    )
    doc = user.model_dump()
    doc["createdAt"] = doc["updatedAt"] = now_utc()
    try:
        doc["_id"] = db["user"].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already registered")
    logger.info("User %s signed up", user.userID)
    return token_response(doc)


@router.post("/signin", response_model=TokenResponse)
def signin(payload: LoginRequest, db=Depends(get_db)):
    user = db["user"].find_one({"email": payload.email})
    if not user or not check_password(payload.password, user.get("password", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return token_response(user)
