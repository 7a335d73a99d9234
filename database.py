"""
MongoDB access helpers shared by every route module.

The client is created lazily by pymongo, so importing this module never blocks
on a running server. Routes receive the database through the ``get_db``
dependency so tests can swap in an in-memory database.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "fashion_commerce")

client = MongoClient(DATABASE_URL)
db = client[DATABASE_NAME]


NEWEST_FIRST = [("createdAt", -1), ("_id", -1)]


def get_db():
    return db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document with timestamps and return its id as a string."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    stamp = now_utc()
    data_dict.setdefault("createdAt", stamp)
    data_dict["updatedAt"] = stamp
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    sort: Optional[List[tuple]] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(doc) for doc in cursor]


def next_sequence(database, name: str) -> int:
    """Atomically increment and return the named business-key counter."""
    counter = database["counters"].find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return counter["seq"]


def bump_sequence(database, name: str, value: int) -> None:
    # keep the counter ahead of explicitly supplied keys
    database["counters"].update_one({"_id": name}, {"$max": {"seq": value}}, upsert=True)


def is_object_id(value: Any) -> bool:
    return isinstance(value, (str, ObjectId)) and ObjectId.is_valid(value)


def to_object_id(value: Any) -> Optional[ObjectId]:
    if not is_object_id(value):
        return None
    return ObjectId(value)


def serialize(value: Any) -> Any:
    """Turn stored documents into JSON-safe structures (ObjectId -> str)."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value


def public_document(doc: Optional[Dict[str, Any]], hidden: tuple = ()) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    return {k: v for k, v in serialize(doc).items() if k not in hidden}


def get_document(database, collection_name: str, doc_id: Union[str, ObjectId]) -> Optional[dict]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    return database[collection_name].find_one({"_id": oid})


UNIQUE_KEYS = {
    "user": "email",
    "inventory": "inventoryID",
    "promotion": "promotionID",
}


def ensure_indexes(database) -> None:
    """Create the unique indexes that back the business-key checks."""
    for collection_name, field in UNIQUE_KEYS.items():
        database[collection_name].create_index(field, unique=True)
