"""
MongoDB access for the BoldServe API.

`db` is the shared pymongo database handle (None when DATABASE_URL / DATABASE_NAME
are not configured). Route handlers receive it through the `get_db` dependency so
tests can swap in another database object.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient

from config import DATABASE_URL, DATABASE_NAME
from errors import InternalError, ValidationError

logger = logging.getLogger(__name__)

_client = None
db = None

if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = _client[DATABASE_NAME]
    logger.info("MongoDB client configured for database %s", DATABASE_NAME)


def get_db():
    if db is None:
        raise InternalError("Database not configured")
    return db


def now():
    return datetime.now(timezone.utc)


def create_document(collection, data, database=None) -> str:
    """Insert a pydantic model or dict, stamping createdAt/updatedAt."""
    if database is None:
        database = get_db()
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    doc["createdAt"] = now()
    doc["updatedAt"] = now()
    result = database[collection].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None, database=None):
    if database is None:
        database = get_db()
    cursor = database[collection].find(filter_dict or {}).sort("createdAt", -1)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize_doc(d) for d in cursor]


def parse_object_id(value: str, label: str = "ID") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {label} format")


def serialize_doc(doc):
    if not doc:
        return doc
    out = {}
    for k, v in doc.items():
        if isinstance(v, ObjectId):
            out[k] = str(v)
        elif isinstance(v, datetime):
            out[k] = v.isoformat()
        elif isinstance(v, list):
            out[k] = [serialize_doc(i) if isinstance(i, dict) else (str(i) if isinstance(i, ObjectId) else i) for i in v]
        elif isinstance(v, dict):
            out[k] = serialize_doc(v)
        else:
            out[k] = v
    return out
