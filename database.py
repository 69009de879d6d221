"""
Database helpers

MongoDB access for the storefront. Collections are named after the
lowercase model name (see schemas.py). Every document carries its own
string ``id`` which is the public key; Mongo's ``_id`` never leaves this
module's helpers.
"""
import os
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")

# unique keys per collection, on top of "id"
UNIQUE_FIELDS = {
    "user": ["email"],
    "product": ["slug"],
    "category": ["slug"],
}

db = None
_indexed = set()
_lock = threading.Lock()

if DATABASE_URL:
    try:
        db = MongoClient(DATABASE_URL)[DATABASE_NAME]
    except Exception as e:
        logger.error("Could not connect to MongoDB: %s", e)
        db = None


def use_database(database) -> None:
    """Swap the active database handle (tests, scripts)."""
    global db
    with _lock:
        db = database
        _indexed.clear()


def get_db():
    if db is None:
        raise RuntimeError("Database not configured")
    return db


def collection(name: str):
    """Return a collection, creating its unique indexes on first use."""
    database = get_db()
    coll = database[name]
    if name not in _indexed:
        with _lock:
            if name not in _indexed:
                for field in ["id"] + UNIQUE_FIELDS.get(name, []):
                    coll.create_index([(field, ASCENDING)], unique=True)
                _indexed.add(name)
                logger.debug("Indexes ensured for %s", name)
    return coll


def now() -> datetime:
    return datetime.now(timezone.utc)


def clean(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc.pop("_id", None)
    return doc


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert a document and return it without the storage id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    stamp = now()
    data_dict.setdefault("created_at", stamp)
    data_dict.setdefault("updated_at", stamp)
    collection(collection_name).insert_one(data_dict)
    return clean(data_dict)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    skip: int = 0,
    sort: Optional[List] = None,
) -> List[Dict[str, Any]]:
    cursor = collection(collection_name).find(filter_dict or {})
    # natural insertion order unless told otherwise
    cursor = cursor.sort(sort or [("_id", ASCENDING)])
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return [clean(d) for d in cursor]


def get_document(collection_name: str, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return clean(collection(collection_name).find_one(filter_dict))


def update_document(collection_name: str, doc_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Apply ``$set`` changes to the document with public id ``doc_id``."""
    changes = dict(changes)
    changes["updated_at"] = now()
    doc = collection(collection_name).find_one_and_update(
        {"id": doc_id}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    return clean(doc)


def delete_document(collection_name: str, doc_id: str) -> bool:
    return collection(collection_name).delete_one({"id": doc_id}).deleted_count == 1
