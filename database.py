"""
MongoDB helper layer for the Survey API.

Collections are named after the lowercase schema class name (`survey`,
`surveyresponse`). All pymongo/bson failures leave this module as
StorageError.
"""
import logging
import os
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from bson import ObjectId
from bson.errors import BSONError
from pydantic import BaseModel
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from errors import StorageError

logger = logging.getLogger(__name__)

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017/surveyapp")
DATABASE_NAME = os.getenv("DATABASE_NAME")

SURVEYS = "survey"
RESPONSES = "surveyresponse"

# pymongo connects lazily, so importing this module never blocks
client = MongoClient(MONGODB_URI, serverSelectionTimeoutMS=int(os.getenv("MONGODB_TIMEOUT_MS", 5000)))
# the URI path names the database unless DATABASE_NAME overrides it
db = client[DATABASE_NAME] if DATABASE_NAME else client.get_default_database(default="surveyapp")

Sort = List[Tuple[str, int]]


@contextmanager
def storage_errors():
    try:
        yield
    except (PyMongoError, BSONError, OverflowError) as e:
        logger.error("Storage operation failed: %s", e, exc_info=True)
        raise StorageError(str(e)) from e


def ping() -> None:
    with storage_errors():
        db.command("ping")


def utcnow() -> datetime:
    # Mongo keeps millisecond precision and hands back naive UTC datetimes
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def next_timestamp(previous: Optional[datetime]) -> datetime:
    """Current time, bumped past `previous` so successive stamps strictly increase."""
    now = utcnow()
    if previous is None:
        return now
    if previous.tzinfo is not None:
        previous = previous.astimezone(timezone.utc).replace(tzinfo=None)
    return max(now, previous + timedelta(milliseconds=1))


def oid(id_str: str) -> ObjectId:
    with storage_errors():
        return ObjectId(id_str)


def safe_obj(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc["id"] = str(doc.get("_id"))
    doc.pop("_id", None)
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            doc[key] = str(value)
    return doc


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]],
                    timestamp_fields: Tuple[str, ...] = ()) -> Dict[str, Any]:
    """Insert one document, stamping each of `timestamp_fields` with the current time."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = utcnow()
    for field in timestamp_fields:
        data_dict[field] = now
    with storage_errors():
        result = db[collection_name].insert_one(data_dict)
    data_dict["_id"] = result.inserted_id
    return safe_obj(data_dict)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  sort: Optional[Sort] = None) -> List[Dict[str, Any]]:
    with storage_errors():
        cursor = db[collection_name].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(sort)
        return [safe_obj(d) for d in cursor]


def get_document(collection_name: str, id_str: str) -> Optional[Dict[str, Any]]:
    with storage_errors():
        return safe_obj(db[collection_name].find_one({"_id": oid(id_str)}))


def update_document(collection_name: str, id_str: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Apply `$set` and return the updated document, or None if no document matched."""
    with storage_errors():
        doc = db[collection_name].find_one_and_update(
            {"_id": oid(id_str)},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
    return safe_obj(doc)


def delete_document(collection_name: str, id_str: str) -> bool:
    with storage_errors():
        res = db[collection_name].delete_one({"_id": oid(id_str)})
    return res.deleted_count > 0


def delete_documents(collection_name: str, filter_dict: Dict[str, Any]) -> int:
    with storage_errors():
        res = db[collection_name].delete_many(filter_dict)
    return res.deleted_count


def count_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
    with storage_errors():
        return db[collection_name].count_documents(filter_dict or {})


def newest_first(field: str) -> Sort:
    # _id breaks ties between documents stamped in the same millisecond
    return [(field, DESCENDING), ("_id", DESCENDING)]
