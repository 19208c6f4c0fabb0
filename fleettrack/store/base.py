import asyncio
import math
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError

from fleettrack.core.errors import DuplicateKeyError, ValidationFailure
from fleettrack.domain.metrics import utcnow


def parse_id(value) -> Optional[ObjectId]:
    """ObjectId for a path id, or None when it cannot name any document."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def reference_id(value, field: str) -> ObjectId:
    oid = parse_id(value)
    if oid is None:
        raise ValidationFailure(field, f"{field} is not a valid id")
    return oid


def bson_datetime(value: datetime) -> datetime:
    # filter values go out as naive UTC, which the server reads as UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def serialize(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            out["id" if k == "_id" else k] = serialize(v)
        return out
    return value


def contains(term: str) -> dict:
    return {"$regex": re.escape(term), "$options": "i"}


def search_filter(term: str, fields: Iterable[str]) -> dict:
    return {"$or": [{f: contains(term)} for f in fields]}


def sort_spec(field: str, order: str) -> list:
    return [(field, DESCENDING if order == "desc" else ASCENDING)]


def status_counts(field: str, names: Dict[str, str]) -> dict:
    """$group accumulators counting documents per enum value: {out_name: value}."""
    return {name: {"$sum": {"$cond": [{"$eq": [f"${field}", value]}, 1, 0]}} for name, value in names.items()}


async def insert(collection, doc: dict, natural_key: str) -> dict:
    now = utcnow()
    doc = {**doc, "created_at": now, "updated_at": now}
    try:
        await collection.insert_one(doc)
    except MongoDuplicateKeyError as exc:
        raise DuplicateKeyError(duplicate_field(exc, natural_key)) from exc
    return serialize(doc)


DUPLICATE_INDEX = re.compile(r"index: (\w+?)_-?1\b")


def duplicate_field(exc: MongoDuplicateKeyError, default: str) -> str:
    details = exc.details or {}
    key_value = details.get("keyValue") or {}
    if key_value:
        return next(iter(key_value))
    # older servers only name the index: "... index: email_1 dup key: ..."
    match = DUPLICATE_INDEX.search(details.get("errmsg") or str(exc))
    if match:
        return match.group(1)
    return default


async def find(collection, doc_id) -> Optional[dict]:
    oid = parse_id(doc_id)
    if oid is None:
        return None
    doc = await collection.find_one({"_id": oid})
    return serialize(doc) if doc else None


async def modify(
    collection,
    doc_id,
    set_: Optional[dict] = None,
    unset: Sequence[str] = (),
    push: Optional[dict] = None,
    inc: Optional[dict] = None,
    now: Optional[datetime] = None,
    natural_key: str = "_id",
) -> Optional[dict]:
    """Single atomic read-modify-write; returns the new document or None."""
    oid = parse_id(doc_id)
    if oid is None:
        return None

    update = {"$set": {**(set_ or {}), "updated_at": now or utcnow()}}
    if unset:
        update["$unset"] = {f: "" for f in unset}
    if push:
        update["$push"] = push
    if inc:
        update["$inc"] = inc

    try:
        doc = await collection.find_one_and_update(
            {"_id": oid},
            update,
            return_document=ReturnDocument.AFTER,
        )
    except MongoDuplicateKeyError as exc:
        raise DuplicateKeyError(duplicate_field(exc, natural_key)) from exc
    return serialize(doc) if doc else None


async def remove(collection, doc_id) -> bool:
    oid = parse_id(doc_id)
    if oid is None:
        return False
    res = await collection.delete_one({"_id": oid})
    return res.deleted_count > 0


async def find_many(collection, query: dict, sort=None, limit: int = 0) -> List[dict]:
    cursor = collection.find(query)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(d) for d in await cursor.to_list(length=limit or None)]


async def page(collection, query: dict, sort, page_no: int, limit: int) -> dict:
    skip = (page_no - 1) * limit
    docs, total = await asyncio.gather(
        collection.find(query).sort(sort).skip(skip).limit(limit).to_list(length=limit),
        collection.count_documents(query),
    )
    return {
        "items": [serialize(d) for d in docs],
        "pagination": {
            "page": page_no,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


async def populate(docs: List[dict], field: str, collection, fields: Sequence[str]) -> List[dict]:
    """Swap a reference id for a summary of the referenced document, one query per batch."""
    ids = {parse_id(d.get(field)) for d in docs if d.get(field)}
    ids.discard(None)
    if not ids:
        return docs

    projection = {f: 1 for f in fields}
    found = await collection.find({"_id": {"$in": list(ids)}}, projection).to_list(length=len(ids))
    by_id = {str(d["_id"]): serialize(d) for d in found}
    for d in docs:
        ref = d.get(field)
        if ref and ref in by_id:
            d[field] = by_id[ref]
    return docs


async def aggregate_one(collection, pipeline: list) -> Optional[dict]:
    rows = await collection.aggregate(pipeline).to_list(length=1)
    if not rows:
        return None
    row = rows[0]
    row.pop("_id", None)
    return row
