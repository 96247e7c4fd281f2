"""
MongoDB access for the finance tracker.

One ``Database`` is built when the application starts and closed when it
stops; request handlers receive it through a FastAPI dependency.
"""

import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument

from schemas import category_key, normalize_category

logger = logging.getLogger(__name__)

COLLECTIONS = ("transaction", "budget", "user", "goal")


def _to_storable(value: Any) -> Any:
    # BSON has no plain date type; keep calendar dates as ISO strings
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return value.isoformat()
    return value


def _serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(doc)
    # storage-only match key for budgets
    out.pop("category_key", None)
    if "_id" in out:
        out["id"] = str(out.pop("_id"))
    return out


class Database:
    def __init__(self, url: str, name: str, client: Optional[MongoClient] = None):
        self.client = client if client is not None else MongoClient(url)
        self.db = self.client[name]
        self.name = name

    def ensure_indexes(self) -> None:
        self.db["budget"].create_index(
            [("category_key", ASCENDING), ("month", ASCENDING), ("year", ASCENDING)],
            unique=True,
            name="budget_category_month_year",
        )
        self.db["transaction"].create_index([("date", ASCENDING)])
        self.db["user"].create_index([("email", ASCENDING)], unique=True)
        logger.info("Indexes ensured on %s", self.name)

    def close(self) -> None:
        self.client.close()

    def ping(self) -> bool:
        self.client.admin.command("ping")
        return True

    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()

    def create_document(self, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
        if isinstance(data, BaseModel):
            data = data.model_dump()
        now = dt.datetime.now(dt.timezone.utc)
        doc = {k: _to_storable(v) for k, v in data.items()}
        doc["created_at"] = now
        doc["updated_at"] = now
        result = self.db[collection_name].insert_one(doc)
        return str(result.inserted_id)

    def get_documents(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection_name].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        return [_serialize(d) for d in cursor]

    def upsert_budget(self, category: str, month: int, year: int, limit: float) -> Dict[str, Any]:
        """Create or overwrite the budget for one category and calendar month."""
        category = normalize_category(category)
        now = dt.datetime.now(dt.timezone.utc)
        doc = self.db["budget"].find_one_and_update(
            {"category_key": category_key(category), "month": month, "year": year},
            {
                "$set": {"category": category, "limit": limit, "updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return _serialize(doc)
