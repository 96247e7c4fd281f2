import datetime as dt

import pytest
from pymongo.errors import DuplicateKeyError

from schemas import Transaction


def test_create_document_stamps_and_stores_iso_dates(db):
    tx = Transaction(type="expense", amount=12.5, category="Food", date=dt.date(2024, 5, 1))
    inserted_id = db.create_document("transaction", tx)

    docs = db.get_documents("transaction")
    assert len(docs) == 1
    doc = docs[0]
    assert doc["id"] == inserted_id
    assert "_id" not in doc
    assert doc["date"] == "2024-05-01"
    assert doc["created_at"] == doc["updated_at"]


def test_get_documents_filter_sort_limit(db):
    for day in (3, 1, 2):
        db.create_document("transaction", {"type": "expense", "amount": day, "category": "x", "date": f"2024-05-0{day}"})

    docs = db.get_documents("transaction", {}, limit=2, sort=[("date", -1)])
    assert [d["date"] for d in docs] == ["2024-05-03", "2024-05-02"]

    docs = db.get_documents("transaction", {"date": {"$gte": "2024-05-02"}})
    assert len(docs) == 2


def test_upsert_budget_overwrites_same_month(db):
    first = db.upsert_budget("Food", 5, 2024, 1000)
    second = db.upsert_budget("  food ", 5, 2024, 1500)

    assert first["id"] == second["id"]
    assert second["limit"] == 1500
    assert second["category"] == "food"
    assert len(db.get_documents("budget")) == 1


def test_upsert_budget_separates_months(db):
    db.upsert_budget("Food", 5, 2024, 1000)
    db.upsert_budget("Food", 6, 2024, 1000)
    db.upsert_budget("Food", 5, 2025, 1000)
    assert len(db.get_documents("budget")) == 3


def test_unique_budget_index_is_enforced(db):
    db.upsert_budget("Food", 5, 2024, 1000)
    with pytest.raises(DuplicateKeyError):
        db.db["budget"].insert_one({"category": "Food", "category_key": "food", "month": 5, "year": 2024, "limit": 1})
