import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import DuplicateKeyError

from analytics import dashboard_summary, investment_profile, month_budget_insights
from config import Settings
from database import Database
from insights import CompletionService, generate_investment_insight
from schemas import Budget, Goal, InvestmentInsightRequest, Transaction, User

logger = logging.getLogger(__name__)


def get_db(request: Request) -> Database:
    return request.app.state.database


def get_completion(request: Request) -> Optional[CompletionService]:
    return request.app.state.completion


def _resolve_period(month: Optional[int], year: Optional[int]):
    today = dt.date.today()
    return month or today.month, year or today.year


def _month_range(month: int, year: int):
    start = dt.date(year, month, 1)
    end = dt.date(year + 1, 1, 1) if month == 12 else dt.date(year, month + 1, 1)
    return start.isoformat(), end.isoformat()


def _month_transactions(db: Database, month: int, year: int):
    start, end = _month_range(month, year)
    return db.get_documents("transaction", {"date": {"$gte": start, "$lt": end}})


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    owned = app.state.database is None
    if owned:
        app.state.database = Database(settings.database_url, settings.database_name)
    try:
        app.state.database.ensure_indexes()
    except Exception:
        logger.exception("Could not create indexes on %s", settings.database_name)
    yield
    if owned:
        app.state.database.close()
        app.state.database = None


settings = Settings.from_env()
logging.basicConfig(level=settings.log_level)

app = FastAPI(title="Personal Finance Tracker API", lifespan=lifespan)
app.state.settings = settings
app.state.database = None
app.state.completion = (
    CompletionService(settings.openai_api_key, settings.openai_model) if settings.openai_api_key else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"status": "ok", "service": "Personal Finance Tracker API"}


@app.get("/test")
def test_database(
    db: Database = Depends(get_db),
    completion: Optional[CompletionService] = Depends(get_completion),
):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
        "ai": "✅ Configured" if completion is not None else "⚠️  Rule-based fallback",
    }

    if db is None:
        return response

    response["database_name"] = db.name
    try:
        db.ping()
        response["connection_status"] = "Connected"
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"❌ Error: {str(e)[:50]}"

    return response


# --- Transactions ---
@app.post("/api/transactions", status_code=201)
def add_transaction(tx: Transaction, db: Database = Depends(get_db)):
    try:
        inserted_id = db.create_document("transaction", tx)
        return {"id": inserted_id, "ok": True}
    except Exception as e:
        logger.exception("Failed to create transaction")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/transactions")
def list_transactions(limit: int = Query(100, ge=1, le=1000), db: Database = Depends(get_db)):
    try:
        docs = db.get_documents("transaction", {}, limit, sort=[("date", -1), ("created_at", -1)])
        return {"items": docs}
    except Exception as e:
        logger.exception("Failed to fetch transactions")
        raise HTTPException(status_code=500, detail=str(e))


# --- Budgets ---
@app.post("/api/budgets", status_code=201)
def save_budget(b: Budget, db: Database = Depends(get_db)):
    try:
        budget = db.upsert_budget(b.category, b.month, b.year, b.limit)
        return {"item": budget, "ok": True}
    except Exception as e:
        logger.exception("Failed to save budget")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/budgets")
def list_budgets(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    db: Database = Depends(get_db),
):
    month, year = _resolve_period(month, year)
    try:
        docs = db.get_documents("budget", {"month": month, "year": year}, sort=[("category", 1)])
        return {"items": docs}
    except Exception as e:
        logger.exception("Failed to fetch budgets")
        raise HTTPException(status_code=500, detail=str(e))


# --- Derived views ---
@app.get("/api/dashboard")
def dashboard(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    db: Database = Depends(get_db),
):
    month, year = _resolve_period(month, year)
    try:
        txs = _month_transactions(db, month, year)
        buds = db.get_documents("budget", {"month": month, "year": year})
        return dashboard_summary(txs, buds, month, year)
    except Exception as e:
        logger.exception("Failed to build dashboard for %s-%s", year, month)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/budgets/insights")
def budget_insights(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    db: Database = Depends(get_db),
):
    month, year = _resolve_period(month, year)
    try:
        txs = _month_transactions(db, month, year)
        buds = db.get_documents("budget", {"month": month, "year": year})
        return month_budget_insights(txs, buds, month, year)
    except Exception as e:
        logger.exception("Failed to build budget insights for %s-%s", year, month)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/investment-insights")
def investment_insights(
    req: InvestmentInsightRequest,
    db: Database = Depends(get_db),
    service: Optional[CompletionService] = Depends(get_completion),
):
    month, year = _resolve_period(req.month, req.year)
    try:
        txs = db.get_documents("transaction", {})
        profile = investment_profile(txs, month, year)
        return generate_investment_insight(profile, req, service)
    except Exception:
        logger.exception("Failed to generate investment insight")
        raise HTTPException(status_code=500, detail="Failed to generate investment insight")


# --- Users & goals ---
@app.post("/api/users", status_code=201)
def add_user(user: User, db: Database = Depends(get_db)):
    try:
        inserted_id = db.create_document("user", user)
        return {"id": inserted_id, "ok": True}
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=f"User {user.email} already exists")
    except Exception as e:
        logger.exception("Failed to create user")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/users")
def list_users(limit: int = Query(100, ge=1, le=1000), db: Database = Depends(get_db)):
    try:
        return {"items": db.get_documents("user", {}, limit)}
    except Exception as e:
        logger.exception("Failed to fetch users")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/goals", status_code=201)
def add_goal(goal: Goal, db: Database = Depends(get_db)):
    try:
        inserted_id = db.create_document("goal", goal)
        return {"id": inserted_id, "ok": True}
    except Exception as e:
        logger.exception("Failed to create goal")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/goals")
def list_goals(
    user_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: Database = Depends(get_db),
):
    try:
        filter_dict = {"user_id": user_id} if user_id else {}
        return {"items": db.get_documents("goal", filter_dict, limit, sort=[("target_date", 1)])}
    except Exception as e:
        logger.exception("Failed to fetch goals")
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
