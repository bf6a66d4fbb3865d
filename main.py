import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from auth import Caller, Unauthorized, authorize, authorize_user
from category_suggest import CategorySuggester
from config import get_settings
from database import get_db
from pwned import PwnedLookupError, is_password_leaked
from recurrence import MaterializationError, RecurringMaterializer
from scheduler import SchedulerManager
from schemas import (
    MaterializationReportOut,
    PasswordLeakIn,
    PasswordLeakOut,
    SuggestCategoryIn,
    SuggestCategoryOut,
)
from store import ExpenseStore


logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title="Expense Ledger")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    if settings.scheduler_enabled:
        scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(Unauthorized)
def unauthorized_handler(_request: Request, exc: Unauthorized) -> JSONResponse:
    return JSONResponse(status_code=401, content={"success": False, "error": str(exc)})


def require_trigger(authorization: Optional[str] = Header(default=None)) -> Caller:
    caller = authorize(authorization)
    if caller.kind == "scheduler":
        logger.info("trigger_auth: scheduler credential")
    else:
        logger.info(f"trigger_auth: user={caller.user_id}")
    return caller


def require_user(authorization: Optional[str] = Header(default=None)) -> str:
    return authorize_user(authorization)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}


@app.post("/api/recurring/generate", response_model=MaterializationReportOut)
def generate_recurring(
    as_of: Optional[date] = None,
    caller: Caller = Depends(require_trigger),
    db: Session = Depends(get_db),
):
    try:
        report = RecurringMaterializer(ExpenseStore(db)).run(as_of)
    except MaterializationError as exc:
        return JSONResponse(
            status_code=500, content={"success": False, "error": str(exc)}
        )
    return report.to_payload()


@app.post("/api/password-leak", response_model=PasswordLeakOut)
def password_leak(payload: PasswordLeakIn):
    if not payload.password:
        raise HTTPException(status_code=400, detail="Password is required")
    try:
        leaked = is_password_leaked(payload.password)
    except PwnedLookupError as exc:
        logger.exception("Error checking password leak")
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return PasswordLeakOut(is_leaked=leaked)


@app.post("/api/suggest-category", response_model=SuggestCategoryOut)
def suggest_category(
    payload: SuggestCategoryIn,
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
):
    suggested = CategorySuggester(db, user_id).suggest(payload.title)
    return SuggestCategoryOut(suggested_category=suggested)
