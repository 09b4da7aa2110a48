from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from saludplus.db.history_store import PatientHistoryStore
from saludplus.db.session import get_db
from saludplus.deps import get_history_store
from saludplus.services.reports import revenue_report, store_status

router = APIRouter(prefix="/api/reports", tags=["reports"])
status_router = APIRouter(prefix="/api/status", tags=["status"])


@router.get("/revenue")
def get_revenue(
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
):
    return {"ok": True, "report": revenue_report(db, start_date, end_date)}


@status_router.get("")
def get_status(
    db: Session = Depends(get_db),
    store: PatientHistoryStore = Depends(get_history_store),
):
    return {"ok": True, **store_status(db, store)}
