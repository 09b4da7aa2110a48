import logging

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from saludplus.core.settings import settings
from saludplus.db.history_store import PatientHistoryStore
from saludplus.db.session import get_db
from saludplus.deps import get_batch_source, get_history_store, get_session_factory
from saludplus.schemas.migration import MigrationRequest, RelayRequest
from saludplus.services.migration.orchestrator import run_migration
from saludplus.services.migration.source import CsvSource
from saludplus.services.outbox import apply_pending

router = APIRouter(prefix="/api", tags=["migration"])
logger = logging.getLogger("saludplus.migration")


@router.get("/simulacro")
def describe():
    return {
        "ok": True,
        "info": "SaludPlus Hybrid Persistence API",
        "availableEndpoints": {
            "migrate": "POST /api/simulacro/migrate",
            "doctors": "GET  /api/doctors",
            "doctorById": "GET  /api/doctors/:id",
            "updateDoctor": "PUT  /api/doctors/:id",
            "createAppointment": "POST /api/appointments",
            "revenue": "GET  /api/reports/revenue",
            "patientHistory": "GET  /api/patients/:email/history",
            "outboxRelay": "POST /api/outbox/relay",
            "status": "GET  /api/status",
        },
    }


@router.post("/simulacro/migrate")
def migrate(
    payload: MigrationRequest | None = Body(default=None),
    session_factory=Depends(get_session_factory),
    store: PatientHistoryStore = Depends(get_history_store),
    source: CsvSource = Depends(get_batch_source),
):
    clear_before = payload.clear_before if payload else False
    logger.info("Migration requested", extra={"clear_before": clear_before})
    summary = run_migration(
        session_factory,
        store,
        source,
        clear_before=clear_before,
        source_label=str(source.path),
    )
    return {"ok": True, "message": "Migration completed successfully", "result": summary.as_dict()}


@router.post("/outbox/relay")
def relay_outbox(
    payload: RelayRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    store: PatientHistoryStore = Depends(get_history_store),
):
    stats = apply_pending(
        db,
        store,
        max_attempts=settings.outbox_max_attempts,
        limit=payload.limit if payload else None,
    )
    return {"ok": True, "result": stats.as_dict()}
