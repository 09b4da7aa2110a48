from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from saludplus.db.history_store import PatientHistoryStore
from saludplus.db.session import get_db
from saludplus.deps import get_history_store
from saludplus.schemas.appointment import AppointmentCreate, AppointmentCreatedOut
from saludplus.services.appointments import create_appointment

router = APIRouter(prefix="/api/appointments", tags=["appointments"])


@router.post("", status_code=status.HTTP_201_CREATED)
def post_appointment(
    payload: AppointmentCreate,
    db: Session = Depends(get_db),
    store: PatientHistoryStore = Depends(get_history_store),
):
    created = create_appointment(db, store, **payload.model_dump())
    body = AppointmentCreatedOut.model_validate(created).model_dump(mode="json")
    return {"ok": True, "message": "Appointment created successfully", **body}
