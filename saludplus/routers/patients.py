from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from saludplus.core.errors import ValidationError
from saludplus.db.history_store import PatientHistoryStore
from saludplus.db.session import get_db
from saludplus.deps import get_history_store
from saludplus.schemas.patient import PatientCreate, PatientOut, PatientUpdate
from saludplus.services import patients as patient_service

router = APIRouter(prefix="/api/patients", tags=["patients"])


def _out(patient) -> dict:
    return PatientOut.model_validate(patient).model_dump(mode="json")


@router.get("")
def list_patients(db: Session = Depends(get_db)):
    return {"ok": True, "patients": [_out(p) for p in patient_service.list_patients(db)]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_patient(payload: PatientCreate, db: Session = Depends(get_db)):
    patient = patient_service.create_patient(
        db,
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        address=payload.address,
    )
    return {"ok": True, "message": "Patient created successfully", "patient": _out(patient)}


@router.get("/{email}/history")
def get_patient_history(
    email: str,
    store: PatientHistoryStore = Depends(get_history_store),
):
    return {"ok": True, **patient_service.get_patient_history(store, email)}


@router.get("/{patient_id}")
def get_patient(patient_id: str, db: Session = Depends(get_db)):
    if "@" in patient_id:
        raise ValidationError("Use /api/patients/:email/history for history queries")
    if not patient_id.isdigit():
        raise ValidationError("patient id must be an integer")
    return {"ok": True, "patient": _out(patient_service.get_patient(db, int(patient_id)))}


@router.put("/{patient_id}")
def update_patient(patient_id: int, payload: PatientUpdate, db: Session = Depends(get_db)):
    patient = patient_service.update_patient(
        db, patient_id, **payload.model_dump(exclude_unset=True)
    )
    return {"ok": True, "message": "Patient updated successfully", "patient": _out(patient)}
