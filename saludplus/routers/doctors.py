from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from saludplus.db.history_store import PatientHistoryStore
from saludplus.db.session import get_db
from saludplus.deps import get_history_store
from saludplus.schemas.doctor import DoctorCreate, DoctorOut, DoctorUpdate
from saludplus.services import doctors as doctor_service

router = APIRouter(prefix="/api/doctors", tags=["doctors"])


def _out(doctor) -> dict:
    return DoctorOut.model_validate(doctor).model_dump(mode="json")


@router.get("")
def list_doctors(
    specialty: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    doctors = doctor_service.list_doctors(db, specialty)
    return {"ok": True, "doctors": [_out(doctor) for doctor in doctors]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_doctor(payload: DoctorCreate, db: Session = Depends(get_db)):
    doctor = doctor_service.create_doctor(
        db, name=payload.name, email=payload.email, specialty=payload.specialty
    )
    return {"ok": True, "message": "Doctor created successfully", "doctor": _out(doctor)}


@router.get("/{doctor_id}")
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    return {"ok": True, "doctor": _out(doctor_service.get_doctor(db, doctor_id))}


@router.put("/{doctor_id}")
def update_doctor(
    doctor_id: int,
    payload: DoctorUpdate,
    db: Session = Depends(get_db),
    store: PatientHistoryStore = Depends(get_history_store),
):
    doctor = doctor_service.update_doctor(
        db,
        store,
        doctor_id,
        name=payload.name,
        email=payload.email,
        specialty=payload.specialty,
    )
    return {"ok": True, "message": "Doctor updated successfully", "doctor": _out(doctor)}


@router.delete("/{doctor_id}")
def delete_doctor(doctor_id: int, db: Session = Depends(get_db)):
    doctor = doctor_service.delete_doctor(db, doctor_id)
    return {"ok": True, "message": "Doctor deleted successfully", "doctor": doctor}
