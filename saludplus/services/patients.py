from __future__ import annotations

from collections import Counter
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from saludplus.core.errors import ConflictError, NotFoundError, ValidationError
from saludplus.db.history_store import PatientHistoryStore
from saludplus.models.patient import Patient
from saludplus.services.migration.normalize import clean_text, normalize_email

_UNSET: Any = object()


def list_patients(session: Session) -> list[Patient]:
    return list(session.scalars(select(Patient).order_by(Patient.name)))


def get_patient(session: Session, patient_id: int) -> Patient:
    patient = session.get(Patient, patient_id)
    if patient is None:
        raise NotFoundError("Patient not found")
    return patient


def create_patient(
    session: Session,
    *,
    name: str | None,
    email: str | None,
    phone: str | None = None,
    address: str | None = None,
) -> Patient:
    name = clean_text(name)
    email = normalize_email(email)
    if not name or not email:
        raise ValidationError("name and email are required")
    if session.scalar(select(Patient.id).where(Patient.email == email)) is not None:
        raise ConflictError("Email already in use by another patient")
    patient = Patient(name=name, email=email, phone=clean_text(phone), address=clean_text(address))
    session.add(patient)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Email already in use by another patient") from exc
    session.refresh(patient)
    return patient


def update_patient(
    session: Session,
    patient_id: int,
    *,
    name: str | None = None,
    email: str | None = None,
    phone: str | None = _UNSET,
    address: str | None = _UNSET,
) -> Patient:
    # Patient email keys the history document; it is not rewritten there.
    patient = get_patient(session, patient_id)
    email = normalize_email(email)
    if email and email != patient.email:
        conflict = session.scalar(
            select(Patient.id).where(Patient.email == email, Patient.id != patient_id)
        )
        if conflict is not None:
            raise ConflictError("Email already in use by another patient")
        patient.email = email
    if clean_text(name):
        patient.name = clean_text(name)
    if phone is not _UNSET:
        patient.phone = clean_text(phone)
    if address is not _UNSET:
        patient.address = clean_text(address)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Email already in use by another patient") from exc
    session.refresh(patient)
    return patient


def get_patient_history(store: PatientHistoryStore, email: str) -> dict[str, Any]:
    normalized = normalize_email(email)
    doc = store.find_by_email(normalized) if normalized else None
    if doc is None:
        raise NotFoundError("Patient not found")

    appointments = doc.get("appointments") or []
    total_spent = sum(item.get("amountPaid") or 0 for item in appointments)
    frequency = Counter(item.get("specialty") for item in appointments)
    most_frequent = frequency.most_common(1)[0][0] if frequency else None

    return {
        "patient": {"email": doc["patientEmail"], "name": doc.get("patientName")},
        "appointments": appointments,
        "summary": {
            "totalAppointments": len(appointments),
            "totalSpent": total_spent,
            "mostFrequentSpecialty": most_frequent,
        },
    }
