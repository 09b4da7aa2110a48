from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from saludplus.core.errors import ConflictError, NotFoundError, ValidationError
from saludplus.db.history_store import PatientHistoryStore
from saludplus.models.appointment import Appointment
from saludplus.models.doctor import Doctor
from saludplus.services.migration.normalize import clean_text, normalize_email
from saludplus.services.outbox import record_doctor_rewrite, try_apply

logger = logging.getLogger(__name__)


def list_doctors(session: Session, specialty: str | None = None) -> list[Doctor]:
    stmt = select(Doctor)
    if specialty:
        stmt = stmt.where(Doctor.specialty.ilike(f"%{specialty.strip()}%"))
    return list(session.scalars(stmt.order_by(Doctor.name)))


def get_doctor(session: Session, doctor_id: int) -> Doctor:
    doctor = session.get(Doctor, doctor_id)
    if doctor is None:
        raise NotFoundError("Doctor not found")
    return doctor


def create_doctor(
    session: Session, *, name: str | None, email: str | None, specialty: str | None
) -> Doctor:
    name = clean_text(name)
    email = normalize_email(email)
    specialty = clean_text(specialty)
    if not name or not email or not specialty:
        raise ValidationError("name, email and specialty are required")
    if session.scalar(select(Doctor.id).where(Doctor.email == email)) is not None:
        raise ConflictError("Email already in use by another doctor")
    doctor = Doctor(name=name, email=email, specialty=specialty)
    session.add(doctor)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Email already in use by another doctor") from exc
    session.refresh(doctor)
    return doctor


def update_doctor(
    session: Session,
    store: PatientHistoryStore,
    doctor_id: int,
    *,
    name: str | None = None,
    email: str | None = None,
    specialty: str | None = None,
) -> Doctor:
    """Update a doctor and rewrite the copies embedded in patient histories.

    Embedded fragments are matched by doctor id, so appointments appended
    concurrently with the old email are still covered. Fragments written
    before ids were embedded are matched by the old email instead.
    """
    doctor = get_doctor(session, doctor_id)
    old_name = doctor.name
    old_email = doctor.email

    name = clean_text(name)
    email = normalize_email(email)
    specialty = clean_text(specialty)

    if email and email != old_email:
        conflict = session.scalar(
            select(Doctor.id).where(Doctor.email == email, Doctor.id != doctor_id)
        )
        if conflict is not None:
            raise ConflictError("Email already in use by another doctor")

    doctor.name = name or old_name
    doctor.email = email or old_email
    doctor.specialty = specialty or doctor.specialty

    rename = doctor.name if doctor.name != old_name else None
    new_email = doctor.email if doctor.email != old_email else None
    entry = None
    if rename is not None or new_email is not None:
        entry = record_doctor_rewrite(
            session,
            doctor_id=doctor.id,
            old_email=old_email,
            name=rename,
            email=new_email,
        )
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Email already in use by another doctor") from exc

    if entry is not None and not try_apply(session, store, entry):
        logger.error(
            "Doctor %s updated without rewriting embedded copies (outbox %s pending)",
            doctor_id,
            entry.id,
        )
    session.refresh(doctor)
    return doctor


def rename_doctor(
    session: Session,
    store: PatientHistoryStore,
    doctor_id: int,
    new_name: str | None = None,
    new_email: str | None = None,
) -> Doctor:
    return update_doctor(session, store, doctor_id, name=new_name, email=new_email)


def delete_doctor(session: Session, doctor_id: int) -> dict[str, object]:
    doctor = get_doctor(session, doctor_id)
    count = session.scalar(
        select(func.count()).select_from(Appointment).where(Appointment.doctor_id == doctor_id)
    )
    if count:
        raise ConflictError("Doctor has related appointments and cannot be deleted")
    deleted = {
        "id": doctor.id,
        "name": doctor.name,
        "email": doctor.email,
        "specialty": doctor.specialty,
    }
    session.delete(doctor)
    session.commit()
    return deleted
