from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from saludplus.core.errors import ConflictError, ReferenceNotFoundError, ValidationError
from saludplus.db.history_store import PatientHistoryStore
from saludplus.models.appointment import Appointment
from saludplus.models.doctor import Doctor
from saludplus.models.insurance import Insurance
from saludplus.models.patient import Patient
from saludplus.models.treatment import Treatment
from saludplus.services.migration.normalize import clean_text, parse_date, parse_decimal_or_none
from saludplus.services.migration.projection import build_fragment
from saludplus.services.outbox import record_append, try_apply

logger = logging.getLogger(__name__)

_REFERENCES = (
    ("patient_id", Patient),
    ("doctor_id", Doctor),
    ("treatment_id", Treatment),
    ("insurance_id", Insurance),
)


@dataclass
class AppointmentCreated:
    appointment: Appointment
    patient: Patient
    doctor: Doctor
    treatment: Treatment
    insurance: Insurance
    history_synced: bool


def create_appointment(
    session: Session,
    store: PatientHistoryStore,
    *,
    appointment_id: Any = None,
    appointment_date: Any = None,
    patient_id: Any = None,
    doctor_id: Any = None,
    treatment_id: Any = None,
    insurance_id: Any = None,
    amount_paid: Any = None,
) -> AppointmentCreated:
    """Insert one appointment and append its fragment to the patient's history.

    The relational insert and the outbox entry commit together. The document
    append runs after the commit; if it fails the entry stays pending for the
    relay and the appointment is still returned.
    """
    external_id = clean_text(str(appointment_id)) if appointment_id is not None else None
    raw_ids = {
        "patient_id": patient_id,
        "doctor_id": doctor_id,
        "treatment_id": treatment_id,
        "insurance_id": insurance_id,
    }
    if (
        not external_id
        or appointment_date in (None, "")
        or any(value in (None, "") for value in raw_ids.values())
        or amount_paid is None
    ):
        raise ValidationError("All fields are required")

    amount = parse_decimal_or_none(amount_paid)
    if amount is None or amount < 0:
        raise ValidationError("amount_paid must be a non-negative number")
    parsed_date = parse_date(appointment_date)
    if parsed_date is None:
        raise ValidationError("appointment_date must be an ISO date (YYYY-MM-DD)")
    ids = {name: _parse_id(name, value) for name, value in raw_ids.items()}

    fetched: dict[str, Any] = {}
    for name, model in _REFERENCES:
        row = session.get(model, ids[name])
        if row is None:
            raise ReferenceNotFoundError(name)
        fetched[name] = row
    patient: Patient = fetched["patient_id"]
    doctor: Doctor = fetched["doctor_id"]
    treatment: Treatment = fetched["treatment_id"]
    insurance: Insurance = fetched["insurance_id"]

    exists = session.scalar(select(Appointment.id).where(Appointment.appointment_id == external_id))
    if exists is not None:
        raise ConflictError(f"Appointment {external_id} already exists")

    appointment = Appointment(
        appointment_id=external_id,
        appointment_date=parsed_date,
        patient_id=patient.id,
        doctor_id=doctor.id,
        treatment_id=treatment.id,
        insurance_id=insurance.id,
        amount_paid=amount,
    )
    session.add(appointment)
    fragment = build_fragment(
        appointment_id=external_id,
        appointment_date=parsed_date,
        doctor_id=doctor.id,
        doctor_name=doctor.name,
        doctor_email=doctor.email,
        specialty=doctor.specialty,
        treatment_code=treatment.code,
        treatment_description=treatment.description,
        treatment_cost=treatment.cost,
        insurance_provider=insurance.name,
        coverage_percentage=insurance.coverage_percentage,
        amount_paid=amount,
    )
    patient_email = patient.email.lower()
    entry = record_append(
        session, patient_email=patient_email, patient_name=patient.name, fragment=fragment
    )
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError(f"Appointment {external_id} already exists") from exc
    session.refresh(appointment)

    synced = try_apply(session, store, entry)
    if not synced:
        logger.error(
            "Appointment %s committed without its history fragment (outbox %s pending)",
            external_id,
            entry.id,
        )
    return AppointmentCreated(
        appointment=appointment,
        patient=patient,
        doctor=doctor,
        treatment=treatment,
        insurance=insurance,
        history_synced=synced,
    )


def _parse_id(name: str, value: Any) -> int:
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer") from exc
    if parsed < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return parsed
