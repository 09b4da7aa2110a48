from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from saludplus.models.appointment import Appointment
from saludplus.models.base import Base
from saludplus.models.doctor import Doctor
from saludplus.models.history_outbox import HistoryOutbox
from saludplus.models.insurance import Insurance
from saludplus.models.patient import Patient
from saludplus.models.treatment import Treatment
from saludplus.services.migration.normalize import (
    clean_text,
    normalize_email,
    parse_date,
    parse_decimal_or_none,
)
from saludplus.services.migration.types import KeyIdMaps, ResolvedBatch, SourceRow

logger = logging.getLogger(__name__)


@dataclass
class UpsertStats:
    patients_created: int = 0
    patients_updated: int = 0
    doctors_created: int = 0
    doctors_updated: int = 0
    insurances_created: int = 0
    insurances_updated: int = 0
    treatments_created: int = 0
    treatments_updated: int = 0
    appointments_created: int = 0
    appointments_existing: int = 0
    appointments_skipped: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def init_schema(bind) -> None:
    Base.metadata.create_all(bind=bind)


def clear_relational(session: Session) -> None:
    # Dependants first so no RESTRICT foreign key fires.
    session.execute(delete(Appointment))
    session.execute(delete(Treatment))
    session.execute(delete(Patient))
    session.execute(delete(Doctor))
    session.execute(delete(Insurance))
    session.execute(delete(HistoryOutbox))


def upsert_batch(session: Session, batch: ResolvedBatch) -> tuple[KeyIdMaps, UpsertStats]:
    """Apply the drafts and then the appointment rows inside the caller's transaction.

    Nothing is committed here; the caller owns commit and rollback.
    """
    stats = UpsertStats()
    ids = KeyIdMaps()

    for draft in batch.patients.values():
        row, created = _upsert(
            session,
            Patient,
            Patient.email == draft.email,
            {"name": draft.name, "phone": draft.phone, "address": draft.address},
            {"email": draft.email},
        )
        _count(stats, "patients", created)
        ids.patients[draft.email] = row.id
    logger.info("Patients upserted: %s", len(batch.patients))

    for draft in batch.doctors.values():
        row, created = _upsert(
            session,
            Doctor,
            Doctor.email == draft.email,
            {"name": draft.name, "specialty": draft.specialty},
            {"email": draft.email},
        )
        _count(stats, "doctors", created)
        ids.doctors[draft.email] = row.id
    logger.info("Doctors upserted: %s", len(batch.doctors))

    for draft in batch.insurances.values():
        row, created = _upsert(
            session,
            Insurance,
            Insurance.name == draft.name,
            {"coverage_percentage": draft.coverage_percentage},
            {"name": draft.name},
        )
        _count(stats, "insurances", created)
        ids.insurances[draft.name] = row.id
    logger.info("Insurances upserted: %s", len(batch.insurances))

    for draft in batch.treatments.values():
        row, created = _upsert(
            session,
            Treatment,
            Treatment.code == draft.code,
            {"description": draft.description, "cost": draft.cost},
            {"code": draft.code},
        )
        _count(stats, "treatments", created)
        ids.treatments[draft.code] = row.id
    logger.info("Treatments upserted: %s", len(batch.treatments))

    for source_row in batch.rows:
        _insert_appointment(session, source_row, ids, stats)
    session.flush()
    logger.info(
        "Appointments inserted: %s (existing %s, skipped %s)",
        stats.appointments_created,
        stats.appointments_existing,
        stats.appointments_skipped,
    )
    return ids, stats


def _upsert(session: Session, model, key_clause, updates: dict, key_values: dict):
    existing = session.scalar(select(model).where(key_clause))
    if existing is not None:
        _apply_updates(existing, updates)
        return existing, False
    row = model(**key_values, **updates)
    session.add(row)
    session.flush()
    return row, True


def _count(stats: UpsertStats, entity: str, created: bool) -> None:
    field = f"{entity}_created" if created else f"{entity}_updated"
    setattr(stats, field, getattr(stats, field) + 1)


def _insert_appointment(
    session: Session,
    source_row: SourceRow,
    ids: KeyIdMaps,
    stats: UpsertStats,
) -> None:
    external_id = clean_text(source_row.appointment_id)
    patient_id = ids.patients.get(normalize_email(source_row.patient_email) or "")
    doctor_id = ids.doctors.get(normalize_email(source_row.doctor_email) or "")
    insurance_id = ids.insurances.get(clean_text(source_row.insurance_provider) or "")
    treatment_id = ids.treatments.get(clean_text(source_row.treatment_code) or "")

    if not external_id or not (patient_id and doctor_id and insurance_id and treatment_id):
        stats.appointments_skipped += 1
        logger.warning("Skipping %s: missing FK reference", external_id or "<no appointment_id>")
        return

    appointment_date = parse_date(source_row.appointment_date)
    amount_paid = parse_decimal_or_none(source_row.amount_paid)
    if appointment_date is None or amount_paid is None or amount_paid < 0:
        stats.appointments_skipped += 1
        logger.warning("Skipping %s: invalid date or amount_paid", external_id)
        return

    existing_id = session.scalar(
        select(Appointment.id).where(Appointment.appointment_id == external_id)
    )
    if existing_id is not None:
        stats.appointments_existing += 1
        return

    session.add(
        Appointment(
            appointment_id=external_id,
            appointment_date=appointment_date,
            patient_id=patient_id,
            doctor_id=doctor_id,
            treatment_id=treatment_id,
            insurance_id=insurance_id,
            amount_paid=amount_paid,
        )
    )
    # Flush per row so a duplicate id later in the same batch is seen as existing.
    session.flush()
    stats.appointments_created += 1


def _apply_updates(model, updates: dict) -> bool:
    changed = False
    for field, value in updates.items():
        if getattr(model, field) != value:
            setattr(model, field, value)
            changed = True
    return changed
