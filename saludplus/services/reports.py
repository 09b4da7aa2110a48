from __future__ import annotations

from datetime import date

from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session

from saludplus.db.history_store import PatientHistoryStore
from saludplus.models.appointment import Appointment
from saludplus.models.doctor import Doctor
from saludplus.models.history_outbox import HistoryOutbox
from saludplus.models.insurance import Insurance
from saludplus.models.patient import Patient
from saludplus.models.treatment import Treatment

CORE_TABLES = ("patients", "doctors", "appointments", "treatments", "insurances")


def revenue_report(
    session: Session, start_date: date | None = None, end_date: date | None = None
) -> dict[str, object]:
    filters = []
    if start_date is not None:
        filters.append(Appointment.appointment_date >= start_date)
    if end_date is not None:
        filters.append(Appointment.appointment_date <= end_date)

    total = session.scalar(
        select(func.coalesce(func.sum(Appointment.amount_paid), 0)).where(*filters)
    )
    total_amount = func.sum(Appointment.amount_paid).label("total_amount")
    rows = session.execute(
        select(
            Insurance.name,
            total_amount,
            func.count(Appointment.id).label("appointment_count"),
        )
        .select_from(Appointment)
        .join(Insurance, Appointment.insurance_id == Insurance.id)
        .where(*filters)
        .group_by(Insurance.name)
        .order_by(total_amount.desc())
    ).all()

    return {
        "totalRevenue": float(total or 0),
        "byInsurance": [
            {
                "insuranceName": name,
                "totalAmount": float(amount or 0),
                "appointmentCount": int(count),
            }
            for name, amount, count in rows
        ],
        "period": {
            "startDate": start_date.isoformat() if start_date else None,
            "endDate": end_date.isoformat() if end_date else None,
        },
    }


def store_status(session: Session, store: PatientHistoryStore) -> dict[str, object]:
    existing = set(inspect(session.get_bind()).get_table_names())
    if not all(table in existing for table in CORE_TABLES):
        return {
            "schemaReady": False,
            "message": "Relational schema not initialized. Start the API or run a migration first.",
        }

    postgres = {
        "patients": session.scalar(select(func.count()).select_from(Patient)),
        "doctors": session.scalar(select(func.count()).select_from(Doctor)),
        "appointments": session.scalar(select(func.count()).select_from(Appointment)),
        "treatments": session.scalar(select(func.count()).select_from(Treatment)),
        "insurances": session.scalar(select(func.count()).select_from(Insurance)),
    }
    outbox_pending = 0
    if "history_outbox" in existing:
        outbox_pending = session.scalar(
            select(func.count()).select_from(HistoryOutbox).where(HistoryOutbox.applied_at.is_(None))
        )
    histories = store.count()

    is_empty = histories == 0 and not any(postgres.values())
    return {
        "schemaReady": True,
        "postgres": postgres,
        "mongodb": {"histories": histories},
        "outboxPending": outbox_pending,
        "hasData": bool(postgres["patients"] or postgres["appointments"] or histories),
        "isEmpty": is_empty,
        "message": (
            "Schema is created but there is no data yet. Run a migration."
            if is_empty
            else "Schema and data are present."
        ),
    }
