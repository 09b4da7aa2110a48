from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping

from saludplus.services.migration.normalize import (
    clean_text,
    normalize_email,
    normalize_name,
    parse_date,
    parse_decimal,
    parse_decimal_or_none,
)
from saludplus.services.migration.types import SourceRow

logger = logging.getLogger(__name__)


@dataclass
class HistoryDraft:
    patient_email: str
    patient_name: str
    appointments: list[dict[str, Any]] = field(default_factory=list)


def _money(value: Decimal | int | float | None) -> float:
    if value is None:
        return 0.0
    return float(value)


def build_fragment(
    *,
    appointment_id: str,
    appointment_date: date,
    doctor_id: int | None,
    doctor_name: str,
    doctor_email: str,
    specialty: str | None,
    treatment_code: str,
    treatment_description: str | None,
    treatment_cost: Decimal | float | None,
    insurance_provider: str,
    coverage_percentage: Decimal | float | None,
    amount_paid: Decimal | float,
) -> dict[str, Any]:
    # Point-in-time copy; numbers stored as doubles since BSON has no Decimal.
    return {
        "appointmentId": appointment_id,
        "date": appointment_date.isoformat(),
        "doctorId": doctor_id,
        "doctorName": doctor_name,
        "doctorEmail": doctor_email,
        "specialty": specialty or "",
        "treatmentCode": treatment_code,
        "treatmentDescription": treatment_description or "",
        "treatmentCost": _money(treatment_cost),
        "insuranceProvider": insurance_provider,
        "coveragePercentage": _money(coverage_percentage),
        "amountPaid": _money(amount_paid),
    }


def build_histories(
    rows: Iterable[SourceRow],
    doctor_ids: Mapping[str, int] | None = None,
) -> list[HistoryDraft]:
    """Group rows into one history per patient email, fragments in row order.

    Fragments come from row data only. A row that the relational engine would
    skip (blank treatment code or insurance, bad date or amount) yields no
    fragment, and a repeated appointment id keeps its first occurrence.
    """
    doctor_ids = doctor_ids or {}
    histories: dict[str, HistoryDraft] = {}
    seen_appointments: set[str] = set()

    for row in rows:
        patient_email = normalize_email(row.patient_email)
        doctor_email = normalize_email(row.doctor_email)
        if patient_email is None or doctor_email is None:
            continue
        history = histories.get(patient_email)
        if history is None:
            history = HistoryDraft(
                patient_email=patient_email,
                patient_name=normalize_name(row.patient_name),
            )
            histories[patient_email] = history

        fragment = _fragment_from_row(row, doctor_email, doctor_ids)
        if fragment is None:
            continue
        if fragment["appointmentId"] in seen_appointments:
            continue
        seen_appointments.add(fragment["appointmentId"])
        history.appointments.append(fragment)

    return [history for history in histories.values() if history.appointments]


def _fragment_from_row(
    row: SourceRow, doctor_email: str, doctor_ids: Mapping[str, int]
) -> dict[str, Any] | None:
    appointment_id = clean_text(row.appointment_id)
    treatment_code = clean_text(row.treatment_code)
    insurance_provider = clean_text(row.insurance_provider)
    appointment_date = parse_date(row.appointment_date)
    amount_paid = parse_decimal_or_none(row.amount_paid)
    if not (appointment_id and treatment_code and insurance_provider):
        return None
    if appointment_date is None or amount_paid is None or amount_paid < 0:
        return None
    return build_fragment(
        appointment_id=appointment_id,
        appointment_date=appointment_date,
        doctor_id=doctor_ids.get(doctor_email),
        doctor_name=normalize_name(row.doctor_name),
        doctor_email=doctor_email,
        specialty=clean_text(row.specialty),
        treatment_code=treatment_code,
        treatment_description=clean_text(row.treatment_description),
        treatment_cost=parse_decimal(row.treatment_cost),
        insurance_provider=insurance_provider,
        coverage_percentage=parse_decimal(row.coverage_percentage),
        amount_paid=amount_paid,
    )
