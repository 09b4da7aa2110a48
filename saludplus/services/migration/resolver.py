from __future__ import annotations

import logging
from typing import Iterable

from saludplus.services.migration.normalize import (
    clean_text,
    normalize_email,
    normalize_name,
    parse_decimal,
)
from saludplus.services.migration.types import (
    DoctorDraft,
    InsuranceDraft,
    PatientDraft,
    ResolvedBatch,
    SourceRow,
    TreatmentDraft,
)

logger = logging.getLogger(__name__)


def resolve_entities(rows: Iterable[SourceRow]) -> ResolvedBatch:
    """Deduplicate rows into canonical drafts keyed by natural key.

    The first row carrying a key defines its draft; later rows with the same
    key never overwrite it. Rows without a patient or doctor email are dropped
    from every downstream map.
    """
    batch = ResolvedBatch()
    for row in rows:
        patient_email = normalize_email(row.patient_email)
        doctor_email = normalize_email(row.doctor_email)
        if patient_email is None or doctor_email is None:
            batch.rows_unresolved += 1
            logger.warning(
                "Skipping unresolvable row %s: missing patient or doctor email",
                row.appointment_id or "<no appointment_id>",
            )
            continue
        batch.rows.append(row)

        if patient_email not in batch.patients:
            batch.patients[patient_email] = PatientDraft(
                name=normalize_name(row.patient_name),
                email=patient_email,
                phone=clean_text(row.patient_phone),
                address=clean_text(row.patient_address),
            )

        if doctor_email not in batch.doctors:
            batch.doctors[doctor_email] = DoctorDraft(
                name=normalize_name(row.doctor_name),
                email=doctor_email,
                specialty=clean_text(row.specialty) or "",
            )

        insurance_name = clean_text(row.insurance_provider)
        if insurance_name and insurance_name not in batch.insurances:
            batch.insurances[insurance_name] = InsuranceDraft(
                name=insurance_name,
                coverage_percentage=parse_decimal(row.coverage_percentage),
            )

        treatment_code = clean_text(row.treatment_code)
        if treatment_code and treatment_code not in batch.treatments:
            batch.treatments[treatment_code] = TreatmentDraft(
                code=treatment_code,
                description=clean_text(row.treatment_description) or "",
                cost=parse_decimal(row.treatment_cost),
            )

    if batch.rows_unresolved:
        logger.warning("Rows excluded for missing patient/doctor email: %s", batch.rows_unresolved)
    return batch
