from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

SOURCE_COLUMNS = (
    "patient_name",
    "patient_email",
    "patient_phone",
    "patient_address",
    "doctor_name",
    "doctor_email",
    "specialty",
    "insurance_provider",
    "coverage_percentage",
    "treatment_code",
    "treatment_description",
    "treatment_cost",
    "appointment_id",
    "appointment_date",
    "amount_paid",
)


class SourceRow(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    patient_name: str | None = None
    patient_email: str | None = None
    patient_phone: str | None = None
    patient_address: str | None = None
    doctor_name: str | None = None
    doctor_email: str | None = None
    specialty: str | None = None
    insurance_provider: str | None = None
    coverage_percentage: str | None = None
    treatment_code: str | None = None
    treatment_description: str | None = None
    treatment_cost: str | None = None
    appointment_id: str | None = None
    appointment_date: str | None = None
    amount_paid: str | None = None


@dataclass(frozen=True)
class PatientDraft:
    name: str
    email: str
    phone: str | None
    address: str | None


@dataclass(frozen=True)
class DoctorDraft:
    name: str
    email: str
    specialty: str


@dataclass(frozen=True)
class InsuranceDraft:
    name: str
    coverage_percentage: Decimal


@dataclass(frozen=True)
class TreatmentDraft:
    code: str
    description: str
    cost: Decimal


@dataclass
class ResolvedBatch:
    """Canonical drafts keyed by natural key, first occurrence wins.

    ``rows`` keeps every resolvable row in source order; duplicates of a key
    still contribute appointments and fragments through it.
    """

    patients: dict[str, PatientDraft] = field(default_factory=dict)
    doctors: dict[str, DoctorDraft] = field(default_factory=dict)
    insurances: dict[str, InsuranceDraft] = field(default_factory=dict)
    treatments: dict[str, TreatmentDraft] = field(default_factory=dict)
    rows: list[SourceRow] = field(default_factory=list)
    rows_unresolved: int = 0


@dataclass
class KeyIdMaps:
    patients: dict[str, int] = field(default_factory=dict)
    doctors: dict[str, int] = field(default_factory=dict)
    insurances: dict[str, int] = field(default_factory=dict)
    treatments: dict[str, int] = field(default_factory=dict)
