from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from saludplus.schemas.catalog import InsuranceOut, TreatmentOut
from saludplus.schemas.doctor import DoctorOut
from saludplus.schemas.patient import PatientOut


class AppointmentCreate(BaseModel):
    # Loose types on purpose: the service reports missing or malformed values.
    appointment_id: Optional[Union[str, int]] = None
    appointment_date: Optional[str] = None
    patient_id: Optional[Union[int, str]] = None
    doctor_id: Optional[Union[int, str]] = None
    treatment_id: Optional[Union[int, str]] = None
    insurance_id: Optional[Union[int, str]] = None
    amount_paid: Optional[Union[int, float, str]] = None


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: str
    appointment_date: date
    patient_id: int
    doctor_id: int
    treatment_id: int
    insurance_id: int
    amount_paid: Decimal
    created_at: Optional[datetime] = None


class AppointmentCreatedOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    appointment: AppointmentOut
    patient: PatientOut
    doctor: DoctorOut
    treatment: TreatmentOut
    insurance: InsuranceOut
    history_synced: bool
