from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from saludplus.models.base import Base, CreatedAtMixin


class Appointment(Base, CreatedAtMixin):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("amount_paid >= 0", name="ck_appointments_amount_paid"),
        Index("idx_appt_patient_id", "patient_id"),
        Index("idx_appt_doctor_id", "doctor_id"),
        Index("idx_appt_date", "appointment_date"),
        Index("idx_appt_insurance_id", "insurance_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    appointment_id: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id", ondelete="RESTRICT"), nullable=False
    )
    doctor_id: Mapped[int] = mapped_column(
        ForeignKey("doctors.id", ondelete="RESTRICT"), nullable=False
    )
    treatment_id: Mapped[int] = mapped_column(
        ForeignKey("treatments.id", ondelete="RESTRICT"), nullable=False
    )
    insurance_id: Mapped[int] = mapped_column(
        ForeignKey("insurances.id", ondelete="RESTRICT"), nullable=False
    )
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    treatment = relationship("Treatment")
    insurance = relationship("Insurance")
