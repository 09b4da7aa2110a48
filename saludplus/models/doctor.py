from __future__ import annotations

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from saludplus.models.base import Base, CreatedAtMixin


class Doctor(Base, CreatedAtMixin):
    __tablename__ = "doctors"
    __table_args__ = (
        Index("idx_doctors_email", "email"),
        Index("idx_doctors_specialty", "specialty"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    specialty: Mapped[str] = mapped_column(String(100), nullable=False)

    appointments = relationship("Appointment", back_populates="doctor", passive_deletes="all")
