from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from saludplus.models.base import Base, CreatedAtMixin


class Insurance(Base, CreatedAtMixin):
    __tablename__ = "insurances"
    __table_args__ = (
        CheckConstraint(
            "coverage_percentage >= 0 AND coverage_percentage <= 100",
            name="ck_insurances_coverage_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    coverage_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
