from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from saludplus.core.errors import ConflictError, NotFoundError, ValidationError
from saludplus.models.insurance import Insurance
from saludplus.models.treatment import Treatment
from saludplus.services.migration.normalize import clean_text, parse_decimal_or_none


def list_insurances(session: Session) -> list[Insurance]:
    return list(session.scalars(select(Insurance).order_by(Insurance.name)))


def get_insurance(session: Session, insurance_id: int) -> Insurance:
    insurance = session.get(Insurance, insurance_id)
    if insurance is None:
        raise NotFoundError("Insurance not found")
    return insurance


def create_insurance(session: Session, *, name: str | None, coverage_percentage: Any) -> Insurance:
    name = clean_text(name)
    if not name or coverage_percentage is None:
        raise ValidationError("name and coverage_percentage are required")
    if session.scalar(select(Insurance.id).where(Insurance.name == name)) is not None:
        raise ConflictError("Insurance name already exists")
    coverage = parse_decimal_or_none(coverage_percentage)
    if coverage is None or coverage < 0 or coverage > Decimal("100"):
        raise ValidationError("coverage_percentage must be between 0 and 100")
    insurance = Insurance(name=name, coverage_percentage=coverage)
    session.add(insurance)
    session.commit()
    session.refresh(insurance)
    return insurance


def list_treatments(session: Session) -> list[Treatment]:
    return list(session.scalars(select(Treatment).order_by(Treatment.code)))


def get_treatment(session: Session, treatment_id: int) -> Treatment:
    treatment = session.get(Treatment, treatment_id)
    if treatment is None:
        raise NotFoundError("Treatment not found")
    return treatment


def create_treatment(
    session: Session, *, code: str | None, description: str | None, cost: Any
) -> Treatment:
    code = clean_text(code)
    description = clean_text(description)
    if not code or not description or cost is None:
        raise ValidationError("code, description and cost are required")
    if session.scalar(select(Treatment.id).where(Treatment.code == code)) is not None:
        raise ConflictError("Treatment code already exists")
    numeric_cost = parse_decimal_or_none(cost)
    if numeric_cost is None or numeric_cost <= 0:
        raise ValidationError("cost must be a positive number")
    treatment = Treatment(code=code, description=description, cost=numeric_cost)
    session.add(treatment)
    session.commit()
    session.refresh(treatment)
    return treatment
