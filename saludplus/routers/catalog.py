from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from saludplus.db.session import get_db
from saludplus.schemas.catalog import InsuranceCreate, InsuranceOut, TreatmentCreate, TreatmentOut
from saludplus.services import catalog

insurances_router = APIRouter(prefix="/api/insurances", tags=["insurances"])
treatments_router = APIRouter(prefix="/api/treatments", tags=["treatments"])


def _insurance(row) -> dict:
    return InsuranceOut.model_validate(row).model_dump(mode="json")


def _treatment(row) -> dict:
    return TreatmentOut.model_validate(row).model_dump(mode="json")


@insurances_router.get("")
def list_insurances(db: Session = Depends(get_db)):
    return {"ok": True, "insurances": [_insurance(row) for row in catalog.list_insurances(db)]}


@insurances_router.get("/{insurance_id}")
def get_insurance(insurance_id: int, db: Session = Depends(get_db)):
    return {"ok": True, "insurance": _insurance(catalog.get_insurance(db, insurance_id))}


@insurances_router.post("", status_code=status.HTTP_201_CREATED)
def create_insurance(payload: InsuranceCreate, db: Session = Depends(get_db)):
    insurance = catalog.create_insurance(
        db, name=payload.name, coverage_percentage=payload.coverage_percentage
    )
    return {
        "ok": True,
        "message": "Insurance created successfully",
        "insurance": _insurance(insurance),
    }


@treatments_router.get("")
def list_treatments(db: Session = Depends(get_db)):
    return {"ok": True, "treatments": [_treatment(row) for row in catalog.list_treatments(db)]}


@treatments_router.get("/{treatment_id}")
def get_treatment(treatment_id: int, db: Session = Depends(get_db)):
    return {"ok": True, "treatment": _treatment(catalog.get_treatment(db, treatment_id))}


@treatments_router.post("", status_code=status.HTTP_201_CREATED)
def create_treatment(payload: TreatmentCreate, db: Session = Depends(get_db)):
    treatment = catalog.create_treatment(
        db, code=payload.code, description=payload.description, cost=payload.cost
    )
    return {
        "ok": True,
        "message": "Treatment created successfully",
        "treatment": _treatment(treatment),
    }
