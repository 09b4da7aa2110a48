from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

Number = Union[int, float, str]


class InsuranceCreate(BaseModel):
    name: Optional[str] = None
    coverage_percentage: Optional[Number] = None


class InsuranceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    coverage_percentage: Decimal
    created_at: Optional[datetime] = None


class TreatmentCreate(BaseModel):
    code: Optional[str] = None
    description: Optional[str] = None
    cost: Optional[Number] = None


class TreatmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    description: str
    cost: Decimal
    created_at: Optional[datetime] = None
