"""
Pydantic models for trip expenses and per-trip approvals.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal

from rendicion.models.expense import Country, Formality


class TripExpenseBase(BaseModel):
    """Base trip expense model."""
    trip_number: int = Field(..., gt=0)
    date: str
    country: Country
    amount: Decimal = Field(..., gt=0)
    type_code: str = "TARIFA"
    article_code: str = "14"
    formality: Formality = Formality.INFORMAL
    provider: str = ""
    description: Optional[str] = Field(None, max_length=120)
    driver: str = ""
    tractor_plate: str = ""


class TripExpenseCreate(TripExpenseBase):
    """Model for creating a trip expense."""
    pass


class TripExpense(TripExpenseBase):
    """Model for stored trip expenses."""
    id: str
    step: int
    created_at: str

    class Config:
        from_attributes = True


class TripSummary(BaseModel):
    """Per-trip expense aggregate."""
    trip_number: int
    count: int
    total: Decimal
    expenses: List[TripExpense]


class ApprovalCreate(BaseModel):
    """Model for approving a trip expense report."""
    approved_by: Optional[str] = None


class Approval(BaseModel):
    """Approval record, one per trip number."""
    trip_number: int
    approved_by: str
    approved_at: str
    total_amount: Decimal
