"""
Accounting step API router.
"""

from fastapi import APIRouter

from rendicion.models.expense import StepRequest, StepResponse
from rendicion.utils.steps import classify_step

router = APIRouter(prefix="/steps", tags=["steps"])


@router.post("", response_model=StepResponse)
async def classify(request: StepRequest):
    """Authoritative step routing for a (country, amount) pair."""
    return StepResponse(
        country=request.country,
        amount=request.amount,
        step=classify_step(request.country, request.amount),
    )
