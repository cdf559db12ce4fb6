"""
Trip expense API router: expenses per trip, summaries and approvals.
"""

from fastapi import APIRouter, HTTPException, Depends
from typing import Optional
import logging

from rendicion.models.trip import TripExpenseCreate, ApprovalCreate
from rendicion.services.repository import (
    ExpenseRepository,
    InvalidConceptError,
    NotFoundError,
    get_repository,
)

router = APIRouter(prefix="/gastos-viaje", tags=["gastos-viaje"])
logger = logging.getLogger(__name__)


@router.get("")
async def list_expenses(repo: ExpenseRepository = Depends(get_repository)):
    """All trip expenses (admin view)."""
    expenses = repo.list_all()
    return {"success": True, "data": expenses, "total": len(expenses)}


@router.post("", status_code=201)
async def create_expense(
    expense: TripExpenseCreate,
    repo: ExpenseRepository = Depends(get_repository),
):
    """
    Create a trip expense.

    The accounting step is computed here; any client-side value is ignored.
    """
    try:
        created = repo.create(expense)
    except InvalidConceptError as e:
        logger.warning("Rejected trip expense", extra={"reason": str(e)})
        raise HTTPException(status_code=422, detail=str(e))
    return {"success": True, "data": created}


@router.get("/resumen/por-viaje")
async def summary_by_trip(repo: ExpenseRepository = Depends(get_repository)):
    return {"success": True, "data": repo.summary_by_trip()}


@router.get("/aprobaciones/todas")
async def list_approvals(repo: ExpenseRepository = Depends(get_repository)):
    return {"success": True, "data": repo.list_approvals()}


@router.post("/aprobaciones/{nro_viaje}")
async def approve_trip(
    nro_viaje: int,
    body: Optional[ApprovalCreate] = None,
    repo: ExpenseRepository = Depends(get_repository),
):
    """
    Approve a trip's expense report.

    Raises:
        HTTPException 404: If the trip has no expenses
    """
    try:
        approval = repo.approve(nro_viaje, body.approved_by if body else None)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "data": approval}


@router.delete("/aprobaciones/{nro_viaje}")
async def revoke_approval(nro_viaje: int, repo: ExpenseRepository = Depends(get_repository)):
    try:
        repo.revoke(nro_viaje)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}


@router.get("/{nro_viaje}")
async def list_trip_expenses(nro_viaje: int, repo: ExpenseRepository = Depends(get_repository)):
    expenses = repo.list_by_trip(nro_viaje)
    return {"success": True, "data": expenses, "total": len(expenses)}


@router.delete("/{expense_id}")
async def delete_expense(expense_id: str, repo: ExpenseRepository = Depends(get_repository)):
    try:
        repo.delete(expense_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}
