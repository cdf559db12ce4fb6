"""
Trip expense store.

ExpenseRepository is the persistence seam; InMemoryExpenseRepository keeps
everything in process memory and is lost on restart.
"""

import uuid
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from rendicion.models.trip import TripExpense, TripExpenseCreate, TripSummary, Approval
from rendicion.services.concepts import ConceptCatalog
from rendicion.utils.steps import classify_step

logger = logging.getLogger(__name__)

DEFAULT_APPROVER = "Administrador"


class NotFoundError(LookupError):
    """Raised when an expense, trip or approval does not exist."""


class InvalidConceptError(ValueError):
    """Raised when an expense names a concept outside the active catalog."""


class ExpenseRepository(ABC):
    """Storage interface for trip expenses and approvals."""

    @abstractmethod
    def create(self, data: TripExpenseCreate) -> TripExpense:
        ...

    @abstractmethod
    def list_all(self) -> List[TripExpense]:
        ...

    @abstractmethod
    def list_by_trip(self, trip_number: int) -> List[TripExpense]:
        ...

    @abstractmethod
    def delete(self, expense_id: str) -> TripExpense:
        ...

    @abstractmethod
    def summary_by_trip(self) -> Dict[int, TripSummary]:
        ...

    @abstractmethod
    def approve(self, trip_number: int, approved_by: Optional[str] = None) -> Approval:
        ...

    @abstractmethod
    def list_approvals(self) -> Dict[int, Approval]:
        ...

    @abstractmethod
    def revoke(self, trip_number: int) -> Approval:
        ...


class InMemoryExpenseRepository(ExpenseRepository):
    """Process-local repository guarded by a lock."""

    def __init__(self, catalog: Optional[ConceptCatalog] = None):
        self._catalog = catalog or ConceptCatalog()
        self._expenses: List[TripExpense] = []
        self._approvals: Dict[int, Approval] = {}
        self._lock = threading.Lock()

    def create(self, data: TripExpenseCreate) -> TripExpense:
        """
        Store a new expense, computing its accounting step server-side.

        Args:
            data: Validated expense fields

        Returns:
            Stored TripExpense with id, step and created_at

        Raises:
            InvalidConceptError: If the type/article pair is not active
        """
        concept = self._catalog.lookup(data.type_code, data.article_code)
        if concept is None:
            raise InvalidConceptError(
                f"Concept {data.type_code}/{data.article_code} is not in the active catalog"
            )

        expense = TripExpense(
            **data.model_dump(exclude={"type_code", "article_code"}),
            type_code=concept.type_code,
            article_code=concept.article_code,
            id=uuid.uuid4().hex,
            step=classify_step(data.country, data.amount),
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        if expense.description is not None:
            expense.description = expense.description.strip() or None

        with self._lock:
            self._expenses.append(expense)
            count = len(self._expenses)

        logger.info("Trip expense created", extra={
            "expense_id": expense.id,
            "trip_number": expense.trip_number,
            "amount": str(expense.amount),
            "step": expense.step,
            "stored": count,
        })
        return expense

    def list_all(self) -> List[TripExpense]:
        with self._lock:
            return list(self._expenses)

    def list_by_trip(self, trip_number: int) -> List[TripExpense]:
        with self._lock:
            return [e for e in self._expenses if e.trip_number == trip_number]

    def delete(self, expense_id: str) -> TripExpense:
        with self._lock:
            for index, expense in enumerate(self._expenses):
                if expense.id == expense_id:
                    removed = self._expenses.pop(index)
                    break
            else:
                raise NotFoundError(f"Expense {expense_id} not found")

        logger.info("Trip expense deleted", extra={
            "expense_id": expense_id,
            "trip_number": removed.trip_number,
        })
        return removed

    def summary_by_trip(self) -> Dict[int, TripSummary]:
        """Group expenses by trip number with count and total."""
        summary: Dict[int, TripSummary] = {}
        for expense in self.list_all():
            entry = summary.get(expense.trip_number)
            if entry is None:
                entry = summary[expense.trip_number] = TripSummary(
                    trip_number=expense.trip_number,
                    count=0,
                    total=Decimal("0"),
                    expenses=[],
                )
            entry.expenses.append(expense)
            entry.count += 1
            entry.total += expense.amount
        return summary

    def approve(self, trip_number: int, approved_by: Optional[str] = None) -> Approval:
        """
        Approve a trip's expense report, replacing any earlier approval.

        Raises:
            NotFoundError: If the trip has no expenses
        """
        expenses = self.list_by_trip(trip_number)
        if not expenses:
            raise NotFoundError(f"No expenses for trip {trip_number}")

        approval = Approval(
            trip_number=trip_number,
            approved_by=(approved_by or "").strip() or DEFAULT_APPROVER,
            approved_at=datetime.now(timezone.utc).isoformat(),
            total_amount=sum((e.amount for e in expenses), Decimal("0")),
        )
        with self._lock:
            self._approvals[trip_number] = approval

        logger.info("Trip approved", extra={
            "trip_number": trip_number,
            "total": str(approval.total_amount),
            "approved_by": approval.approved_by,
        })
        return approval

    def list_approvals(self) -> Dict[int, Approval]:
        with self._lock:
            return dict(self._approvals)

    def revoke(self, trip_number: int) -> Approval:
        with self._lock:
            approval = self._approvals.pop(trip_number, None)
        if approval is None:
            raise NotFoundError(f"No approval for trip {trip_number}")

        logger.info("Trip approval revoked", extra={"trip_number": trip_number})
        return approval


_repository: Optional[ExpenseRepository] = None


def get_repository() -> ExpenseRepository:
    """FastAPI dependency returning the process-wide repository."""
    global _repository
    if _repository is None:
        _repository = InMemoryExpenseRepository()
    return _repository
