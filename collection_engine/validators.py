"""
Input Validation for the Collection Engine

Validates calculator and processor input before any computation or write.
Raises InvalidInput (a ValueError) with clear messages for any constraint violation.
"""

from datetime import date
from decimal import Decimal
from typing import Mapping

from .errors import InvalidInput, InvalidInstallmentCount
from .models import CollectionStage, Debt, InvoiceStatus, NegotiationAttempt


class InputValidator:
    """Validates engine input according to business rules."""

    def validate_debt(self, debt: Debt) -> None:
        """Validate a debt record before it enters the lifecycle."""
        self.validate_amount(debt.amount, "amount")

        if not debt.id:
            raise InvalidInput("debt id is required")

        if debt.risk_score is not None and not (0 <= debt.risk_score <= 100):
            raise InvalidInput(f"risk_score must be between 0 and 100, got: {debt.risk_score}")

        # Later stages are only reached through the lifecycle
        if debt.collection_stage not in (None, CollectionStage.AWAITING_CONTACT):
            raise InvalidInput(
                f"a new debt may only start at AWAITING_CONTACT, got: {debt.collection_stage.value}"
            )

        if debt.status is not InvoiceStatus.PAID:
            if debt.commission is not None:
                raise InvalidInput("commission is only set on paid debts")
            if debt.settled_amount is not None:
                raise InvalidInput("settled_amount is only set on paid debts")
        else:
            if debt.commission is not None:
                self.validate_amount(debt.commission, "commission")
            if debt.settled_amount is not None:
                self.validate_amount(debt.settled_amount, "settled_amount")

    def validate_amount(self, amount: Decimal, name: str = "amount") -> None:
        if not isinstance(amount, Decimal):
            raise InvalidInput(f"{name} must be a Decimal, got: {type(amount).__name__}")
        if not amount.is_finite():
            raise InvalidInput(f"{name} must be finite, got: {amount}")
        if amount < 0:
            raise InvalidInput(f"{name} cannot be negative, got: {amount}")

    def validate_percentage(self, percentage: Decimal) -> None:
        self.validate_amount(percentage, "percentage")
        if percentage > 100:
            raise InvalidInput(f"percentage must be between 0 and 100, got: {percentage}")

    def validate_evaluation_date(self, due_date: date, evaluation_date: date) -> None:
        """Accrual requested for a date before maturity is a caller error."""
        if evaluation_date < due_date:
            raise InvalidInput(
                f"evaluation_date {evaluation_date.isoformat()} precedes due_date {due_date.isoformat()}"
            )

    def validate_installment_count(self, count, rates: Mapping[int, Decimal]) -> None:
        # bool is an int subclass; True must not pass as one installment
        if isinstance(count, bool) or not isinstance(count, int) or count not in rates:
            raise InvalidInstallmentCount(count)

    def validate_attempt(self, attempt: NegotiationAttempt) -> None:
        if not attempt.debt_id:
            raise InvalidInput("attempt debt_id is required")
        if not attempt.author:
            raise InvalidInput("attempt author is required")
