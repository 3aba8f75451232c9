"""
Output Builder

Constructs JSON-safe API responses from engine results.
"""

from datetime import date, datetime
from decimal import Decimal

from .models import (
    Debt,
    Debtor,
    InstallmentQuote,
    NegotiationAttempt,
    NegotiationCase,
    PaymentAgreement,
    RecoverySummary,
    School,
    UpdatedValue,
)


def to_money(value: Decimal | None) -> float | None:
    """Convert Decimal to float with 2 decimal places."""
    if value is None:
        return None
    return round(float(value), 2)


def _fmt(value) -> str:
    """Format a number as BRL currency string for descriptions."""
    return f"R${value:,.2f}"


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class OutputBuilder:
    """Builds the dict payloads returned by the HTTP adapter."""

    def debt(self, debt: Debt) -> dict:
        return {
            "id": debt.id,
            "tenant_id": debt.tenant_id,
            "school_id": debt.school_id,
            "debtor_id": debt.debtor_id,
            "student_name": debt.student_name,
            "amount": to_money(debt.amount),
            "due_date": _iso(debt.due_date),
            "status": debt.status.value,
            "collection_stage": debt.collection_stage.value if debt.collection_stage else None,
            "commission": to_money(debt.commission),
            "settled_amount": to_money(debt.settled_amount),
            "risk_score": debt.risk_score,
        }

    def attempt(self, attempt: NegotiationAttempt) -> dict:
        return {
            "id": attempt.id,
            "debt_id": attempt.debt_id,
            "timestamp": _iso(attempt.timestamp),
            "kind": attempt.kind.value,
            "channel": attempt.channel.value,
            "notes": attempt.notes,
            "author": attempt.author,
        }

    def agreement(self, agreement: PaymentAgreement | None) -> dict | None:
        if agreement is None:
            return None
        return {
            "protocol_number": agreement.protocol_number,
            "installments": agreement.installments,
            "installment_value": to_money(agreement.installment_value),
            "total_with_interest": to_money(agreement.total_with_interest),
            "interest_rate": float(agreement.rate),
            "payment_method": agreement.payment_method.value,
            "first_due_date": _iso(agreement.first_due_date),
            "created_at": _iso(agreement.created_at),
            "is_approved": agreement.is_approved,
        }

    def updated_value(self, value: UpdatedValue) -> dict:
        return {
            "principal": to_money(value.principal),
            "fine": to_money(value.fine),
            "interest": to_money(value.interest),
            "days_overdue": value.days_overdue,
            "months_overdue": value.months_overdue,
            "updated_value": to_money(value.updated_value),
            "description": (
                f"principal ({_fmt(value.principal)}) + fine ({_fmt(value.fine)}) + "
                f"interest for {value.months_overdue} month(s) ({_fmt(value.interest)})"
            ),
        }

    def quote(self, quote: InstallmentQuote) -> dict:
        if quote.is_interest_free:
            description = "No installment interest"
        else:
            description = (
                f"{quote.installments}x of {_fmt(quote.installment_value)}; "
                f"total with interest {_fmt(quote.total_with_interest)} ({float(quote.rate) * 100:.2f}%)"
            )
        return {
            "installments": quote.installments,
            "interest_rate": float(quote.rate),
            "installment_value": to_money(quote.installment_value),
            "total_with_interest": to_money(quote.total_with_interest),
            "description": description,
        }

    def case(self, case: NegotiationCase) -> dict:
        return {
            "debt": self.debt(case.debt),
            "debtor": self._debtor(case.debtor),
            "school": self._school(case.school),
            "attempts": [self.attempt(a) for a in case.attempts],
            "agreement": self.agreement(case.agreement),
            "last_activity": _iso(case.last_activity),
            "administrative_attempts": case.administrative_attempt_count,
            "is_ready_for_legal_action": case.is_ready_for_legal_action,
            "criticality": case.criticality,
        }

    def summary(self, summary: RecoverySummary) -> dict:
        return {
            "total_recovered": to_money(summary.total_recovered),
            "total_commission": to_money(summary.total_commission),
            "paid_count": summary.paid_count,
            "overdue_count": summary.overdue_count,
            "recovery_rate": float(summary.recovery_rate),
        }

    def _debtor(self, debtor: Debtor | None) -> dict | None:
        if debtor is None:
            return None
        return {"id": debtor.id, "name": debtor.name, "phone": debtor.phone, "email": debtor.email}

    def _school(self, school: School | None) -> dict | None:
        if school is None:
            return None
        return {"id": school.id, "name": school.name}
