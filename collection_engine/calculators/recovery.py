"""
Recovery Summary Calculator

Aggregates recovered amounts and commissions across a tenant's debts.
"""

from decimal import Decimal
from typing import Iterable

from ..models import Debt, InvoiceStatus, RecoverySummary
from .commission import CommissionCalculator
from .interest import quantize_money


class RecoverySummarizer:
    """Builds the recovery overview shown on the law firm's financials."""

    def __init__(self, commission_calculator: CommissionCalculator | None = None):
        self.commission_calculator = commission_calculator or CommissionCalculator()

    def summarize(self, debts: Iterable[Debt], percentage: Decimal) -> RecoverySummary:
        """
        Summarize paid vs overdue debts.

        A paid debt's stored commission wins over the current percentage, so
        historical payouts stay as they were recorded.
        """
        summary = RecoverySummary()

        for debt in debts:
            if debt.status is InvoiceStatus.PAID:
                summary.paid_count += 1
                summary.total_recovered += debt.recovered_amount
                if debt.commission is not None:
                    summary.total_commission += debt.commission
                else:
                    summary.total_commission += self.commission_calculator.calculate(debt.recovered_amount, percentage)
            elif debt.status is InvoiceStatus.OVERDUE:
                summary.overdue_count += 1

        if summary.paid_count > 0:
            rate = Decimal(summary.paid_count) / Decimal(summary.paid_count + summary.overdue_count)
            summary.recovery_rate = quantize_money(rate * Decimal("100"))

        summary.total_recovered = quantize_money(summary.total_recovered)
        summary.total_commission = quantize_money(summary.total_commission)
        return summary
