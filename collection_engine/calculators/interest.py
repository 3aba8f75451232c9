"""
Interest & Value Calculators

Computes the updated amount owed on an overdue debt and the installment value
of a proposed payment plan. All use Decimal for precision; rounding is
ROUND_HALF_UP and only applied at display/persistence.
"""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Mapping, Protocol

from ..models import Debt, InstallmentQuote, InvoiceStatus, UpdatedValue
from ..validators import InputValidator

# Hand-curated surcharge per installment count. Not derived from a formula.
INSTALLMENT_RATES: Mapping[int, Decimal] = MappingProxyType({
    1: Decimal("0"),
    2: Decimal("0.0539"),
    3: Decimal("0.0612"),
    4: Decimal("0.0685"),
    5: Decimal("0.0757"),
    6: Decimal("0.0828"),
    7: Decimal("0.0899"),
    8: Decimal("0.0969"),
    9: Decimal("0.1038"),
    10: Decimal("0.1106"),
    11: Decimal("0.1174"),
    12: Decimal("0.1240"),
})


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places using half-up rounding."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def months_overdue(due_date: date, evaluation_date: date) -> int:
    """
    Count completed calendar months between due date and evaluation date.

    A month only completes once the evaluation day-of-month reaches the due
    day-of-month:
    - due 2024-07-10, evaluated 2024-08-09 -> 0
    - due 2024-07-10, evaluated 2024-08-10 -> 1
    """
    months = (evaluation_date.year - due_date.year) * 12
    months += evaluation_date.month - due_date.month
    if evaluation_date.day < due_date.day:
        months -= 1
    return max(0, months)


class AccrualPolicy(Protocol):
    """Pure function of the overdue period to the amount owed."""

    def __call__(self, principal: Decimal, days_overdue: int, months_overdue: int) -> UpdatedValue:
        ...


@dataclass(frozen=True)
class SimpleMonthlyAccrual:
    """
    Default accrual: a one-time late fine plus simple monthly interest.

    ASSUMPTION: 2% fine once the debt is a single day overdue, plus 1% of the
    principal for every completed calendar month. Swap the policy on
    EngineConfig where a contract says otherwise.
    """

    late_fine_rate: Decimal = Decimal("0.02")
    monthly_interest_rate: Decimal = Decimal("0.01")

    def __call__(self, principal: Decimal, days_overdue: int, months_overdue: int) -> UpdatedValue:
        if days_overdue <= 0:
            return UpdatedValue(principal=principal)

        fine = principal * self.late_fine_rate
        interest = principal * self.monthly_interest_rate * months_overdue
        return UpdatedValue(
            principal=principal,
            fine=fine,
            interest=interest,
            days_overdue=days_overdue,
            months_overdue=months_overdue,
        )


class InterestCalculator:
    """Calculates the updated value of debts and installment plans."""

    def __init__(
        self,
        accrual_policy: AccrualPolicy | None = None,
        installment_rates: Mapping[int, Decimal] = INSTALLMENT_RATES,
        validator: InputValidator | None = None,
    ):
        self.accrual_policy = accrual_policy or SimpleMonthlyAccrual()
        self.installment_rates = installment_rates
        self.validator = validator or InputValidator()

    def updated_value(
        self,
        principal: Decimal,
        due_date: date,
        evaluation_date: date | None = None,
        strict: bool = False,
    ) -> UpdatedValue:
        """
        Compute the amount owed on `evaluation_date` (defaults to today).

        Nothing accrues on or before the due date. With strict=True an
        evaluation date before the due date is rejected instead.
        """
        evaluation_date = evaluation_date or date.today()
        self.validator.validate_amount(principal, "principal")
        if strict:
            self.validator.validate_evaluation_date(due_date, evaluation_date)

        if evaluation_date <= due_date:
            return UpdatedValue(principal=principal)

        days = (evaluation_date - due_date).days
        return self.accrual_policy(principal, days, months_overdue(due_date, evaluation_date))

    def updated_value_for(self, debt: Debt, evaluation_date: date | None = None) -> UpdatedValue:
        """Paid debts are settled and never accrue."""
        if debt.status is InvoiceStatus.PAID:
            self.validator.validate_amount(debt.amount, "principal")
            return UpdatedValue(principal=debt.amount)
        return self.updated_value(debt.amount, debt.due_date, evaluation_date)

    def rate_for(self, installments: int) -> Decimal:
        self.validator.validate_installment_count(installments, self.installment_rates)
        return self.installment_rates[installments]

    def installment_value(self, updated_value: Decimal, installments: int) -> Decimal:
        """
        installment = updated_value * (1 + rate[n]) / n

        Unrounded; callers quantize at display/persistence.
        """
        rate = self.rate_for(installments)
        self.validator.validate_amount(updated_value, "updated_value")
        return updated_value * (1 + rate) / installments

    def quote(self, updated_value: Decimal, installments: int) -> InstallmentQuote:
        """Installment option with money rounded for display."""
        rate = self.rate_for(installments)
        return InstallmentQuote(
            installments=installments,
            rate=rate,
            total_with_interest=quantize_money(updated_value * (1 + rate)),
            installment_value=quantize_money(self.installment_value(updated_value, installments)),
        )

    def quote_options(self, updated_value: Decimal) -> list[InstallmentQuote]:
        return [self.quote(updated_value, n) for n in sorted(self.installment_rates)]
