"""
Commission Calculator

Computes the law firm's commission on a recovered debt.
"""

from decimal import Decimal

from ..validators import InputValidator
from .interest import quantize_money

DEFAULT_COMMISSION_PERCENTAGE = Decimal("10")


class CommissionCalculator:
    """Calculates collector commissions from settled amounts."""

    def __init__(self, validator: InputValidator | None = None):
        self.validator = validator or InputValidator()

    def calculate(self, settled_amount: Decimal, percentage: Decimal) -> Decimal:
        """
        commission = settled_amount * (percentage / 100), rounded to cents.

        Used once at settlement time. The stored value is never recomputed when
        the tenant's percentage changes later.
        """
        self.validator.validate_amount(settled_amount, "settled_amount")
        self.validator.validate_percentage(percentage)

        return quantize_money(settled_amount * (percentage / Decimal("100")))
