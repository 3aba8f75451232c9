"""
Case Criticality Scorer

Ranks open negotiation cases so collectors work the most urgent ones first.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from ..models import NegotiationCase
from .interest import InterestCalculator


class CriticalityScorer:
    """Scores a case from 0 (can wait) to 100 (act now)."""

    # Weight of each factor; they sum to 100
    DAYS_WEIGHT = Decimal("40")
    VALUE_WEIGHT = Decimal("30")
    RISK_WEIGHT = Decimal("20")
    ATTEMPTS_WEIGHT = Decimal("10")

    # Saturation points
    MAX_DAYS = Decimal("180")
    MAX_VALUE = Decimal("5000")
    MAX_ATTEMPTS = Decimal("5")
    DEFAULT_RISK = 50

    def __init__(self, interest_calculator: InterestCalculator | None = None):
        self.interest_calculator = interest_calculator or InterestCalculator()

    def score(self, case: NegotiationCase, evaluation_date: date | None = None) -> int:
        """
        Combine age, size, risk and how little has been tried so far.

        Fewer attempts raise the score: an untouched case needs a first contact.
        """
        evaluation_date = evaluation_date or date.today()
        debt = case.debt

        updated = self.interest_calculator.updated_value_for(debt, evaluation_date).updated_value
        days_overdue = max(0, (evaluation_date - debt.due_date).days)
        risk = debt.risk_score if debt.risk_score is not None else self.DEFAULT_RISK

        days_factor = min(Decimal(days_overdue) / self.MAX_DAYS, Decimal("1"))
        value_factor = min(updated / self.MAX_VALUE, Decimal("1"))
        risk_factor = Decimal(risk) / Decimal("100")
        attempts_factor = 1 - min(Decimal(len(case.attempts)) / self.MAX_ATTEMPTS, Decimal("1"))

        total = (
            days_factor * self.DAYS_WEIGHT
            + value_factor * self.VALUE_WEIGHT
            + risk_factor * self.RISK_WEIGHT
            + attempts_factor * self.ATTEMPTS_WEIGHT
        )
        return min(100, int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))
