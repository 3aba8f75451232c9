"""
Calculators Package

Provides all calculation components for the collection lifecycle.
"""

from .commission import DEFAULT_COMMISSION_PERCENTAGE, CommissionCalculator
from .criticality import CriticalityScorer
from .interest import (
    INSTALLMENT_RATES,
    AccrualPolicy,
    InterestCalculator,
    SimpleMonthlyAccrual,
    months_overdue,
    quantize_money,
)
from .recovery import RecoverySummarizer

__all__ = [
    "INSTALLMENT_RATES",
    "DEFAULT_COMMISSION_PERCENTAGE",
    "AccrualPolicy",
    "SimpleMonthlyAccrual",
    "InterestCalculator",
    "CommissionCalculator",
    "CriticalityScorer",
    "RecoverySummarizer",
    "months_overdue",
    "quantize_money",
]
