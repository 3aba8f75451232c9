"""
Engine Configuration

Process-wide settings passed explicitly into calculators and the processor.
Calculators never read ambient state themselves.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping

from .calculators.commission import DEFAULT_COMMISSION_PERCENTAGE
from .calculators.interest import INSTALLMENT_RATES, AccrualPolicy, SimpleMonthlyAccrual


@dataclass(frozen=True)
class EngineConfig:
    """Interest schedule, accrual policy and commission default."""

    installment_rates: Mapping[int, Decimal] = field(default_factory=lambda: INSTALLMENT_RATES)
    accrual_policy: AccrualPolicy = field(default_factory=SimpleMonthlyAccrual)
    default_commission_percentage: Decimal = DEFAULT_COMMISSION_PERCENTAGE

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineConfig":
        """
        Build a config from environment variables.

        DEFAULT_COMMISSION_PERCENTAGE, LATE_FINE_RATE and MONTHLY_INTEREST_RATE
        override the defaults when set.
        """
        env = os.environ if environ is None else environ
        defaults = SimpleMonthlyAccrual()
        policy = SimpleMonthlyAccrual(
            late_fine_rate=Decimal(env.get("LATE_FINE_RATE", str(defaults.late_fine_rate))),
            monthly_interest_rate=Decimal(env.get("MONTHLY_INTEREST_RATE", str(defaults.monthly_interest_rate))),
        )
        return cls(
            accrual_policy=policy,
            default_commission_percentage=Decimal(
                env.get("DEFAULT_COMMISSION_PERCENTAGE", str(DEFAULT_COMMISSION_PERCENTAGE))
            ),
        )
