"""
Agreement Builder

Turns an accepted negotiation into a PaymentAgreement: updated value,
installment value and a unique protocol number. Persisting the agreement and
moving the stage is the processor's job.
"""

import itertools
import threading
from datetime import date, datetime, timezone
from typing import Callable

from .calculators.interest import InterestCalculator, quantize_money
from .models import Debt, PaymentAgreement, PaymentMethod


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProtocolNumberGenerator:
    """
    Issues protocol numbers of the form ACORDO-<debt id>-<epoch ms>-<seq>.

    The sequence is process-wide and monotonic, so two agreements built in
    the same millisecond still get distinct numbers.
    """

    PREFIX = "ACORDO"

    def __init__(self):
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next(self, debt_id: str, at: datetime) -> str:
        with self._lock:
            seq = next(self._counter)
        millis = int(at.timestamp() * 1000)
        return f"{self.PREFIX}-{debt_id}-{millis}-{seq:06d}"


class AgreementBuilder:
    """Builds payment agreements for debts in negotiation."""

    def __init__(
        self,
        interest_calculator: InterestCalculator | None = None,
        protocol_numbers: ProtocolNumberGenerator | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.interest_calculator = interest_calculator or InterestCalculator()
        self.protocol_numbers = protocol_numbers or ProtocolNumberGenerator()
        self.clock = clock

    def build(
        self,
        debt: Debt,
        installments: int,
        evaluation_date: date | None = None,
        payment_method: PaymentMethod = PaymentMethod.BOLETO,
        first_due_date: date | None = None,
    ) -> PaymentAgreement:
        """
        Build the agreement for `debt` split into `installments` payments.

        Raises InvalidInstallmentCount before anything else is computed.
        """
        calculator = self.interest_calculator
        rate = calculator.rate_for(installments)

        created_at = self.clock()
        evaluation_date = evaluation_date or created_at.date()
        updated = calculator.updated_value_for(debt, evaluation_date).updated_value

        return PaymentAgreement(
            debt_id=debt.id,
            installments=installments,
            installment_value=quantize_money(calculator.installment_value(updated, installments)),
            total_with_interest=quantize_money(updated * (1 + rate)),
            rate=rate,
            created_at=created_at,
            protocol_number=self.protocol_numbers.next(debt.id, created_at),
            payment_method=payment_method,
            first_due_date=first_due_date,
        )
