"""
In-memory Stores

Thread-safe reference implementations of the engine ports. Used by the HTTP
adapter for local runs and by the test suite; a production deployment plugs
document-database backed implementations into the same ports.
"""

import threading
from dataclasses import replace
from decimal import Decimal

from .errors import NotFound
from .models import (
    CollectionStage,
    Debt,
    Debtor,
    InvoiceStatus,
    NegotiationAttempt,
    PaymentAgreement,
    School,
)
from .calculators.commission import DEFAULT_COMMISSION_PERCENTAGE


class InMemoryDebtStore:
    """Holds frozen Debt snapshots keyed by id."""

    def __init__(self, debts: list[Debt] | None = None):
        self._lock = threading.Lock()
        self._debts: dict[str, Debt] = {}
        for debt in debts or []:
            self._debts[debt.id] = debt

    def get_debt(self, debt_id: str) -> Debt:
        with self._lock:
            try:
                return self._debts[debt_id]
            except KeyError:
                raise NotFound("debt", debt_id) from None

    def save_debt(self, debt: Debt) -> None:
        with self._lock:
            self._debts[debt.id] = debt

    def update_debt_stage(self, debt_id: str, stage: CollectionStage | None) -> None:
        self._update(debt_id, collection_stage=stage)

    def update_debt_status(self, debt_id: str, status: InvoiceStatus) -> None:
        self._update(debt_id, status=status)

    def mark_paid(self, debt_id: str, settled_amount: Decimal) -> None:
        # Stage is kept as-is: it records where collection stood at payment
        self._update(debt_id, status=InvoiceStatus.PAID, settled_amount=settled_amount)

    def set_commission(self, debt_id: str, commission: Decimal) -> None:
        self._update(debt_id, commission=commission)

    def list_debts_for_tenant(self, tenant_id: str) -> list[Debt]:
        with self._lock:
            return [d for d in self._debts.values() if d.tenant_id == tenant_id]

    def list_overdue_debts_for_tenant(self, tenant_id: str) -> list[Debt]:
        return [d for d in self.list_debts_for_tenant(tenant_id) if d.status is InvoiceStatus.OVERDUE]

    def _update(self, debt_id: str, **changes) -> None:
        with self._lock:
            if debt_id not in self._debts:
                raise NotFound("debt", debt_id)
            self._debts[debt_id] = replace(self._debts[debt_id], **changes)


class InMemoryAttemptStore:
    """Append-only attempt log."""

    def __init__(self):
        self._lock = threading.Lock()
        self._attempts: dict[str, list[NegotiationAttempt]] = {}

    def append_attempt(self, attempt: NegotiationAttempt) -> None:
        with self._lock:
            self._attempts.setdefault(attempt.debt_id, []).append(attempt)

    def list_attempts(self, debt_id: str) -> list[NegotiationAttempt]:
        with self._lock:
            return list(self._attempts.get(debt_id, []))


class InMemoryAgreementStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._agreements: dict[str, PaymentAgreement] = {}

    def save_agreement(self, debt_id: str, agreement: PaymentAgreement) -> None:
        with self._lock:
            self._agreements[debt_id] = agreement

    def get_agreement(self, debt_id: str) -> PaymentAgreement | None:
        with self._lock:
            return self._agreements.get(debt_id)


class InMemoryTenantConfiguration:
    """Per-tenant commission percentage, falling back to the default."""

    def __init__(self, default_percentage: Decimal = DEFAULT_COMMISSION_PERCENTAGE):
        self.default_percentage = default_percentage
        self._percentages: dict[str, Decimal] = {}

    def set_commission_percentage(self, tenant_id: str, percentage: Decimal) -> None:
        self._percentages[tenant_id] = percentage

    def get_commission_percentage(self, tenant_id: str) -> Decimal:
        return self._percentages.get(tenant_id, self.default_percentage)


class InMemoryDirectory:
    def __init__(self, debtors: list[Debtor] | None = None, schools: list[School] | None = None):
        self._debtors = {d.id: d for d in debtors or []}
        self._schools = {s.id: s for s in schools or []}

    def add_debtor(self, debtor: Debtor) -> None:
        self._debtors[debtor.id] = debtor

    def add_school(self, school: School) -> None:
        self._schools[school.id] = school

    def get_debtor(self, debtor_id: str) -> Debtor | None:
        return self._debtors.get(debtor_id)

    def get_school(self, school_id: str) -> School | None:
        return self._schools.get(school_id)
