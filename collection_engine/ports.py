"""
Port definitions for the engine's external collaborators.

Responsibilities:
  - Define interface contracts for debt, attempt and agreement persistence,
    tenant configuration and directory lookups.
Must not:
  - Implement logic; interfaces only.

Implementations raise StoreUnavailable when the backing store fails and
NotFound when a primary record is missing.
"""

from decimal import Decimal
from typing import Protocol

from .models import (
    CollectionStage,
    Debt,
    Debtor,
    InvoiceStatus,
    NegotiationAttempt,
    PaymentAgreement,
    School,
)


class DebtStore(Protocol):
    def get_debt(self, debt_id: str) -> Debt:
        ...

    def save_debt(self, debt: Debt) -> None:
        ...

    def update_debt_stage(self, debt_id: str, stage: CollectionStage | None) -> None:
        ...

    def update_debt_status(self, debt_id: str, status: InvoiceStatus) -> None:
        ...

    def mark_paid(self, debt_id: str, settled_amount: Decimal) -> None:
        ...

    def set_commission(self, debt_id: str, commission: Decimal) -> None:
        ...

    def list_debts_for_tenant(self, tenant_id: str) -> list[Debt]:
        ...

    def list_overdue_debts_for_tenant(self, tenant_id: str) -> list[Debt]:
        ...


class AttemptStore(Protocol):
    def append_attempt(self, attempt: NegotiationAttempt) -> None:
        ...

    def list_attempts(self, debt_id: str) -> list[NegotiationAttempt]:
        ...


class AgreementStore(Protocol):
    def save_agreement(self, debt_id: str, agreement: PaymentAgreement) -> None:
        ...

    def get_agreement(self, debt_id: str) -> PaymentAgreement | None:
        ...


class TenantConfiguration(Protocol):
    def get_commission_percentage(self, tenant_id: str) -> Decimal:
        ...


class Directory(Protocol):
    def get_debtor(self, debtor_id: str) -> Debtor | None:
        ...

    def get_school(self, school_id: str) -> School | None:
        ...
