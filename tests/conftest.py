"""Shared fixtures: in-memory stores and a processor on a fixed clock."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from collection_engine import LifecycleProcessor
from collection_engine.models import CollectionStage, Debt, Debtor, InvoiceStatus, School
from collection_engine.stores import (
    InMemoryAgreementStore,
    InMemoryAttemptStore,
    InMemoryDebtStore,
    InMemoryDirectory,
    InMemoryTenantConfiguration,
)


class FakeClock:
    """Deterministic clock that ticks one minute per call."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(minutes=1)
        return current


def make_debt(
    debt_id: str = "inv-01",
    amount="750.50",
    due_date: date = date(2024, 7, 10),
    status: InvoiceStatus = InvoiceStatus.OVERDUE,
    stage: CollectionStage | None = CollectionStage.AWAITING_CONTACT,
    tenant_id: str = "office-01",
    risk_score: int | None = None,
    commission=None,
    settled_amount=None,
) -> Debt:
    return Debt(
        id=debt_id,
        tenant_id=tenant_id,
        school_id="school-01",
        debtor_id="resp-01",
        amount=Decimal(str(amount)),
        due_date=due_date,
        status=status,
        collection_stage=stage,
        commission=Decimal(str(commission)) if commission is not None else None,
        settled_amount=Decimal(str(settled_amount)) if settled_amount is not None else None,
        risk_score=risk_score,
        student_name="Lucas Almeida",
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 8, 9, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def stores():
    return {
        "debts": InMemoryDebtStore(),
        "attempts": InMemoryAttemptStore(),
        "agreements": InMemoryAgreementStore(),
        "tenants": InMemoryTenantConfiguration(),
        "directory": InMemoryDirectory(
            debtors=[Debtor(id="resp-01", name="Carlos Almeida", phone="11999990000", school_id="school-01")],
            schools=[School(id="school-01", name="Colégio Aurora", tenant_id="office-01")],
        ),
    }


@pytest.fixture
def processor(stores, clock):
    return LifecycleProcessor(clock=clock, **stores)
