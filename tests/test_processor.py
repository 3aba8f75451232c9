"""
Tests for the Lifecycle Processor

Tests verify stage changes, agreement creation, settlement, and that every
mutation is all-or-nothing and serialized per debt.
"""

import threading
import time
from datetime import date
from decimal import Decimal

import pytest

from collection_engine import LifecycleProcessor
from collection_engine.errors import (
    DebtAlreadyExists,
    InvalidInput,
    InvalidInstallmentCount,
    NotFound,
    StageTransitionRejected,
    StoreUnavailable,
)
from collection_engine.models import AttemptKind, CollectionStage, InvoiceStatus, NegotiationChannel
from collection_engine.processor import DebtLocks
from collection_engine.stores import InMemoryAgreementStore, InMemoryDebtStore

from conftest import make_debt

S = CollectionStage


class FailingAgreementStore(InMemoryAgreementStore):
    def save_agreement(self, debt_id, agreement):
        raise StoreUnavailable("agreement store timed out")


class FailingCommissionStore(InMemoryDebtStore):
    def set_commission(self, debt_id, commission):
        raise StoreUnavailable("debt store timed out")


def contact(processor, debt_id="inv-01", channel=NegotiationChannel.WHATSAPP):
    return processor.log_contact(debt_id, channel, "Sent payment reminder", "Advocacia Foco")


@pytest.fixture
def registered(processor):
    processor.register_debt(make_debt())
    return processor


@pytest.fixture
def negotiating(registered):
    contact(registered)
    return registered


class TestEnteringCollection:
    def test_register_validates(self, processor):
        with pytest.raises(InvalidInput):
            processor.register_debt(make_debt(amount="-1"))

    def test_reregistering_existing_debt_rejected(self, processor, stores):
        """A paid debt keeps its due date and commission."""
        processor.register_debt(make_debt())
        processor.record_payment("inv-01")

        with pytest.raises(DebtAlreadyExists):
            processor.register_debt(
                make_debt(status=InvoiceStatus.PENDING, stage=None, due_date=date(2030, 1, 1))
            )

        stores["tenants"].set_commission_percentage("office-01", Decimal("15"))
        debt = processor.record_payment("inv-01")

        assert debt.due_date == date(2024, 7, 10)
        assert debt.status is InvoiceStatus.PAID
        assert debt.commission == Decimal("75.05")

    @pytest.mark.parametrize(
        "stage", [S.IN_NEGOTIATION, S.AGREEMENT_MADE, S.PAYMENT_REFUSED, S.JUDICIAL_PREPARATION]
    )
    def test_new_debt_starts_at_awaiting_contact(self, processor, stage):
        with pytest.raises(InvalidInput):
            processor.register_debt(make_debt(stage=stage))

        with pytest.raises(NotFound):
            processor.case("inv-01")

    def test_agreement_made_unreachable_without_agreement(self, processor, stores):
        with pytest.raises(InvalidInput):
            processor.register_debt(make_debt(stage=S.JUDICIAL_PREPARATION))

        processor.register_debt(make_debt())
        contact(processor)
        with pytest.raises(StageTransitionRejected):
            processor.advance("inv-01")

        assert stores["debts"].get_debt("inv-01").collection_stage is S.IN_NEGOTIATION
        assert stores["agreements"].get_agreement("inv-01") is None

    def test_commission_only_on_paid_debts(self, processor, stores):
        with pytest.raises(InvalidInput):
            processor.register_debt(make_debt(commission="30.00"))

        processor.register_debt(make_debt(status=InvoiceStatus.PAID, stage=None, commission="30.00"))

        assert stores["debts"].get_debt("inv-01").commission == Decimal("30.00")

    def test_route_pending_debt(self, processor):
        processor.register_debt(make_debt(status=InvoiceStatus.PENDING, stage=None))

        debt = processor.route_to_collection("inv-01")

        assert debt.collection_stage is S.AWAITING_CONTACT
        # Idempotent
        assert processor.route_to_collection("inv-01").collection_stage is S.AWAITING_CONTACT

    def test_route_keeps_existing_stage(self, negotiating):
        assert negotiating.route_to_collection("inv-01").collection_stage is S.IN_NEGOTIATION

    def test_route_paid_debt_rejected(self, processor):
        processor.register_debt(make_debt(status=InvoiceStatus.PAID, stage=None))

        with pytest.raises(InvalidInput):
            processor.route_to_collection("inv-01")

    def test_refresh_overdue(self, processor, stores):
        processor.register_debt(make_debt("inv-late", status=InvoiceStatus.PENDING, stage=None))
        processor.register_debt(
            make_debt("inv-future", status=InvoiceStatus.PENDING, stage=None, due_date=date(2024, 9, 1))
        )
        processor.register_debt(make_debt("inv-paid", status=InvoiceStatus.PAID, stage=None))

        changed = processor.refresh_overdue("office-01", date(2024, 8, 9))

        assert changed == ["inv-late"]
        late = stores["debts"].get_debt("inv-late")
        assert late.status is InvoiceStatus.OVERDUE
        assert late.collection_stage is S.AWAITING_CONTACT
        assert stores["debts"].get_debt("inv-future").status is InvoiceStatus.PENDING
        assert processor.refresh_overdue("office-01", date(2024, 8, 9)) == []

    def test_refresh_overdue_due_today_is_not_late(self, processor):
        processor.register_debt(make_debt(status=InvoiceStatus.PENDING, stage=None, due_date=date(2024, 8, 9)))

        assert processor.refresh_overdue("office-01", date(2024, 8, 9)) == []


class TestContacts:
    """Logging administrative contacts."""

    def test_first_contact_opens_negotiation(self, registered, stores):
        attempt = contact(registered)

        assert attempt.kind is AttemptKind.ADMINISTRATIVE
        assert attempt.id.startswith("neg-")
        assert stores["debts"].get_debt("inv-01").collection_stage is S.IN_NEGOTIATION

    def test_attempts_timestamped_from_clock(self, registered):
        first = contact(registered)
        second = contact(registered, channel=NegotiationChannel.EMAIL)

        assert second.timestamp > first.timestamp
        assert [a.id for a in registered.case("inv-01").attempts] == [second.id, first.id]

    def test_petition_channel_not_a_contact(self, registered):
        with pytest.raises(InvalidInput):
            contact(registered, channel=NegotiationChannel.PETITION_GENERATED)

    def test_author_required(self, registered, stores):
        with pytest.raises(InvalidInput):
            registered.log_contact("inv-01", NegotiationChannel.EMAIL, "notes", "")

        assert stores["attempts"].list_attempts("inv-01") == []
        assert stores["debts"].get_debt("inv-01").collection_stage is S.AWAITING_CONTACT

    def test_unrouted_debt_rejected(self, processor):
        processor.register_debt(make_debt(status=InvoiceStatus.PENDING, stage=None))

        with pytest.raises(StageTransitionRejected):
            contact(processor)

    def test_unknown_debt(self, processor):
        with pytest.raises(NotFound):
            contact(processor, debt_id="inv-404")

    def test_request_negotiation(self, registered):
        assert registered.request_negotiation("inv-01").collection_stage is S.IN_NEGOTIATION


class TestStageStepper:
    def test_advance_requires_agreement(self, negotiating):
        with pytest.raises(StageTransitionRejected):
            negotiating.advance("inv-01")

    def test_walk_forward_and_back(self, negotiating):
        negotiating.create_agreement("inv-01", 3)

        assert negotiating.advance("inv-01").collection_stage is S.JUDICIAL_PREPARATION
        assert negotiating.advance("inv-01").collection_stage is S.JUDICIAL_PREPARATION
        assert negotiating.retreat("inv-01").collection_stage is S.AGREEMENT_MADE
        assert negotiating.retreat("inv-01").collection_stage is S.IN_NEGOTIATION
        assert negotiating.retreat("inv-01").collection_stage is S.AWAITING_CONTACT
        assert negotiating.retreat("inv-01").collection_stage is S.AWAITING_CONTACT

    def test_refusal_and_reopening(self, negotiating):
        assert negotiating.declare_refusal("inv-01").collection_stage is S.PAYMENT_REFUSED
        assert negotiating.retreat("inv-01").collection_stage is S.IN_NEGOTIATION

    def test_refusal_outside_negotiation(self, registered):
        with pytest.raises(StageTransitionRejected):
            registered.declare_refusal("inv-01")


class TestPetition:
    """Judicial preparation is unlocked by two administrative contacts."""

    def test_rejected_after_single_contact(self, negotiating, stores):
        with pytest.raises(StageTransitionRejected):
            negotiating.generate_petition("inv-01", "Advocacia Foco")

        assert len(stores["attempts"].list_attempts("inv-01")) == 1

    def test_generated_after_two_contacts(self, negotiating, stores):
        contact(negotiating, channel=NegotiationChannel.PHONE_CALL)

        petition = negotiating.generate_petition("inv-01", "Advocacia Foco", "Initial petition drafted")

        assert petition.kind is AttemptKind.JUDICIAL_PREPARATION
        assert petition.channel is NegotiationChannel.PETITION_GENERATED
        assert stores["debts"].get_debt("inv-01").collection_stage is S.IN_NEGOTIATION
        case = negotiating.case("inv-01")
        assert case.administrative_attempt_count == 2
        assert case.attempts[0].id == petition.id


class TestCreateAgreement:
    """Agreement creation is all-or-nothing."""

    def test_moves_case_to_agreement_made(self, negotiating, stores):
        agreement = negotiating.create_agreement("inv-01", 3, evaluation_date=date(2024, 8, 9))

        assert stores["debts"].get_debt("inv-01").collection_stage is S.AGREEMENT_MADE
        assert stores["agreements"].get_agreement("inv-01") == agreement
        # 765.51 × 1.0612
        assert agreement.total_with_interest == Decimal("812.36")

    def test_invalid_count_changes_nothing(self, negotiating, stores):
        with pytest.raises(InvalidInstallmentCount):
            negotiating.create_agreement("inv-01", 13)

        assert stores["debts"].get_debt("inv-01").collection_stage is S.IN_NEGOTIATION
        assert stores["agreements"].get_agreement("inv-01") is None

    def test_not_in_negotiation_rejected(self, registered, stores):
        with pytest.raises(StageTransitionRejected):
            registered.create_agreement("inv-01", 2)

        assert stores["agreements"].get_agreement("inv-01") is None

    def test_second_agreement_rejected(self, negotiating, stores):
        first = negotiating.create_agreement("inv-01", 2)

        with pytest.raises(StageTransitionRejected):
            negotiating.create_agreement("inv-01", 6)

        assert stores["agreements"].get_agreement("inv-01") == first

    def test_store_failure_restores_stage(self, stores, clock):
        stores["agreements"] = FailingAgreementStore()
        processor = LifecycleProcessor(clock=clock, **stores)
        processor.register_debt(make_debt())
        contact(processor)

        with pytest.raises(StoreUnavailable):
            processor.create_agreement("inv-01", 3)

        assert stores["debts"].get_debt("inv-01").collection_stage is S.IN_NEGOTIATION

    def test_paid_debt_is_frozen(self, negotiating):
        negotiating.record_payment("inv-01")

        with pytest.raises(StageTransitionRejected):
            negotiating.create_agreement("inv-01", 2)


class TestRecordPayment:
    """Settlement and the one-time commission stamp."""

    def test_commission_from_tenant_percentage(self, negotiating):
        debt = negotiating.record_payment("inv-01")

        assert debt.status is InvoiceStatus.PAID
        assert debt.commission == Decimal("75.05")
        # Stage is kept as collection stood at payment
        assert debt.collection_stage is S.IN_NEGOTIATION

    def test_settled_amount_overrides_principal(self, negotiating):
        assert negotiating.record_payment("inv-01", Decimal("827.74")).commission == Decimal("82.77")

    def test_settled_amount_stored_and_recovered(self, negotiating):
        debt = negotiating.record_payment("inv-01", Decimal("827.74"))

        assert debt.settled_amount == Decimal("827.74")
        summary = negotiating.recovery_summary("office-01")
        assert summary.total_recovered == Decimal("827.74")
        assert summary.total_commission == Decimal("82.77")

    def test_principal_recorded_when_no_settled_amount(self, negotiating):
        assert negotiating.record_payment("inv-01").settled_amount == Decimal("750.50")

    def test_negative_settled_amount_rejected(self, negotiating, stores):
        with pytest.raises(InvalidInput):
            negotiating.record_payment("inv-01", Decimal("-1"))

        assert stores["debts"].get_debt("inv-01").status is InvoiceStatus.OVERDUE

    def test_commission_never_recomputed(self, negotiating, stores):
        negotiating.record_payment("inv-01")
        stores["tenants"].set_commission_percentage("office-01", Decimal("20"))

        debt = negotiating.record_payment("inv-01")

        assert debt.commission == Decimal("75.05")

    def test_existing_commission_kept(self, processor, stores):
        # Loaded straight from the store, as a migrated record would be
        stores["debts"].save_debt(make_debt(commission="30.00"))

        assert processor.record_payment("inv-01").commission == Decimal("30.00")

    def test_store_failure_restores_status(self, stores, clock):
        stores["debts"] = FailingCommissionStore()
        processor = LifecycleProcessor(clock=clock, **stores)
        processor.register_debt(make_debt())

        with pytest.raises(StoreUnavailable):
            processor.record_payment("inv-01")

        assert stores["debts"].get_debt("inv-01").status is InvoiceStatus.OVERDUE

    def test_paid_debt_rejects_contacts(self, negotiating):
        negotiating.record_payment("inv-01")

        with pytest.raises(StageTransitionRejected):
            contact(negotiating)


class TestReadSide:
    def test_updated_value_and_quote(self, registered):
        updated = registered.updated_value("inv-01", date(2024, 8, 9))
        options = registered.quote("inv-01", date(2024, 8, 9))

        assert updated.days_overdue == 30
        assert len(options) == 12
        assert options[0].total_with_interest == Decimal("765.51")

    def test_cases_and_summary(self, negotiating):
        negotiating.register_debt(make_debt("inv-02", amount="1000"))
        negotiating.record_payment("inv-02")

        cases = negotiating.cases("office-01", date(2024, 8, 9))
        summary = negotiating.recovery_summary("office-01")

        assert [c.debt.id for c in cases] == ["inv-01"]
        assert cases[0].criticality is not None
        assert summary.total_recovered == Decimal("1000.00")
        assert summary.total_commission == Decimal("100.00")
        assert summary.recovery_rate == Decimal("50.00")


class TestConcurrency:
    """Operations on one debt are serialized."""

    def run_threads(self, count, target):
        errors = []

        def worker():
            try:
                target()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return errors

    def test_concurrent_contacts_all_recorded(self, registered, stores):
        errors = self.run_threads(20, lambda: contact(registered))

        assert errors == []
        assert len(stores["attempts"].list_attempts("inv-01")) == 20
        assert stores["debts"].get_debt("inv-01").collection_stage is S.IN_NEGOTIATION

    def test_only_one_concurrent_agreement_wins(self, negotiating, stores):
        created = []
        errors = self.run_threads(10, lambda: created.append(negotiating.create_agreement("inv-01", 4)))

        assert len(created) == 1
        assert len(errors) == 9
        assert all(isinstance(e, StageTransitionRejected) for e in errors)
        assert stores["agreements"].get_agreement("inv-01") == created[0]

    def test_concurrent_payments_stamp_once(self, negotiating):
        errors = self.run_threads(10, lambda: negotiating.record_payment("inv-01"))

        assert errors == []
        assert negotiating.debts.get_debt("inv-01").commission == Decimal("75.05")

    def test_locks_released_after_use(self, registered):
        errors = self.run_threads(10, lambda: contact(registered))
        registered.record_payment("inv-01")

        assert errors == []
        assert len(registered._locks) == 0


class TestDebtLocks:
    def test_entry_dropped_when_released(self):
        locks = DebtLocks()

        with locks.for_debt("inv-01"):
            assert len(locks) == 1

        assert len(locks) == 0

    def test_entry_dropped_when_body_raises(self):
        locks = DebtLocks()

        with pytest.raises(RuntimeError):
            with locks.for_debt("inv-01"):
                raise RuntimeError("boom")

        assert len(locks) == 0

    def test_waiter_shares_lock_with_holder(self):
        locks = DebtLocks()
        order = []

        def waiter():
            with locks.for_debt("inv-01"):
                order.append("waiter")

        with locks.for_debt("inv-01"):
            thread = threading.Thread(target=waiter)
            thread.start()
            time.sleep(0.05)
            order.append("holder")
        thread.join()

        assert order == ["holder", "waiter"]
        assert len(locks) == 0
