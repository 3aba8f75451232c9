"""
Lifecycle Processor - Main Orchestrator

Coordinates the collection lifecycle of a debt through discrete, testable steps:
routing to collection, logging contacts, stepping stages, creating agreements
and recording payment.

Every mutation is scoped to one debt id and serialized by a per-debt lock.
Different debts proceed independently.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Callable

from .agreements import AgreementBuilder, ProtocolNumberGenerator, utc_now
from .calculators import (
    CommissionCalculator,
    CriticalityScorer,
    InterestCalculator,
    RecoverySummarizer,
)
from .cases import NegotiationCaseAssembler
from .config import EngineConfig
from .errors import DebtAlreadyExists, InvalidInput, NotFound, StageTransitionRejected
from .models import (
    AttemptKind,
    CollectionStage,
    Debt,
    InstallmentQuote,
    InvoiceStatus,
    NegotiationAttempt,
    NegotiationCase,
    NegotiationChannel,
    PaymentAgreement,
    PaymentMethod,
    RecoverySummary,
    UpdatedValue,
)
from .ports import AgreementStore, AttemptStore, DebtStore, Directory, TenantConfiguration
from .stages import CollectionStageMachine, StageEvent, is_ready_for_legal_action
from .validators import InputValidator

logger = logging.getLogger(__name__)


class DebtLocks:
    """
    Registry of one lock per debt id.

    An entry is dropped once no caller holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # debt id -> [lock, users]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def for_debt(self, debt_id: str):
        with self._guard:
            entry = self._locks.setdefault(debt_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[debt_id]


class LifecycleProcessor:
    """
    Main orchestrator for the collection lifecycle.

    Flow of a debt:
    1. Register (Pending)
    2. Route to collection / refresh overdue (Awaiting Contact)
    3. Log contacts (In Negotiation)
    4. Create agreement (Agreement Made) or declare refusal (Payment Refused)
    5. Record payment (Paid, commission stamped once)
    """

    def __init__(
        self,
        debts: DebtStore,
        attempts: AttemptStore,
        agreements: AgreementStore,
        tenants: TenantConfiguration,
        directory: Directory,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config or EngineConfig()
        self.debts = debts
        self.attempts = attempts
        self.agreements = agreements
        self.tenants = tenants
        self.clock = clock

        # Initialize all components
        self.validator = InputValidator()
        self.interest_calculator = InterestCalculator(
            accrual_policy=self.config.accrual_policy,
            installment_rates=self.config.installment_rates,
            validator=self.validator,
        )
        self.commission_calculator = CommissionCalculator(self.validator)
        self.stage_machine = CollectionStageMachine()
        self.agreement_builder = AgreementBuilder(self.interest_calculator, ProtocolNumberGenerator(), clock)
        self.case_assembler = NegotiationCaseAssembler(
            debts, attempts, agreements, directory, CriticalityScorer(self.interest_calculator)
        )
        self.recovery_summarizer = RecoverySummarizer(self.commission_calculator)
        self._locks = DebtLocks()

    # -------------------------------------------------------------------------
    # Entering collection
    # -------------------------------------------------------------------------

    def register_debt(self, debt: Debt) -> Debt:
        """
        Validate and store a newly billed debt.

        A registered debt is never replaced: its due date and any stamped
        commission are fixed once stored.
        """
        self.validator.validate_debt(debt)
        with self._locks.for_debt(debt.id):
            try:
                self.debts.get_debt(debt.id)
            except NotFound:
                self.debts.save_debt(debt)
            else:
                logger.warning(f"Debt already registered: {debt.id}")
                raise DebtAlreadyExists(debt.id)
        logger.info(f"Debt registered: {debt.id}")
        return debt

    def route_to_collection(self, debt_id: str) -> Debt:
        """Place an unpaid debt in the collection queue. Idempotent."""
        with self._locks.for_debt(debt_id):
            debt = self.debts.get_debt(debt_id)
            if debt.status is InvoiceStatus.PAID:
                raise InvalidInput(f"debt {debt_id} is already paid")
            if debt.collection_stage is None:
                self.debts.update_debt_stage(debt_id, CollectionStage.AWAITING_CONTACT)
                logger.info(f"Debt routed to collection: {debt_id}")
            return self.debts.get_debt(debt_id)

    def refresh_overdue(self, tenant_id: str, as_of: date | None = None) -> list[str]:
        """
        Move pending debts past their due date to Overdue.

        Each newly overdue debt enters collection at Awaiting Contact.
        Returns the ids that changed.
        """
        as_of = as_of or self.clock().date()
        changed = []
        for debt in self.debts.list_debts_for_tenant(tenant_id):
            if debt.status is not InvoiceStatus.PENDING or debt.due_date >= as_of:
                continue
            with self._locks.for_debt(debt.id):
                current = self.debts.get_debt(debt.id)
                if current.status is not InvoiceStatus.PENDING:
                    continue
                self.debts.update_debt_status(debt.id, InvoiceStatus.OVERDUE)
                if current.collection_stage is None:
                    self.debts.update_debt_stage(debt.id, CollectionStage.AWAITING_CONTACT)
                changed.append(debt.id)

        if changed:
            logger.info(f"Debts now overdue for tenant {tenant_id}: {len(changed)}")
        return changed

    # -------------------------------------------------------------------------
    # Negotiation
    # -------------------------------------------------------------------------

    def log_contact(
        self,
        debt_id: str,
        channel: NegotiationChannel,
        notes: str,
        author: str,
    ) -> NegotiationAttempt:
        """Append an administrative contact; the first one opens negotiation."""
        if channel is NegotiationChannel.PETITION_GENERATED:
            raise InvalidInput("petitions are recorded with generate_petition, not as contacts")

        with self._locks.for_debt(debt_id):
            debt = self._collectible(debt_id, StageEvent.CONTACT_LOGGED)
            new_stage = self.stage_machine.apply(debt.collection_stage, StageEvent.CONTACT_LOGGED)

            attempt = self._new_attempt(debt_id, AttemptKind.ADMINISTRATIVE, channel, notes, author)
            self.attempts.append_attempt(attempt)
            if new_stage is not debt.collection_stage:
                self.debts.update_debt_stage(debt_id, new_stage)

        logger.info(f"Contact logged on {debt_id} via {channel.value} by {author}")
        return attempt

    def request_negotiation(self, debt_id: str) -> Debt:
        """Debtor-initiated request to negotiate from the guardian portal."""
        return self._transition(debt_id, StageEvent.NEGOTIATION_REQUESTED)

    def declare_refusal(self, debt_id: str) -> Debt:
        return self._transition(debt_id, StageEvent.DEBTOR_DECLINED)

    def advance(self, debt_id: str) -> Debt:
        return self._transition(debt_id, StageEvent.ADVANCE)

    def retreat(self, debt_id: str) -> Debt:
        return self._transition(debt_id, StageEvent.RETREAT)

    def generate_petition(self, debt_id: str, author: str, notes: str = "") -> NegotiationAttempt:
        """
        Record a generated judicial petition.

        Allowed only once the case has two or more administrative contacts.
        """
        with self._locks.for_debt(debt_id):
            debt = self._collectible(debt_id, StageEvent.PETITION_GENERATED)
            if not is_ready_for_legal_action(self.attempts.list_attempts(debt_id)):
                logger.warning(f"Petition rejected for {debt_id}: not ready for legal action")
                raise StageTransitionRejected(
                    debt.collection_stage,
                    StageEvent.PETITION_GENERATED,
                    "at least two administrative contacts are required",
                )

            attempt = self._new_attempt(
                debt_id,
                AttemptKind.JUDICIAL_PREPARATION,
                NegotiationChannel.PETITION_GENERATED,
                notes,
                author,
            )
            self.attempts.append_attempt(attempt)

        logger.info(f"Petition generated for {debt_id} by {author}")
        return attempt

    # -------------------------------------------------------------------------
    # Agreement & settlement
    # -------------------------------------------------------------------------

    def create_agreement(
        self,
        debt_id: str,
        installments: int,
        evaluation_date: date | None = None,
        payment_method: PaymentMethod = PaymentMethod.BOLETO,
        first_due_date: date | None = None,
    ) -> PaymentAgreement:
        """
        Build and persist an agreement, moving the case to Agreement Made.

        All-or-nothing: the installment count is validated before any write,
        and the stage is rolled back if saving the agreement fails.
        """
        self.validator.validate_installment_count(installments, self.config.installment_rates)

        with self._locks.for_debt(debt_id):
            debt = self._collectible(debt_id, StageEvent.AGREEMENT_CREATED)
            previous_stage = debt.collection_stage

            if self.agreements.get_agreement(debt_id) is not None:
                raise StageTransitionRejected(previous_stage, StageEvent.AGREEMENT_CREATED, "agreement already exists")

            new_stage = self.stage_machine.apply(previous_stage, StageEvent.AGREEMENT_CREATED, has_agreement=True)
            agreement = self.agreement_builder.build(
                debt,
                installments,
                evaluation_date=evaluation_date,
                payment_method=payment_method,
                first_due_date=first_due_date,
            )

            self.debts.update_debt_stage(debt_id, new_stage)
            try:
                self.agreements.save_agreement(debt_id, agreement)
            except Exception:
                logger.error(f"Saving agreement for {debt_id} failed; restoring stage {previous_stage.value}")
                self.debts.update_debt_stage(debt_id, previous_stage)
                raise

        logger.info(
            f"Agreement {agreement.protocol_number} created for {debt_id}: "
            f"{installments}x {agreement.installment_value}"
        )
        return agreement

    def record_payment(self, debt_id: str, settled_amount: Decimal | None = None) -> Debt:
        """
        Mark a debt paid and stamp the law firm's commission.

        The commission is computed once from the tenant's current percentage
        and never recomputed. Retrying on a paid debt changes nothing.
        """
        with self._locks.for_debt(debt_id):
            debt = self.debts.get_debt(debt_id)
            if debt.status is InvoiceStatus.PAID:
                logger.info(f"Payment already recorded for {debt_id}")
                return debt

            settled = debt.amount if settled_amount is None else settled_amount
            self.validator.validate_amount(settled, "settled_amount")
            commission = debt.commission
            if commission is None:
                percentage = self.tenants.get_commission_percentage(debt.tenant_id)
                commission = self.commission_calculator.calculate(settled, percentage)

            self.debts.mark_paid(debt_id, settled)
            try:
                if debt.commission is None:
                    self.debts.set_commission(debt_id, commission)
            except Exception:
                logger.error(f"Stamping commission for {debt_id} failed; restoring status {debt.status.value}")
                self.debts.update_debt_status(debt_id, debt.status)
                raise
            paid = self.debts.get_debt(debt_id)

        logger.info(f"Payment recorded for {debt_id}; commission {commission}")
        return paid

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def case(self, debt_id: str) -> NegotiationCase:
        return self.case_assembler.assemble(debt_id)

    def cases(self, tenant_id: str, evaluation_date: date | None = None) -> list[NegotiationCase]:
        return self.case_assembler.list_cases(tenant_id, evaluation_date or self.clock().date())

    def updated_value(self, debt_id: str, evaluation_date: date | None = None) -> UpdatedValue:
        debt = self.debts.get_debt(debt_id)
        return self.interest_calculator.updated_value_for(debt, evaluation_date or self.clock().date())

    def quote(self, debt_id: str, evaluation_date: date | None = None) -> list[InstallmentQuote]:
        """Every installment option for the debt's current updated value."""
        updated = self.updated_value(debt_id, evaluation_date)
        return self.interest_calculator.quote_options(updated.updated_value)

    def recovery_summary(self, tenant_id: str) -> RecoverySummary:
        percentage = self.tenants.get_commission_percentage(tenant_id)
        return self.recovery_summarizer.summarize(self.debts.list_debts_for_tenant(tenant_id), percentage)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _transition(self, debt_id: str, event: StageEvent) -> Debt:
        with self._locks.for_debt(debt_id):
            debt = self._collectible(debt_id, event)
            has_agreement = self.agreements.get_agreement(debt_id) is not None
            new_stage = self.stage_machine.apply(debt.collection_stage, event, has_agreement)
            if new_stage is not debt.collection_stage:
                self.debts.update_debt_stage(debt_id, new_stage)
                logger.info(f"Debt {debt_id}: {debt.collection_stage.value} -> {new_stage.value}")
            return self.debts.get_debt(debt_id)

    def _collectible(self, debt_id: str, event: StageEvent) -> Debt:
        """Load a debt that is in collection and not yet paid."""
        debt = self.debts.get_debt(debt_id)
        if debt.status is InvoiceStatus.PAID:
            raise StageTransitionRejected(debt.collection_stage, event, "debt is paid; stage is frozen")
        if debt.collection_stage is None:
            raise StageTransitionRejected(None, event, "debt has not been routed to collection")
        return debt

    def _new_attempt(
        self,
        debt_id: str,
        kind: AttemptKind,
        channel: NegotiationChannel,
        notes: str,
        author: str,
    ) -> NegotiationAttempt:
        attempt = NegotiationAttempt(
            id=f"neg-{uuid.uuid4().hex[:12]}",
            debt_id=debt_id,
            timestamp=self.clock(),
            kind=kind,
            channel=channel,
            notes=notes,
            author=author,
        )
        self.validator.validate_attempt(attempt)
        return attempt
