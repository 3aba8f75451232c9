"""
Domain Models for the Collection Engine

These dataclasses provide type-safe representations of all collection entities.
All monetary values use Decimal for precision; stored records are frozen and
updated through dataclasses.replace.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

# Administrative contacts required before a petition may be generated
LEGAL_ACTION_MIN_ATTEMPTS = 2

# =============================================================================
# ENUMS
# =============================================================================


class InvoiceStatus(Enum):
    PENDING = "PENDING"
    OVERDUE = "OVERDUE"
    PAID = "PAID"


class CollectionStage(Enum):
    AWAITING_CONTACT = "AWAITING_CONTACT"
    IN_NEGOTIATION = "IN_NEGOTIATION"
    AGREEMENT_MADE = "AGREEMENT_MADE"
    PAYMENT_REFUSED = "PAYMENT_REFUSED"
    JUDICIAL_PREPARATION = "JUDICIAL_PREPARATION"


class AttemptKind(Enum):
    ADMINISTRATIVE = "ADMINISTRATIVE"
    JUDICIAL_PREPARATION = "JUDICIAL_PREPARATION"


class NegotiationChannel(Enum):
    WHATSAPP = "WHATSAPP"
    EMAIL = "EMAIL"
    PHONE_CALL = "PHONE_CALL"
    PETITION_GENERATED = "PETITION_GENERATED"


class PaymentMethod(Enum):
    BOLETO = "BOLETO"
    PIX = "PIX"
    CREDIT_CARD = "CREDIT_CARD"


def _parse_date(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# =============================================================================
# RECORDS
# =============================================================================


@dataclass(frozen=True)
class Debt:
    """One billing obligation owed by a debtor to a school."""

    id: str
    tenant_id: str
    school_id: str
    debtor_id: str
    amount: Decimal
    due_date: date
    status: InvoiceStatus = InvoiceStatus.PENDING
    collection_stage: CollectionStage | None = None
    commission: Decimal | None = None  # Set once at settlement
    settled_amount: Decimal | None = None  # Amount actually received
    risk_score: int | None = None
    student_name: str = ""

    @property
    def is_in_collection(self) -> bool:
        return self.collection_stage is not None and self.status is not InvoiceStatus.PAID

    @property
    def recovered_amount(self) -> Decimal:
        """What was received at settlement; the principal when not recorded."""
        return self.settled_amount if self.settled_amount is not None else self.amount

    @classmethod
    def from_dict(cls, data: dict) -> "Debt":
        stage = data.get("collection_stage")
        commission = data.get("commission")
        settled = data.get("settled_amount")
        return cls(
            id=data["id"],
            tenant_id=data["tenant_id"],
            school_id=data["school_id"],
            debtor_id=data["debtor_id"],
            amount=Decimal(str(data["amount"])),
            due_date=_parse_date(data["due_date"]),
            status=InvoiceStatus(data.get("status", InvoiceStatus.PENDING.value)),
            collection_stage=CollectionStage(stage) if stage else None,
            commission=Decimal(str(commission)) if commission is not None else None,
            settled_amount=Decimal(str(settled)) if settled is not None else None,
            risk_score=data.get("risk_score"),
            student_name=data.get("student_name", ""),
        )


@dataclass(frozen=True)
class NegotiationAttempt:
    """One logged contact or judicial-preparation event against a debt."""

    id: str
    debt_id: str
    timestamp: datetime
    kind: AttemptKind
    channel: NegotiationChannel
    notes: str
    author: str

    @classmethod
    def from_dict(cls, data: dict) -> "NegotiationAttempt":
        return cls(
            id=data["id"],
            debt_id=data["debt_id"],
            timestamp=_parse_datetime(data["timestamp"]),
            kind=AttemptKind(data.get("kind", AttemptKind.ADMINISTRATIVE.value)),
            channel=NegotiationChannel(data["channel"]),
            notes=data.get("notes", ""),
            author=data["author"],
        )


@dataclass(frozen=True)
class PaymentAgreement:
    """A negotiated installment plan settling a debt's collection stage."""

    debt_id: str
    installments: int
    installment_value: Decimal
    total_with_interest: Decimal
    rate: Decimal
    created_at: datetime
    protocol_number: str
    payment_method: PaymentMethod = PaymentMethod.BOLETO
    first_due_date: date | None = None
    is_approved: bool = False


@dataclass(frozen=True)
class Debtor:
    """The guardian responsible for a debt."""

    id: str
    name: str
    phone: str = ""
    email: str = ""
    school_id: str | None = None
    tax_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Debtor":
        return cls(
            id=data["id"],
            name=data["name"],
            phone=data.get("phone", ""),
            email=data.get("email", ""),
            school_id=data.get("school_id"),
            tax_id=data.get("tax_id"),
        )


@dataclass(frozen=True)
class School:
    id: str
    name: str
    tenant_id: str

    @classmethod
    def from_dict(cls, data: dict) -> "School":
        return cls(id=data["id"], name=data["name"], tenant_id=data["tenant_id"])


# =============================================================================
# READ MODELS / RESULTS
# =============================================================================


@dataclass
class NegotiationCase:
    """
    Read-time join of a debt with its debtor, school and attempt history.

    Never persisted. Missing secondary relations are None.
    """

    debt: Debt
    debtor: Debtor | None = None
    school: School | None = None
    attempts: list[NegotiationAttempt] = field(default_factory=list)  # Newest first
    agreement: PaymentAgreement | None = None
    criticality: int | None = None

    @property
    def last_activity(self) -> datetime | None:
        return self.attempts[0].timestamp if self.attempts else None

    @property
    def administrative_attempt_count(self) -> int:
        return sum(1 for a in self.attempts if a.kind is AttemptKind.ADMINISTRATIVE)

    @property
    def is_ready_for_legal_action(self) -> bool:
        return self.administrative_attempt_count >= LEGAL_ACTION_MIN_ATTEMPTS


@dataclass
class UpdatedValue:
    """Breakdown of the amount owed on a debt as of an evaluation date."""

    principal: Decimal
    fine: Decimal = Decimal("0")
    interest: Decimal = Decimal("0")
    days_overdue: int = 0
    months_overdue: int = 0

    @property
    def updated_value(self) -> Decimal:
        return self.principal + self.fine + self.interest


@dataclass
class InstallmentQuote:
    """One installment option for a given updated value."""

    installments: int
    rate: Decimal
    total_with_interest: Decimal
    installment_value: Decimal

    @property
    def is_interest_free(self) -> bool:
        return self.rate == 0


@dataclass
class RecoverySummary:
    """Financial overview of recovered debts for one tenant."""

    total_recovered: Decimal = Decimal("0")
    total_commission: Decimal = Decimal("0")
    paid_count: int = 0
    overdue_count: int = 0
    recovery_rate: Decimal = Decimal("0")
