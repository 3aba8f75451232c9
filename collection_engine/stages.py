"""
Collection Stage State Machine

Defines the legal moves of an overdue debt through administrative collection.
Event-driven transitions (contact, agreement, refusal) and the manual stepper
go through the same transition table.

Invariants:
  - AGREEMENT_MADE is only entered when an agreement exists.
  - Stepper moves at either end of the canonical order are no-ops.
  - PAYMENT_REFUSED is only reached by an explicit refusal during negotiation.
"""

from enum import Enum
from typing import Iterable

from .errors import StageTransitionRejected
from .models import LEGAL_ACTION_MIN_ATTEMPTS, AttemptKind, CollectionStage, NegotiationAttempt


class StageEvent(Enum):
    CONTACT_LOGGED = "CONTACT_LOGGED"
    NEGOTIATION_REQUESTED = "NEGOTIATION_REQUESTED"
    AGREEMENT_CREATED = "AGREEMENT_CREATED"
    DEBTOR_DECLINED = "DEBTOR_DECLINED"
    PETITION_GENERATED = "PETITION_GENERATED"
    ADVANCE = "ADVANCE"
    RETREAT = "RETREAT"


# Stepper order; PAYMENT_REFUSED sits outside it
CANONICAL_ORDER: tuple[CollectionStage, ...] = (
    CollectionStage.AWAITING_CONTACT,
    CollectionStage.IN_NEGOTIATION,
    CollectionStage.AGREEMENT_MADE,
    CollectionStage.JUDICIAL_PREPARATION,
)

# Event-driven moves: (from, event) -> to
TRANSITIONS: dict[tuple[CollectionStage, StageEvent], CollectionStage] = {
    (CollectionStage.AWAITING_CONTACT, StageEvent.CONTACT_LOGGED): CollectionStage.IN_NEGOTIATION,
    (CollectionStage.AWAITING_CONTACT, StageEvent.NEGOTIATION_REQUESTED): CollectionStage.IN_NEGOTIATION,
    (CollectionStage.IN_NEGOTIATION, StageEvent.AGREEMENT_CREATED): CollectionStage.AGREEMENT_MADE,
    (CollectionStage.IN_NEGOTIATION, StageEvent.DEBTOR_DECLINED): CollectionStage.PAYMENT_REFUSED,
}


class CollectionStageMachine:
    """Applies events to a collection stage."""

    def apply(self, stage: CollectionStage, event: StageEvent, has_agreement: bool = False) -> CollectionStage:
        """
        Return the stage after `event`.

        Raises StageTransitionRejected when the event is not allowed at `stage`.
        """
        match event:
            case StageEvent.ADVANCE:
                return self.advance(stage, has_agreement)
            case StageEvent.RETREAT:
                return self.retreat(stage)
            case StageEvent.CONTACT_LOGGED:
                # Further contacts do not move the case once it left the queue
                return TRANSITIONS.get((stage, event), stage)
            case StageEvent.PETITION_GENERATED:
                # Gated by judicial readiness, not by stage
                return stage
            case StageEvent.NEGOTIATION_REQUESTED:
                if stage in (CollectionStage.AWAITING_CONTACT, CollectionStage.IN_NEGOTIATION):
                    return CollectionStage.IN_NEGOTIATION
                raise StageTransitionRejected(stage, event, "negotiation already concluded")
            case StageEvent.AGREEMENT_CREATED | StageEvent.DEBTOR_DECLINED:
                target = TRANSITIONS.get((stage, event))
                if target is None:
                    raise StageTransitionRejected(stage, event, "case is not in negotiation")
                return target

    def advance(self, stage: CollectionStage, has_agreement: bool = False) -> CollectionStage:
        match stage:
            case CollectionStage.PAYMENT_REFUSED:
                raise StageTransitionRejected(stage, StageEvent.ADVANCE, "refused cases are not on the stepper")
            case CollectionStage.JUDICIAL_PREPARATION:
                return stage
            case CollectionStage.IN_NEGOTIATION if not has_agreement:
                raise StageTransitionRejected(stage, StageEvent.ADVANCE, "no payment agreement exists")
            case _:
                return CANONICAL_ORDER[CANONICAL_ORDER.index(stage) + 1]

    def retreat(self, stage: CollectionStage) -> CollectionStage:
        match stage:
            case CollectionStage.PAYMENT_REFUSED:
                return CollectionStage.IN_NEGOTIATION
            case CollectionStage.AWAITING_CONTACT:
                return stage
            case _:
                return CANONICAL_ORDER[CANONICAL_ORDER.index(stage) - 1]


def is_ready_for_legal_action(attempts: Iterable[NegotiationAttempt]) -> bool:
    """Two or more administrative contacts unlock petition generation, at any stage."""
    administrative = sum(1 for a in attempts if a.kind is AttemptKind.ADMINISTRATIVE)
    return administrative >= LEGAL_ACTION_MIN_ATTEMPTS
