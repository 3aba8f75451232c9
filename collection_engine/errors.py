"""
Error Taxonomy for the Collection Engine

Calculation errors are caller contract violations and are raised immediately.
Store errors are surfaced unchanged for the application layer to decide on
retry; the engine never retries on its own.
"""


class CollectionError(Exception):
    """Base class for every error raised by the engine."""


class InvalidInput(CollectionError, ValueError):
    """Malformed numeric or date input to a calculator."""


class InvalidInstallmentCount(InvalidInput):
    """Installment count outside the 1-12 rate schedule."""

    def __init__(self, count):
        self.count = count
        super().__init__(f"installment count must be an integer between 1 and 12, got: {count!r}")


class StageTransitionRejected(CollectionError):
    """A collection stage transition violates its guard."""

    def __init__(self, stage, event, reason: str):
        self.stage = stage
        self.event = event
        stage_name = stage.value if stage is not None else "NONE"
        super().__init__(f"cannot apply {event.value} at stage {stage_name}: {reason}")


class DebtAlreadyExists(CollectionError):
    """A debt with the same id was already registered."""

    def __init__(self, debt_id: str):
        self.debt_id = debt_id
        super().__init__(f"debt already registered: {debt_id}")


class StoreUnavailable(CollectionError):
    """External persistence or lookup failed or timed out."""


class NotFound(CollectionError, LookupError):
    """Referenced debt, debtor, school or agreement does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")
