"""
EDUCATIONAL DEBT COLLECTION ENGINE
Collection stages, updated values, installment agreements and commissions.
"""

from .config import EngineConfig
from .errors import (
    CollectionError,
    DebtAlreadyExists,
    InvalidInput,
    InvalidInstallmentCount,
    NotFound,
    StageTransitionRejected,
    StoreUnavailable,
)
from .models import CollectionStage, Debt, NegotiationCase, PaymentAgreement
from .processor import LifecycleProcessor

__all__ = [
    "LifecycleProcessor",
    "EngineConfig",
    "Debt",
    "CollectionStage",
    "NegotiationCase",
    "PaymentAgreement",
    "CollectionError",
    "DebtAlreadyExists",
    "InvalidInput",
    "InvalidInstallmentCount",
    "StageTransitionRejected",
    "StoreUnavailable",
    "NotFound",
]
