"""
Negotiation Case Assembly

Joins a debt with its debtor, school, agreement and attempt history. The
result is advisory and display-oriented: only a missing debt is an error.
"""

import logging
from datetime import date

from .calculators.criticality import CriticalityScorer
from .errors import NotFound
from .models import NegotiationCase
from .ports import AgreementStore, AttemptStore, DebtStore, Directory

logger = logging.getLogger(__name__)


class NegotiationCaseAssembler:
    """Builds NegotiationCase views on demand."""

    def __init__(
        self,
        debts: DebtStore,
        attempts: AttemptStore,
        agreements: AgreementStore,
        directory: Directory,
        scorer: CriticalityScorer | None = None,
    ):
        self.debts = debts
        self.attempts = attempts
        self.agreements = agreements
        self.directory = directory
        self.scorer = scorer or CriticalityScorer()

    def assemble(self, debt_id: str) -> NegotiationCase:
        """
        Assemble the case for `debt_id`.

        Raises NotFound only when the debt itself is missing; a missing debtor
        or school comes back as None.
        """
        debt = self.debts.get_debt(debt_id)
        attempts = sorted(self.attempts.list_attempts(debt_id), key=lambda a: a.timestamp, reverse=True)

        return NegotiationCase(
            debt=debt,
            debtor=self._lookup(self.directory.get_debtor, "debtor", debt.debtor_id),
            school=self._lookup(self.directory.get_school, "school", debt.school_id),
            attempts=attempts,
            agreement=self.agreements.get_agreement(debt_id),
        )

    def list_cases(self, tenant_id: str, evaluation_date: date | None = None) -> list[NegotiationCase]:
        """Every overdue case of a tenant, most critical first."""
        evaluation_date = evaluation_date or date.today()
        cases = []
        for debt in self.debts.list_overdue_debts_for_tenant(tenant_id):
            case = self.assemble(debt.id)
            case.criticality = self.scorer.score(case, evaluation_date)
            cases.append(case)

        cases.sort(key=lambda c: (-c.criticality, c.debt.due_date))
        return cases

    def _lookup(self, getter, kind: str, identifier: str | None):
        if not identifier:
            return None
        try:
            record = getter(identifier)
        except NotFound:
            record = None
        if record is None:
            logger.warning(f"Case assembled without {kind}: {identifier}")
        return record
