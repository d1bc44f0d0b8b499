# claimflow/storage/policy_store.py
"""Policy, coverage and reference-data readers."""

from typing import Dict, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import joinedload

from claimflow.core.constants import (
    SURGERY_TERM_FAMILY, TERM_FAMILY_BY_COVERAGE, CalculationKind, CoverageCode,
)
from claimflow.core.exceptions import CoverageLimitExhaustedError, PolicyNotFoundError
from claimflow.core.logging import get_logger
from claimflow.database.tables import DiagnosisCode, Policy, PolicyCoverage, PolicyTerm, SurgeryCode
from claimflow.models.adjudication import TermReference
from claimflow.storage.base import BaseStore

logger = get_logger(__name__)

TERM_EXCERPT_LENGTH = 200


class PolicyStore(BaseStore[Policy]):
    """Storage for policies and their coverage lines."""

    model = Policy

    def get_policy_by_number(self, policy_number: str) -> Policy:
        """Load a policy together with its customer."""
        stmt = (
            select(Policy)
            .options(joinedload(Policy.customer))
            .where(Policy.policy_number == policy_number)
        )
        policy = self.session.scalars(stmt).first()
        if policy is None:
            raise PolicyNotFoundError(policy_number)
        return policy

    def get_active_coverages(self, policy_id: int) -> List[PolicyCoverage]:
        stmt = (
            select(PolicyCoverage)
            .where(PolicyCoverage.policy_id == policy_id, PolicyCoverage.is_active.is_(True))
            .order_by(PolicyCoverage.id)
        )
        return list(self.session.scalars(stmt))

    def charge_annual_amount(self, coverage_id: int, amount: int):
        """Atomically add to used_annual_amount without crossing annual_limit."""
        if amount <= 0:
            return
        stmt = (
            update(PolicyCoverage)
            .where(PolicyCoverage.id == coverage_id)
            .where(or_(
                PolicyCoverage.annual_limit.is_(None),
                PolicyCoverage.used_annual_amount + amount <= PolicyCoverage.annual_limit,
            ))
            .values(used_annual_amount=PolicyCoverage.used_annual_amount + amount)
            .execution_options(synchronize_session=False)
        )
        if self.session.execute(stmt).rowcount == 0:
            limit, used = self.session.execute(
                select(PolicyCoverage.annual_limit, PolicyCoverage.used_annual_amount)
                .where(PolicyCoverage.id == coverage_id)
            ).one()
            logger.warning("Annual limit exhausted", coverage_id=coverage_id, amount=amount, used=used)
            raise CoverageLimitExhaustedError(coverage_id, amount, max(limit - used, 0), "currency units")

    def charge_days(self, coverage_id: int, days: int):
        """Atomically add to used_days without crossing max_days."""
        if days <= 0:
            return
        stmt = (
            update(PolicyCoverage)
            .where(PolicyCoverage.id == coverage_id)
            .where(or_(
                PolicyCoverage.max_days.is_(None),
                PolicyCoverage.used_days + days <= PolicyCoverage.max_days,
            ))
            .values(used_days=PolicyCoverage.used_days + days)
            .execution_options(synchronize_session=False)
        )
        if self.session.execute(stmt).rowcount == 0:
            max_days, used_days = self.session.execute(
                select(PolicyCoverage.max_days, PolicyCoverage.used_days)
                .where(PolicyCoverage.id == coverage_id)
            ).one()
            logger.warning("Day allowance exhausted", coverage_id=coverage_id, days=days, used=used_days)
            raise CoverageLimitExhaustedError(coverage_id, days, max(max_days - used_days, 0), "days")

    def charge_line_items(self, items: List[dict]):
        """Charge approved payout lines against their coverage counters."""
        for item in items:
            coverage_id = item.get("coverage_id")
            if not coverage_id:
                continue
            kind = item.get("calculation_kind")
            if kind == CalculationKind.REAL_LOSS.value:
                self.charge_annual_amount(coverage_id, item.get("approved_amount") or 0)
            elif kind == CalculationKind.DAILY.value:
                self.charge_days(coverage_id, item.get("payable_days") or 0)


class ReferenceReader:
    """Diagnosis and surgery code lookups."""

    def __init__(self, session):
        self.session = session

    def get_diagnosis(self, code: Optional[str]) -> Optional[DiagnosisCode]:
        if not code:
            return None
        return self.session.get(DiagnosisCode, code)

    def get_surgery(self, code: Optional[str]) -> Optional[SurgeryCode]:
        if not code:
            return None
        return self.session.get(SurgeryCode, code)


class TermLookup:
    """Finds the policy-term article that governs a coverage line."""

    def __init__(self, session, product_code: str):
        self.session = session
        self.product_code = product_code
        self._terms: Optional[List[PolicyTerm]] = None
        self._cache: Dict[str, Optional[TermReference]] = {}

    def _load(self) -> List[PolicyTerm]:
        if self._terms is None:
            stmt = (
                select(PolicyTerm)
                .where(
                    PolicyTerm.product_code == self.product_code,
                    PolicyTerm.term_category == "COVERAGE",
                    PolicyTerm.is_active.is_(True),
                )
                .order_by(PolicyTerm.id)
            )
            self._terms = list(self.session.scalars(stmt))
        return self._terms

    @staticmethod
    def _family(coverage_code: str) -> Optional[str]:
        if coverage_code.startswith(CoverageCode.SURGERY_PREFIX):
            return SURGERY_TERM_FAMILY
        return TERM_FAMILY_BY_COVERAGE.get(coverage_code)

    def find_for_coverage(self, coverage_code: str) -> Optional[TermReference]:
        if coverage_code in self._cache:
            return self._cache[coverage_code]

        family = self._family(coverage_code)
        reference = None
        if family:
            for term in self._load():
                if family in (term.applies_to or []):
                    reference = self._to_reference(term)
                    break
        self._cache[coverage_code] = reference
        return reference

    @staticmethod
    def _to_reference(term: PolicyTerm) -> TermReference:
        article = term.article_number
        if term.clause_number:
            article = f"{article} {term.clause_number}"
        if term.summary:
            content = term.summary
        elif len(term.content) > TERM_EXCERPT_LENGTH:
            content = term.content[:TERM_EXCERPT_LENGTH] + "..."
        else:
            content = term.content
        return TermReference(
            article=article,
            title=term.title,
            content=content,
            formula=term.calculation_formula,
        )
