# claimflow/storage/claim_store.py
"""Claim storage and the claim-history reader used by fraud scoring."""

from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import func, select

from claimflow.core.exceptions import ClaimNotFoundError
from claimflow.database.tables import Claim, ClaimModelResult, FraudDetectionResult, Policy
from claimflow.models.base import format_claim_number
from claimflow.storage.base import BaseStore

FRIDAY = 4
MONDAY = 0


class ClaimStore(BaseStore[Claim]):
    """Storage for claim entities."""

    model = Claim

    def get_or_raise(self, claim_id: int) -> Claim:
        claim = self.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id)
        return claim

    def get_by_number(self, claim_number: str) -> Claim:
        claim = self.session.scalars(
            select(Claim).where(Claim.claim_number == claim_number)
        ).first()
        if claim is None:
            raise ClaimNotFoundError(claim_number)
        return claim

    def next_claim_number(self, year: int) -> str:
        prefix = f"CLM-{year}-"
        last = self.session.scalar(
            select(func.max(Claim.claim_number)).where(Claim.claim_number.like(f"{prefix}%"))
        )
        sequence = int(last[len(prefix):]) + 1 if last else 1
        return format_claim_number(year, sequence)

    def list_claims(
        self,
        status: Optional[str] = None,
        claim_type: Optional[str] = None,
        policy_number: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Claim], int]:
        stmt = select(Claim)
        if policy_number:
            stmt = stmt.join(Policy, Policy.id == Claim.policy_id).where(Policy.policy_number == policy_number)
        if status:
            stmt = stmt.where(Claim.status == status)
        if claim_type:
            stmt = stmt.where(Claim.claim_type == claim_type)

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        rows = self.session.scalars(stmt.order_by(Claim.id.desc()).offset(skip).limit(limit))
        return list(rows), total

    def get_model_results(self, claim_id: int) -> List[ClaimModelResult]:
        stmt = select(ClaimModelResult).where(ClaimModelResult.claim_id == claim_id).order_by(ClaimModelResult.id)
        return list(self.session.scalars(stmt))

    def get_fraud_results(self, claim_id: int) -> List[FraudDetectionResult]:
        stmt = (
            select(FraudDetectionResult)
            .where(FraudDetectionResult.claim_id == claim_id)
            .order_by(FraudDetectionResult.id.desc())
        )
        return list(self.session.scalars(stmt))

    def list_high_risk(self, min_score: int, limit: int = 50) -> List[Claim]:
        stmt = (
            select(Claim)
            .where(Claim.fraud_score >= min_score)
            .order_by(Claim.fraud_score.desc(), Claim.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))


class ClaimHistoryReader:
    """
    Trailing-window counts over a customer's claims.

    Windows are inclusive of both ends and measured on claim_date.
    exclude_claim_id keeps a persisted claim from counting itself.
    """

    def __init__(self, session):
        self.session = session

    def _base(self, customer_id: int, exclude_claim_id: Optional[int]):
        stmt = select(func.count(Claim.id)).where(Claim.customer_id == customer_id)
        if exclude_claim_id is not None:
            stmt = stmt.where(Claim.id != exclude_claim_id)
        return stmt

    def count_claims(
        self,
        customer_id: int,
        since: date,
        until: date,
        exclude_claim_id: Optional[int] = None,
        diagnosis_code: Optional[str] = None,
        hospital_name: Optional[str] = None,
    ) -> int:
        stmt = self._base(customer_id, exclude_claim_id).where(
            Claim.claim_date >= since, Claim.claim_date <= until
        )
        if diagnosis_code is not None:
            stmt = stmt.where(Claim.diagnosis_code == diagnosis_code)
        if hospital_name is not None:
            stmt = stmt.where(Claim.hospital_name == hospital_name)
        return self.session.scalar(stmt) or 0

    def count_weekend_admissions(
        self,
        customer_id: int,
        until: date,
        exclude_claim_id: Optional[int] = None,
    ) -> int:
        """Earlier claims whose treatment started on a Friday and ended on a Monday."""
        stmt = select(Claim.treatment_start_date, Claim.treatment_end_date).where(
            Claim.customer_id == customer_id,
            Claim.claim_date <= until,
            Claim.treatment_end_date.is_not(None),
        )
        if exclude_claim_id is not None:
            stmt = stmt.where(Claim.id != exclude_claim_id)
        return sum(
            1 for start, end in self.session.execute(stmt)
            if start.weekday() == FRIDAY and end.weekday() == MONDAY
        )

    def has_duplicate(
        self,
        customer_id: int,
        diagnosis_code: Optional[str],
        hospital_name: Optional[str],
        treatment_start_date: date,
        exclude_claim_id: Optional[int] = None,
    ) -> bool:
        stmt = self._base(customer_id, exclude_claim_id).where(
            Claim.diagnosis_code == diagnosis_code,
            Claim.hospital_name == hospital_name,
            Claim.treatment_start_date == treatment_start_date,
        )
        return (self.session.scalar(stmt) or 0) > 0
