# claimflow/services/claim_service.py
"""Claim submission: adjudicate, persist, charge usage, audit."""

from typing import List, Optional

from sqlalchemy import select

from claimflow.adjudication.coverage import ScoringVariant
from claimflow.adjudication.pipeline import ClaimAdjudicator
from claimflow.adjudication.usage import charge_claim_usage
from claimflow.core.constants import SYSTEM_ACTOR, ClaimStatus
from claimflow.core.exceptions import ConflictError, CoverageLimitExhaustedError
from claimflow.core.logging import get_logger
from claimflow.database.session import Database
from claimflow.database.tables import Claim, ClaimModelResult, ScoringModel
from claimflow.models.adjudication import AdjudicationResult
from claimflow.models.base import utc_now
from claimflow.models.claim import (
    ClaimDetailResponse, ClaimListResponse, ClaimResponse, ClaimSubmission, ModelResultResponse,
)
from claimflow.services.audit import AuditRecorder
from claimflow.storage.claim_store import ClaimStore
from claimflow.storage.policy_store import PolicyStore

logger = get_logger(__name__)


def load_variants(session) -> List[ScoringVariant]:
    rows = session.scalars(
        select(ScoringModel)
        .where(ScoringModel.is_active.is_(True))
        .order_by(ScoringModel.sort_order, ScoringModel.id)
    )
    return [ScoringVariant.from_row(row) for row in rows]


class ClaimService:
    """Service for filing and reading claims."""

    def __init__(self, database: Database, audit: Optional[AuditRecorder] = None):
        self.database = database
        self.audit = audit or AuditRecorder(database)

    def submit(self, submission: ClaimSubmission) -> AdjudicationResult:
        """
        Adjudicate a claim and persist the outcome in one transaction.

        A claim against an unknown policy comes back REJECTED and is not stored.
        """
        with self.database.session_scope() as session:
            adjudicator = ClaimAdjudicator(session, variants=load_variants(session))
            state = adjudicator.run(submission)
            result = adjudicator.to_result(state)

            policy = state["policy"]
            if policy is None:
                logger.warning(f"Claim against unknown policy {submission.policy_number} not stored")
                return result

            claims = ClaimStore(session)
            claim_date = state["claim_date"]
            claim = Claim(
                claim_number=claims.next_claim_number(claim_date.year),
                policy_id=policy.id,
                customer_id=policy.customer_id,
                claim_type=submission.claim_type.value,
                claim_date=claim_date,
                treatment_start_date=submission.treatment_start_date,
                treatment_end_date=submission.treatment_end_date,
                hospital_name=submission.hospital_name,
                diagnosis_code=submission.diagnosis_code,
                diagnosis_name=submission.diagnosis_name or (
                    state["diagnosis"].name if state["diagnosis"] else None
                ),
                surgery_code=submission.surgery_code,
                surgery_name=submission.surgery_name or (
                    state["surgery"].name if state["surgery"] else None
                ),
                hospitalization_days=submission.hospitalization_days,
                total_medical_expense=submission.total_medical_expense,
                insured_expense=submission.insured_expense,
                uninsured_expense=submission.uninsured_expense,
                total_claimed_amount=result.total_claimed_amount,
                total_approved_amount=result.total_approved_amount,
                total_rejected_amount=result.total_rejected_amount,
                status=result.status,
                decision=result.decision,
                decision_reason=result.decision_reason,
                confidence_score=result.confidence_score,
                ai_recommendation=result.ai_recommendation,
                fraud_score=result.fraud.score if result.fraud else 0,
                fraud_patterns=result.fraud.pattern_codes if result.fraud else [],
                fraud_check_passed=result.fraud is None or result.fraud.passed,
                auto_processable=result.auto_processable,
                analysis_snapshot={
                    "coverage_analysis": result.coverage.model_dump(mode="json") if result.coverage else None,
                    "fraud_analysis": result.fraud.model_dump(mode="json") if result.fraud else None,
                    "validation": result.validation.model_dump(mode="json"),
                    "steps": result.steps,
                },
            )
            for analysis in result.model_results:
                claim.model_results.append(ClaimModelResult(
                    model_code=analysis.model_code,
                    model_name=analysis.model_name,
                    is_default=analysis.is_default,
                    recommendation=analysis.recommendation,
                    confidence=analysis.confidence,
                    total_claimed=analysis.total_claimed,
                    total_approved=analysis.total_approved,
                    total_rejected=analysis.total_rejected,
                    breakdown=[item.model_dump(mode="json") for item in analysis.items],
                    reasoning=analysis.reasoning,
                    response_time_ms=analysis.response_time_ms,
                ))

            if result.status == ClaimStatus.APPROVED.value:
                claim.approved_by = SYSTEM_ACTOR
                claim.approved_at = utc_now()
                try:
                    charge_claim_usage(PolicyStore(session), claim)
                except CoverageLimitExhaustedError as e:
                    # usage moved between the pipeline read and the charge
                    raise ConflictError(
                        "Coverage usage changed during adjudication; resubmit the claim",
                        details=e.details,
                    ) from e

            claims.save(claim)
            result.claim_id = claim.id
            result.claim_number = claim.claim_number
            audit_after = {
                "claim_number": claim.claim_number,
                "status": claim.status,
                "total_approved_amount": claim.total_approved_amount,
                "fraud_score": claim.fraud_score,
            }

        logger.info(
            f"Claim {result.claim_number} stored as {result.status}",
            approved=result.total_approved_amount, fraud_score=audit_after["fraud_score"],
        )
        self.audit.record(SYSTEM_ACTOR, "CLAIM_ADJUDICATED", "CLAIM", result.claim_id, None, audit_after)
        return result

    # ===================
    # Reads
    # ===================

    def get_claim(self, claim_id: int) -> ClaimDetailResponse:
        with self.database.session_scope() as session:
            return ClaimDetailResponse.model_validate(ClaimStore(session).get_or_raise(claim_id))

    def get_by_number(self, claim_number: str) -> ClaimDetailResponse:
        with self.database.session_scope() as session:
            return ClaimDetailResponse.model_validate(ClaimStore(session).get_by_number(claim_number))

    def list_claims(
        self,
        status: Optional[str] = None,
        claim_type: Optional[str] = None,
        policy_number: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> ClaimListResponse:
        with self.database.session_scope() as session:
            rows, total = ClaimStore(session).list_claims(status, claim_type, policy_number, skip, limit)
            return ClaimListResponse(
                total=total,
                skip=skip,
                limit=limit,
                claims=[ClaimResponse.model_validate(row) for row in rows],
            )

    def get_model_results(self, claim_id: int) -> List[ModelResultResponse]:
        with self.database.session_scope() as session:
            store = ClaimStore(session)
            store.get_or_raise(claim_id)
            return [ModelResultResponse.model_validate(row) for row in store.get_model_results(claim_id)]
