# claimflow/services/fraud_service.py
"""On-demand FULL_AUDIT fraud detection over stored claims."""

from typing import List, Optional

from claimflow.adjudication.pipeline import UNKNOWN_DIAGNOSIS_RISK
from claimflow.core.config import settings
from claimflow.core.constants import SYSTEM_ACTOR, FraudProfile
from claimflow.core.logging import get_logger
from claimflow.database.session import Database
from claimflow.database.tables import Claim, FraudDetectionResult
from claimflow.fraud.scorer import FraudScorer
from claimflow.models.fraud import FraudAnalysis, FraudContext
from claimflow.services.audit import AuditRecorder
from claimflow.storage.claim_store import ClaimHistoryReader, ClaimStore
from claimflow.storage.policy_store import ReferenceReader

logger = get_logger(__name__)


def context_from_claim(claim: Claim, references: ReferenceReader) -> FraudContext:
    diagnosis = references.get_diagnosis(claim.diagnosis_code)
    customer = claim.customer
    return FraudContext(
        claim_id=claim.id,
        customer_id=claim.customer_id,
        claim_date=claim.claim_date,
        treatment_start_date=claim.treatment_start_date,
        treatment_end_date=claim.treatment_end_date,
        hospital_name=claim.hospital_name,
        diagnosis_code=claim.diagnosis_code,
        hospitalization_days=claim.hospitalization_days,
        total_amount=claim.total_claimed_amount,
        coverage_start_date=claim.policy.coverage_start_date if claim.policy else None,
        customer_risk_grade=customer.risk_grade if customer else None,
        customer_risk_score=customer.risk_score if customer else 0,
        diagnosis_risk_base=diagnosis.fraud_risk_base if diagnosis else UNKNOWN_DIAGNOSIS_RISK,
        standard_treatment_days=diagnosis.standard_treatment_days if diagnosis else None,
    )


class FraudService:
    """Re-scores stored claims and keeps the detection history."""

    def __init__(self, database: Database, audit: Optional[AuditRecorder] = None):
        self.database = database
        self.audit = audit or AuditRecorder(database)

    def detect(self, claim_id: int) -> FraudAnalysis:
        with self.database.session_scope() as session:
            claim = ClaimStore(session).get_or_raise(claim_id)
            before = {"fraud_score": claim.fraud_score, "fraud_patterns": claim.fraud_patterns}

            ctx = context_from_claim(claim, ReferenceReader(session))
            analysis = FraudScorer(ClaimHistoryReader(session)).score(ctx, FraudProfile.FULL_AUDIT)

            session.add(FraudDetectionResult(
                claim_id=claim.id,
                profile=analysis.profile,
                fraud_score=analysis.score,
                risk_level=analysis.risk_level,
                patterns=[p.model_dump(mode="json") for p in analysis.patterns],
                recommended_action=analysis.recommendation,
            ))
            claim.fraud_score = analysis.score
            claim.fraud_patterns = analysis.pattern_codes
            claim.fraud_check_passed = analysis.passed
            session.flush()

        logger.info(
            f"Fraud detection for claim {claim_id}: score={analysis.score}",
            risk_level=analysis.risk_level, action=analysis.recommendation,
        )
        self.audit.record(SYSTEM_ACTOR, "FRAUD_DETECT", "CLAIM", claim_id, before,
                          {"fraud_score": analysis.score, "fraud_patterns": analysis.pattern_codes})
        return analysis

    def list_results(self, claim_id: int) -> List[dict]:
        with self.database.session_scope() as session:
            store = ClaimStore(session)
            store.get_or_raise(claim_id)
            return [
                {
                    "id": row.id,
                    "claim_id": row.claim_id,
                    "profile": row.profile,
                    "fraud_score": row.fraud_score,
                    "risk_level": row.risk_level,
                    "patterns": row.patterns,
                    "recommended_action": row.recommended_action,
                    "created_at": row.created_at.isoformat(),
                }
                for row in store.get_fraud_results(claim_id)
            ]

    def high_risk(self, min_score: Optional[int] = None, limit: int = 50) -> List[dict]:
        threshold = settings.HIGH_RISK_MIN_SCORE if min_score is None else min_score
        with self.database.session_scope() as session:
            return [
                {
                    "claim_id": claim.id,
                    "claim_number": claim.claim_number,
                    "customer_id": claim.customer_id,
                    "status": claim.status,
                    "fraud_score": claim.fraud_score,
                    "fraud_patterns": claim.fraud_patterns,
                    "total_claimed_amount": claim.total_claimed_amount,
                }
                for claim in ClaimStore(session).list_high_risk(threshold, limit)
            ]
