# claimflow/fraud/scorer.py
"""Rule-battery fraud scoring with named profiles."""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from claimflow.core.constants import FraudAction, FraudProfile, RiskLevel
from claimflow.core.logging import get_logger
from claimflow.fraud import rules
from claimflow.models.fraud import FraudAnalysis, FraudContext, FraudPattern
from claimflow.storage.claim_store import ClaimHistoryReader

logger = get_logger(__name__)

MAX_SCORE = 100


@dataclass
class ScoringProfile:
    """A rule set plus the thresholds that turn its score into a verdict."""
    name: FraudProfile
    rules: List[rules.Rule]
    # Descending (minimum score, level) pairs; anything below the last is LOW
    thresholds: List[Tuple[int, RiskLevel]]
    actions: Dict[RiskLevel, FraudAction] = field(default_factory=dict)

    def risk_level(self, score: int) -> RiskLevel:
        for minimum, level in self.thresholds:
            if score >= minimum:
                return level
        return RiskLevel.LOW


FULL_AUDIT_PROFILE = ScoringProfile(
    name=FraudProfile.FULL_AUDIT,
    rules=[
        rules.frequent_claims,
        rules.repeated_diagnosis,
        rules.repeated_weekend_admission,
        rules.high_amount,
        rules.early_claim,
        rules.hospital_concentration,
        rules.diagnosis_base_risk,
        rules.customer_risk,
        rules.hospitalization_outlier,
    ],
    thresholds=[(70, RiskLevel.CRITICAL), (50, RiskLevel.HIGH), (30, RiskLevel.MEDIUM)],
    actions={
        RiskLevel.CRITICAL: FraudAction.REJECT,
        RiskLevel.HIGH: FraudAction.INVESTIGATE,
        RiskLevel.MEDIUM: FraudAction.REVIEW,
        RiskLevel.LOW: FraudAction.APPROVE,
    },
)

INTAKE_PROFILE = ScoringProfile(
    name=FraudProfile.INTAKE,
    rules=[
        rules.intake_diagnosis_risk,
        rules.intake_high_amount,
        rules.intake_recent_claims,
        rules.intake_back_pain_repeat,
        rules.intake_weekend_admission,
        rules.intake_duplicate,
    ],
    thresholds=[(60, RiskLevel.CRITICAL), (40, RiskLevel.HIGH), (20, RiskLevel.MEDIUM)],
    actions={
        RiskLevel.CRITICAL: FraudAction.REJECT,
        RiskLevel.HIGH: FraudAction.INVESTIGATE,
        RiskLevel.MEDIUM: FraudAction.MANUAL_REVIEW,
        RiskLevel.LOW: FraudAction.AUTO_APPROVE,
    },
)

PROFILES = {
    FraudProfile.INTAKE: INTAKE_PROFILE,
    FraudProfile.FULL_AUDIT: FULL_AUDIT_PROFILE,
}


def get_profile(name) -> ScoringProfile:
    return PROFILES[FraudProfile(name)]


class FraudScorer:
    """Runs a profile's rules against a claim and aggregates the hits."""

    def __init__(self, history: ClaimHistoryReader):
        self.history = history

    def score(self, ctx: FraudContext, profile=FraudProfile.INTAKE) -> FraudAnalysis:
        scoring_profile = profile if isinstance(profile, ScoringProfile) else get_profile(profile)
        rules.check_context(ctx)

        patterns = []
        for rule in scoring_profile.rules:
            hit = rule(ctx, self.history)
            if hit.detected:
                patterns.append(FraudPattern(
                    code=hit.pattern_code,
                    name=hit.name,
                    score=hit.score,
                    details=hit.details,
                ))

        total = min(MAX_SCORE, max(0, sum(p.score for p in patterns)))
        level = scoring_profile.risk_level(total)

        logger.debug(
            f"Fraud score {total} ({level.value}) for customer {ctx.customer_id}",
            profile=scoring_profile.name.value,
            patterns=",".join(p.code for p in patterns) or "-",
        )

        return FraudAnalysis(
            profile=scoring_profile.name.value,
            score=total,
            risk_level=level.value,
            recommendation=scoring_profile.actions[level].value,
            patterns=patterns,
        )
