# claimflow/adjudication/pipeline.py
"""LangGraph-based claim adjudication pipeline."""

from typing import TypedDict, List, Dict, Any, Optional

from langgraph.graph import StateGraph, END
from sqlalchemy.orm import Session

from claimflow.adjudication.coverage import CoverageAnalyzer, ScoringVariant, order_variants
from claimflow.adjudication.validation import policy_not_found, validate_policy
from claimflow.core.config import settings
from claimflow.core.constants import ClaimStatus, FraudAction, Recommendation
from claimflow.core.exceptions import PolicyNotFoundError
from claimflow.core.logging import get_logger
from claimflow.database.tables import DiagnosisCode, Policy, PolicyCoverage, SurgeryCode
from claimflow.fraud.scorer import FraudScorer
from claimflow.models.adjudication import AdjudicationResult, CoverageAnalysis, PolicyValidation
from claimflow.models.base import utc_now
from claimflow.models.claim import ClaimSubmission
from claimflow.models.fraud import FraudAnalysis, FraudContext
from claimflow.storage.claim_store import ClaimHistoryReader
from claimflow.storage.policy_store import PolicyStore, ReferenceReader, TermLookup

logger = get_logger(__name__)

# Reference values used when a diagnosis code is not on file
UNKNOWN_DIAGNOSIS_NAME = "Other disease"
UNKNOWN_DIAGNOSIS_RISK = 0.2

# Fraud recommendations that route a claim to a human
REVIEW_ACTIONS = {
    FraudAction.INVESTIGATE.value,
    FraudAction.MANUAL_REVIEW.value,
    FraudAction.REVIEW.value,
}
# Recommendations that flag the fraud step as a warning
ATTENTION_ACTIONS = REVIEW_ACTIONS | {FraudAction.REJECT.value}


# ===================
# State Definition
# ===================

class AdjudicationState(TypedDict):
    """State for one adjudication run."""
    # Input
    submission: ClaimSubmission
    claim_date: Any

    # Loaded context
    policy: Optional[Policy]
    coverages: List[PolicyCoverage]
    diagnosis: Optional[DiagnosisCode]
    surgery: Optional[SurgeryCode]

    # Analysis results
    validation: Optional[PolicyValidation]
    model_results: List[CoverageAnalysis]
    fraud: Optional[FraudAnalysis]

    # Decision
    status: str
    decision: str
    decision_reason: Optional[str]
    confidence: int
    recommendation: str
    auto_processable: bool

    steps: List[Dict[str, Any]]


class ClaimAdjudicator:
    """
    Adjudicates one claim submission.

    Workflow:
    1. Load the policy and validate it against the treatment date
    2. Short-circuit hard failures to REJECTED
    3. Analyse coverage once per scoring-model variant
    4. Score fraud with the configured profile
    5. Decide APPROVED / PENDING_REVIEW

    The run is read-only; ClaimService persists the result.
    """

    def __init__(
        self,
        session: Session,
        variants: Optional[List[ScoringVariant]] = None,
        fraud_profile: Optional[str] = None,
    ):
        self.session = session
        self.policies = PolicyStore(session)
        self.references = ReferenceReader(session)
        self.scorer = FraudScorer(ClaimHistoryReader(session))
        self.variants = order_variants(variants or [])
        self.fraud_profile = fraud_profile or settings.ADJUDICATION_FRAUD_PROFILE
        self.graph = self._build_graph()

    def _build_graph(self):
        """Build the adjudication workflow graph."""
        workflow = StateGraph(AdjudicationState)

        workflow.add_node("validate_policy", self._validate_policy)
        workflow.add_node("reject", self._reject)
        workflow.add_node("analyze_coverage", self._analyze_coverage)
        workflow.add_node("score_fraud", self._score_fraud)
        workflow.add_node("decide", self._decide)

        workflow.set_entry_point("validate_policy")
        workflow.add_conditional_edges(
            "validate_policy",
            self._route_after_validation,
            {"reject": "reject", "analyze": "analyze_coverage"},
        )
        workflow.add_edge("reject", END)
        workflow.add_edge("analyze_coverage", "score_fraud")
        workflow.add_edge("score_fraud", "decide")
        workflow.add_edge("decide", END)

        return workflow.compile()

    def _add_step(
        self,
        state: AdjudicationState,
        step_name: str,
        status: str,
        details: str = "",
        data: Dict = None
    ) -> List[Dict[str, Any]]:
        """Append a pipeline step to the trace."""
        return state["steps"] + [{
            "step_name": step_name,
            "status": status,
            "details": details,
            "data": data or {},
            "timestamp": utc_now().isoformat(),
        }]

    # ===================
    # Nodes
    # ===================

    def _validate_policy(self, state: AdjudicationState) -> Dict:
        submission = state["submission"]
        try:
            policy = self.policies.get_policy_by_number(submission.policy_number)
        except PolicyNotFoundError:
            logger.warning(f"Policy {submission.policy_number} not found")
            validation = policy_not_found(submission.policy_number)
            return {
                "policy": None,
                "validation": validation,
                "steps": self._add_step(state, "validate_policy", "failed", validation.issues[0]),
            }

        validation = validate_policy(
            policy, submission.treatment_start_date, settings.DEFAULT_REDUCTION_RATE
        )
        status = "passed" if validation.is_valid else "failed"
        details = "; ".join(validation.issues) if validation.issues else "Policy valid"
        if validation.reduction_applies:
            details += f" (reduction {validation.reduction_rate}%)"

        return {
            "policy": policy,
            "coverages": self.policies.get_active_coverages(policy.id),
            "diagnosis": self.references.get_diagnosis(submission.diagnosis_code),
            "surgery": self.references.get_surgery(submission.surgery_code),
            "validation": validation,
            "steps": self._add_step(state, "validate_policy", status, details,
                                    validation.model_dump(mode="json")),
        }

    def _route_after_validation(self, state: AdjudicationState) -> str:
        return "analyze" if state["validation"].is_valid else "reject"

    def _reject(self, state: AdjudicationState) -> Dict:
        validation = state["validation"]
        reason = "; ".join(validation.issues)
        if validation.exemption_applies:
            decision = "Not covered: treatment falls within the exemption period"
        elif not validation.policy_found:
            decision = "Rejected: policy not found"
        else:
            decision = "Rejected: policy validation failed"
        return {
            "status": ClaimStatus.REJECTED.value,
            "decision": decision,
            "decision_reason": reason,
            "confidence": 100,
            "recommendation": Recommendation.REJECT.value,
            "auto_processable": False,
            "steps": self._add_step(state, "decide", "rejected", reason),
        }

    def _analyze_coverage(self, state: AdjudicationState) -> Dict:
        policy = state["policy"]
        analyzer = CoverageAnalyzer(
            term_lookup=TermLookup(self.session, policy.product_code),
            default_daily_max_days=settings.DEFAULT_DAILY_MAX_DAYS,
        )
        results = [
            analyzer.analyze(
                state["submission"], state["coverages"], state["validation"],
                variant, surgery=state["surgery"],
            )
            for variant in self.variants
        ]
        primary = results[0]
        return {
            "model_results": results,
            "steps": self._add_step(
                state, "analyze_coverage", "passed",
                f"{len(primary.items)} line(s), approved {primary.total_approved:,} "
                f"of {primary.total_claimed:,} across {len(results)} variant(s)",
            ),
        }

    def _score_fraud(self, state: AdjudicationState) -> Dict:
        submission = state["submission"]
        policy = state["policy"]
        customer = policy.customer
        diagnosis = state["diagnosis"]

        ctx = FraudContext(
            customer_id=policy.customer_id,
            claim_date=state["claim_date"],
            treatment_start_date=submission.treatment_start_date,
            treatment_end_date=submission.treatment_end_date,
            hospital_name=submission.hospital_name,
            diagnosis_code=submission.diagnosis_code,
            hospitalization_days=submission.hospitalization_days,
            total_amount=submission.total_medical_expense,
            coverage_start_date=policy.coverage_start_date,
            customer_risk_grade=customer.risk_grade if customer else None,
            customer_risk_score=customer.risk_score if customer else 0,
            diagnosis_risk_base=diagnosis.fraud_risk_base if diagnosis else UNKNOWN_DIAGNOSIS_RISK,
            standard_treatment_days=diagnosis.standard_treatment_days if diagnosis else None,
        )
        fraud = self.scorer.score(ctx, self.fraud_profile)
        status = "warning" if fraud.recommendation in ATTENTION_ACTIONS else "passed"
        return {
            "fraud": fraud,
            "steps": self._add_step(
                state, "score_fraud", status,
                f"Fraud score {fraud.score} ({fraud.risk_level})",
                fraud.model_dump(mode="json"),
            ),
        }

    def _decide(self, state: AdjudicationState) -> Dict:
        validation = state["validation"]
        fraud = state["fraud"]
        primary = state["model_results"][0]
        confidence = 100 - fraud.score
        auto = False

        if validation.exemption_applies:
            status, decision, confidence = (
                ClaimStatus.REJECTED.value,
                "Not covered: treatment falls within the exemption period",
                100,
            )
        elif fraud.recommendation == FraudAction.REJECT.value:
            status, decision = ClaimStatus.PENDING_REVIEW.value, "Suspected fraud, referred for investigation"
        elif fraud.recommendation == FraudAction.INVESTIGATE.value:
            status, decision = ClaimStatus.PENDING_REVIEW.value, "Risk patterns detected, manual review required"
        elif fraud.recommendation in REVIEW_ACTIONS:
            status, decision = ClaimStatus.PENDING_REVIEW.value, "Additional review required"
        elif (
            fraud.score < settings.AUTO_APPROVE_MAX_FRAUD_SCORE
            and 0 < primary.total_approved <= settings.AUTO_APPROVE_MAX_AMOUNT
        ):
            status, auto = ClaimStatus.APPROVED.value, True
            decision = " + ".join(i.item for i in primary.items) + " approved for payment"
            if validation.reduction_applies:
                decision += f" (reduction period {validation.reduction_rate}% applied)"
        elif primary.total_approved <= 0:
            status, decision = ClaimStatus.PENDING_REVIEW.value, "No payable amount, needs review"
        else:
            status, decision = ClaimStatus.PENDING_REVIEW.value, "High amount, needs review"

        return {
            "status": status,
            "decision": decision,
            "decision_reason": None,
            "confidence": confidence,
            "recommendation": fraud.recommendation,
            "auto_processable": auto,
            "steps": self._add_step(state, "decide", status.lower(), decision),
        }

    # ===================
    # Entry Points
    # ===================

    def run(self, submission: ClaimSubmission) -> AdjudicationState:
        """Execute the graph and return its final state."""
        logger.info(f"Starting adjudication for policy {submission.policy_number}",
                    claim_type=submission.claim_type.value)

        initial_state: AdjudicationState = {
            "submission": submission,
            "claim_date": submission.claim_date or utc_now().date(),
            "policy": None,
            "coverages": [],
            "diagnosis": None,
            "surgery": None,
            "validation": None,
            "model_results": [],
            "fraud": None,
            "status": ClaimStatus.PENDING_REVIEW.value,
            "decision": "",
            "decision_reason": None,
            "confidence": 0,
            "recommendation": "",
            "auto_processable": False,
            "steps": [],
        }

        final_state = self.graph.invoke(initial_state)

        logger.info(
            f"Adjudication complete for policy {submission.policy_number}: "
            f"status={final_state['status']}, confidence={final_state['confidence']}"
        )
        return final_state

    @staticmethod
    def to_result(final_state: AdjudicationState) -> AdjudicationResult:
        submission = final_state["submission"]
        model_results = final_state.get("model_results") or []
        primary = model_results[0] if model_results else None
        return AdjudicationResult(
            policy_number=submission.policy_number,
            status=final_state["status"],
            decision=final_state["decision"],
            decision_reason=final_state.get("decision_reason"),
            confidence_score=final_state["confidence"],
            ai_recommendation=final_state["recommendation"],
            auto_processable=final_state["auto_processable"],
            total_claimed_amount=submission.total_medical_expense,
            total_approved_amount=primary.total_approved if primary else 0,
            total_rejected_amount=primary.total_rejected if primary else 0,
            validation=final_state["validation"],
            coverage=primary,
            model_results=model_results,
            fraud=final_state.get("fraud"),
            steps=final_state["steps"],
        )

    def adjudicate(self, submission: ClaimSubmission) -> AdjudicationResult:
        """
        Run the complete adjudication workflow without persisting anything.

        Args:
            submission: The filed claim facts

        Returns:
            AdjudicationResult with claim_id unset
        """
        return self.to_result(self.run(submission))
