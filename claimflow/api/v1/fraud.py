# claimflow/api/v1/fraud.py
from fastapi import APIRouter, Depends, Query
from typing import Optional

from claimflow.core.dependencies import get_fraud_service
from claimflow.core.logging import get_logger
from claimflow.services.fraud_service import FraudService

logger = get_logger(__name__)
router = APIRouter()


@router.post("/claims/{claim_id}/detect")
def detect_fraud(claim_id: int, service: FraudService = Depends(get_fraud_service)):
    """Run the full fraud audit over a stored claim."""
    analysis = service.detect(claim_id)
    return {
        "success": True,
        "claim_id": claim_id,
        "fraud_score": analysis.score,
        "risk_level": analysis.risk_level,
        "recommended_action": analysis.recommendation,
        "patterns": [p.model_dump() for p in analysis.patterns],
    }


@router.get("/claims/{claim_id}/results")
def get_fraud_results(claim_id: int, service: FraudService = Depends(get_fraud_service)):
    """Detection history for a claim, newest first."""
    results = service.list_results(claim_id)
    return {"claim_id": claim_id, "total": len(results), "results": results}


@router.get("/high-risk")
def get_high_risk_claims(
    min_score: Optional[int] = Query(None, ge=0, le=100),
    limit: int = Query(50, ge=1, le=200),
    service: FraudService = Depends(get_fraud_service),
):
    claims = service.high_risk(min_score=min_score, limit=limit)
    return {"total": len(claims), "claims": claims}
