# claimflow/api/v1/claims.py
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from claimflow.core.config import settings
from claimflow.core.constants import ClaimStatus, ClaimType
from claimflow.core.dependencies import get_claim_service
from claimflow.core.logging import get_logger
from claimflow.models.adjudication import AdjudicationResult
from claimflow.models.claim import (
    ClaimDetailResponse, ClaimListResponse, ClaimSubmission, ModelResultResponse,
)
from claimflow.services.claim_service import ClaimService

logger = get_logger(__name__)
router = APIRouter()


@router.post("", response_model=AdjudicationResult)
def submit_claim(submission: ClaimSubmission, service: ClaimService = Depends(get_claim_service)):
    """Submit a claim and run it through adjudication."""
    return service.submit(submission)


@router.get("", response_model=ClaimListResponse)
def list_claims(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[ClaimStatus] = None,
    claim_type: Optional[ClaimType] = None,
    policy_number: Optional[str] = None,
    service: ClaimService = Depends(get_claim_service),
):
    """List claims with optional filtering."""
    return service.list_claims(
        status=status.value if status else None,
        claim_type=claim_type.value if claim_type else None,
        policy_number=policy_number,
        skip=skip,
        limit=limit,
    )


@router.get("/number/{claim_number}", response_model=ClaimDetailResponse)
def get_claim_by_number(claim_number: str, service: ClaimService = Depends(get_claim_service)):
    return service.get_by_number(claim_number)


@router.get("/{claim_id}", response_model=ClaimDetailResponse)
def get_claim(claim_id: int, service: ClaimService = Depends(get_claim_service)):
    """Get complete claim details including the analysis snapshot."""
    return service.get_claim(claim_id)


@router.get("/{claim_id}/model-results", response_model=List[ModelResultResponse])
def get_model_results(claim_id: int, service: ClaimService = Depends(get_claim_service)):
    """Per-variant coverage analysis results for a claim."""
    return service.get_model_results(claim_id)
