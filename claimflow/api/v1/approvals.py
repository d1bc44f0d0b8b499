# claimflow/api/v1/approvals.py
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from claimflow.core.config import settings
from claimflow.core.constants import InboxStatus
from claimflow.core.dependencies import get_approval_service, get_current_user
from claimflow.core.logging import get_logger
from claimflow.models.approval import (
    ApprovalActionRequest, ApprovalOutcomeResponse, ApprovalStartRequest,
    ApprovalStatusResponse, CallerIdentity, HistoryRecordResponse, InboxResponse,
    InboxSummary, TemplateResponse,
)
from claimflow.services.approval_service import ApprovalService

logger = get_logger(__name__)
router = APIRouter()

# ===================
# Workflow Actions
# ===================

@router.post("/start", response_model=ApprovalOutcomeResponse)
def start_approval(
    request: ApprovalStartRequest,
    caller: CallerIdentity = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Start the approval workflow for a claim."""
    return service.start_workflow(
        request.claim_id, initiator_id=caller.user_id, urgent=request.urgent, notes=request.notes
    )


@router.post("/{approval_id}/process", response_model=ApprovalOutcomeResponse)
def process_approval(
    approval_id: int,
    request: ApprovalActionRequest,
    caller: CallerIdentity = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Apply an approver action to the current step."""
    return service.process_action(
        approval_id,
        caller.user_id,
        request.action.value,
        comments=request.comments,
        adjusted_amount=request.adjusted_amount,
        delegate_to=request.delegate_to,
    )

# ===================
# Inbox
# ===================

@router.get("/inbox", response_model=InboxResponse)
def get_inbox(
    status: Optional[InboxStatus] = InboxStatus.PENDING,
    urgent_only: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    caller: CallerIdentity = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """The caller's inbox, urgent first then oldest."""
    return service.get_inbox(
        caller.user_id,
        status=status.value if status else None,
        urgent_only=urgent_only,
        skip=skip,
        limit=limit,
    )


@router.get("/inbox/summary", response_model=InboxSummary)
def get_inbox_summary(
    caller: CallerIdentity = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    return service.get_inbox_summary(caller.user_id)

# ===================
# Lookups
# ===================

@router.get("/claim/{claim_id}", response_model=ApprovalStatusResponse)
def get_approval_status(claim_id: int, service: ApprovalService = Depends(get_approval_service)):
    """Latest workflow instance and full history for a claim."""
    return service.get_approval_status(claim_id)


@router.get("/claim/{claim_id}/history", response_model=List[HistoryRecordResponse])
def get_approval_history(claim_id: int, service: ApprovalService = Depends(get_approval_service)):
    return service.get_history(claim_id)


@router.get("/templates", response_model=List[TemplateResponse])
def list_templates(service: ApprovalService = Depends(get_approval_service)):
    """Active approval-line templates in priority order."""
    return service.list_templates()
