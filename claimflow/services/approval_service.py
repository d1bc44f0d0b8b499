# claimflow/services/approval_service.py
"""Transactional facade over the approval engine plus inbox queries."""

from datetime import datetime, time
from typing import List, Optional

from claimflow.approval.engine import ApprovalEngine, ApprovalOutcome
from claimflow.core.constants import InboxStatus
from claimflow.core.logging import get_logger
from claimflow.database.session import Database
from claimflow.models.approval import (
    ApprovalInstanceResponse, ApprovalOutcomeResponse, ApprovalStatusResponse,
    HistoryRecordResponse, InboxItem, InboxResponse, InboxSummary, TemplateResponse,
)
from claimflow.models.base import utc_now
from claimflow.services.audit import AuditRecorder
from claimflow.storage.approval_store import ApprovalStore, TemplateReader
from claimflow.storage.claim_store import ClaimStore

logger = get_logger(__name__)


def _to_response(outcome: ApprovalOutcome) -> ApprovalOutcomeResponse:
    return ApprovalOutcomeResponse(
        claim_id=outcome.claim_id,
        claim_status=outcome.claim_status,
        approval_id=outcome.approval_id,
        status=outcome.status,
        current_step=outcome.current_step,
        total_steps=outcome.total_steps,
        auto_approved=outcome.auto_approved,
        completed=outcome.completed,
        message=outcome.message,
    )


class ApprovalService:
    """Runs each engine operation as one transaction, then audits it."""

    def __init__(self, database: Database, audit: Optional[AuditRecorder] = None):
        self.database = database
        self.audit = audit or AuditRecorder(database)

    # ===================
    # Commands
    # ===================

    def start_workflow(
        self,
        claim_id: int,
        initiator_id: Optional[int] = None,
        urgent: bool = False,
        notes: Optional[str] = None,
    ) -> ApprovalOutcomeResponse:
        with self.database.session_scope() as session:
            outcome = ApprovalEngine(session).start(claim_id, initiator_id, urgent, notes)
        self.audit.record_events(outcome.audit_events)
        return _to_response(outcome)

    def process_action(
        self,
        approval_id: int,
        actor_id: int,
        action: str,
        comments: Optional[str] = None,
        adjusted_amount: Optional[int] = None,
        delegate_to: Optional[int] = None,
    ) -> ApprovalOutcomeResponse:
        with self.database.session_scope() as session:
            outcome = ApprovalEngine(session).process(
                approval_id, actor_id, action,
                comments=comments, adjusted_amount=adjusted_amount, delegate_to=delegate_to,
            )
        self.audit.record_events(outcome.audit_events)
        return _to_response(outcome)

    # ===================
    # Queries
    # ===================

    def get_inbox(
        self,
        user_id: int,
        status: Optional[str] = InboxStatus.PENDING.value,
        urgent_only: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> InboxResponse:
        with self.database.session_scope() as session:
            rows, total = ApprovalStore(session).list_inbox(user_id, status, urgent_only, skip, limit)
            items = []
            for entry, instance in rows:
                claim = entry.claim
                step = instance.approval_line[entry.step_no - 1] if entry.step_no <= len(instance.approval_line) else {}
                items.append(InboxItem(
                    inbox_id=entry.id,
                    approval_id=instance.id,
                    claim_id=claim.id,
                    claim_number=claim.claim_number,
                    claim_type=claim.claim_type,
                    total_claimed_amount=claim.total_claimed_amount,
                    fraud_score=claim.fraud_score,
                    step_no=entry.step_no,
                    total_steps=instance.total_steps,
                    step_role=step.get("role_code"),
                    status=entry.status,
                    is_urgent=instance.is_urgent,
                    assigned_at=entry.assigned_at,
                    completed_at=entry.completed_at,
                ))
        return InboxResponse(total=total, skip=skip, limit=limit, items=items)

    def get_inbox_summary(self, user_id: int, now: Optional[datetime] = None) -> InboxSummary:
        start_of_day = datetime.combine((now or utc_now()).date(), time.min)
        with self.database.session_scope() as session:
            store = ApprovalStore(session)
            return InboxSummary(
                user_id=user_id,
                pending=store.count_inbox(user_id, InboxStatus.PENDING.value),
                urgent=store.count_urgent_pending(user_id),
                processed_today=store.count_inbox(user_id, InboxStatus.COMPLETED.value, since=start_of_day),
            )

    def get_approval_status(self, claim_id: int) -> ApprovalStatusResponse:
        with self.database.session_scope() as session:
            claim = ClaimStore(session).get_or_raise(claim_id)
            store = ApprovalStore(session)
            instance = store.latest_for_claim(claim.id)
            return ApprovalStatusResponse(
                claim_id=claim.id,
                claim_status=claim.status,
                approval_status=claim.approval_status,
                hold_status=claim.hold_status,
                approval=ApprovalInstanceResponse.model_validate(instance) if instance else None,
                history=[HistoryRecordResponse.model_validate(h) for h in store.history_for_claim(claim.id)],
            )

    def get_history(self, claim_id: int) -> List[HistoryRecordResponse]:
        with self.database.session_scope() as session:
            ClaimStore(session).get_or_raise(claim_id)
            return [
                HistoryRecordResponse.model_validate(h)
                for h in ApprovalStore(session).history_for_claim(claim_id)
            ]

    def list_templates(self) -> List[TemplateResponse]:
        with self.database.session_scope() as session:
            return [TemplateResponse.model_validate(t) for t in TemplateReader(session).list_active()]
