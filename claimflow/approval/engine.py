# claimflow/approval/engine.py
"""
Template-driven, multi-step approval state machine.

Every public method runs inside the caller's session and never commits; the
caller's transaction scope decides whether all of an operation's writes land
or none do.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from claimflow.adjudication.usage import charge_claim_usage
from claimflow.core.constants import (
    SYSTEM_ACTOR, ApprovalAction, ApprovalStatus, ClaimStatus, HoldStatus,
)
from claimflow.core.exceptions import (
    ApprovalNotInProgressError, ConflictError, DuplicateActiveWorkflowError,
    NoApplicableTemplateError, NoApproversAvailableError, NotAuthorizedToApproveError,
    UnsupportedApprovalActionError, ValidationError,
)
from claimflow.core.logging import get_logger
from claimflow.database.tables import ApprovalHistoryRecord, ApprovalInstance, Claim, User
from claimflow.models.base import round_half_up, utc_now
from claimflow.services.audit import AuditEvent
from claimflow.storage.approval_store import ApprovalStore, ApproverDirectory, TemplateReader
from claimflow.storage.claim_store import ClaimStore
from claimflow.storage.policy_store import PolicyStore

logger = get_logger(__name__)


@dataclass
class ApprovalOutcome:
    """What a start or process call did."""
    claim_id: int
    claim_status: str
    approval_id: Optional[int] = None
    status: Optional[str] = None
    current_step: Optional[int] = None
    total_steps: Optional[int] = None
    auto_approved: bool = False
    completed: bool = False
    message: str = ""
    audit_events: List[AuditEvent] = field(default_factory=list)


def claim_state(claim: Claim) -> Dict[str, Any]:
    return {
        "status": claim.status,
        "approval_status": claim.approval_status,
        "total_approved_amount": claim.total_approved_amount,
        "current_approver_id": claim.current_approver_id,
        "hold_status": claim.hold_status,
    }


def _step_definition(instance: ApprovalInstance, step_no: int) -> Dict[str, Any]:
    return instance.approval_line[step_no - 1]


class ApprovalEngine:
    """Starts workflows and applies approver actions."""

    def __init__(self, session: Session):
        self.session = session
        self.claims = ClaimStore(session)
        self.approvals = ApprovalStore(session)
        self.templates = TemplateReader(session)
        self.directory = ApproverDirectory(session)
        self.policies = PolicyStore(session)

    # ===================
    # Start
    # ===================

    def start(
        self,
        claim_id: int,
        initiator_id: Optional[int] = None,
        urgent: bool = False,
        notes: Optional[str] = None,
    ) -> ApprovalOutcome:
        claim = self.claims.get_or_raise(claim_id)

        active = self.approvals.get_active_for_claim(claim.id)
        if active is not None:
            raise DuplicateActiveWorkflowError(claim.id, active.id)

        amount = claim.total_claimed_amount or 0
        template = self.templates.find_matching_template(claim.claim_type, amount, claim.fraud_score or 0)
        if template is None:
            raise NoApplicableTemplateError(claim.claim_type, amount, claim.fraud_score or 0)

        before = claim_state(claim)
        actor = str(initiator_id) if initiator_id is not None else SYSTEM_ACTOR
        now = utc_now()

        if template.is_auto_approve:
            claim.status = ClaimStatus.APPROVED.value
            claim.approval_status = ApprovalStatus.APPROVED.value
            claim.decision = f"Auto-approved by approval line {template.template_code}"
            claim.approved_by = SYSTEM_ACTOR
            claim.approved_at = now
            claim.current_approver_id = None
            charge_claim_usage(self.policies, claim)
            self.session.flush()
            logger.info(f"Claim {claim.claim_number} auto-approved", template=template.template_code)
            return ApprovalOutcome(
                claim_id=claim.id,
                claim_status=claim.status,
                auto_approved=True,
                completed=True,
                message="Claim auto-approved",
                audit_events=[AuditEvent(actor, "AUTO_APPROVE", "CLAIM", claim.id, before,
                                         {**claim_state(claim), "template": template.template_code})],
            )

        # Value copy so later template edits never reach this workflow
        approval_line = sorted(copy.deepcopy(template.approval_steps or []), key=lambda s: s.get("step", 0))
        if not approval_line:
            raise NoApplicableTemplateError(claim.claim_type, amount, claim.fraud_score or 0)

        first_role = approval_line[0]["role_code"]
        approvers = self.directory.get_active_users_by_role(first_role)
        if not approvers:
            raise NoApproversAvailableError(first_role, 1)

        instance = ApprovalInstance(
            claim_id=claim.id,
            template_id=template.id,
            template_code=template.template_code,
            status=ApprovalStatus.IN_PROGRESS.value,
            current_step=1,
            total_steps=len(approval_line),
            approval_line=approval_line,
            is_urgent=urgent,
            notes=notes,
            initiated_by=initiator_id,
            started_at=now,
        )
        self.approvals.save(instance)
        self.approvals.add_inbox_entries(instance, approvers, 1, now)

        claim.status = ClaimStatus.PENDING_REVIEW.value
        claim.approval_status = ApprovalStatus.IN_PROGRESS.value
        claim.current_approver_id = approvers[0].id
        self.session.flush()

        logger.info(
            f"Approval {instance.id} started for claim {claim.claim_number}",
            template=template.template_code, steps=instance.total_steps, approvers=len(approvers),
        )
        return ApprovalOutcome(
            claim_id=claim.id,
            claim_status=claim.status,
            approval_id=instance.id,
            status=instance.status,
            current_step=instance.current_step,
            total_steps=instance.total_steps,
            message=f"Approval started with {len(approvers)} approver(s) at step 1",
            audit_events=[AuditEvent(actor, "APPROVAL_START", "CLAIM", claim.id, before,
                                     {**claim_state(claim), "approval_id": instance.id})],
        )

    # ===================
    # Process
    # ===================

    def process(
        self,
        approval_id: int,
        actor_id: int,
        action: str,
        comments: Optional[str] = None,
        adjusted_amount: Optional[int] = None,
        delegate_to: Optional[int] = None,
    ) -> ApprovalOutcome:
        try:
            action = ApprovalAction(action)
        except ValueError:
            raise ValidationError(f"Unknown approval action: {action}", field="action")
        if action == ApprovalAction.SKIP:
            raise UnsupportedApprovalActionError(action.value)
        if adjusted_amount is not None and adjusted_amount < 0:
            raise ValidationError("adjusted_amount must not be negative", field="adjusted_amount")

        instance = self.approvals.get_or_raise(approval_id)
        if instance.status != ApprovalStatus.IN_PROGRESS.value:
            raise ApprovalNotInProgressError(instance.id, instance.status)

        actor = self.directory.get_user(actor_id)
        step_no = instance.current_step
        entry = self.approvals.find_pending_entry(instance.id, actor.id, step_no)
        if entry is None:
            raise NotAuthorizedToApproveError(instance.id, actor.id, step_no)

        delegate = None
        if action == ApprovalAction.DELEGATE:
            if delegate_to is None:
                raise ValidationError("delegate_to is required for DELEGATE", field="delegate_to")
            delegate = self.directory.get_active_user(delegate_to)
            if delegate.id == actor.id:
                raise ValidationError("Cannot delegate to yourself", field="delegate_to")

        claim = self.claims.get_or_raise(instance.claim_id)
        before = claim_state(claim)
        now = utc_now()

        # HOLD keeps the assignment open; every other action consumes it
        if action != ApprovalAction.HOLD and not self.approvals.complete_entry(entry.id, now):
            raise ConflictError(
                f"Step {step_no} of approval {instance.id} was already acted on",
                details={"approval_id": instance.id, "step_no": step_no},
            )

        step = _step_definition(instance, step_no)
        self.approvals.add_history(ApprovalHistoryRecord(
            approval_id=instance.id,
            claim_id=claim.id,
            step_no=step_no,
            step_name=step.get("name") or f"Step {step_no} approval",
            approver_id=actor.id,
            approver_name=actor.name,
            approver_role=actor.role.role_code,
            approver_department=actor.department,
            action=action.value,
            decision_amount=adjusted_amount,
            comment=comments,
            delegated_to=delegate.id if delegate else None,
            received_at=entry.assigned_at,
            processing_time_minutes=max(0, round_half_up((now - entry.assigned_at).total_seconds() / 60)),
            created_at=now,
        ))

        handler = {
            ApprovalAction.APPROVE: self._approve,
            ApprovalAction.REJECT: self._reject,
            ApprovalAction.RETURN: self._return,
            ApprovalAction.HOLD: self._hold,
            ApprovalAction.DELEGATE: self._delegate,
        }[action]
        message = handler(instance, claim, actor, step_no, now,
                          comments=comments, adjusted_amount=adjusted_amount, delegate=delegate)

        # Touching the instance bumps its version so a concurrent writer loses at flush
        instance.updated_at = now
        self.session.flush()

        logger.info(
            f"Approval {instance.id} {action.value} by user {actor.id}",
            step=step_no, status=instance.status, claim_status=claim.status,
        )
        return ApprovalOutcome(
            claim_id=claim.id,
            claim_status=claim.status,
            approval_id=instance.id,
            status=instance.status,
            current_step=instance.current_step,
            total_steps=instance.total_steps,
            completed=instance.status != ApprovalStatus.IN_PROGRESS.value,
            message=message,
            audit_events=[AuditEvent(str(actor.id), f"APPROVAL_{action.value}", "CLAIM", claim.id,
                                     before, {**claim_state(claim), "approval_id": instance.id,
                                              "step_no": step_no})],
        )

    # ===================
    # Action Handlers
    # ===================

    def _finish(self, instance: ApprovalInstance, status: ApprovalStatus, step_no: int, now):
        self.approvals.supersede_step(instance.id, step_no, now)
        instance.status = status.value
        instance.completed_at = now

    def _approve(self, instance, claim, actor: User, step_no: int, now, adjusted_amount=None, **_) -> str:
        if step_no >= instance.total_steps:
            self._finish(instance, ApprovalStatus.APPROVED, step_no, now)
            approved = adjusted_amount if adjusted_amount is not None else claim.total_claimed_amount
            claim.status = ClaimStatus.APPROVED.value
            claim.approval_status = ApprovalStatus.APPROVED.value
            claim.decision = f"Approved by {actor.name}"
            claim.total_approved_amount = approved
            claim.total_rejected_amount = max(0, (claim.total_claimed_amount or 0) - approved)
            claim.approved_by = actor.name
            claim.approved_at = now
            claim.current_approver_id = None
            charge_claim_usage(self.policies, claim)
            return "Final approval completed"

        self.approvals.supersede_step(instance.id, step_no, now)
        next_step = step_no + 1
        role_code = _step_definition(instance, next_step)["role_code"]
        approvers = self.directory.get_active_users_by_role(role_code)
        if not approvers:
            raise NoApproversAvailableError(role_code, next_step)

        instance.current_step = next_step
        self.approvals.add_inbox_entries(instance, approvers, next_step, now)
        claim.current_approver_id = approvers[0].id
        return f"Advanced to step {next_step} ({role_code})"

    def _reject(self, instance, claim, actor: User, step_no: int, now, comments=None, **_) -> str:
        self._finish(instance, ApprovalStatus.REJECTED, step_no, now)
        claim.status = ClaimStatus.REJECTED.value
        claim.approval_status = ApprovalStatus.REJECTED.value
        claim.decision = f"Rejected by {actor.name}"
        claim.decision_reason = comments
        claim.current_approver_id = None
        return "Claim rejected"

    def _return(self, instance, claim, actor: User, step_no: int, now, comments=None, **_) -> str:
        self._finish(instance, ApprovalStatus.RETURNED, step_no, now)
        claim.status = ClaimStatus.RETURNED.value
        claim.approval_status = ApprovalStatus.RETURNED.value
        claim.decision_reason = comments
        claim.current_approver_id = None
        return "Claim returned for rework"

    def _hold(self, instance, claim, actor: User, step_no: int, now, comments=None, **_) -> str:
        claim.hold_status = HoldStatus.HELD.value
        claim.hold_reason = comments
        return "Claim put on hold"

    def _delegate(self, instance, claim, actor: User, step_no: int, now, delegate: User = None, **_) -> str:
        if self.approvals.find_pending_entry(instance.id, delegate.id, step_no) is None:
            self.approvals.add_inbox_entries(instance, [delegate], step_no, now)
        claim.current_approver_id = delegate.id
        return f"Step {step_no} delegated to {delegate.name}"
