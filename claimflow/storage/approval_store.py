# claimflow/storage/approval_store.py
"""Approval templates, approver directory and workflow persistence."""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import case, func, or_, select, update

from claimflow.core.constants import ApprovalStatus, InboxStatus, UserStatus
from claimflow.core.exceptions import ApprovalNotFoundError, UserNotFoundError
from claimflow.database.tables import (
    ApprovalHistoryRecord, ApprovalInboxEntry, ApprovalInstance,
    ApprovalLineTemplate, Role, User,
)
from claimflow.storage.base import BaseStore


class TemplateReader:
    """Priority-ordered approval line templates."""

    def __init__(self, session):
        self.session = session

    def find_matching_template(
        self, claim_type: str, amount: int, fraud_score: int
    ) -> Optional[ApprovalLineTemplate]:
        """Highest-priority active template whose filters accept the claim; null filters match anything."""
        stmt = (
            select(ApprovalLineTemplate)
            .where(ApprovalLineTemplate.is_active.is_(True))
            .where(or_(ApprovalLineTemplate.claim_type.is_(None),
                       ApprovalLineTemplate.claim_type == claim_type))
            .where(or_(ApprovalLineTemplate.min_amount.is_(None),
                       ApprovalLineTemplate.min_amount <= amount))
            .where(or_(ApprovalLineTemplate.max_amount.is_(None),
                       ApprovalLineTemplate.max_amount >= amount))
            .where(or_(ApprovalLineTemplate.fraud_score_threshold.is_(None),
                       ApprovalLineTemplate.fraud_score_threshold <= fraud_score))
            .order_by(ApprovalLineTemplate.priority.asc(), ApprovalLineTemplate.template_code.asc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def list_active(self) -> List[ApprovalLineTemplate]:
        stmt = (
            select(ApprovalLineTemplate)
            .where(ApprovalLineTemplate.is_active.is_(True))
            .order_by(ApprovalLineTemplate.priority.asc(), ApprovalLineTemplate.template_code.asc())
        )
        return list(self.session.scalars(stmt))


class ApproverDirectory:
    """Role and user lookups."""

    def __init__(self, session):
        self.session = session

    def get_active_users_by_role(self, role_code: str) -> List[User]:
        stmt = (
            select(User)
            .join(Role, Role.id == User.role_id)
            .where(Role.role_code == role_code, User.status == UserStatus.ACTIVE.value)
            .order_by(User.id)
        )
        return list(self.session.scalars(stmt).unique())

    def get_user(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_active_user(self, user_id: int) -> User:
        user = self.get_user(user_id)
        if user.status != UserStatus.ACTIVE.value:
            raise UserNotFoundError(user_id)
        return user


class ApprovalStore(BaseStore[ApprovalInstance]):
    """Storage for approval instances, inbox entries and history."""

    model = ApprovalInstance

    # ===================
    # Instances
    # ===================

    def get_or_raise(self, approval_id: int) -> ApprovalInstance:
        instance = self.get(approval_id)
        if instance is None:
            raise ApprovalNotFoundError(approval_id)
        return instance

    def get_active_for_claim(self, claim_id: int) -> Optional[ApprovalInstance]:
        stmt = select(ApprovalInstance).where(
            ApprovalInstance.claim_id == claim_id,
            ApprovalInstance.status.in_(ApprovalStatus.active()),
        )
        return self.session.scalars(stmt).first()

    def latest_for_claim(self, claim_id: int) -> Optional[ApprovalInstance]:
        stmt = (
            select(ApprovalInstance)
            .where(ApprovalInstance.claim_id == claim_id)
            .order_by(ApprovalInstance.id.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    # ===================
    # Inbox
    # ===================

    def add_inbox_entries(self, instance: ApprovalInstance, users: List[User], step_no: int,
                          assigned_at: datetime) -> List[ApprovalInboxEntry]:
        entries = [
            ApprovalInboxEntry(
                approval_id=instance.id,
                claim_id=instance.claim_id,
                user_id=user.id,
                step_no=step_no,
                status=InboxStatus.PENDING.value,
                assigned_at=assigned_at,
            )
            for user in users
        ]
        self.session.add_all(entries)
        self.session.flush()
        return entries

    def find_pending_entry(self, approval_id: int, user_id: int, step_no: int) -> Optional[ApprovalInboxEntry]:
        stmt = select(ApprovalInboxEntry).where(
            ApprovalInboxEntry.approval_id == approval_id,
            ApprovalInboxEntry.user_id == user_id,
            ApprovalInboxEntry.step_no == step_no,
            ApprovalInboxEntry.status == InboxStatus.PENDING.value,
        )
        return self.session.scalars(stmt).first()

    def complete_entry(self, entry_id: int, completed_at: datetime) -> bool:
        """Flip one entry from PENDING to COMPLETED; False if someone got there first."""
        stmt = (
            update(ApprovalInboxEntry)
            .where(ApprovalInboxEntry.id == entry_id,
                   ApprovalInboxEntry.status == InboxStatus.PENDING.value)
            .values(status=InboxStatus.COMPLETED.value, completed_at=completed_at)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def supersede_step(self, approval_id: int, step_no: int, completed_at: datetime) -> int:
        stmt = (
            update(ApprovalInboxEntry)
            .where(ApprovalInboxEntry.approval_id == approval_id,
                   ApprovalInboxEntry.step_no == step_no,
                   ApprovalInboxEntry.status == InboxStatus.PENDING.value)
            .values(status=InboxStatus.SUPERSEDED.value, completed_at=completed_at)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount

    def list_inbox(
        self,
        user_id: int,
        status: Optional[str] = InboxStatus.PENDING.value,
        urgent_only: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Tuple[ApprovalInboxEntry, ApprovalInstance]], int]:
        stmt = (
            select(ApprovalInboxEntry, ApprovalInstance)
            .join(ApprovalInstance, ApprovalInstance.id == ApprovalInboxEntry.approval_id)
            .where(ApprovalInboxEntry.user_id == user_id)
        )
        if status:
            stmt = stmt.where(ApprovalInboxEntry.status == status)
        if urgent_only:
            stmt = stmt.where(ApprovalInstance.is_urgent.is_(True))

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = (
            stmt.order_by(
                case((ApprovalInstance.is_urgent.is_(True), 0), else_=1),
                ApprovalInboxEntry.assigned_at.asc(),
                ApprovalInboxEntry.id.asc(),
            )
            .offset(skip)
            .limit(limit)
        )
        return [tuple(row) for row in self.session.execute(stmt)], total

    def count_inbox(self, user_id: int, status: str, since: Optional[datetime] = None) -> int:
        stmt = select(func.count(ApprovalInboxEntry.id)).where(
            ApprovalInboxEntry.user_id == user_id,
            ApprovalInboxEntry.status == status,
        )
        if since is not None:
            stmt = stmt.where(ApprovalInboxEntry.completed_at >= since)
        return self.session.scalar(stmt) or 0

    def count_urgent_pending(self, user_id: int) -> int:
        stmt = (
            select(func.count(ApprovalInboxEntry.id))
            .join(ApprovalInstance, ApprovalInstance.id == ApprovalInboxEntry.approval_id)
            .where(ApprovalInboxEntry.user_id == user_id,
                   ApprovalInboxEntry.status == InboxStatus.PENDING.value,
                   ApprovalInstance.is_urgent.is_(True))
        )
        return self.session.scalar(stmt) or 0

    # ===================
    # History
    # ===================

    def add_history(self, record: ApprovalHistoryRecord) -> ApprovalHistoryRecord:
        self.session.add(record)
        self.session.flush()
        return record

    def history_for_claim(self, claim_id: int) -> List[ApprovalHistoryRecord]:
        stmt = (
            select(ApprovalHistoryRecord)
            .where(ApprovalHistoryRecord.claim_id == claim_id)
            .order_by(ApprovalHistoryRecord.id.asc())
        )
        return list(self.session.scalars(stmt))
