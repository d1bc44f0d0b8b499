# claimflow/services/audit.py
"""Audit sink: one-way, best-effort recording of state changes."""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from claimflow.core.logging import get_logger
from claimflow.database.session import Database
from claimflow.database.tables import AuditLog

logger = get_logger(__name__)


@dataclass
class AuditEvent:
    actor: str
    action: str
    entity_type: str
    entity_id: Any
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


class AuditRecorder:
    """Writes audit rows in their own transaction and never raises."""

    def __init__(self, database: Database):
        self.database = database

    def record(
        self,
        actor: str,
        action: str,
        entity_type: str,
        entity_id: Any,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
    ) -> bool:
        try:
            with self.database.session_scope() as session:
                session.add(AuditLog(
                    actor=str(actor),
                    action=action,
                    entity_type=entity_type,
                    entity_id=str(entity_id),
                    before_value=before,
                    after_value=after,
                ))
            return True
        except Exception:
            # Audit failures are logged, not raised
            logger.exception("Audit record failed", action=action,
                             entity_type=entity_type, entity_id=entity_id)
            return False

    def record_events(self, events: Iterable[AuditEvent]):
        for event in events:
            self.record(event.actor, event.action, event.entity_type, event.entity_id,
                        event.before, event.after)
