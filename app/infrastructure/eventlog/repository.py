"""
Event Log Repository - append-only activity log

Every mutation of events, rules, decision paths, scenarios and overrides is
recorded as an immutable entry; so are balance recalculation failures.
"""
from datetime import datetime
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session

from app.infrastructure.db.models import EventLog


class EventLogRepository:
    """
    Repository for the activity log
    """

    def __init__(self, db: Session):
        self.db = db

    def append_event(
        self,
        account_id: int,
        event_type: str,
        payload: Dict[str, Any],
        occurred_at: Optional[datetime] = None,
    ) -> int:
        """
        Append an entry to the activity log (flushes, does not commit)

        Args:
            account_id: owning bank account (0 for entries not tied to an account)
            event_type: entry type, e.g. "recurring_rule_revised"
            payload: JSON-serializable details
            occurred_at: when it happened (default: now)

        Returns:
            event_id: id of the new entry

        Example:
            >>> repo = EventLogRepository(db)
            >>> event_id = repo.append_event(
            ...     account_id=1,
            ...     event_type="projection_event_created",
            ...     payload={"event_id": 12, "date": "2026-01-05"},
            ... )
        """
        if occurred_at is None:
            occurred_at = datetime.utcnow()

        event = EventLog(
            account_id=account_id,
            event_type=event_type,
            payload_json=payload,
            occurred_at=occurred_at,
        )

        self.db.add(event)
        self.db.flush()

        return event.id

    def list_events(
        self,
        account_id: int,
        limit: int = 200,
        event_types: Optional[List[str]] = None,
    ) -> List[EventLog]:
        """
        Most recent entries first

        Args:
            account_id: bank account
            limit: max entries (default: 200)
            event_types: optional filter by entry type
        """
        query = self.db.query(EventLog).filter(EventLog.account_id == account_id)

        if event_types:
            query = query.filter(EventLog.event_type.in_(event_types))

        return query.order_by(EventLog.id.desc()).limit(limit).all()

    def count_events(
        self,
        account_id: int,
        event_types: Optional[List[str]] = None
    ) -> int:
        """Count entries for an account, optionally filtered by type"""
        query = self.db.query(EventLog).filter(EventLog.account_id == account_id)

        if event_types:
            query = query.filter(EventLog.event_type.in_(event_types))

        return query.count()
