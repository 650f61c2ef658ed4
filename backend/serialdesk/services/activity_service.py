# Overview: Service-layer operations for the admin activity log; encapsulates business logic and database work.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from flask import g, has_request_context, request

from ..extensions import db
from ..models import ActivityLog
"""
Activity Log Invariants (authoritative)

- Append-only audit log for admin-visible domain events.
- No domain/business logic in the log itself.
- Entries are added inside the same DB transaction as the mutation they record;
  the caller commits.
- As-of filtering in the read API is inclusive: occurred_at <= until.
"""


def _request_actor_id() -> int | None:
    if not has_request_context():
        return None
    user = getattr(g, "current_user", None)
    return user.id if user is not None else None


def append_activity(
    *,
    action: str,
    entity_type: str,
    entity_id: int | None,
    actor_user_id: int | None = None,
    note: Optional[str] = None,
    details: Optional[dict] = None,
    occurred_at: Optional[datetime] = None,
) -> ActivityLog:
    """
    Append one activity entry.

    - No deletes/updates of existing entries.
    - actor defaults to the authenticated user of the current request.
    """
    if actor_user_id is None:
        actor_user_id = _request_actor_id()

    entry = ActivityLog(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        note=note,
        details=details,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    if occurred_at is not None:
        entry.occurred_at = occurred_at  # otherwise the db default applies
    db.session.add(entry)
    db.session.flush()
    return entry


def list_activity(
    *,
    action: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    actor_user_id: int | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int | None = 200,
) -> list[ActivityLog]:
    q = db.session.query(ActivityLog)
    if action:
        q = q.filter(ActivityLog.action == action)
    if entity_type:
        q = q.filter(ActivityLog.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(ActivityLog.entity_id == entity_id)
    if actor_user_id is not None:
        q = q.filter(ActivityLog.actor_user_id == actor_user_id)
    if since is not None:
        q = q.filter(ActivityLog.occurred_at >= since)
    if until is not None:
        q = q.filter(ActivityLog.occurred_at <= until)
    q = q.order_by(ActivityLog.occurred_at.desc(), ActivityLog.id.desc())
    if limit:
        q = q.limit(min(limit, 1000))
    return q.all()
