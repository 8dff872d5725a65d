# Overview: Append-only security audit trail.

from __future__ import annotations

from ..extensions import db
from ..models import SecurityEvent


def log_security_event(
    *,
    event_type: str,
    success: bool,
    org_id: int | None = None,
    user_id: int | None = None,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Record a security event with tenant context.

    event_type examples:
    - LOGIN_FAILED
    - LOGIN_SUCCEEDED
    - LOGOUT
    - ROLE_DENIED
    - TIER_DENIED
    - ORG_UNRESOLVED
    """
    event = SecurityEvent(
        org_id=org_id,
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
    )
    db.session.add(event)
    if commit:
        db.session.commit()
    return event


def list_security_events(org_id: int, *, event_type: str | None = None, limit: int = 100) -> list[SecurityEvent]:
    query = db.session.query(SecurityEvent).filter(SecurityEvent.org_id == org_id)
    if event_type:
        query = query.filter(SecurityEvent.event_type == event_type)
    return query.order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc()).limit(limit).all()
