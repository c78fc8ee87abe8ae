"""
Heritage Church CMS
Notification Service.

Default sink for workflow events: one in-app Notification row per recipient
role, written into the caller's transaction (flush, never commit) so a
rolled-back operation leaves no orphaned alert.  Delivery (push, e-mail)
happens elsewhere by reading these rows.
"""

import logging
from datetime import datetime, timezone

from heritage_cms.models import db
from heritage_cms.models.church import ROLE_CHANCERY, ROLE_MUSEUM, ROLE_PARISH, ChurchProfile
from heritage_cms.models.notification import Notification
from heritage_cms.models.review import (
    ENTRY_CONTENT_DISCARD,
    ENTRY_CONTENT_MERGE,
    ENTRY_CONTENT_STAGED,
    ENTRY_OPERATIONAL_UPDATE,
    ENTRY_OVERLAY_FORWARD,
    ENTRY_RECLASSIFICATION,
    ENTRY_STATUS_TRANSITION,
)
from heritage_cms.services.workflow_engine import WorkflowEvent

logger = logging.getLogger(__name__)

# (recipient roles, title template, severity) per non-transition event kind.
_KIND_ROUTES = {
    ENTRY_CONTENT_STAGED: ((ROLE_CHANCERY,), "Updates submitted for {name}", "info"),
    ENTRY_OVERLAY_FORWARD: ((ROLE_MUSEUM,), "Heritage updates for {name} need validation", "info"),
    ENTRY_CONTENT_MERGE: ((ROLE_PARISH,), "Updates to {name} are now live", "success"),
    ENTRY_CONTENT_DISCARD: ((ROLE_PARISH,), "Updates to {name} were not accepted", "warning"),
    ENTRY_OPERATIONAL_UPDATE: ((ROLE_CHANCERY,), "{name} updated its parish details", "info"),
    ENTRY_RECLASSIFICATION: ((ROLE_PARISH, ROLE_CHANCERY), "{name} was reclassified", "info"),
}

# Status transitions are routed on the status they land in.
_STATUS_ROUTES = {
    "pending": ((ROLE_CHANCERY,), "{name} submitted for review", "info"),
    "heritage_review": ((ROLE_MUSEUM,), "{name} needs heritage validation", "info"),
    "revisions": ((ROLE_PARISH,), "Revisions requested for {name}", "warning"),
    "approved": ((ROLE_PARISH,), "{name} is now published", "success"),
    "draft": ((ROLE_PARISH,), "{name} was unpublished", "warning"),
}


class NotificationService:
    """Stateless service class for workflow notifications."""

    @staticmethod
    def route(event: WorkflowEvent):
        if event.kind == ENTRY_STATUS_TRANSITION:
            return _STATUS_ROUTES.get(event.to_status)
        return _KIND_ROUTES.get(event.kind)

    @staticmethod
    def emit(event: WorkflowEvent, profile: ChurchProfile | None = None) -> list[Notification]:
        """
        Persist notifications for *event* in the current transaction.

        Returns:
            The created Notification instances (flushed, not committed).
        """
        route = NotificationService.route(event)
        if route is None:
            logger.debug("No recipients for workflow event %s/%s", event.kind, event.action)
            return []

        roles, title_template, severity = route
        name = (profile.name if profile is not None else None) or "Church profile"
        payload = event.to_payload()
        notifications = []
        for role in roles:
            recipient = None
            if role == ROLE_PARISH and profile is not None:
                recipient = profile.created_by
            notif = Notification(
                recipient_role=role,
                recipient=recipient,
                profile_id=event.profile_id,
                kind=event.kind,
                title=title_template.format(name=name)[:300],
                message=event.notes or "",
                severity=severity,
                payload=payload,
            )
            db.session.add(notif)
            notifications.append(notif)
        db.session.flush()

        logger.info(
            "Workflow event %s/%s for %s → %s",
            event.kind, event.action, event.profile_id, ",".join(roles),
            extra={"profile_id": event.profile_id, "event_kind": event.kind, "action": event.action},
        )
        return notifications

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_role(role, recipient=None, unread_only=False, limit=50, offset=0):
        """Notifications for a role (and, if given, one user), newest first."""
        q = Notification.query.filter_by(recipient_role=role)
        if recipient:
            q = q.filter((Notification.recipient == recipient) | (Notification.recipient.is_(None)))
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def mark_all_read(role, recipient=None):
        q = Notification.query.filter_by(recipient_role=role, is_read=False)
        if recipient:
            q = q.filter((Notification.recipient == recipient) | (Notification.recipient.is_(None)))
        count = q.update(
            {"is_read": True, "read_at": datetime.now(timezone.utc)},
            synchronize_session="fetch",
        )
        db.session.commit()
        return count
