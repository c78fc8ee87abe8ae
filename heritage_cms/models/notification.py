"""
Heritage Church CMS
Notification domain model.

Models:
    - Notification: in-app alert created from a workflow event, addressed to
      an actor role (and optionally a specific user), with read tracking.
"""

from datetime import datetime, timezone

from heritage_cms.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_SEVERITIES = {"info", "warning", "success"}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient role per workflow event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient_role = db.Column(db.String(30), nullable=False, index=True)
    recipient = db.Column(db.String(64), nullable=True, index=True, comment="User id, or NULL for the whole role")

    profile_id = db.Column(db.String(36), nullable=False, index=True)
    kind = db.Column(db.String(40), nullable=False, comment="status_transition | pending_changes_staged | ...")
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    severity = db.Column(db.String(20), default="info")
    payload = db.Column(db.JSON, nullable=False, default=dict)

    # Read tracking
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def is_addressed_to(self, role, actor_id):
        """True when *role* owns this notification and it is not pinned to another user."""
        return self.recipient_role == role and self.recipient in (None, actor_id)

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_role": self.recipient_role,
            "recipient": self.recipient,
            "profile_id": self.profile_id,
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "payload": self.payload,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
