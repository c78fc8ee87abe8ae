"""
Heritage Church CMS
Review history model.

Models:
    - ReviewHistoryEntry: immutable, append-only audit trail of every
      workflow operation performed on a church profile.

Business rules:
    - Rows are never updated or deleted; the ORM refuses both.
    - ``entry_type`` separates status transitions from overlay events
      (a content merge is recorded as approved → approved).
"""

from datetime import datetime, timezone

from sqlalchemy import event as _sa_event

from heritage_cms.core.exceptions import InvariantViolation
from heritage_cms.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ENTRY_STATUS_TRANSITION = "status_transition"
ENTRY_CONTENT_STAGED = "content_staged"
ENTRY_CONTENT_MERGE = "content_merge"
ENTRY_CONTENT_DISCARD = "content_discard"
ENTRY_OVERLAY_FORWARD = "overlay_forward"
ENTRY_OPERATIONAL_UPDATE = "operational_update"
ENTRY_RECLASSIFICATION = "reclassification"

ENTRY_TYPES = frozenset({
    ENTRY_STATUS_TRANSITION,
    ENTRY_CONTENT_STAGED,
    ENTRY_CONTENT_MERGE,
    ENTRY_CONTENT_DISCARD,
    ENTRY_OVERLAY_FORWARD,
    ENTRY_OPERATIONAL_UPDATE,
    ENTRY_RECLASSIFICATION,
})


class ReviewHistoryEntry(db.Model):
    """
    One row per workflow operation on a church profile.

    ``actor_role`` is snapshotted at write time so the trail stays readable
    even if the account is later reassigned.
    """

    __tablename__ = "church_review_history"
    __table_args__ = (
        db.Index("ix_review_history_profile", "profile_id", "id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    profile_id = db.Column(
        db.String(36),
        db.ForeignKey("church_profiles.id"),
        nullable=False,
    )

    entry_type = db.Column(
        db.String(30), nullable=False, default=ENTRY_STATUS_TRANSITION,
        comment="status_transition | content_merge | content_discard | ...",
    )
    action = db.Column(db.String(60), nullable=False)
    from_status = db.Column(db.String(20), nullable=False)
    to_status = db.Column(db.String(20), nullable=False)

    actor = db.Column(db.String(64), nullable=False)
    actor_role = db.Column(db.String(30), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    changed_fields = db.Column(db.JSON, nullable=True)

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    profile = db.relationship("ChurchProfile", back_populates="review_history")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entryType": self.entry_type,
            "action": self.action,
            "fromStatus": self.from_status,
            "toStatus": self.to_status,
            "actor": self.actor,
            "actorRole": self.actor_role,
            "notes": self.notes,
            "changedFields": self.changed_fields,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return (
            f"<ReviewHistoryEntry #{self.id} {self.profile_id} "
            f"{self.action}: {self.from_status}→{self.to_status}>"
        )


@_sa_event.listens_for(ReviewHistoryEntry, "before_update")
def _refuse_update(mapper, connection, target):
    raise InvariantViolation(f"Review history entry {target.id} is append-only")


@_sa_event.listens_for(ReviewHistoryEntry, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise InvariantViolation(f"Review history entry {target.id} cannot be deleted")
