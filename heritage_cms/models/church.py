"""
Heritage Church CMS
Church profile domain model.

Models:
    - ChurchProfile: the church record under review, including the
      pending-changes overlay staged against an already-published profile.

Publication state:
    The persisted record carries ``status`` plus an optional overlay.  The
    combination is exposed as a tagged union via ``publication_state()``:

        Unpublished(profile)                       status != approved
        Published(profile)                         approved, no overlay
        PublishedWithPendingChange(profile, overlay)

    ``publication_state()`` raises InvariantViolation when the columns
    disagree (overlay present on an unpublished profile, flag without
    payload, forwarded overlay on a non-heritage church).
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from heritage_cms.core.exceptions import InvariantViolation
from heritage_cms.models import db

# ── Constants ────────────────────────────────────────────────────────────────

CHURCH_STATUSES = ("draft", "pending", "heritage_review", "revisions", "approved")
PUBLISHED_STATUS = "approved"

HERITAGE_CLASSIFICATIONS = (
    "none",
    "important_cultural_property",
    "national_cultural_treasure",
)
HERITAGE_CLASSES = frozenset({"important_cultural_property", "national_cultural_treasure"})

ROLE_PARISH = "parish_secretary"
ROLE_CHANCERY = "chancery_office"
ROLE_MUSEUM = "museum_researcher"
ACTOR_ROLES = frozenset({ROLE_PARISH, ROLE_CHANCERY, ROLE_MUSEUM})

DIOCESES = frozenset({"tagbilaran", "talibon"})


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# ═════════════════════════════════════════════════════════════════════════════
# Overlay value object + publication-state union
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PendingOverlay:
    """Staged-but-unmerged edit set of a published profile."""

    changed_fields: tuple
    proposed_values: dict
    submitted_at: str
    submitted_by: str
    forwarded_to_museum: bool = False
    review_notes: str | None = None
    forwarded_at: str | None = None
    forwarded_by: str | None = None

    @classmethod
    def from_json(cls, data: dict) -> "PendingOverlay":
        return cls(
            changed_fields=tuple(data.get("changedFields") or ()),
            proposed_values=dict(data.get("proposedValues") or {}),
            submitted_at=data.get("submittedAt"),
            submitted_by=data.get("submittedBy"),
            forwarded_to_museum=bool(data.get("forwardedToMuseum", False)),
            review_notes=data.get("reviewNotes"),
            forwarded_at=data.get("forwardedAt"),
            forwarded_by=data.get("forwardedBy"),
        )

    def to_json(self) -> dict:
        return {
            "changedFields": list(self.changed_fields),
            "proposedValues": dict(self.proposed_values),
            "submittedAt": self.submitted_at,
            "submittedBy": self.submitted_by,
            "forwardedToMuseum": self.forwarded_to_museum,
            "reviewNotes": self.review_notes,
            "forwardedAt": self.forwarded_at,
            "forwardedBy": self.forwarded_by,
        }


@dataclass(frozen=True)
class Unpublished:
    profile: "ChurchProfile"


@dataclass(frozen=True)
class Published:
    profile: "ChurchProfile"


@dataclass(frozen=True)
class PublishedWithPendingChange:
    profile: "ChurchProfile"
    overlay: PendingOverlay


# ═════════════════════════════════════════════════════════════════════════════
# ChurchProfile
# ═════════════════════════════════════════════════════════════════════════════

class ChurchProfile(db.Model):
    """
    Church record moving through the review workflow.

    Authored content lives in ``fields`` (read-side keys such as
    ``foundingYear`` or ``historicalBackground``); workflow state lives in
    dedicated columns so queues can filter on it.  ``version`` is the
    optimistic-concurrency counter: every UPDATE is issued as
    ``... WHERE version = :read_version`` and bumps it.
    """

    __tablename__ = "church_profiles"
    __table_args__ = (
        db.Index("ix_church_status_diocese", "status", "diocese"),
        db.Index("ix_church_pending_forwarded", "has_pending_changes", "pending_forwarded_to_museum"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    diocese = db.Column(db.String(40), nullable=True, index=True)
    parish_id = db.Column(db.String(64), nullable=True, index=True)

    status = db.Column(
        db.String(20), nullable=False, default="draft",
        comment="draft | pending | heritage_review | revisions | approved",
    )
    heritage_classification = db.Column(
        db.String(40), nullable=False, default="none",
        comment="none | important_cultural_property | national_cultural_treasure",
    )

    # Authored content (read-side shape)
    fields = db.Column(db.JSON, nullable=False, default=dict)

    # Submission consent
    consent_public_display = db.Column(db.Boolean, nullable=False, default=False)
    consent_data_accuracy = db.Column(db.Boolean, nullable=False, default=False)

    # Pending-changes overlay
    has_pending_changes = db.Column(db.Boolean, nullable=False, default=False)
    pending_changes = db.Column(db.JSON(none_as_null=True), nullable=True)
    pending_forwarded_to_museum = db.Column(
        db.Boolean, nullable=False, default=False,
        comment="Mirror of pending_changes.forwardedToMuseum for queue filtering",
    )

    requires_heritage_review = db.Column(
        db.Boolean, nullable=False, default=False,
        comment="Heritage classification added after approval — awaiting re-review",
    )

    # Review bookkeeping
    last_reviewed_by = db.Column(db.String(64), nullable=True)
    last_review_note = db.Column(db.Text, nullable=True)
    last_status_change = db.Column(db.DateTime(timezone=True), nullable=True)

    # Unpublish audit
    unpublish_reason = db.Column(db.Text, nullable=True)
    unpublished_at = db.Column(db.DateTime(timezone=True), nullable=True)
    unpublished_by = db.Column(db.String(64), nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    version = db.Column(db.Integer, nullable=False)

    review_history = db.relationship(
        "ReviewHistoryEntry",
        back_populates="profile",
        order_by="ReviewHistoryEntry.id",
        lazy="select",
    )

    __mapper_args__ = {"version_id_col": version}

    # ── Derived state ────────────────────────────────────────────────────

    @property
    def name(self):
        return (self.fields or {}).get("name")

    @property
    def is_heritage(self) -> bool:
        return self.heritage_classification in HERITAGE_CLASSES

    @property
    def is_published(self) -> bool:
        return self.status == PUBLISHED_STATUS

    @property
    def overlay(self) -> PendingOverlay | None:
        if self.pending_changes is None:
            return None
        return PendingOverlay.from_json(self.pending_changes)

    def set_overlay(self, overlay: PendingOverlay | None) -> None:
        """Write (or clear) the overlay, keeping the flag columns in step."""
        if overlay is None:
            self.pending_changes = None
            self.has_pending_changes = False
            self.pending_forwarded_to_museum = False
        else:
            self.pending_changes = overlay.to_json()
            self.has_pending_changes = True
            self.pending_forwarded_to_museum = overlay.forwarded_to_museum

    def publication_state(self):
        """Return the Unpublished / Published / PublishedWithPendingChange view."""
        if self.has_pending_changes != (self.pending_changes is not None):
            raise InvariantViolation(
                f"Church {self.id}: hasPendingChanges={self.has_pending_changes} "
                f"but pendingChanges is {'set' if self.pending_changes is not None else 'empty'}"
            )
        if not self.is_published:
            if self.has_pending_changes:
                raise InvariantViolation(
                    f"Church {self.id}: pending changes on unpublished status '{self.status}'"
                )
            return Unpublished(self)
        if not self.has_pending_changes:
            return Published(self)
        overlay = self.overlay
        if overlay.forwarded_to_museum and not self.is_heritage:
            raise InvariantViolation(
                f"Church {self.id}: overlay forwarded to museum on a non-heritage church"
            )
        return PublishedWithPendingChange(self, overlay)

    def to_dict(self, include_history: bool = True) -> dict:
        from heritage_cms.services.workflow_engine import completion_percentage

        data = {
            "id": self.id,
            "diocese": self.diocese,
            "parishId": self.parish_id,
            "status": self.status,
            "heritageClassification": self.heritage_classification,
            "isHeritage": self.is_heritage,
            "fields": dict(self.fields or {}),
            "completion": completion_percentage(self),
            "consentPublicDisplay": self.consent_public_display,
            "consentDataAccuracy": self.consent_data_accuracy,
            "hasPendingChanges": self.has_pending_changes,
            "pendingChanges": self.pending_changes,
            "requiresHeritageReview": self.requires_heritage_review,
            "lastReviewedBy": self.last_reviewed_by,
            "lastReviewNote": self.last_review_note,
            "lastStatusChange": _iso(self.last_status_change),
            "unpublishReason": self.unpublish_reason,
            "unpublishedAt": _iso(self.unpublished_at),
            "unpublishedBy": self.unpublished_by,
            "createdBy": self.created_by,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "version": self.version,
        }
        if include_history:
            data["reviewHistory"] = [e.to_dict() for e in self.review_history]
        return data

    def __repr__(self):
        return f"<ChurchProfile {self.id}: {self.name!r} [{self.status}]>"
