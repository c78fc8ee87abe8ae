"""
Church profile authoring operations outside the review transitions.

    create_profile        parish secretary, always starts in draft
    update_draft_fields   parish secretary, only while draft / revisions
    reclassify_heritage   chancery office or museum researcher, any status

Classification is only ever changed here (or by merging a reviewed
overlay); the workflow engine reads it for branching and never writes it.
"""

import logging
from datetime import datetime, timezone

from heritage_cms.core.exceptions import (
    GuardFailed,
    InvalidTransition,
    NothingChanged,
    PermissionDenied,
)
from heritage_cms.models.church import (
    DIOCESES,
    HERITAGE_CLASSES,
    PUBLISHED_STATUS,
    ROLE_CHANCERY,
    ROLE_MUSEUM,
    ROLE_PARISH,
    ChurchProfile,
    PendingOverlay,
)
from heritage_cms.models.review import ENTRY_RECLASSIFICATION
from heritage_cms.services.normalizer import content_fields, normalize, parse_classification
from heritage_cms.services.pending_changes import CLASSIFICATION_KEY, REVIEWABLE_FIELDS, canonical_changes
from heritage_cms.services.workflow_engine import Actor, WorkflowEvent, append_history

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = ("draft", "revisions")
CONSENT_KEYS = {
    "consentPublicDisplay": "consent_public_display",
    "consentDataAccuracy": "consent_data_accuracy",
}


def create_profile(raw: dict, actor: Actor, *, now=None) -> ChurchProfile:
    """Build a new draft profile from a raw record of either shape."""
    if actor.role != ROLE_PARISH:
        raise PermissionDenied("create_profile", actor.role, (ROLE_PARISH,))
    if not isinstance(raw, dict):
        raise GuardFailed("create_profile", "Church data must be a JSON object")

    church = normalize(raw)
    if not church.name:
        raise GuardFailed("create_profile", "A church name is required")
    diocese = (church.diocese or "").lower() or None
    if diocese is not None and diocese not in DIOCESES:
        raise GuardFailed(
            "create_profile",
            f"Unknown diocese '{church.diocese}'",
            {"allowed": sorted(DIOCESES)},
        )

    now = now or datetime.now(timezone.utc)
    return ChurchProfile(
        diocese=diocese,
        parish_id=church.parish_id or actor.id,
        status="draft",
        heritage_classification=church.heritage_classification,
        fields=content_fields(church),
        consent_public_display=raw.get("consentPublicDisplay") is True,
        consent_data_accuracy=raw.get("consentDataAccuracy") is True,
        has_pending_changes=False,
        pending_forwarded_to_museum=False,
        requires_heritage_review=False,
        created_by=actor.id,
        created_at=now,
        updated_at=now,
    )


def update_draft_fields(profile: ChurchProfile, changes: dict, actor: Actor, *, now=None) -> list[str]:
    """
    Edit a profile that has not been published yet.

    Returns:
        Sorted list of the keys that actually changed.

    Raises:
        InvalidTransition: profile is pending, in heritage review or approved.
        PermissionDenied: actor is not the parish secretary.
        GuardFailed: unknown or protected fields.
        NothingChanged: no submitted value differs.
    """
    action = "update_profile_fields"
    if profile.status not in EDITABLE_STATUSES:
        reason = (
            "stage changes for review instead" if profile.status == PUBLISHED_STATUS
            else "the profile is under review"
        )
        raise InvalidTransition(action, profile.status, reason)
    if actor.role != ROLE_PARISH:
        raise PermissionDenied(action, actor.role, (ROLE_PARISH,))
    if not isinstance(changes, dict) or not changes:
        raise GuardFailed(action, "No fields were submitted")

    changes = dict(changes)
    consent = {}
    for key, attr in CONSENT_KEYS.items():
        if key in changes:
            value = changes.pop(key)
            if not isinstance(value, bool):
                raise GuardFailed(action, f"{key} must be true or false")
            if value != getattr(profile, attr):
                consent[attr] = value

    content = canonical_changes(profile, changes, action, allowed=REVIEWABLE_FIELDS) if changes else {}
    if not content and not consent:
        raise NothingChanged(action)

    for attr, value in consent.items():
        setattr(profile, attr, value)
    if CLASSIFICATION_KEY in content:
        profile.heritage_classification = content.pop(CLASSIFICATION_KEY)
        changed = [CLASSIFICATION_KEY]
    else:
        changed = []
    if content:
        fields = dict(profile.fields or {})
        fields.update(content)
        profile.fields = fields

    profile.updated_at = now or datetime.now(timezone.utc)
    changed.extend(content)
    changed.extend(k for k, attr in CONSENT_KEYS.items() if attr in consent)
    return sorted(changed)


def reclassify_heritage(profile: ChurchProfile, value, actor: Actor, *, notes=None, now=None) -> WorkflowEvent:
    """
    Explicitly change a church's heritage classification.

    Side effects:
      - approved, none → heritage: flags ``requires_heritage_review``
        (published without museum validation)
      - → none: clears that flag and pulls back a forwarded overlay
    """
    action = "reclassify_heritage"
    if actor.role not in (ROLE_CHANCERY, ROLE_MUSEUM):
        raise PermissionDenied(action, actor.role, (ROLE_CHANCERY, ROLE_MUSEUM))
    classification = parse_classification(value)
    if classification is None:
        raise GuardFailed(action, "heritageClassification must be a classification label")
    previous = profile.heritage_classification
    if classification == previous:
        raise NothingChanged(action)

    now = now or datetime.now(timezone.utc)
    profile.heritage_classification = classification

    if classification not in HERITAGE_CLASSES:
        profile.requires_heritage_review = False
        overlay = profile.overlay
        if overlay is not None and overlay.forwarded_to_museum:
            profile.set_overlay(PendingOverlay(
                changed_fields=overlay.changed_fields,
                proposed_values=overlay.proposed_values,
                submitted_at=overlay.submitted_at,
                submitted_by=overlay.submitted_by,
                review_notes=overlay.review_notes,
            ))
    elif profile.status == PUBLISHED_STATUS and previous not in HERITAGE_CLASSES:
        profile.requires_heritage_review = True
        logger.info(
            "Approved church reclassified as heritage — flagged for re-review",
            extra={"profile_id": profile.id, "classification": classification},
        )

    append_history(
        profile,
        entry_type=ENTRY_RECLASSIFICATION,
        action=action,
        from_status=profile.status,
        to_status=profile.status,
        actor=actor,
        timestamp=now,
        notes=notes or f"{previous} → {classification}",
        changed_fields=(CLASSIFICATION_KEY,),
    )
    return WorkflowEvent(
        profile_id=profile.id,
        kind=ENTRY_RECLASSIFICATION,
        action=action,
        from_status=profile.status,
        to_status=profile.status,
        actor_id=actor.id,
        actor_role=actor.role,
        timestamp=now,
        notes=(notes or "").strip() or None,
        changed_fields=(CLASSIFICATION_KEY,),
    )
