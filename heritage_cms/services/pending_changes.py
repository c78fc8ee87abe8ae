"""
Pending-Changes Overlay

Edits to an already-published (approved) church profile never touch the
live record directly.  They are staged as a shadow change-set on the
profile (``pending_changes``) while the public keeps seeing the live
values, then merged field-by-field or discarded by a reviewer.

Operations:
    stage_edit                       parish    approved → approved (overlay replaced)
    approve_pending_changes          chancery  merge, overlay cleared
    forward_pending_changes_to_museum chancery heritage only, status stays approved
    museum_approve_pending_changes   museum    merge, only once forwarded
    discard_pending_changes          chancery/museum, overlay cleared
    apply_operational_edit           parish    operational fields only, published immediately

Like the workflow engine, these mutate the ORM object in memory and return
a WorkflowEvent; persistence is the boundary service's job.
"""

from datetime import datetime, timezone

from heritage_cms.core.exceptions import (
    GuardFailed,
    InvalidTransition,
    NothingChanged,
    PermissionDenied,
)
from heritage_cms.models.church import (
    HERITAGE_CLASSES,
    PUBLISHED_STATUS,
    ROLE_CHANCERY,
    ROLE_MUSEUM,
    ROLE_PARISH,
    ChurchProfile,
    PendingOverlay,
)
from heritage_cms.models.review import (
    ENTRY_CONTENT_DISCARD,
    ENTRY_CONTENT_MERGE,
    ENTRY_CONTENT_STAGED,
    ENTRY_OPERATIONAL_UPDATE,
    ENTRY_OVERLAY_FORWARD,
)
from heritage_cms.services.normalizer import CONTENT_KEYS, content_fields, normalize, parse_classification
from heritage_cms.services.workflow_engine import Actor, WorkflowEvent, append_history

CLASSIFICATION_KEY = "heritageClassification"

# Authoring-side names accepted on input, stored under the read-side key.
FIELD_ALIASES = {
    "photos": "images",
    "virtualTour360": "virtualTour",
    "currentParishPriest": "assignedPriest",
    "churchName": "name",
    "foundedYear": "foundingYear",
    "classification": CLASSIFICATION_KEY,
}

# Parish-maintained details that go live without review.
OPERATIONAL_FIELDS = frozenset({
    "massSchedules",
    "contactInfo",
    "assignedPriest",
    "feastDay",
    "images",
    "documents",
    "virtualTour",
    "tags",
    "category",
})

REVIEWABLE_FIELDS = frozenset(CONTENT_KEYS) | {CLASSIFICATION_KEY}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def values_equal(a, b) -> bool:
    """Field equality where None, "", [] and {} are all the same 'empty'."""
    if _blank(a) and _blank(b):
        return True
    if isinstance(a, str) and isinstance(b, str):
        return a.strip() == b.strip()
    return a == b


def resolve_aliases(proposed: dict) -> dict:
    return {FIELD_ALIASES.get(key, key): value for key, value in proposed.items()}


def canonical_changes(profile: ChurchProfile, proposed: dict, action: str, allowed=REVIEWABLE_FIELDS) -> dict:
    """
    Normalize proposed values and keep only those that differ from the live record.

    Raises:
        GuardFailed: a key outside *allowed*, or an unrecognised classification.
    """
    if not isinstance(proposed, dict) or not proposed:
        raise GuardFailed(action, "No fields were submitted")

    resolved = resolve_aliases(proposed)
    rejected = sorted(k for k in resolved if k not in allowed)
    if rejected:
        raise GuardFailed(
            action,
            f"Fields cannot be changed through '{action}': {', '.join(rejected)}",
            {"rejected_fields": rejected},
        )

    live = dict(profile.fields or {})
    changes = {}

    if CLASSIFICATION_KEY in resolved:
        classification = parse_classification(resolved.pop(CLASSIFICATION_KEY))
        if classification is None:
            raise GuardFailed(action, "heritageClassification must be a classification label")
        if classification != profile.heritage_classification:
            changes[CLASSIFICATION_KEY] = classification

    if resolved:
        merged = dict(live)
        merged.update(resolved)
        coerced = content_fields(normalize(merged))
        for key in resolved:
            if not values_equal(coerced.get(key), live.get(key)):
                changes[key] = coerced.get(key)

    return changes


def _require_overlay(profile: ChurchProfile, action: str) -> PendingOverlay:
    if profile.status != PUBLISHED_STATUS:
        raise InvalidTransition(action, profile.status, "pending changes only exist on published profiles")
    overlay = profile.overlay
    if overlay is None:
        raise InvalidTransition(action, profile.status, "no pending changes are staged")
    return overlay


def _require_role(action: str, actor: Actor, *roles) -> None:
    if actor.role not in roles:
        raise PermissionDenied(action, actor.role, roles)


def _event(profile, kind, action, actor, now, notes=None, changed_fields=()) -> WorkflowEvent:
    return WorkflowEvent(
        profile_id=profile.id,
        kind=kind,
        action=action,
        from_status=profile.status,
        to_status=profile.status,
        actor_id=actor.id,
        actor_role=actor.role,
        timestamp=now,
        notes=(notes or "").strip() or None,
        changed_fields=tuple(changed_fields),
    )


# ═════════════════════════════════════════════════════════════════════════════
# Staging
# ═════════════════════════════════════════════════════════════════════════════

def stage_edit(profile: ChurchProfile, proposed: dict, actor: Actor, *, notes=None, now=None) -> WorkflowEvent:
    """
    Stage an edit against a published profile, replacing any existing overlay.

    Raises:
        InvalidTransition: profile is not approved.
        PermissionDenied: actor is not the parish secretary.
        GuardFailed: protected or unknown fields submitted.
        NothingChanged: every proposed value equals the live value.
    """
    action = "stage_edit"
    if profile.status != PUBLISHED_STATUS:
        raise InvalidTransition(action, profile.status, "edit the draft directly until the profile is published")
    _require_role(action, actor, ROLE_PARISH)

    changes = canonical_changes(profile, proposed, action)
    if not changes:
        raise NothingChanged(action)

    now = now or _now()
    changed = tuple(sorted(changes))
    profile.set_overlay(PendingOverlay(
        changed_fields=changed,
        proposed_values=changes,
        submitted_at=now.isoformat(),
        submitted_by=actor.id,
        review_notes=(notes or "").strip() or None,
    ))
    append_history(
        profile,
        entry_type=ENTRY_CONTENT_STAGED,
        action=action,
        from_status=profile.status,
        to_status=profile.status,
        actor=actor,
        timestamp=now,
        notes=notes,
        changed_fields=changed,
    )
    return _event(profile, ENTRY_CONTENT_STAGED, action, actor, now, notes, changed)


# ═════════════════════════════════════════════════════════════════════════════
# Review
# ═════════════════════════════════════════════════════════════════════════════

def _merge(profile: ChurchProfile, overlay: PendingOverlay, review_edits, action, actor, now, notes):
    review_edits = resolve_aliases(review_edits or {})
    outside = sorted(k for k in review_edits if k not in overlay.changed_fields)
    if outside:
        raise GuardFailed(
            action,
            f"Reviewer edits are only allowed on changed fields; not changed: {', '.join(outside)}",
            {"rejected_fields": outside, "changed_fields": list(overlay.changed_fields)},
        )

    values = dict(overlay.proposed_values)
    if review_edits:
        if CLASSIFICATION_KEY in review_edits:
            classification = parse_classification(review_edits[CLASSIFICATION_KEY])
            if classification is None:
                raise GuardFailed(action, "heritageClassification must be a classification label")
            review_edits[CLASSIFICATION_KEY] = classification
        merged = dict(profile.fields or {})
        merged.update({k: v for k, v in review_edits.items() if k != CLASSIFICATION_KEY})
        coerced = content_fields(normalize(merged))
        for key in review_edits:
            values[key] = review_edits[key] if key == CLASSIFICATION_KEY else coerced.get(key)

    fields = dict(profile.fields or {})
    for key in overlay.changed_fields:
        if key == CLASSIFICATION_KEY:
            previous = profile.heritage_classification
            profile.heritage_classification = values[key]
            became_heritage = previous not in HERITAGE_CLASSES and values[key] in HERITAGE_CLASSES
            if values[key] not in HERITAGE_CLASSES:
                profile.requires_heritage_review = False
            elif became_heritage and actor.role != ROLE_MUSEUM:
                profile.requires_heritage_review = True
        else:
            fields[key] = values.get(key)
    profile.fields = fields

    profile.set_overlay(None)
    profile.last_reviewed_by = actor.id
    profile.last_review_note = (notes or "").strip() or None
    append_history(
        profile,
        entry_type=ENTRY_CONTENT_MERGE,
        action=action,
        from_status=profile.status,
        to_status=profile.status,
        actor=actor,
        timestamp=now,
        notes=notes,
        changed_fields=overlay.changed_fields,
    )
    return _event(profile, ENTRY_CONTENT_MERGE, action, actor, now, notes, overlay.changed_fields)


def approve_pending_changes(profile: ChurchProfile, actor: Actor, review_edits=None, *, notes=None, now=None):
    """Merge the overlay into the live record (chancery, non-forwarded overlays)."""
    action = "approve_pending_changes"
    overlay = _require_overlay(profile, action)
    _require_role(action, actor, ROLE_CHANCERY)
    if overlay.forwarded_to_museum:
        raise GuardFailed(action, "These changes were forwarded to the museum researcher for review")
    return _merge(profile, overlay, review_edits, action, actor, now or _now(), notes)


def museum_approve_pending_changes(profile: ChurchProfile, actor: Actor, review_edits=None, *, notes=None, now=None):
    """Merge a forwarded overlay into the live record (museum researcher)."""
    action = "museum_approve_pending_changes"
    overlay = _require_overlay(profile, action)
    _require_role(action, actor, ROLE_MUSEUM)
    if not overlay.forwarded_to_museum:
        raise GuardFailed(action, "These changes have not been forwarded to the museum researcher")
    return _merge(profile, overlay, review_edits, action, actor, now or _now(), notes)


def forward_pending_changes_to_museum(profile: ChurchProfile, actor: Actor, *, notes=None, now=None):
    """
    Route a heritage church's overlay to the museum researcher.

    Status stays approved; the chancery pending-update queue stops showing it.
    """
    action = "forward_pending_changes_to_museum"
    overlay = _require_overlay(profile, action)
    _require_role(action, actor, ROLE_CHANCERY)
    if overlay.forwarded_to_museum:
        raise InvalidTransition(action, profile.status, "pending changes were already forwarded")
    if not profile.is_heritage:
        raise GuardFailed(action, "Only heritage-classified churches can be routed to the museum researcher")

    now = now or _now()
    profile.set_overlay(PendingOverlay(
        changed_fields=overlay.changed_fields,
        proposed_values=overlay.proposed_values,
        submitted_at=overlay.submitted_at,
        submitted_by=overlay.submitted_by,
        forwarded_to_museum=True,
        review_notes=(notes or "").strip() or overlay.review_notes,
        forwarded_at=now.isoformat(),
        forwarded_by=actor.id,
    ))
    append_history(
        profile,
        entry_type=ENTRY_OVERLAY_FORWARD,
        action=action,
        from_status=profile.status,
        to_status=profile.status,
        actor=actor,
        timestamp=now,
        notes=notes,
        changed_fields=overlay.changed_fields,
    )
    return _event(profile, ENTRY_OVERLAY_FORWARD, action, actor, now, notes, overlay.changed_fields)


def discard_pending_changes(profile: ChurchProfile, actor: Actor, *, notes=None, now=None):
    """Drop the overlay without merging (chancery, or museum once forwarded)."""
    action = "discard_pending_changes"
    overlay = _require_overlay(profile, action)
    _require_role(action, actor, ROLE_CHANCERY, ROLE_MUSEUM)
    if actor.role == ROLE_MUSEUM and not overlay.forwarded_to_museum:
        raise GuardFailed(action, "The museum researcher can only discard changes forwarded to them")

    now = now or _now()
    profile.set_overlay(None)
    profile.last_reviewed_by = actor.id
    profile.last_review_note = (notes or "").strip() or None
    append_history(
        profile,
        entry_type=ENTRY_CONTENT_DISCARD,
        action=action,
        from_status=profile.status,
        to_status=profile.status,
        actor=actor,
        timestamp=now,
        notes=notes,
        changed_fields=overlay.changed_fields,
    )
    return _event(profile, ENTRY_CONTENT_DISCARD, action, actor, now, notes, overlay.changed_fields)


# ═════════════════════════════════════════════════════════════════════════════
# Operational fields
# ═════════════════════════════════════════════════════════════════════════════

def apply_operational_edit(profile: ChurchProfile, proposed: dict, actor: Actor, *, now=None):
    """
    Publish parish-maintained details (mass schedules, contact info, ...) immediately.

    Any sensitive field in *proposed* rejects the whole edit; those go
    through ``stage_edit``.
    """
    action = "apply_operational_edit"
    if profile.status != PUBLISHED_STATUS:
        raise InvalidTransition(action, profile.status, "edit the draft directly until the profile is published")
    _require_role(action, actor, ROLE_PARISH)

    changes = canonical_changes(profile, proposed, action, allowed=OPERATIONAL_FIELDS)
    if not changes:
        raise NothingChanged(action)

    now = now or _now()
    fields = dict(profile.fields or {})
    fields.update(changes)
    profile.fields = fields

    changed = tuple(sorted(changes))
    append_history(
        profile,
        entry_type=ENTRY_OPERATIONAL_UPDATE,
        action=action,
        from_status=profile.status,
        to_status=profile.status,
        actor=actor,
        timestamp=now,
        changed_fields=changed,
    )
    return _event(profile, ENTRY_OPERATIONAL_UPDATE, action, actor, now, changed_fields=changed)
