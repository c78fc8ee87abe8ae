"""
Church Profile Review Workflow Engine

Validates and applies church profile status transitions with:
  - One explicit transition table keyed by (from_status, action)
  - Role checks (parish_secretary / chancery_office / museum_researcher)
  - Guards evaluated against the state at the moment of transition, never
    at submission time (reclassifying a pending church as heritage
    invalidates an in-flight approve)
  - Append-only review history + workflow event payload per transition

Transition table:
  draft           submit_for_review              parish    → pending
  pending         approve                        chancery  → approved        (non-heritage only)
  pending         forward_to_museum              chancery  → heritage_review (heritage only)
  pending         request_revisions              chancery  → revisions
  heritage_review museum_approve                 museum    → approved
  heritage_review request_revisions              museum    → revisions
  revisions       submit_for_review              parish    → pending
  approved        unpublish                      chancery  → draft           (clears overlay)
  approved        request_heritage_reevaluation  chancery  → heritage_review (clears overlay)

The engine mutates the ORM object in memory only; persistence, optimistic
concurrency and event emission belong to ``services.church_workflow``.

Usage:
    from heritage_cms.services.workflow_engine import Actor, apply_transition

    event = apply_transition(profile, "approve", Actor("u-1", "chancery_office"))
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from flask import current_app, has_app_context

from heritage_cms.core.exceptions import GuardFailed, InvalidTransition, PermissionDenied
from heritage_cms.models.church import (
    ROLE_CHANCERY,
    ROLE_MUSEUM,
    ROLE_PARISH,
    ChurchProfile,
)
from heritage_cms.models.review import ENTRY_STATUS_TRANSITION, ReviewHistoryEntry

DEFAULT_COMPLETION_THRESHOLD = 80

# Required authoring-form sections, scored per section then averaged.
REQUIRED_SECTIONS = {
    "basic": ("name", "streetAddress", "barangay", "municipality"),
    "historical": ("foundingYear", "historicalBackground"),
    "parish": ("assignedPriest",),
}


@dataclass(frozen=True)
class Actor:
    """Who is performing a workflow operation."""

    id: str
    role: str
    name: str | None = None


@dataclass(frozen=True)
class WorkflowEvent:
    """Payload handed to notification emission after a successful operation."""

    profile_id: str
    kind: str
    action: str
    from_status: str
    to_status: str
    actor_id: str
    actor_role: str
    timestamp: datetime
    notes: str | None = None
    changed_fields: tuple = ()

    def to_payload(self) -> dict:
        return {
            "profileId": self.profile_id,
            "churchId": self.profile_id,
            "kind": self.kind,
            "action": self.action,
            "fromStatus": self.from_status,
            "toStatus": self.to_status,
            "actorId": self.actor_id,
            "actorRole": self.actor_role,
            "timestamp": self.timestamp.isoformat(),
            "notes": self.notes,
            "changedFields": list(self.changed_fields),
        }


@dataclass(frozen=True)
class Transition:
    action: str
    from_status: str
    to_status: str
    allowed_roles: frozenset
    description: str
    guard: Callable[[ChurchProfile], str | None] | None = None
    requires_notes: bool = False
    clears_overlay: bool = False
    extra: dict = field(default_factory=dict)


# ═════════════════════════════════════════════════════════════════════════════
# Guards — return None when satisfied, otherwise the failure reason
# ═════════════════════════════════════════════════════════════════════════════

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _is_filled(value) -> bool:
    if value is None:
        return False
    return bool(str(value).strip())


def completion_percentage(profile: ChurchProfile) -> int:
    """Overall completion of the required authoring fields (0–100)."""
    fields = profile.fields or {}
    scores = []
    for names in REQUIRED_SECTIONS.values():
        filled = sum(1 for name in names if _is_filled(fields.get(name)))
        scores.append(_round_half_up(filled / len(names) * 100))
    return _round_half_up(sum(scores) / len(scores))


def _completion_threshold() -> int:
    if has_app_context():
        return int(current_app.config.get("SUBMISSION_COMPLETION_THRESHOLD", DEFAULT_COMPLETION_THRESHOLD))
    return DEFAULT_COMPLETION_THRESHOLD


def _guard_ready_for_submission(profile: ChurchProfile) -> str | None:
    threshold = _completion_threshold()
    completion = completion_percentage(profile)
    if completion < threshold:
        return f"Profile is {completion}% complete; at least {threshold}% of required fields are needed"
    missing = []
    if not profile.consent_public_display:
        missing.append("consentPublicDisplay")
    if not profile.consent_data_accuracy:
        missing.append("consentDataAccuracy")
    if missing:
        return f"Consent not given: {', '.join(missing)}"
    return None


def _guard_not_heritage(profile: ChurchProfile) -> str | None:
    if profile.is_heritage:
        return (
            f"Church is classified as '{profile.heritage_classification}'; "
            "heritage churches must be forwarded to the museum researcher"
        )
    return None


def _guard_heritage(profile: ChurchProfile) -> str | None:
    if not profile.is_heritage:
        return "Only heritage-classified churches can be routed to the museum researcher"
    return None


# ═════════════════════════════════════════════════════════════════════════════
# Transition table
# ═════════════════════════════════════════════════════════════════════════════

def _t(action, from_status, to_status, roles, description, **kwargs):
    return (from_status, action), Transition(
        action=action,
        from_status=from_status,
        to_status=to_status,
        allowed_roles=frozenset(roles),
        description=description,
        **kwargs,
    )


CHURCH_TRANSITIONS: dict[tuple[str, str], Transition] = dict([
    _t("submit_for_review", "draft", "pending", {ROLE_PARISH},
       "Submit church profile for chancery review", guard=_guard_ready_for_submission),
    _t("approve", "pending", "approved", {ROLE_CHANCERY},
       "Approve and publish (non-heritage churches)", guard=_guard_not_heritage),
    _t("forward_to_museum", "pending", "heritage_review", {ROLE_CHANCERY},
       "Forward to museum researcher for heritage validation", guard=_guard_heritage),
    _t("request_revisions", "pending", "revisions", {ROLE_CHANCERY},
       "Return to parish for revisions", requires_notes=True),
    _t("museum_approve", "heritage_review", "approved", {ROLE_MUSEUM},
       "Approve after heritage validation"),
    _t("request_revisions", "heritage_review", "revisions", {ROLE_MUSEUM},
       "Return to parish for revisions", requires_notes=True),
    _t("submit_for_review", "revisions", "pending", {ROLE_PARISH},
       "Resubmit revised profile", guard=_guard_ready_for_submission),
    _t("unpublish", "approved", "draft", {ROLE_CHANCERY},
       "Remove from public listings", clears_overlay=True),
    _t("request_heritage_reevaluation", "approved", "heritage_review", {ROLE_CHANCERY},
       "Send published heritage church back for museum re-evaluation",
       guard=_guard_heritage, requires_notes=True, clears_overlay=True),
])

TRANSITION_ACTIONS = frozenset(action for _, action in CHURCH_TRANSITIONS)

STATUS_INFO = {
    "draft": {"label": "Draft", "description": "Being prepared by the parish"},
    "pending": {"label": "Pending Review", "description": "Awaiting Chancery Office review"},
    "heritage_review": {"label": "Heritage Review", "description": "Under review by Museum Researcher"},
    "revisions": {"label": "Revisions Requested", "description": "Returned to the parish for changes"},
    "approved": {"label": "Published", "description": "Church profile is live and public"},
}


def status_info(status: str) -> dict:
    """Label and description for a status (generic fallback for unknown values)."""
    return STATUS_INFO.get(status, {"label": status, "description": "Unknown status"})


def get_transition(status: str, action: str) -> Transition | None:
    return CHURCH_TRANSITIONS.get((status, action))


def validate_transition(profile: ChurchProfile, action: str, actor: Actor, notes: str | None = None) -> Transition:
    """
    Check an action against the profile's current state.

    Order: defined for status → role → required notes → guard.

    Raises:
        InvalidTransition, PermissionDenied, GuardFailed
    """
    if action not in TRANSITION_ACTIONS:
        raise InvalidTransition(action, profile.status, f"Unknown action: {action}")

    transition = get_transition(profile.status, action)
    if transition is None:
        raise InvalidTransition(action, profile.status)

    if actor.role not in transition.allowed_roles:
        raise PermissionDenied(action, actor.role, transition.allowed_roles)

    if transition.requires_notes and not (notes or "").strip():
        raise GuardFailed(action, f"A note is required to '{action}'")

    if transition.guard is not None:
        reason = transition.guard(profile)
        if reason:
            raise GuardFailed(action, reason, {"status": profile.status})

    return transition


def append_history(
    profile: ChurchProfile,
    *,
    entry_type: str,
    action: str,
    from_status: str,
    to_status: str,
    actor: Actor,
    timestamp: datetime,
    notes: str | None = None,
    changed_fields=None,
) -> ReviewHistoryEntry:
    entry = ReviewHistoryEntry(
        entry_type=entry_type,
        action=action,
        from_status=from_status,
        to_status=to_status,
        actor=actor.id,
        actor_role=actor.role,
        notes=(notes or "").strip() or None,
        changed_fields=list(changed_fields) if changed_fields else None,
        timestamp=timestamp,
    )
    profile.review_history.append(entry)
    profile.updated_at = timestamp
    return entry


def apply_transition(
    profile: ChurchProfile,
    action: str,
    actor: Actor,
    *,
    notes: str | None = None,
    now: datetime | None = None,
) -> WorkflowEvent:
    """
    Validate and apply one status transition in memory.

    Nothing is touched unless every check passes.

    Returns:
        WorkflowEvent describing the transition.

    Raises:
        InvalidTransition, PermissionDenied, GuardFailed
    """
    transition = validate_transition(profile, action, actor, notes)

    now = now or datetime.now(timezone.utc)
    previous_status = profile.status
    profile.status = transition.to_status
    profile.last_status_change = now

    # Side effects
    if actor.role in (ROLE_CHANCERY, ROLE_MUSEUM):
        profile.last_reviewed_by = actor.id
        profile.last_review_note = (notes or "").strip() or None
    if transition.clears_overlay:
        profile.set_overlay(None)
    if action == "unpublish":
        profile.unpublish_reason = (notes or "").strip() or None
        profile.unpublished_at = now
        profile.unpublished_by = actor.id
    elif action in ("approve", "museum_approve"):
        profile.requires_heritage_review = False
        profile.unpublish_reason = None
        profile.unpublished_at = None
        profile.unpublished_by = None

    append_history(
        profile,
        entry_type=ENTRY_STATUS_TRANSITION,
        action=action,
        from_status=previous_status,
        to_status=profile.status,
        actor=actor,
        timestamp=now,
        notes=notes,
    )

    return WorkflowEvent(
        profile_id=profile.id,
        kind=ENTRY_STATUS_TRANSITION,
        action=action,
        from_status=previous_status,
        to_status=profile.status,
        actor_id=actor.id,
        actor_role=actor.role,
        timestamp=now,
        notes=(notes or "").strip() or None,
    )


def available_actions(profile: ChurchProfile, role: str) -> list[dict]:
    """Actions the role may invoke on the profile's current status."""
    actions = []
    for (from_status, action), transition in CHURCH_TRANSITIONS.items():
        if from_status != profile.status or role not in transition.allowed_roles:
            continue
        reason = transition.guard(profile) if transition.guard else None
        actions.append({
            "action": action,
            "toStatus": transition.to_status,
            "label": status_info(transition.to_status)["label"],
            "description": transition.description,
            "requiresNotes": transition.requires_notes,
            "guardPassed": reason is None,
            "guardReason": reason,
        })
    return actions
