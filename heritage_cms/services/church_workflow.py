"""
Church Workflow Service — boundary for every church profile write.

Each operation is one synchronous read-modify-write of one record:

    1. load the profile fresh from the database (never a cached copy)
    2. compare the caller's ``expected_version`` if one was given
    3. run the engine / overlay / editor operation (guards see fresh state)
    4. check the publication-state invariant
    5. emit the workflow event into the same transaction
    6. commit — the UPDATE carries ``WHERE version = :read_version``

Result convention (same as the rest of the services):
    (profile, None)  on success
    (None, err)      err is a WorkflowError; ``err.transient`` only for ConflictRetry

A concurrent write between steps 1 and 6 surfaces as SQLAlchemy's
StaleDataError and is returned as ConflictRetry.  Nothing retries
internally; the caller reloads and decides.

Usage:
    from heritage_cms.services import church_workflow
    from heritage_cms.services.workflow_engine import Actor

    profile, err = church_workflow.approve(profile_id, Actor("u-7", "chancery_office"))
    if err:
        return workflow_error_response(err)
"""

import logging

from sqlalchemy.orm.exc import StaleDataError

from heritage_cms.core.exceptions import (
    ConflictRetry,
    InvariantViolation,
    NotFound,
    WorkflowError,
)
from heritage_cms.models import db
from heritage_cms.models.church import ChurchProfile
from heritage_cms.services import pending_changes, profile_editor, workflow_engine
from heritage_cms.services.notification import NotificationService
from heritage_cms.services.workflow_engine import Actor

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────────


def load_profile(profile_id) -> ChurchProfile | None:
    """Read the profile from the database, overwriting any identity-map copy."""
    if not profile_id:
        return None
    return db.session.get(ChurchProfile, str(profile_id), populate_existing=True)


def _log_rejected(action, profile_id, actor: Actor, err: WorkflowError):
    logger.warning(
        "Church workflow '%s' rejected for %s: %s",
        action, profile_id, err.message,
        extra={
            "profile_id": profile_id,
            "action": action,
            "actor_role": actor.role,
            "error_kind": err.kind,
        },
    )


def _execute(action: str, profile_id, actor: Actor, operation, *, expected_version=None):
    """Run *operation(profile) -> WorkflowEvent | None* inside one transaction."""
    try:
        profile = load_profile(profile_id)
        if profile is None:
            raise NotFound(action, profile_id)
        if expected_version is not None and expected_version != profile.version:
            raise ConflictRetry(action, profile.id, expected_version, profile.version)

        from_status = profile.status
        event = operation(profile)
        profile.publication_state()
        if event is not None:
            NotificationService.emit(event, profile)
        db.session.commit()
    except WorkflowError as err:
        db.session.rollback()
        _log_rejected(action, profile_id, actor, err)
        return None, err
    except StaleDataError:
        db.session.rollback()
        err = ConflictRetry(action, profile_id, expected_version)
        _log_rejected(action, profile_id, actor, err)
        return None, err
    except InvariantViolation:
        db.session.rollback()
        logger.exception("Invariant violated during '%s' on church %s", action, profile_id)
        raise

    logger.info(
        "Church workflow '%s' on %s by %s (%s → %s)",
        action, profile.id, actor.id, from_status, profile.status,
        extra={
            "profile_id": profile.id,
            "action": action,
            "actor_role": actor.role,
            "from_status": from_status,
            "to_status": profile.status,
        },
    )
    return profile, None


def _transition(action):
    def run(profile_id, actor: Actor, notes=None, *, expected_version=None):
        return _execute(
            action, profile_id, actor,
            lambda p: workflow_engine.apply_transition(p, action, actor, notes=notes),
            expected_version=expected_version,
        )
    run.__name__ = action
    run.__doc__ = f"Apply the '{action}' status transition."
    return run


# ═════════════════════════════════════════════════════════════════════════════
# Status transitions
# ═════════════════════════════════════════════════════════════════════════════

submit_for_review = _transition("submit_for_review")
approve = _transition("approve")
forward_to_museum = _transition("forward_to_museum")
museum_approve = _transition("museum_approve")


def request_revisions(profile_id, actor: Actor, notes, *, expected_version=None):
    """Return the profile to the parish; *notes* explain what to fix."""
    return _execute(
        "request_revisions", profile_id, actor,
        lambda p: workflow_engine.apply_transition(p, "request_revisions", actor, notes=notes),
        expected_version=expected_version,
    )


def unpublish(profile_id, actor: Actor, reason=None, *, expected_version=None):
    """Take an approved profile off the public listing (any staged overlay is dropped)."""
    return _execute(
        "unpublish", profile_id, actor,
        lambda p: workflow_engine.apply_transition(p, "unpublish", actor, notes=reason),
        expected_version=expected_version,
    )


def request_heritage_reevaluation(profile_id, actor: Actor, notes, *, expected_version=None):
    return _execute(
        "request_heritage_reevaluation", profile_id, actor,
        lambda p: workflow_engine.apply_transition(p, "request_heritage_reevaluation", actor, notes=notes),
        expected_version=expected_version,
    )


def transition(profile_id, action, actor: Actor, notes=None, *, expected_version=None):
    """Dispatch any table action by name (used by the generic transition endpoint)."""
    return _execute(
        action, profile_id, actor,
        lambda p: workflow_engine.apply_transition(p, action, actor, notes=notes),
        expected_version=expected_version,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Pending-changes overlay
# ═════════════════════════════════════════════════════════════════════════════

def stage_pending_edit(profile_id, actor: Actor, fields, notes=None, *, expected_version=None):
    return _execute(
        "stage_edit", profile_id, actor,
        lambda p: pending_changes.stage_edit(p, fields, actor, notes=notes),
        expected_version=expected_version,
    )


def approve_pending_changes(profile_id, actor: Actor, reviewed_fields=None, notes=None, *, expected_version=None):
    return _execute(
        "approve_pending_changes", profile_id, actor,
        lambda p: pending_changes.approve_pending_changes(p, actor, reviewed_fields, notes=notes),
        expected_version=expected_version,
    )


def forward_pending_changes_to_museum(profile_id, actor: Actor, notes=None, *, expected_version=None):
    return _execute(
        "forward_pending_changes_to_museum", profile_id, actor,
        lambda p: pending_changes.forward_pending_changes_to_museum(p, actor, notes=notes),
        expected_version=expected_version,
    )


def museum_approve_pending_changes(profile_id, actor: Actor, reviewed_fields=None, notes=None, *,
                                   expected_version=None):
    return _execute(
        "museum_approve_pending_changes", profile_id, actor,
        lambda p: pending_changes.museum_approve_pending_changes(p, actor, reviewed_fields, notes=notes),
        expected_version=expected_version,
    )


def discard_pending_changes(profile_id, actor: Actor, notes=None, *, expected_version=None):
    return _execute(
        "discard_pending_changes", profile_id, actor,
        lambda p: pending_changes.discard_pending_changes(p, actor, notes=notes),
        expected_version=expected_version,
    )


def apply_operational_edit(profile_id, actor: Actor, fields, *, expected_version=None):
    """Publish mass schedules, contact info and other parish details immediately."""
    return _execute(
        "apply_operational_edit", profile_id, actor,
        lambda p: pending_changes.apply_operational_edit(p, fields, actor),
        expected_version=expected_version,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Authoring
# ═════════════════════════════════════════════════════════════════════════════

def create_profile(raw, actor: Actor):
    """Create a draft profile.  Returns (profile, None) or (None, err)."""
    try:
        profile = profile_editor.create_profile(raw, actor)
        db.session.add(profile)
        db.session.commit()
    except WorkflowError as err:
        db.session.rollback()
        _log_rejected("create_profile", None, actor, err)
        return None, err

    logger.info(
        "Church profile %s created by %s",
        profile.id, actor.id,
        extra={"profile_id": profile.id, "action": "create_profile", "actor_role": actor.role},
    )
    return profile, None


def update_profile_fields(profile_id, actor: Actor, fields, *, expected_version=None):
    """Edit a draft or revisions-stage profile in place (no review needed yet)."""
    def run(profile):
        profile_editor.update_draft_fields(profile, fields, actor)
        return None

    return _execute("update_profile_fields", profile_id, actor, run, expected_version=expected_version)


def reclassify_heritage(profile_id, actor: Actor, classification, notes=None, *, expected_version=None):
    return _execute(
        "reclassify_heritage", profile_id, actor,
        lambda p: profile_editor.reclassify_heritage(p, classification, actor, notes=notes),
        expected_version=expected_version,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════

def get_profile(profile_id):
    """Fetch a profile for the dashboard (live values plus any overlay)."""
    profile = load_profile(profile_id)
    if profile is None:
        return None, NotFound("get_profile", profile_id)
    return profile, None
