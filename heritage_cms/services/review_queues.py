"""
Review queues and the public feed.

Every queue is a plain filtered query over church_profiles; all of them can
be narrowed to one diocese.  The public feed only ever exposes live values
of approved profiles: a staged overlay never leaks to the public.
"""

from heritage_cms.core.exceptions import NotFound
from heritage_cms.models.church import PUBLISHED_STATUS, ChurchProfile
from heritage_cms.services.church_workflow import load_profile
from heritage_cms.services.normalizer import from_profile, to_document


def _base(diocese=None):
    q = ChurchProfile.query
    if diocese:
        q = q.filter(ChurchProfile.diocese == diocese.lower())
    return q


def chancery_review_queue(diocese=None):
    """New submissions awaiting the chancery office."""
    return (
        _base(diocese).filter(ChurchProfile.status == "pending")
        .order_by(ChurchProfile.last_status_change.asc(), ChurchProfile.created_at.asc())
        .all()
    )


def museum_review_queue(diocese=None):
    """Heritage churches awaiting museum validation."""
    return (
        _base(diocese).filter(ChurchProfile.status == "heritage_review")
        .order_by(ChurchProfile.last_status_change.asc(), ChurchProfile.created_at.asc())
        .all()
    )


def chancery_pending_updates(diocese=None):
    """Published profiles with staged edits the chancery still owns."""
    return (
        _base(diocese)
        .filter(
            ChurchProfile.status == PUBLISHED_STATUS,
            ChurchProfile.has_pending_changes.is_(True),
            ChurchProfile.pending_forwarded_to_museum.is_(False),
        )
        .order_by(ChurchProfile.updated_at.asc())
        .all()
    )


def museum_pending_updates(diocese=None):
    """Published heritage profiles whose staged edits were forwarded to the museum."""
    return (
        _base(diocese)
        .filter(
            ChurchProfile.status == PUBLISHED_STATUS,
            ChurchProfile.has_pending_changes.is_(True),
            ChurchProfile.pending_forwarded_to_museum.is_(True),
        )
        .order_by(ChurchProfile.updated_at.asc())
        .all()
    )


def heritage_rereview_queue(diocese=None):
    """Approved churches that became heritage after publication."""
    return (
        _base(diocese)
        .filter(
            ChurchProfile.status == PUBLISHED_STATUS,
            ChurchProfile.requires_heritage_review.is_(True),
        )
        .order_by(ChurchProfile.updated_at.asc())
        .all()
    )


def public_document(profile: ChurchProfile) -> dict:
    """Read-side document built from live values only."""
    return to_document(from_profile(profile))


def public_feed(diocese=None, heritage_only=False):
    q = _base(diocese).filter(ChurchProfile.status == PUBLISHED_STATUS)
    if heritage_only:
        q = q.filter(ChurchProfile.heritage_classification != "none")
    return [public_document(p) for p in q.order_by(ChurchProfile.created_at.asc()).all()]


def public_church(profile_id):
    """One published church for the public app.  Returns (doc, None) or (None, NotFound)."""
    profile = load_profile(profile_id)
    if profile is None or profile.status != PUBLISHED_STATUS:
        return None, NotFound("public_church", profile_id)
    return public_document(profile), None


QUEUES = {
    "chancery_review": chancery_review_queue,
    "museum_review": museum_review_queue,
    "chancery_pending_updates": chancery_pending_updates,
    "museum_pending_updates": museum_pending_updates,
    "heritage_rereview": heritage_rereview_queue,
}
