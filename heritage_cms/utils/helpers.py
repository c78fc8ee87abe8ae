"""Shared utility functions for the API blueprints.

get_or_404:          tuple-return lookup (NOT abort)
actor_from_request:  who is calling, from the JSON body or query string
db_commit_or_error:  commit with rollback + logging on failure
"""
import logging

from flask import request
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from heritage_cms.models import db
from heritage_cms.models.church import ACTOR_ROLES
from heritage_cms.services.workflow_engine import Actor
from heritage_cms.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or return a 404 error tuple.

    - Success: (obj, None)
    - Failure: (None, (response, 404))

        obj, err = get_or_404(Notification, nid)
        if err:
            return err
    """
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if not obj:
        return None, api_error(E.NOT_FOUND, f"{label} not found")
    return obj, None


def actor_from_request(data=None):
    """Build the calling Actor from ``actor_id`` / ``actor_role`` / ``actor_name``.

    Mutating requests carry them in the JSON body; GET requests in the
    query string.

    Returns:
        (Actor, None) or (None, error_response)
    """
    source = data if data is not None else request.args
    actor_id = str(source.get("actor_id") or "").strip()
    role = str(source.get("actor_role") or "").strip()
    if not actor_id or not role:
        return None, api_error(E.VALIDATION_REQUIRED, "actor_id and actor_role are required")
    if role not in ACTOR_ROLES:
        return None, api_error(
            E.VALIDATION_INVALID,
            f"Unknown actor_role '{role}'",
            details={"allowed": sorted(ACTOR_ROLES)},
        )
    name = source.get("actor_name")
    return Actor(id=actor_id, role=role, name=str(name) if name else None), None


def json_body():
    """Request JSON object, or (None, 400 response) when it is missing or not an object."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    return data, None


def parse_expected_version(data):
    """Optional ``expected_version`` from a request body.

    Returns:
        (int | None, None) or (None, error_response)
    """
    value = data.get("expected_version")
    if value is None:
        return None, None
    if isinstance(value, bool):
        return None, api_error(E.VALIDATION_INVALID, "expected_version must be an integer")
    try:
        return int(value), None
    except (TypeError, ValueError):
        return None, api_error(E.VALIDATION_INVALID, "expected_version must be an integer")


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure — ready for ``return``.

    IntegrityError → 409
    OperationalError → 500
    Other SQLAlchemyError → 500
    """
    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_STATE, "Duplicate or constraint violation")
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return api_error(E.DATABASE, "Database error")
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return api_error(E.DATABASE, "Database error")
