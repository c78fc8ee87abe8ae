"""Standardised API error responses.

Usage
-----
    from heritage_cms.utils.errors import api_error, workflow_error_response, E

    return api_error(E.NOT_FOUND, "Church profile not found")
    return api_error(E.VALIDATION_REQUIRED, "actor_role is required")

    profile, err = church_workflow.approve(profile_id, actor)
    if err:
        return workflow_error_response(err)
"""

from __future__ import annotations

from flask import jsonify

from heritage_cms.core.exceptions import WorkflowError


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for every application error
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    CONFLICT_RETRY = "ERR_CONFLICT_RETRY"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Workflow preconditions – HTTP 422
    GUARD_FAILED = "ERR_GUARD_FAILED"
    NOTHING_CHANGED = "ERR_NOTHING_CHANGED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.CONFLICT_RETRY: 409,
    E.FORBIDDEN: 403,
    E.GUARD_FAILED: 422,
    E.NOTHING_CHANGED: 422,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}

# WorkflowError.kind → (code, user-facing message or None to use the error's own)
_WORKFLOW_CODES: dict[str, tuple[str, str | None]] = {
    "not_found": (E.NOT_FOUND, None),
    "permission_denied": (E.FORBIDDEN, None),
    "conflict_retry": (E.CONFLICT_RETRY, "This church was just changed by someone else — please reload"),
    "invalid_transition": (E.CONFLICT_STATE, None),
    "guard_failed": (E.GUARD_FAILED, None),
    "nothing_changed": (E.NOTHING_CHANGED, None),
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for the dashboard / public app.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (current status, rejected fields, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "message": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def workflow_error_response(err: WorkflowError):
    """Translate a WorkflowError from a service result into the API error response."""
    code, message = _WORKFLOW_CODES.get(err.kind, (E.INTERNAL, None))
    details = dict(err.details)
    details["kind"] = err.kind
    details["action"] = err.action
    details["transient"] = err.transient
    return api_error(code, message or err.message, details=details)
