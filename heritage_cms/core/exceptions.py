"""
Workflow exception hierarchy.

Every rejected workflow operation is one of six kinds.  The engine and the
overlay raise them; the boundary service (``services.church_workflow``)
catches ``WorkflowError`` and hands it back to the caller as the error half
of a ``(profile, error)`` result tuple.  Blueprints translate the kind into
an HTTP status once, in ``utils.errors.workflow_error_response``.

Only ``ConflictRetry`` is transient: the caller reloads the record and may
re-issue the request.  All other kinds mean the request itself was invalid.

Usage:
    from heritage_cms.core.exceptions import GuardFailed

    raise GuardFailed("approve", "Heritage churches must be forwarded to the museum")
"""


class WorkflowError(Exception):
    """Base class for rejected workflow operations.

    Args:
        action: The operation that was attempted (e.g. "approve", "stage_edit").
        message: Human-readable explanation for logs and API responses.
        details: Optional structured context (current status, role, fields...).
    """

    kind = "workflow_error"
    transient = False

    def __init__(self, action: str, message: str, details: dict | None = None) -> None:
        self.action = action
        self.details = details or {}
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "action": self.action,
            "message": self.message,
            "details": self.details,
        }


class InvalidTransition(WorkflowError):
    """The action is not defined for the profile's current status."""

    kind = "invalid_transition"

    def __init__(self, action: str, current_status: str, reason: str | None = None) -> None:
        msg = f"Cannot '{action}' a church profile in status '{current_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(action, msg, {"status": current_status})
        self.current_status = current_status


class PermissionDenied(WorkflowError):
    """The actor's role may not perform the action."""

    kind = "permission_denied"

    def __init__(self, action: str, role: str, allowed_roles=()) -> None:
        super().__init__(
            action,
            f"Role '{role}' is not permitted to '{action}'",
            {"role": role, "allowed_roles": sorted(allowed_roles)},
        )
        self.role = role


class GuardFailed(WorkflowError):
    """The action is defined for the state but a precondition is not met."""

    kind = "guard_failed"


class NothingChanged(WorkflowError):
    """A staged edit does not differ from the live record."""

    kind = "nothing_changed"

    def __init__(self, action: str) -> None:
        super().__init__(action, "The submitted values do not differ from the current profile")


class ConflictRetry(WorkflowError):
    """The record changed between read and write; reload and retry."""

    kind = "conflict_retry"
    transient = True

    def __init__(self, action: str, profile_id: str, expected_version=None, actual_version=None) -> None:
        super().__init__(
            action,
            f"Church profile {profile_id} was changed by someone else — please reload",
            {"expected_version": expected_version, "actual_version": actual_version},
        )
        self.profile_id = profile_id


class NotFound(WorkflowError):
    """No church profile with the requested id exists."""

    kind = "not_found"

    def __init__(self, action: str, profile_id: str) -> None:
        super().__init__(action, f"Church profile {profile_id} not found", {"profile_id": profile_id})
        self.profile_id = profile_id


class InvariantViolation(Exception):
    """Persisted state broke a model invariant.

    Not a WorkflowError: this signals a defect, never a caller mistake, and
    propagates instead of being returned as a result.
    """
