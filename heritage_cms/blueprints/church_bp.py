"""
Church Profile Workflow Blueprint.

Dashboard endpoints for authoring and reviewing church profiles.

Endpoints:
    POST   /api/v1/churches
           Body: { "actor_id", "actor_role", "church": {...raw record...} }
    GET    /api/v1/churches/<id>
    PATCH  /api/v1/churches/<id>
           Body: { actor..., "fields": {...}, "expected_version"? }   draft / revisions only
    POST   /api/v1/churches/<id>/transition
           Body: { actor..., "action", "notes"?, "expected_version"? }
    GET    /api/v1/churches/<id>/available-actions?actor_id=&actor_role=
    GET    /api/v1/churches/<id>/history
    POST   /api/v1/churches/<id>/classification
           Body: { actor..., "heritageClassification", "notes"? }
    POST   /api/v1/churches/<id>/operational-edit
           Body: { actor..., "fields": {...} }
    POST   /api/v1/churches/<id>/pending-changes
           Body: { actor..., "fields": {...}, "notes"? }
    POST   /api/v1/churches/<id>/pending-changes/approve
    POST   /api/v1/churches/<id>/pending-changes/museum-approve
           Body: { actor..., "reviewed_fields"?: {...}, "notes"? }
    POST   /api/v1/churches/<id>/pending-changes/forward
    POST   /api/v1/churches/<id>/pending-changes/discard
           Body: { actor..., "notes"? }

Layer contract:
    - Blueprint: parse + validate input, build the Actor, call service,
                 return JSON response.
    - NO db.session calls here — all writes owned by church_workflow.
    - NO role checks here — roles are enforced by the workflow engine.
"""

import logging

from flask import Blueprint, jsonify

from heritage_cms.services import church_workflow
from heritage_cms.services.workflow_engine import available_actions, status_info
from heritage_cms.utils.errors import E, api_error, workflow_error_response
from heritage_cms.utils.helpers import actor_from_request, json_body, parse_expected_version

logger = logging.getLogger(__name__)

church_bp = Blueprint("church", __name__, url_prefix="/api/v1")


# ── Helpers ────────────────────────────────────────────────────────────────────


def _parse_write_request():
    """Body, actor and expected_version of a mutating request.

    Returns:
        (data, actor, expected_version, err_response)
    """
    data, err = json_body()
    if err:
        return None, None, None, err
    actor, err = actor_from_request(data)
    if err:
        return None, None, None, err
    expected_version, err = parse_expected_version(data)
    if err:
        return None, None, None, err
    return data, actor, expected_version, None


def _object_field(data, key, required=True):
    value = data.get(key)
    if value is None and not required:
        return None, None
    if not isinstance(value, dict) or (required and not value):
        return None, api_error(E.VALIDATION_INVALID, f"'{key}' must be a non-empty JSON object")
    return value, None


def _profile_response(result, status=200):
    profile, err = result
    if err:
        return workflow_error_response(err)
    return jsonify(profile.to_dict()), status


# ── Authoring ──────────────────────────────────────────────────────────────────


@church_bp.route("/churches", methods=["POST"])
def create_church():
    data, actor, _, err = _parse_write_request()
    if err:
        return err
    raw, err = _object_field(data, "church")
    if err:
        return err
    return _profile_response(church_workflow.create_profile(raw, actor), status=201)


@church_bp.route("/churches/<profile_id>", methods=["GET"])
def get_church(profile_id):
    profile, err = church_workflow.get_profile(profile_id)
    if err:
        return workflow_error_response(err)
    data = profile.to_dict()
    data["statusInfo"] = status_info(profile.status)
    return jsonify(data), 200


@church_bp.route("/churches/<profile_id>", methods=["PATCH"])
def update_church(profile_id):
    data, actor, expected_version, err = _parse_write_request()
    if err:
        return err
    fields, err = _object_field(data, "fields")
    if err:
        return err
    return _profile_response(church_workflow.update_profile_fields(
        profile_id, actor, fields, expected_version=expected_version,
    ))


@church_bp.route("/churches/<profile_id>/classification", methods=["POST"])
def reclassify_church(profile_id):
    data, actor, expected_version, err = _parse_write_request()
    if err:
        return err
    classification = data.get("heritageClassification", data.get("classification"))
    if classification is None:
        return api_error(E.VALIDATION_REQUIRED, "heritageClassification is required")
    return _profile_response(church_workflow.reclassify_heritage(
        profile_id, actor, classification, data.get("notes"), expected_version=expected_version,
    ))


@church_bp.route("/churches/<profile_id>/operational-edit", methods=["POST"])
def operational_edit(profile_id):
    data, actor, expected_version, err = _parse_write_request()
    if err:
        return err
    fields, err = _object_field(data, "fields")
    if err:
        return err
    return _profile_response(church_workflow.apply_operational_edit(
        profile_id, actor, fields, expected_version=expected_version,
    ))


# ── Status transitions ─────────────────────────────────────────────────────────


@church_bp.route("/churches/<profile_id>/transition", methods=["POST"])
def transition_church(profile_id):
    data, actor, expected_version, err = _parse_write_request()
    if err:
        return err
    action = str(data.get("action") or "").strip()
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "action is required")
    return _profile_response(church_workflow.transition(
        profile_id, action, actor, data.get("notes"), expected_version=expected_version,
    ))


@church_bp.route("/churches/<profile_id>/available-actions", methods=["GET"])
def list_available_actions(profile_id):
    actor, err = actor_from_request()
    if err:
        return err
    profile, err = church_workflow.get_profile(profile_id)
    if err:
        return workflow_error_response(err)
    return jsonify({
        "profileId": profile.id,
        "status": profile.status,
        "statusInfo": status_info(profile.status),
        "actions": available_actions(profile, actor.role),
    }), 200


@church_bp.route("/churches/<profile_id>/history", methods=["GET"])
def church_history(profile_id):
    profile, err = church_workflow.get_profile(profile_id)
    if err:
        return workflow_error_response(err)
    entries = [e.to_dict() for e in profile.review_history]
    return jsonify({"profileId": profile.id, "items": entries, "total": len(entries)}), 200


# ── Pending-changes overlay ────────────────────────────────────────────────────


@church_bp.route("/churches/<profile_id>/pending-changes", methods=["POST"])
def stage_pending_changes(profile_id):
    data, actor, expected_version, err = _parse_write_request()
    if err:
        return err
    fields, err = _object_field(data, "fields")
    if err:
        return err
    return _profile_response(church_workflow.stage_pending_edit(
        profile_id, actor, fields, data.get("notes"), expected_version=expected_version,
    ))


@church_bp.route("/churches/<profile_id>/pending-changes/approve", methods=["POST"])
def approve_pending(profile_id):
    data, actor, expected_version, err = _parse_write_request()
    if err:
        return err
    reviewed, err = _object_field(data, "reviewed_fields", required=False)
    if err:
        return err
    return _profile_response(church_workflow.approve_pending_changes(
        profile_id, actor, reviewed, data.get("notes"), expected_version=expected_version,
    ))


@church_bp.route("/churches/<profile_id>/pending-changes/museum-approve", methods=["POST"])
def museum_approve_pending(profile_id):
    data, actor, expected_version, err = _parse_write_request()
    if err:
        return err
    reviewed, err = _object_field(data, "reviewed_fields", required=False)
    if err:
        return err
    return _profile_response(church_workflow.museum_approve_pending_changes(
        profile_id, actor, reviewed, data.get("notes"), expected_version=expected_version,
    ))


@church_bp.route("/churches/<profile_id>/pending-changes/forward", methods=["POST"])
def forward_pending(profile_id):
    data, actor, expected_version, err = _parse_write_request()
    if err:
        return err
    return _profile_response(church_workflow.forward_pending_changes_to_museum(
        profile_id, actor, data.get("notes"), expected_version=expected_version,
    ))


@church_bp.route("/churches/<profile_id>/pending-changes/discard", methods=["POST"])
def discard_pending(profile_id):
    data, actor, expected_version, err = _parse_write_request()
    if err:
        return err
    return _profile_response(church_workflow.discard_pending_changes(
        profile_id, actor, data.get("notes"), expected_version=expected_version,
    ))
