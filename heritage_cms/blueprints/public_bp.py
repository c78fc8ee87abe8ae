"""
Public Church Blueprint — read-only feed for the public app.

Only approved profiles are visible, and only their live values: edits
staged in a pending-changes overlay never appear here.

Endpoints:
    GET    /api/v1/public/churches?diocese=&heritage_only=
    GET    /api/v1/public/churches/<id>
"""

from flask import Blueprint, jsonify, request

from heritage_cms.services.review_queues import public_church, public_feed
from heritage_cms.utils.errors import E, api_error

public_bp = Blueprint("public", __name__, url_prefix="/api/v1/public")


@public_bp.route("/churches", methods=["GET"])
def list_public_churches():
    heritage_only = request.args.get("heritage_only", "false").lower() in ("1", "true", "yes")
    items = public_feed(request.args.get("diocese"), heritage_only=heritage_only)
    return jsonify({"items": items, "total": len(items)}), 200


@public_bp.route("/churches/<profile_id>", methods=["GET"])
def get_public_church(profile_id):
    doc, err = public_church(profile_id)
    if err:
        return api_error(E.NOT_FOUND, "Church not found")
    return jsonify(doc), 200
