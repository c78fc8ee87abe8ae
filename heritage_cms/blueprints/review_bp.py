"""
Review Queue & Notification Blueprint.

Endpoints:
    GET    /api/v1/review-queues/<queue>?diocese=
           queue: chancery_review | museum_review | chancery_pending_updates
                  | museum_pending_updates | heritage_rereview
    GET    /api/v1/notifications?actor_id=&actor_role=&unread_only=
    POST   /api/v1/notifications/<id>/read     (addressee only)
    POST   /api/v1/notifications/read-all
           Body: { "actor_id", "actor_role" }
"""

import logging

from flask import Blueprint, jsonify, request

from heritage_cms.models.notification import Notification
from heritage_cms.services.notification import NotificationService
from heritage_cms.services.review_queues import QUEUES
from heritage_cms.utils.errors import E, api_error
from heritage_cms.utils.helpers import actor_from_request, db_commit_or_error, get_or_404, json_body

logger = logging.getLogger(__name__)

review_bp = Blueprint("review", __name__, url_prefix="/api/v1")


@review_bp.route("/review-queues/<queue>", methods=["GET"])
def review_queue(queue):
    fetch = QUEUES.get(queue)
    if fetch is None:
        return api_error(
            E.NOT_FOUND,
            f"Unknown review queue '{queue}'",
            details={"queues": sorted(QUEUES)},
        )
    profiles = fetch(request.args.get("diocese"))
    return jsonify({
        "queue": queue,
        "items": [p.to_dict(include_history=False) for p in profiles],
        "total": len(profiles),
    }), 200


# ── Notifications ──────────────────────────────────────────────────────────────


@review_bp.route("/notifications", methods=["GET"])
def list_notifications():
    actor, err = actor_from_request()
    if err:
        return err
    unread_only = request.args.get("unread_only", "false").lower() in ("1", "true", "yes")
    limit = request.args.get("limit", 50, type=int)
    offset = request.args.get("offset", 0, type=int)
    items, total = NotificationService.list_for_role(
        actor.role,
        recipient=actor.id,
        unread_only=unread_only,
        limit=min(max(limit, 1), 200),
        offset=max(offset, 0),
    )
    return jsonify({"items": [n.to_dict() for n in items], "total": total}), 200


@review_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
def mark_notification_read(notification_id):
    data, err = json_body()
    if err:
        return err
    actor, err = actor_from_request(data)
    if err:
        return err
    notif, err = get_or_404(Notification, notification_id, label="Notification")
    if err:
        return err
    if not notif.is_addressed_to(actor.role, actor.id):
        logger.warning(
            "Notification %s read attempt by %s (%s) rejected",
            notification_id, actor.id, actor.role,
            extra={"actor_role": actor.role, "profile_id": notif.profile_id},
        )
        return api_error(E.FORBIDDEN, "This notification belongs to another recipient")
    notif.mark_read()
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(notif.to_dict()), 200


@review_bp.route("/notifications/read-all", methods=["POST"])
def mark_all_notifications_read():
    data, err = json_body()
    if err:
        return err
    actor, err = actor_from_request(data)
    if err:
        return err
    count = NotificationService.mark_all_read(actor.role, recipient=actor.id)
    return jsonify({"marked_read": count}), 200
