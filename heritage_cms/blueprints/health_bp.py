"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — readiness probe for load balancers
    GET /api/v1/health/ready  — alias of the above
    GET /api/v1/health/live   — database, Redis and review backlog
"""

import logging
import time

import redis
from flask import Blueprint, current_app, jsonify
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from heritage_cms.models import db
from heritage_cms.models.church import ChurchProfile

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


def _elapsed_ms(t0):
    return round((time.perf_counter() - t0) * 1000, 1)


@health_bp.route("", methods=["GET"])
@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok", "app": "Heritage Church CMS"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Dependency status plus the number of profiles waiting in each review status."""
    checks = {}
    healthy = True

    try:
        t0 = time.perf_counter()
        rows = (
            db.session.query(ChurchProfile.status, func.count(ChurchProfile.id))
            .group_by(ChurchProfile.status)
            .all()
        )
        checks["database"] = {"status": "ok", "latency_ms": _elapsed_ms(t0)}
        counts = dict(rows)
        checks["backlog"] = {
            "pending": counts.get("pending", 0),
            "heritage_review": counts.get("heritage_review", 0),
            "published": counts.get("approved", 0),
        }
    except SQLAlchemyError as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        healthy = False
        logger.error("Health check — database failed: %s", exc)

    # Redis only backs rate-limit storage; an outage degrades nothing else
    redis_url = current_app.config.get("REDIS_URL", "")
    if redis_url.startswith(("redis://", "rediss://")):
        try:
            t0 = time.perf_counter()
            redis.from_url(redis_url, socket_timeout=2).ping()
            checks["redis"] = {"status": "ok", "latency_ms": _elapsed_ms(t0)}
        except redis.RedisError as exc:
            checks["redis"] = {"status": "error", "detail": str(exc)}
            logger.warning("Health check — redis unreachable: %s", exc)
    else:
        checks["redis"] = {"status": "skipped", "detail": "no REDIS_URL configured"}

    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
