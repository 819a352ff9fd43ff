import logging

from flask import Blueprint, current_app, jsonify, request, g
from kombu.exceptions import OperationalError

from ...errors import Forbidden, Unauthorized
from ...schemas.business_import import ImportBusinessesSchema
from .service import import_service

logger = logging.getLogger(__name__)

bp = Blueprint("data_import", __name__, url_prefix="/data-import")


def _require_admin():
    user = getattr(g, "current_user", None)
    if user is None:
        raise Unauthorized("Authentication required")
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user


@bp.post("/businesses")
def import_businesses():
    _require_admin()
    data = ImportBusinessesSchema().load(request.get_json(silent=True) or {})

    # Queue on Celery when asked and a broker is configured; otherwise run inline
    if data["run_async"] and current_app.config.get("CELERY_BROKER_URL"):
        try:
            from ...tasks.jobs.imports import import_businesses_job

            task = import_businesses_job.delay(data["city"], data["category"], data["limit"], data["skip_duplicates"])
            return jsonify({"queued": True, "taskId": task.id}), 202
        except OperationalError:
            logger.exception("Could not enqueue import job, running it inline")

    result = import_service().import_businesses(
        data["city"], data["category"], limit=data["limit"], skip_duplicates=data["skip_duplicates"]
    )
    return jsonify(result.to_dict())


@bp.get("/stats")
def import_stats():
    return jsonify(import_service().get_import_stats())
