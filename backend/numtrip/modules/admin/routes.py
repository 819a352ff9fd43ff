from __future__ import annotations

from flask import Blueprint, jsonify, request, g

from ...errors import BadRequest, Forbidden, Unauthorized
from ...models.business import Business
from ...models.enums import ClaimStatus
from ...schemas.claim import AdminClaimSchema
from ..claims.repository import ClaimRepository
from ..imports.repository import ImportRepository

bp = Blueprint("admin", __name__, url_prefix="/admin")


@bp.before_request
def _require_admin():
    u = getattr(g, "current_user", None)
    if u is None:
        raise Unauthorized("Authentication required")
    if not u.is_admin:
        raise Forbidden("Admin access required")


def _parse_status(value: str | None) -> ClaimStatus | None:
    if not value:
        return None
    try:
        return ClaimStatus(value.strip().upper())
    except ValueError:
        raise BadRequest(f"Unknown claim status: {value}") from None


@bp.get("/claims")
def list_claims():
    """List claims for review, newest first.

    Query params:
      - status: PENDING | APPROVED | REJECTED | EXPIRED
      - limit: int (default 200, max 500)
    """
    status = _parse_status(request.args.get("status"))
    try:
        limit = int(request.args.get("limit", 200))
    except (TypeError, ValueError):
        limit = 200
    limit = max(1, min(limit, 500))
    claims = ClaimRepository().list_claims(status=status, limit=limit)
    return jsonify({"claims": AdminClaimSchema(many=True).dump(claims)})


@bp.get("/stats/overview")
def stats_overview():
    businesses = ImportRepository()
    return jsonify(
        {
            "businesses": {
                "total": businesses.count_businesses(),
                "verified": businesses.count_businesses(Business.verified.is_(True)),
                "claimed": businesses.count_businesses(Business.owner_id.isnot(None)),
                "byCategory": businesses.count_by_category(),
            },
            "claims": ClaimRepository().count_claims_by_status(),
        }
    )
