from flask import Blueprint, jsonify, request, g

from ...errors import Unauthorized
from ...ratelimit import rate_limit
from ...schemas.claim import (
    AdminClaimActionSchema,
    ClaimSchema,
    ClaimWithBusinessSchema,
    OwnedBusinessSchema,
    StartClaimSchema,
    VerifyClaimSchema,
)
from .service import claim_service

bp = Blueprint("claims", __name__, url_prefix="/claims")

_claim = ClaimSchema()
_claims_with_business = ClaimWithBusinessSchema(many=True)


def _require_user():
    # Populated by the api_v1 auth loader from the bearer token (or dev header)
    user = getattr(g, "current_user", None)
    if user is None:
        raise Unauthorized("Authentication required")
    return user


def _initiate(business_id: int, resend: bool):
    user = _require_user()
    data = StartClaimSchema().load(request.get_json(silent=True) or {})
    service = claim_service()
    op = service.resend_code if resend else service.start_claim
    claim = op(
        business_id,
        user.id,
        data["verification_type"],
        data["contact_value"],
        claim_reason=data.get("claim_reason"),
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return claim


@bp.post("/<int:business_id>/start")
@rate_limit("claims.start", 5, 60)
def start_claim(business_id: int):
    claim = _initiate(business_id, resend=False)
    return (
        jsonify(
            {
                "message": "Verification code sent successfully",
                "claim": _claim.dump(claim),
            }
        ),
        201,
    )


@bp.post("/<int:business_id>/resend")
@rate_limit("claims.resend", 3, 300)
def resend_code(business_id: int):
    claim = _initiate(business_id, resend=True)
    return jsonify({"message": "Verification code resent successfully", "claim": _claim.dump(claim)})


@bp.post("/verify")
@rate_limit("claims.verify", 10, 60)
def verify_claim():
    user = _require_user()
    data = VerifyClaimSchema().load(request.get_json(silent=True) or {})
    claim = claim_service().verify_claim(
        data["claim_id"], data["verification_code"], user.id, ip_address=request.remote_addr
    )
    return jsonify({"message": "Business claim verified successfully", "claim": _claim.dump(claim)})


@bp.get("/my-claims")
def my_claims():
    user = _require_user()
    claims = claim_service().get_user_claims(user.id)
    return jsonify({"claims": _claims_with_business.dump(claims)})


@bp.get("/my-businesses")
def my_businesses():
    user = _require_user()
    owned = claim_service().get_user_businesses(user.id)
    return jsonify({"businesses": OwnedBusinessSchema(many=True).dump(owned)})


@bp.get("/<int:claim_id>")
def get_claim(claim_id: int):
    user = _require_user()
    claim = claim_service().get_claim(claim_id, user_id=user.id, actor=user)
    return jsonify({"claim": ClaimWithBusinessSchema().dump(claim)})


@bp.put("/<int:claim_id>/admin-action")
@rate_limit("claims.admin_action", 20, 60)
def admin_action(claim_id: int):
    user = _require_user()
    data = AdminClaimActionSchema().load(request.get_json(silent=True) or {})
    claim = claim_service().admin_action(
        claim_id, data["action"], data.get("admin_notes"), actor=user, ip_address=request.remote_addr
    )
    verb = "approved" if data["action"] == "APPROVE" else "rejected"
    return jsonify({"message": f"Claim {verb} successfully", "claim": _claim.dump(claim)})
