from flask import current_app
from marshmallow import Schema, ValidationError, fields, validate, validates, EXCLUDE

from ..models.enums import BusinessCategory, ClaimStatus, VerificationType


class StartClaimSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    verification_type = fields.Enum(VerificationType, required=True, data_key="verificationType")
    contact_value = fields.Str(required=True, validate=validate.Length(min=1, max=255), data_key="contactValue")
    claim_reason = fields.Str(allow_none=True, validate=validate.Length(max=500), data_key="claimReason")


class VerifyClaimSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    claim_id = fields.Int(required=True, strict=False, data_key="claimId")
    verification_code = fields.Str(required=True, data_key="verificationCode")

    @validates("verification_code")
    def _code_length(self, value, **kwargs):
        length = int(current_app.config.get("CLAIM_CODE_LENGTH", 6))
        if len(value) != length:
            raise ValidationError(f"Length must be {length}.")


class AdminClaimActionSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    action = fields.Str(required=True, validate=validate.OneOf(["APPROVE", "REJECT"]))
    admin_notes = fields.Str(allow_none=True, validate=validate.Length(max=1000), data_key="adminNotes")


class BusinessSummarySchema(Schema):
    id = fields.Int()
    name = fields.Str()
    category = fields.Enum(BusinessCategory)
    city = fields.Function(lambda b: b.city.name if b.city else None)
    verified = fields.Bool()


class ClaimSchema(Schema):
    """Claim projection; the verification code itself is never serialized."""

    id = fields.Int()
    business_id = fields.Int(data_key="businessId")
    user_id = fields.Int(data_key="userId")
    status = fields.Enum(ClaimStatus)
    verification_type = fields.Enum(VerificationType, data_key="verificationType")
    contact_value = fields.Str(data_key="contactValue")
    code_expires_at = fields.DateTime(data_key="codeExpiresAt")
    claim_reason = fields.Str(data_key="claimReason")
    admin_notes = fields.Str(data_key="adminNotes")
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")
    verified_at = fields.DateTime(data_key="verifiedAt")
    approved_at = fields.DateTime(data_key="approvedAt")


class ClaimWithBusinessSchema(ClaimSchema):
    business = fields.Nested(BusinessSummarySchema)


class AdminClaimSchema(ClaimWithBusinessSchema):
    user = fields.Function(lambda c: {"id": c.user.id, "email": c.user.email, "name": c.user.name} if c.user else None)


class PromoCodeSchema(Schema):
    id = fields.Int()
    code = fields.Str()
    description = fields.Str()
    discount = fields.Str()
    valid_until = fields.DateTime(data_key="validUntil")


class OwnedBusinessSchema(Schema):
    id = fields.Function(lambda o: o.business.id)
    name = fields.Function(lambda o: o.business.name)
    category = fields.Function(lambda o: o.business.category.value if o.business.category else None)
    address = fields.Function(lambda o: o.business.address)
    city = fields.Function(lambda o: o.business.city.name if o.business.city else None)
    verified = fields.Function(lambda o: bool(o.business.verified))
    claimed_at = fields.Function(
        lambda o: o.business.claimed_at.isoformat() if o.business.claimed_at else None, data_key="claimedAt"
    )
    promo_codes = fields.Nested(PromoCodeSchema, many=True, data_key="promoCodes")
    validation_stats = fields.Dict(data_key="validationStats")
