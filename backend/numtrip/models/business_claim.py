from sqlalchemy import func, UniqueConstraint, Index
from ..extensions import db
from .enums import ClaimStatus, VerificationType
from .types import BigInt


class BusinessClaim(db.Model):
    __tablename__ = "business_claims"

    id = db.Column(BigInt, primary_key=True)
    business_id = db.Column(BigInt, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(BigInt, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = db.Column(db.Enum(ClaimStatus, name="claim_status"), nullable=False, server_default=ClaimStatus.PENDING.value)
    verification_type = db.Column(db.Enum(VerificationType, name="verification_type"), nullable=False)
    contact_value = db.Column(db.String(255), nullable=False)
    # Code and expiry are written and cleared together
    verification_code = db.Column(db.String(12))
    code_expires_at = db.Column(db.DateTime(timezone=True))
    claim_reason = db.Column(db.String(500))
    admin_notes = db.Column(db.String(1000))
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(512))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    verified_at = db.Column(db.DateTime(timezone=True))
    approved_at = db.Column(db.DateTime(timezone=True))

    business = db.relationship("Business", back_populates="claims")
    user = db.relationship("User", back_populates="claims", foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint("business_id", "user_id", name="uq_business_claims_business_user"),
        Index("idx_business_claims_user", "user_id"),
        Index("idx_business_claims_status", "status"),
    )
