from sqlalchemy import func, true
from ..extensions import db
from .types import BigInt


class PromoCode(db.Model):
    __tablename__ = "promo_codes"

    id = db.Column(BigInt, primary_key=True)
    business_id = db.Column(BigInt, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    code = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(500))
    discount = db.Column(db.String(50))
    valid_until = db.Column(db.DateTime(timezone=True))
    active = db.Column(db.Boolean, nullable=False, default=True, server_default=true())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    business = db.relationship("Business", back_populates="promo_codes")
