from sqlalchemy import func, Index
from ..extensions import db
from .types import BigInt


class Validation(db.Model):
    """A visitor's report on whether a listed contact worked."""

    __tablename__ = "validations"

    id = db.Column(BigInt, primary_key=True)
    business_id = db.Column(BigInt, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    contact_id = db.Column(BigInt, db.ForeignKey("contacts.id", ondelete="SET NULL"))
    user_id = db.Column(BigInt, db.ForeignKey("users.id", ondelete="SET NULL"))
    is_correct = db.Column(db.Boolean, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    business = db.relationship("Business", back_populates="validations")

    __table_args__ = (
        Index("idx_validations_business", "business_id"),
    )
