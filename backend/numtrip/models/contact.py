from sqlalchemy import false, func, UniqueConstraint
from ..extensions import db
from .enums import ContactType
from .types import BigInt


class Contact(db.Model):
    __tablename__ = "contacts"

    id = db.Column(BigInt, primary_key=True)
    business_id = db.Column(BigInt, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    type = db.Column(db.Enum(ContactType, name="contact_type"), nullable=False)
    value = db.Column(db.String(512), nullable=False)
    verified = db.Column(db.Boolean, nullable=False, default=False, server_default=false())
    primary_contact = db.Column(db.Boolean, nullable=False, default=False, server_default=false())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    business = db.relationship("Business", back_populates="contacts")

    __table_args__ = (
        UniqueConstraint("business_id", "type", "value", name="uq_contacts_business_type_value"),
    )
