from sqlalchemy import false, func, Index
from ..extensions import db
from .enums import BusinessCategory
from .types import BigInt


class Business(db.Model):
    __tablename__ = "businesses"

    id = db.Column(BigInt, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.Enum(BusinessCategory, name="business_category"), nullable=False, default=BusinessCategory.OTHER)
    address = db.Column(db.String(512))
    city_id = db.Column(BigInt, db.ForeignKey("cities.id", ondelete="SET NULL"))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    # Places provider identifier; unique so concurrent imports of one place cannot both insert
    google_place_id = db.Column(db.String(255), unique=True)
    website = db.Column(db.String(512))
    # Ground-truth contact fields a claim's contact value is checked against
    email = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    whatsapp = db.Column(db.String(50))
    owner_id = db.Column(BigInt, db.ForeignKey("users.id", ondelete="SET NULL"))
    verified = db.Column(db.Boolean, nullable=False, default=False, server_default=false())
    claimed_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    city = db.relationship("City", back_populates="businesses")
    owner = db.relationship("User", back_populates="owned_businesses", foreign_keys=[owner_id])
    claims = db.relationship("BusinessClaim", back_populates="business", cascade="all, delete-orphan")
    contacts = db.relationship("Contact", back_populates="business", cascade="all, delete-orphan")
    validations = db.relationship("Validation", back_populates="business", cascade="all, delete-orphan")
    promo_codes = db.relationship("PromoCode", back_populates="business", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_businesses_owner", "owner_id"),
        Index("idx_businesses_city", "city_id"),
        Index("idx_businesses_category", "category"),
    )
