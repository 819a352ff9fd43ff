from sqlalchemy import func
from ..extensions import db
from .types import BigInt


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(BigInt, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(120))
    role = db.Column(db.String(20), nullable=False, server_default="user", default="user")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    claims = db.relationship(
        "BusinessClaim",
        back_populates="user",
        foreign_keys="BusinessClaim.user_id",
        lazy=True,
    )
    owned_businesses = db.relationship(
        "Business",
        back_populates="owner",
        foreign_keys="Business.owner_id",
        lazy=True,
    )

    @property
    def is_admin(self) -> bool:
        return str(self.role or "").lower() == "admin"
