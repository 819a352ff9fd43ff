from sqlalchemy import UniqueConstraint, func
from ..extensions import db
from .types import BigInt


class City(db.Model):
    __tablename__ = "cities"

    id = db.Column(BigInt, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    country = db.Column(db.String(120), nullable=False)
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    businesses = db.relationship("Business", back_populates="city", lazy=True)

    __table_args__ = (
        UniqueConstraint("name", "country", name="uq_cities_name_country"),
    )
