from sqlalchemy import Index, func
from ..extensions import db
from .types import BigInt


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(BigInt, primary_key=True)
    actor_user_id = db.Column(BigInt, db.ForeignKey("users.id", ondelete="SET NULL"))
    action = db.Column(db.String(120), nullable=False)
    entity_type = db.Column(db.String(120), nullable=False)
    entity_id = db.Column(BigInt, nullable=False)
    details = db.Column(db.JSON)
    ip_address = db.Column(db.String(64))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_created_at", "created_at"),
    )
