from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class AuditLog(db.Model):
    """
    Outcome of a ledger operation (success or failure).

    Written after the ledger transaction has committed or rolled back, never
    inside it. Rows are append-only.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    actor_id = db.Column(db.Integer, nullable=True, index=True)
    action = db.Column(db.String(64), nullable=False, index=True)  # e.g. ledger.movement, stock_record.void
    entity_type = db.Column(db.String(64), nullable=False)  # stock_record, ledger_entry
    entity_id = db.Column(db.Integer, nullable=True)
    description = db.Column(db.Text, nullable=True)
    outcome = db.Column(db.String(16), nullable=False, index=True)  # success, failure
    module = db.Column(db.String(32), nullable=False, default="inventory")
    ip_address = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "outcome": self.outcome,
            "module": self.module,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
        }
