from __future__ import annotations

import enum

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class MovementKind(str, enum.Enum):
    """
    Closed set of ledger movement kinds.

    quantity_delta storage convention:
    - INBOUND: positive magnitude, increases on-hand
    - OUTBOUND: positive magnitude, decreases on-hand
    - ADJUSTMENT: signed value applied as-is
    """
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    ADJUSTMENT = "adjustment"

    def signed(self, quantity: int) -> int:
        """Effect of a stored quantity_delta on the balance."""
        if self is MovementKind.INBOUND:
            return quantity
        if self is MovementKind.OUTBOUND:
            return -quantity
        return quantity

    def opposite(self) -> "MovementKind":
        """Kind used by the compensating entry of a reversal."""
        if self is MovementKind.INBOUND:
            return MovementKind.OUTBOUND
        if self is MovementKind.OUTBOUND:
            return MovementKind.INBOUND
        return MovementKind.ADJUSTMENT

    @classmethod
    def values(cls) -> list[str]:
        return [k.value for k in cls]


class StockRecord(db.Model):
    """
    Current quantity on hand for one (product, location, variant) tuple.

    INVARIANTS:
    - quantity_on_hand >= 0 at all times.
    - quantity_on_hand equals the fold of signed deltas over this record's
      ledger entries. Only the ledger engine writes quantity_on_hand.
    - At most one live (voided_at IS NULL) record per tuple.
    - version_id is the optimistic lock: a stale read-compute-write fails at
      flush with StaleDataError on backends that ignore FOR UPDATE.
    """
    __tablename__ = "stock_records"
    __table_args__ = (
        db.Index(
            "uq_stock_records_live_tuple",
            "product_id",
            "location_id",
            "variant_id",
            unique=True,
            sqlite_where=db.text("voided_at IS NULL"),
            postgresql_where=db.text("voided_at IS NULL"),
        ),
        db.Index("ix_stock_records_location_quantity", "location_id", "quantity_on_hand"),
        db.CheckConstraint("quantity_on_hand >= 0", name="ck_stock_records_quantity_non_negative"),
        db.CheckConstraint("reorder_threshold >= 0", name="ck_stock_records_threshold_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    reorder_threshold = db.Column(db.Integer, nullable=False, default=3)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    modified_by = db.Column(db.Integer, nullable=True)
    modified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by = db.Column(db.Integer, nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    product = db.relationship("Product")
    location = db.relationship("Location")
    variant = db.relationship("Variant")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<StockRecord id={self.id} product_id={self.product_id} location_id={self.location_id} "
            f"variant_id={self.variant_id} on_hand={self.quantity_on_hand}>"
        )

    @property
    def is_voided(self) -> bool:
        return self.voided_at is not None

    def to_dict(self, *, include_refs: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "location_id": self.location_id,
            "variant_id": self.variant_id,
            "quantity_on_hand": self.quantity_on_hand,
            "reorder_threshold": self.reorder_threshold,
            "version_id": self.version_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "modified_by": self.modified_by,
            "modified_at": to_utc_z(self.modified_at),
            "voided_by": self.voided_by,
            "voided_at": to_utc_z(self.voided_at),
        }
        if include_refs:
            data["product"] = self.product.to_dict() if self.product else None
            data["location"] = self.location.to_dict() if self.location else None
            data["variant"] = self.variant.to_dict() if self.variant else None
        return data


class LedgerEntry(db.Model):
    """
    Immutable movement against a stock record.

    Append-only: rows are never deleted. The single permitted update is
    flipping voided on an original entry when a reversal compensates it.
    A reversal entry (reversal_of_entry_id set) can never be reversed itself;
    reversal_of_entry_id is unique so an entry is compensated at most once.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.Index("ix_ledger_entries_record_occurred", "stock_record_id", "occurred_at"),
        db.UniqueConstraint("reversal_of_entry_id", name="uq_ledger_entries_reversal_of"),
        db.CheckConstraint("resulting_balance >= 0", name="ck_ledger_entries_balance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    stock_record_id = db.Column(db.Integer, db.ForeignKey("stock_records.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)
    resulting_balance = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(500), nullable=False)
    actor_id = db.Column(db.Integer, nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    voided = db.Column(db.Boolean, nullable=False, default=False)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by = db.Column(db.Integer, nullable=True)

    reversal_of_entry_id = db.Column(db.Integer, db.ForeignKey("ledger_entries.id"), nullable=True)

    stock_record = db.relationship("StockRecord", backref=db.backref("ledger_entries", lazy="dynamic"))
    reversal_of = db.relationship("LedgerEntry", remote_side=[id], uselist=False)

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry id={self.id} record={self.stock_record_id} kind={self.kind} "
            f"delta={self.quantity_delta} balance={self.resulting_balance}>"
        )

    @property
    def movement_kind(self) -> MovementKind:
        return MovementKind(self.kind)

    @property
    def signed_delta(self) -> int:
        return self.movement_kind.signed(self.quantity_delta)

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_entry_id is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_record_id": self.stock_record_id,
            "kind": self.kind,
            "quantity_delta": self.quantity_delta,
            "signed_delta": self.signed_delta,
            "resulting_balance": self.resulting_balance,
            "reason": self.reason,
            "actor_id": self.actor_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "voided": self.voided,
            "voided_at": to_utc_z(self.voided_at),
            "voided_by": self.voided_by,
            "reversal_of_entry_id": self.reversal_of_entry_id,
        }
