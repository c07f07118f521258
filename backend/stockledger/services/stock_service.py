# Overview: Stock record lifecycle (create, read, threshold update, void); quantities go through the ledger engine.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from ..errors import AlreadyVoidedError, DuplicateRecordError, HasStockError, NotFoundError, VoidedError, ValidationError
from ..models import Location, Product, StockRecord
from ..time_utils import utcnow
from ..validation import CreateStockRecordRequest, StockFilter, ThresholdUpdateRequest
from .audit_sink import AuditSink
from .catalog_service import require_stock_references
from .ledger_engine import LedgerEngine

"""
Stock record lifecycle rules

- One live record per (product, location, variant). Creating a duplicate fails;
  it never upserts. A voided tuple can be created again as a new record.
- Initial quantity is posted through the ledger engine as an opening entry in
  the same transaction as the insert.
- Threshold updates are plain field updates (no ledger entry).
- Void requires quantity_on_hand == 0 and runs under the same lock/retry
  discipline as movements, so it cannot race a concurrent inbound.
"""


def apply_status_filter(q, status: str | None):
    if status == "out":
        return q.filter(StockRecord.quantity_on_hand == 0)
    if status == "low":
        return q.filter(
            StockRecord.quantity_on_hand > 0,
            StockRecord.quantity_on_hand <= StockRecord.reorder_threshold,
        )
    if status == "normal":
        return q.filter(StockRecord.quantity_on_hand > StockRecord.reorder_threshold)
    return q


class StockRecordService:
    def __init__(
        self,
        session,
        engine: LedgerEngine,
        audit_sink: AuditSink,
        *,
        default_threshold: int = 3,
        recent_limit: int = 10,
    ):
        self.session = session
        self.engine = engine
        self.audit_sink = audit_sink
        self.default_threshold = default_threshold
        self.recent_limit = recent_limit

    def _find_live(self, product_id: int, location_id: int, variant_id: int) -> StockRecord | None:
        return self.session.query(StockRecord).filter(
            StockRecord.product_id == product_id,
            StockRecord.location_id == location_id,
            StockRecord.variant_id == variant_id,
            StockRecord.voided_at.is_(None),
        ).first()

    def create(self, req: CreateStockRecordRequest, *, actor_id: int | None = None) -> StockRecord:
        with self.audit_sink.track(
            "stock_record.create",
            "stock_record",
            actor_id=actor_id,
            session=self.session,
        ) as scope:
            scope.description = (
                f"Stock record for product {req.product_id} at location {req.location_id} "
                f"variant {req.variant_id}"
            )
            threshold = self.default_threshold if req.threshold is None else req.threshold
            if req.quantity < 0 or threshold < 0:
                raise ValidationError("quantity and threshold must be >= 0")

            require_stock_references(
                self.session,
                product_id=req.product_id,
                location_id=req.location_id,
                variant_id=req.variant_id,
            )

            if self._find_live(req.product_id, req.location_id, req.variant_id) is not None:
                raise DuplicateRecordError(
                    "A stock record already exists for this product, location and variant"
                )

            record = StockRecord(
                product_id=req.product_id,
                location_id=req.location_id,
                variant_id=req.variant_id,
                quantity_on_hand=0,
                reorder_threshold=threshold,
                created_by=actor_id,
                created_at=utcnow(),
            )
            try:
                self.session.add(record)
                self.session.flush()
                self.engine.post_opening_balance(record, req.quantity, actor_id=actor_id)
                self.session.commit()
            except IntegrityError as exc:
                self.session.rollback()
                raise DuplicateRecordError(
                    "A stock record already exists for this product, location and variant"
                ) from exc

            scope.entity_id = record.id
            scope.description += f" created with quantity {req.quantity}, threshold {threshold}"
        return record

    def get(self, stock_record_id: int) -> StockRecord:
        record = self.session.get(StockRecord, stock_record_id)
        if record is None:
            raise NotFoundError(f"Stock record {stock_record_id} not found")
        return record

    def get_detail(self, stock_record_id: int) -> dict:
        """Record with catalog references and its most recent movements."""
        record = self.get(stock_record_id)
        data = record.to_dict(include_refs=True)
        data["recent_movements"] = [
            e.to_dict() for e in self.engine.list_entries(record.id, limit=self.recent_limit)
        ]
        return data

    def list_records(self, filters: StockFilter | None = None) -> list[StockRecord]:
        """Live records, ordered by location name then product name."""
        filters = filters or StockFilter()
        loc = aliased(Location)
        prod = aliased(Product)
        q = (
            self.session.query(StockRecord)
            .join(loc, StockRecord.location_id == loc.id)
            .join(prod, StockRecord.product_id == prod.id)
            .filter(StockRecord.voided_at.is_(None))
        )
        if filters.location_id is not None:
            q = q.filter(StockRecord.location_id == filters.location_id)
        if filters.product_id is not None:
            q = q.filter(StockRecord.product_id == filters.product_id)
        if filters.variant_id is not None:
            q = q.filter(StockRecord.variant_id == filters.variant_id)
        q = apply_status_filter(q, filters.status)
        return q.order_by(loc.name.asc(), prod.name.asc(), StockRecord.id.asc()).all()

    def update_threshold(self, req: ThresholdUpdateRequest, *, actor_id: int | None = None) -> StockRecord:
        with self.audit_sink.track(
            "stock_record.update",
            "stock_record",
            actor_id=actor_id,
            entity_id=req.stock_record_id,
            session=self.session,
        ) as scope:
            scope.description = f"Threshold update on stock record {req.stock_record_id}"
            if req.threshold < 0:
                raise ValidationError("threshold must be >= 0")

            def _op():
                record = self.engine.load_for_update(req.stock_record_id)
                if record.is_voided:
                    raise VoidedError("Cannot update a voided stock record")
                previous = record.reorder_threshold
                record.reorder_threshold = req.threshold
                record.modified_by = actor_id
                record.modified_at = utcnow()
                self.session.commit()
                return record, previous

            record, previous = self.engine.run_atomic(_op)
            scope.description = (
                f"Threshold on stock record {req.stock_record_id} changed from {previous} to {req.threshold}"
            )
        return record

    def void(self, stock_record_id: int, *, actor_id: int | None = None) -> StockRecord:
        with self.audit_sink.track(
            "stock_record.void",
            "stock_record",
            actor_id=actor_id,
            entity_id=stock_record_id,
            session=self.session,
        ) as scope:
            scope.description = f"Void of stock record {stock_record_id}"

            def _op():
                record = self.engine.load_for_update(stock_record_id)
                if record.is_voided:
                    raise AlreadyVoidedError("Stock record is already voided")
                if record.quantity_on_hand != 0:
                    raise HasStockError(
                        "Cannot void a stock record with stock on hand; quantity must be zero",
                        details={"quantity_on_hand": record.quantity_on_hand},
                    )
                record.voided_at = utcnow()
                record.voided_by = actor_id
                self.session.commit()
                return record

            record = self.engine.run_atomic(_op)
            scope.description = f"Stock record {stock_record_id} voided"
        return record
