"""
Stock record lifecycle tests.

Verifies:
- Creation posts an opening entry and refuses duplicates of a live tuple
- Catalog references must be active
- Threshold updates never touch quantities
- Void requires zero stock and can only happen once
"""

import pytest

from stockledger.errors import (
    AlreadyVoidedError,
    DuplicateRecordError,
    HasStockError,
    NotFoundError,
    VoidedError,
)
from stockledger.models import LedgerEntry, MovementKind, Product
from stockledger.services.ledger_engine import OPENING_BALANCE_REASON
from stockledger.validation import MovementRequest, StockFilter, ThresholdUpdateRequest


# =============================================================================
# CREATE
# =============================================================================


class TestCreateStockRecord:

    def test_create_with_opening_balance(self, engine, db_session, make_record):
        record = make_record(quantity=10, threshold=4)

        assert record.id is not None
        assert record.quantity_on_hand == 10
        assert record.reorder_threshold == 4
        assert record.created_by == 1
        assert record.voided_at is None

        entries = db_session.query(LedgerEntry).filter_by(stock_record_id=record.id).all()
        assert len(entries) == 1
        assert entries[0].kind == MovementKind.INBOUND.value
        assert entries[0].quantity_delta == 10
        assert entries[0].reason == OPENING_BALANCE_REASON
        assert engine.ledger_balance(record.id) == 10

    def test_zero_quantity_has_no_opening_entry(self, db_session, make_record):
        record = make_record(quantity=0)
        assert record.quantity_on_hand == 0
        assert db_session.query(LedgerEntry).filter_by(stock_record_id=record.id).count() == 0

    def test_default_threshold(self, make_record):
        record = make_record(quantity=1)
        assert record.reorder_threshold == 3

    def test_duplicate_live_tuple_is_refused(self, db_session, make_record):
        make_record(quantity=2)
        with pytest.raises(DuplicateRecordError):
            make_record(quantity=5)

    def test_same_product_other_location_is_allowed(self, make_record, second_location):
        first = make_record(quantity=2)
        second = make_record(quantity=3, location_id=second_location.id)
        assert first.id != second.id

    def test_voided_tuple_can_be_recreated(self, stock, make_record):
        first = make_record(quantity=0)
        stock.void(first.id, actor_id=1)

        second = make_record(quantity=6)
        assert second.id != first.id
        assert second.quantity_on_hand == 6

    def test_unknown_product(self, make_record):
        with pytest.raises(NotFoundError):
            make_record(quantity=1, product_id=999999)

    def test_inactive_product(self, db_session, make_record):
        retired = Product(sku="FR-OLD-99", name="Retired Frame", is_active=False)
        db_session.add(retired)
        db_session.commit()

        with pytest.raises(NotFoundError):
            make_record(quantity=1, product_id=retired.id)


# =============================================================================
# READ AND LIST
# =============================================================================


class TestReadStockRecords:

    def test_get_missing(self, stock, db_session):
        with pytest.raises(NotFoundError):
            stock.get(999999)

    def test_detail_includes_refs_and_recent_movements(self, stock, engine, make_record):
        record = make_record(quantity=4)
        engine.apply_movement(
            MovementRequest(stock_record_id=record.id, kind=MovementKind.OUTBOUND, quantity=1, reason="Sold at counter"),
        )

        detail = stock.get_detail(record.id)
        assert detail["product"]["sku"] == "FR-AVI-01"
        assert detail["location"]["code"] == "CEN"
        assert detail["variant"]["brand"] == "Ray-Ban"
        assert [m["kind"] for m in detail["recent_movements"]] == ["outbound", "inbound"]

    def test_list_excludes_voided_and_orders_by_location(
        self, stock, make_record, second_product, second_location
    ):
        norte = make_record(quantity=1, location_id=second_location.id)
        centro = make_record(quantity=1)
        voided = make_record(quantity=0, product_id=second_product.id)
        stock.void(voided.id, actor_id=1)

        ids = [r.id for r in stock.list_records()]
        assert ids == [centro.id, norte.id]

    @pytest.mark.parametrize(
        "status,expected",
        [("out", ["empty"]), ("low", ["low"]), ("normal", ["full"])],
    )
    def test_list_status_filter(self, stock, make_record, second_product, second_location, status, expected):
        records = {
            "empty": make_record(quantity=0, threshold=2),
            "low": make_record(quantity=2, threshold=2, location_id=second_location.id),
            "full": make_record(quantity=9, threshold=2, product_id=second_product.id),
        }
        by_id = {r.id: name for name, r in records.items()}

        rows = stock.list_records(StockFilter(status=status))
        assert [by_id[r.id] for r in rows] == expected

    def test_list_location_filter(self, stock, make_record, second_location):
        make_record(quantity=1)
        norte = make_record(quantity=1, location_id=second_location.id)

        rows = stock.list_records(StockFilter(location_id=second_location.id))
        assert [r.id for r in rows] == [norte.id]


# =============================================================================
# THRESHOLD UPDATE
# =============================================================================


class TestThresholdUpdate:

    def test_update_threshold_only(self, stock, db_session, make_record):
        record = make_record(quantity=5, threshold=3)
        entries_before = db_session.query(LedgerEntry).count()

        updated = stock.update_threshold(ThresholdUpdateRequest(stock_record_id=record.id, threshold=8), actor_id=2)

        assert updated.reorder_threshold == 8
        assert updated.quantity_on_hand == 5
        assert updated.modified_by == 2
        assert db_session.query(LedgerEntry).count() == entries_before

    def test_update_threshold_on_voided_record(self, stock, make_record):
        record = make_record(quantity=0)
        stock.void(record.id, actor_id=1)

        with pytest.raises(VoidedError):
            stock.update_threshold(ThresholdUpdateRequest(stock_record_id=record.id, threshold=1))

    def test_update_threshold_missing_record(self, stock, db_session):
        with pytest.raises(NotFoundError):
            stock.update_threshold(ThresholdUpdateRequest(stock_record_id=999999, threshold=1))


# =============================================================================
# VOID
# =============================================================================


class TestVoidStockRecord:

    def test_void_empty_record(self, stock, make_record):
        record = make_record(quantity=0)
        voided = stock.void(record.id, actor_id=3)

        assert voided.voided_at is not None
        assert voided.voided_by == 3
        assert voided.is_voided

    def test_void_with_stock_is_refused(self, stock, db_session, make_record):
        record = make_record(quantity=2)

        with pytest.raises(HasStockError) as exc:
            stock.void(record.id, actor_id=1)

        assert exc.value.details["quantity_on_hand"] == 2
        db_session.refresh(record)
        assert record.voided_at is None

    def test_void_twice_is_refused(self, stock, make_record):
        record = make_record(quantity=0)
        stock.void(record.id, actor_id=1)

        with pytest.raises(AlreadyVoidedError):
            stock.void(record.id, actor_id=1)

    def test_void_after_selling_out(self, stock, engine, make_record):
        record = make_record(quantity=2)
        engine.apply_movement(
            MovementRequest(stock_record_id=record.id, kind=MovementKind.OUTBOUND, quantity=2, reason="Sold at counter"),
        )
        assert stock.void(record.id, actor_id=1).is_voided
