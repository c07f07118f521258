"""
Alert projection tests.

Verifies:
- Classification boundaries (out-of-stock, low, normal)
- Only live records at or below threshold are listed, lowest first
- Summary counts and location filter
"""

import pytest

from stockledger.models import MovementKind
from stockledger.services.alert_service import StockStatus, classify, list_stock_alerts
from stockledger.validation import MovementRequest


@pytest.mark.parametrize(
    "quantity,threshold,expected",
    [
        (0, 5, StockStatus.OUT_OF_STOCK),
        (0, 0, StockStatus.OUT_OF_STOCK),
        (1, 5, StockStatus.LOW),
        (5, 5, StockStatus.LOW),
        (6, 5, StockStatus.NORMAL),
        (1, 0, StockStatus.NORMAL),
    ],
)
def test_classify(quantity, threshold, expected):
    assert classify(quantity, threshold) is expected


class TestStockAlerts:

    def test_alert_boundaries(self, db_session, make_record, second_product, second_location):
        out = make_record(quantity=0, threshold=5)
        low = make_record(quantity=5, threshold=5, location_id=second_location.id)
        make_record(quantity=6, threshold=5, product_id=second_product.id)

        result = list_stock_alerts(db_session)

        assert [i["id"] for i in result["items"]] == [out.id, low.id]
        assert [i["status"] for i in result["items"]] == ["out-of-stock", "low"]
        assert result["summary"] == {"total": 2, "low": 1, "out_of_stock": 1}

    def test_items_carry_refs(self, db_session, make_record):
        make_record(quantity=1, threshold=3)
        item = list_stock_alerts(db_session)["items"][0]
        assert item["product"]["name"] == "Frame Aviator"
        assert item["location"]["name"] == "Sucursal Centro"
        assert item["variant"]["color"] == "Black"

    def test_voided_records_are_not_alerted(self, db_session, stock, make_record):
        record = make_record(quantity=0)
        stock.void(record.id, actor_id=1)

        result = list_stock_alerts(db_session)
        assert result["items"] == []
        assert result["summary"] == {"total": 0, "low": 0, "out_of_stock": 0}

    def test_location_filter(self, db_session, make_record, second_location):
        make_record(quantity=0)
        norte = make_record(quantity=1, location_id=second_location.id)

        result = list_stock_alerts(db_session, location_id=second_location.id)
        assert [i["id"] for i in result["items"]] == [norte.id]

    def test_alert_follows_movements(self, db_session, engine, make_record):
        record = make_record(quantity=10, threshold=3)
        assert list_stock_alerts(db_session)["items"] == []

        engine.apply_movement(
            MovementRequest(stock_record_id=record.id, kind=MovementKind.OUTBOUND, quantity=8, reason="Sold at counter"),
        )
        items = list_stock_alerts(db_session)["items"]
        assert [(i["id"], i["status"]) for i in items] == [(record.id, "low")]

    def test_equal_quantities_order_by_location_then_product(
        self, db_session, make_record, second_product, second_location
    ):
        norte = make_record(quantity=1, location_id=second_location.id)
        centro_lens = make_record(quantity=1, product_id=second_product.id)
        centro_frame = make_record(quantity=1)
        empty = make_record(quantity=0, product_id=second_product.id, location_id=second_location.id)

        items = list_stock_alerts(db_session)["items"]
        assert [i["id"] for i in items] == [empty.id, centro_frame.id, centro_lens.id, norte.id]
