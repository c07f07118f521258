# Overview: Alert projection; classifies live stock records against their reorder threshold.

from __future__ import annotations

import enum

from sqlalchemy.orm import aliased

from ..models import Location, Product, StockRecord


class StockStatus(str, enum.Enum):
    OUT_OF_STOCK = "out-of-stock"
    LOW = "low"
    NORMAL = "normal"


def classify(quantity_on_hand: int, reorder_threshold: int) -> StockStatus:
    """out-of-stock at 0, low when 0 < quantity <= threshold, otherwise normal."""
    if quantity_on_hand == 0:
        return StockStatus.OUT_OF_STOCK
    if quantity_on_hand <= reorder_threshold:
        return StockStatus.LOW
    return StockStatus.NORMAL


def list_stock_alerts(session, *, location_id: int | None = None) -> dict:
    """
    Live records at or below their threshold, lowest quantity first.
    Ties fall back to location name, then product name.

    Read-only: no locking beyond the consistent read of a single SELECT.
    """
    loc = aliased(Location)
    prod = aliased(Product)
    q = (
        session.query(StockRecord)
        .join(loc, StockRecord.location_id == loc.id)
        .join(prod, StockRecord.product_id == prod.id)
    )
    q = q.filter(
        StockRecord.voided_at.is_(None),
        StockRecord.quantity_on_hand <= StockRecord.reorder_threshold,
    )
    if location_id is not None:
        q = q.filter(StockRecord.location_id == location_id)

    rows = q.order_by(
        StockRecord.quantity_on_hand.asc(),
        loc.name.asc(),
        prod.name.asc(),
        StockRecord.id.asc(),
    ).all()

    items = []
    for record in rows:
        item = record.to_dict(include_refs=True)
        item["status"] = classify(record.quantity_on_hand, record.reorder_threshold).value
        items.append(item)

    low = sum(1 for i in items if i["status"] == StockStatus.LOW.value)
    out = sum(1 for i in items if i["status"] == StockStatus.OUT_OF_STOCK.value)
    return {
        "items": items,
        "summary": {
            "total": len(items),
            "low": low,
            "out_of_stock": out,
        },
    }
