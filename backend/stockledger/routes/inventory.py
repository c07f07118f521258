# backend/stockledger/routes/inventory.py
"""
Inventory ledger routes.

Every response uses the envelope {"ok", "data", "error"} (plus optional "meta").
Caller identity comes from X-User-Id (see decorators.with_actor).
Reads and writes alike emit exactly one audit event per request outcome.

Status mapping comes from the error taxonomy:
- 400 validation, insufficient stock, has-stock, voided, already-voided, chained reversal
- 404 stock record / ledger entry / catalog reference not found
- 409 duplicate tuple, busy (lock contention, retryable)
- 500 unexpected failure (logged, generic message)
"""
from flask import Blueprint, current_app, g, request

from ..errors import ValidationError
from ..extensions import audit_sink, db
from ..responses import ok
from ..services.alert_service import list_stock_alerts
from ..time_utils import parse_query_datetime
from ..validation import (
    FieldRule,
    parse_create_stock_record,
    parse_movement,
    parse_reversal,
    parse_stock_filter,
    parse_threshold_update,
    validate_payload,
)
from ..decorators import ledger_endpoint, with_actor


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

MOVEMENT_LIST_RULES = {
    "limit": FieldRule("int", min_value=1, max_value=500),
    "include_voided": FieldRule("bool"),
}


def _engine():
    return current_app.extensions["stockledger"].engine


def _stock():
    return current_app.extensions["stockledger"].stock_records


def _audited_read(action: str, entity_type: str, entity_id: int | None = None):
    """Read operations leave a success/failure audit row like mutations do."""
    return audit_sink.track(
        action,
        entity_type,
        actor_id=g.actor_id,
        entity_id=entity_id,
        session=db.session,
    )


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


@inventory_bp.post("")
@with_actor
@ledger_endpoint("create stock record")
def create_stock_record_route():
    """Create a stock record for a (product, location, variant) tuple."""
    req = parse_create_stock_record(_json_body())
    record = _stock().create(req, actor_id=g.actor_id)
    return ok(record.to_dict(), 201)


@inventory_bp.get("")
@with_actor
@ledger_endpoint("list stock records")
def list_stock_records_route():
    """
    List live stock records.

    Query params: location_id, product_id, variant_id, status (low|out|normal).
    """
    with _audited_read("stock_record.list", "stock_record") as scope:
        filters = parse_stock_filter(request.args)
        rows = _stock().list_records(filters)
        data = [r.to_dict(include_refs=True) for r in rows]
        scope.description = f"Listed {len(rows)} stock records"
    return ok(data, meta={"count": len(data)})


@inventory_bp.get("/alerts")
@with_actor
@ledger_endpoint("list stock alerts")
def list_alerts_route():
    """Records at or below their reorder threshold, with summary counts."""
    with _audited_read("stock_record.alerts", "stock_record") as scope:
        location_id = parse_stock_filter(request.args).location_id
        result = list_stock_alerts(db.session, location_id=location_id)
        scope.description = f"Listed {result['summary']['total']} stock alerts"
    return ok(result["items"], meta={"summary": result["summary"]})


@inventory_bp.get("/<int:stock_record_id>")
@with_actor
@ledger_endpoint("load stock record")
def get_stock_record_route(stock_record_id: int):
    with _audited_read("stock_record.read", "stock_record", stock_record_id) as scope:
        scope.description = f"Read stock record {stock_record_id}"
        data = _stock().get_detail(stock_record_id)
    return ok(data)


@inventory_bp.put("/<int:stock_record_id>")
@with_actor
@ledger_endpoint("update stock record")
def update_stock_record_route(stock_record_id: int):
    """Update metadata (reorder threshold only). Quantities change only through movements."""
    req = parse_threshold_update(stock_record_id, _json_body())
    record = _stock().update_threshold(req, actor_id=g.actor_id)
    return ok(record.to_dict())


@inventory_bp.delete("/<int:stock_record_id>")
@with_actor
@ledger_endpoint("void stock record")
def void_stock_record_route(stock_record_id: int):
    record = _stock().void(stock_record_id, actor_id=g.actor_id)
    return ok({"id": record.id, "voided_at": record.to_dict()["voided_at"]})


@inventory_bp.get("/<int:stock_record_id>/movements")
@with_actor
@ledger_endpoint("list ledger entries")
def list_movements_route(stock_record_id: int):
    """
    Full ledger for a record, newest first.

    Query params: limit, include_voided, since, until (YYYY-MM-DD or ISO-8601).
    """
    with _audited_read("ledger_entry.list", "stock_record", stock_record_id) as scope:
        scope.description = f"Ledger of stock record {stock_record_id}"
        params = validate_payload(
            payload={k: v for k, v in request.args.items() if k in MOVEMENT_LIST_RULES},
            rules=MOVEMENT_LIST_RULES,
            partial=True,
        )
        since = parse_query_datetime("since", request.args.get("since"))
        until = parse_query_datetime("until", request.args.get("until"), end_of_day=True)
        if since and until and since > until:
            raise ValidationError("since must be before until")

        record = _stock().get(stock_record_id)
        entries = _engine().list_entries(
            record.id,
            limit=params.get("limit", 200),
            include_voided=params.get("include_voided", True),
            since=since,
            until=until,
        )
        data = [e.to_dict() for e in entries]
        scope.description = f"Listed {len(data)} ledger entries of stock record {stock_record_id}"
    return ok(data, meta={"count": len(data)})


@inventory_bp.post("/movements")
@with_actor
@ledger_endpoint("record ledger movement")
def record_movement_route():
    """
    Record an inbound, outbound or adjustment movement.

    Body: stock_record_id, kind, quantity, reason.
    inbound/outbound take a positive quantity; adjustment takes a signed one.
    """
    req = parse_movement(_json_body())
    entry = _engine().apply_movement(req, actor_id=g.actor_id)
    return ok(entry.to_dict(), 201)


@inventory_bp.get("/movements/<int:entry_id>")
@with_actor
@ledger_endpoint("load ledger entry")
def get_movement_route(entry_id: int):
    with _audited_read("ledger_entry.read", "ledger_entry", entry_id) as scope:
        scope.description = f"Read ledger entry {entry_id}"
        data = _engine().get_entry(entry_id).to_dict()
    return ok(data)


@inventory_bp.post("/movements/<int:entry_id>/reverse")
@with_actor
@ledger_endpoint("reverse ledger movement")
def reverse_movement_route(entry_id: int):
    """Compensate a prior movement. Body: reason."""
    req = parse_reversal(entry_id, _json_body())
    entry = _engine().reverse_movement(req, actor_id=g.actor_id)
    record = _stock().get(entry.stock_record_id)
    return ok(
        entry.to_dict(),
        meta={
            "original_entry": {"id": entry_id, "voided": True},
            "quantity_on_hand": record.quantity_on_hand,
        },
    )
