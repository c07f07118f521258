from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .errors import ValidationError
from .models import MovementKind


REASON_MIN_LENGTH = 3
REASON_MAX_LENGTH = 500

# Upper bound for any quantity field; keeps values inside a 32-bit INTEGER column
MAX_QUANTITY = 1_000_000_000

STATUS_FILTERS = ("low", "out", "normal")


@dataclass(frozen=True)
class FieldRule:
    """
    Central policy for one request field:
    - kind: "int", "str" or "bool"
    - required: must be present on create (partial=False)
    - nullable: explicit null accepted
    - min_value / max_value: inclusive bounds for ints
    - max_length: bound for strings (after strip)
    """
    kind: str
    required: bool = False
    nullable: bool = False
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    max_length: Optional[int] = None


@dataclass(frozen=True)
class CreateStockRecordRequest:
    product_id: int
    location_id: int
    variant_id: int
    quantity: int
    threshold: Optional[int]


@dataclass(frozen=True)
class MovementRequest:
    stock_record_id: int
    kind: MovementKind
    quantity: int
    reason: str


@dataclass(frozen=True)
class ReversalRequest:
    entry_id: int
    reason: str


@dataclass(frozen=True)
class ThresholdUpdateRequest:
    stock_record_id: int
    threshold: int


@dataclass(frozen=True)
class StockFilter:
    location_id: Optional[int] = None
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    status: Optional[str] = None


CREATE_STOCK_RECORD_RULES = {
    "product_id": FieldRule("int", required=True, min_value=1),
    "location_id": FieldRule("int", required=True, min_value=1),
    "variant_id": FieldRule("int", required=True, min_value=1),
    "quantity": FieldRule("int", nullable=True, min_value=0, max_value=MAX_QUANTITY),
    "threshold": FieldRule("int", nullable=True, min_value=0, max_value=MAX_QUANTITY),
}

MOVEMENT_RULES = {
    "stock_record_id": FieldRule("int", required=True, min_value=1),
    "kind": FieldRule("str", required=True, max_length=16),
    "quantity": FieldRule("int", required=True, min_value=-MAX_QUANTITY, max_value=MAX_QUANTITY),
    "reason": FieldRule("str", required=True),
}

REVERSAL_RULES = {
    "reason": FieldRule("str", required=True),
}

THRESHOLD_UPDATE_RULES = {
    "threshold": FieldRule("int", required=True, min_value=0, max_value=MAX_QUANTITY),
}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(key: str, rule: FieldRule, value: Any):
    if rule.kind == "int":
        val = _coerce_int(key, value)
        if rule.min_value is not None and val < rule.min_value:
            raise ValidationError(f"{key} must be >= {rule.min_value}")
        if rule.max_value is not None and val > rule.max_value:
            raise ValidationError(f"{key} must be <= {rule.max_value}")
        return val

    if rule.kind == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
            return True
        if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
            return False
        raise ValidationError(f"{key} must be a boolean")

    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    val = value.strip()
    if rule.max_length is not None and len(val) > rule.max_length:
        raise ValidationError(f"{key} exceeds max length {rule.max_length}")
    return val


def validate_payload(*, payload: Any, rules: dict[str, FieldRule], partial: bool = False) -> dict:
    """
    Validates + normalizes incoming JSON against a rule table.

    - unknown fields are rejected (security boundary)
    - partial=False enforces required fields
    - returns a cleaned patch dict with only the provided fields
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(k for k, r in rules.items() if r.required and k not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for k in payload.keys():
        if k not in rules:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}
    for k, raw in payload.items():
        rule = rules[k]
        if raw is None:
            if not rule.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue
        patch[k] = _coerce_value(k, rule, raw)
    return patch


def validate_reason(reason: Optional[str]) -> str:
    if reason is None:
        raise ValidationError("reason is required")
    reason = reason.strip()
    if len(reason) < REASON_MIN_LENGTH or len(reason) > REASON_MAX_LENGTH:
        raise ValidationError(
            f"reason must be between {REASON_MIN_LENGTH} and {REASON_MAX_LENGTH} characters"
        )
    return reason


def validate_kind(raw: Any) -> MovementKind:
    if isinstance(raw, MovementKind):
        return raw
    try:
        return MovementKind(str(raw).strip().lower())
    except ValueError:
        raise ValidationError(f"kind must be one of: {', '.join(MovementKind.values())}")


def validate_movement_quantity(kind: MovementKind, quantity: int) -> int:
    """
    INBOUND/OUTBOUND take a positive magnitude; ADJUSTMENT takes a signed, non-zero value.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity == 0:
        raise ValidationError("quantity must be non-zero")
    if kind in (MovementKind.INBOUND, MovementKind.OUTBOUND) and quantity < 0:
        raise ValidationError(f"quantity must be > 0 for {kind.value}")
    return quantity


def parse_create_stock_record(payload: Any) -> CreateStockRecordRequest:
    patch = validate_payload(payload=payload, rules=CREATE_STOCK_RECORD_RULES)
    return CreateStockRecordRequest(
        product_id=patch["product_id"],
        location_id=patch["location_id"],
        variant_id=patch["variant_id"],
        quantity=patch.get("quantity") or 0,
        threshold=patch.get("threshold"),
    )


def parse_movement(payload: Any) -> MovementRequest:
    patch = validate_payload(payload=payload, rules=MOVEMENT_RULES)
    kind = validate_kind(patch["kind"])
    return MovementRequest(
        stock_record_id=patch["stock_record_id"],
        kind=kind,
        quantity=validate_movement_quantity(kind, patch["quantity"]),
        reason=validate_reason(patch["reason"]),
    )


def parse_reversal(entry_id: int, payload: Any) -> ReversalRequest:
    patch = validate_payload(payload=payload, rules=REVERSAL_RULES)
    return ReversalRequest(entry_id=entry_id, reason=validate_reason(patch["reason"]))


def parse_threshold_update(stock_record_id: int, payload: Any) -> ThresholdUpdateRequest:
    patch = validate_payload(payload=payload, rules=THRESHOLD_UPDATE_RULES)
    return ThresholdUpdateRequest(stock_record_id=stock_record_id, threshold=patch["threshold"])


def parse_stock_filter(args) -> StockFilter:
    """Query-string filters for stock listings; unknown params are ignored."""
    values = {}
    for key in ("location_id", "product_id", "variant_id"):
        raw = args.get(key)
        if raw is None or raw == "":
            continue
        values[key] = _coerce_value(key, FieldRule("int", min_value=1), raw)

    status = args.get("status")
    if status:
        status = status.strip().lower()
        if status not in STATUS_FILTERS:
            raise ValidationError(f"status must be one of: {', '.join(STATUS_FILTERS)}")
        values["status"] = status

    return StockFilter(**values)
