# Overview: Catalog lookups consumed by the ledger (product, location, variant existence).

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..models import Location, Product, Variant


def _require_usable(session, model, entity_id: int, label: str):
    entity = session.get(model, entity_id)
    if entity is None or not entity.is_usable:
        raise NotFoundError(f"{label} {entity_id} does not exist, is inactive or voided")
    return entity


def require_active_product(session, product_id: int) -> Product:
    return _require_usable(session, Product, product_id, "Product")


def require_active_location(session, location_id: int) -> Location:
    return _require_usable(session, Location, location_id, "Location")


def require_active_variant(session, variant_id: int) -> Variant:
    return _require_usable(session, Variant, variant_id, "Variant")


def require_stock_references(session, *, product_id: int, location_id: int, variant_id: int) -> None:
    """All three references must be active and not voided before a stock record is created."""
    require_active_product(session, product_id)
    require_active_location(session, location_id)
    require_active_variant(session, variant_id)


def create_product(session, *, sku: str, name: str) -> Product:
    """Seed helper for the CLI and tests; catalog maintenance lives outside the ledger."""
    sku = (sku or "").strip().upper()
    name = (name or "").strip()
    if not sku or not name:
        raise ValidationError("sku and name are required")
    product = Product(sku=sku, name=name, is_active=True)
    session.add(product)
    session.commit()
    return product


def create_location(session, *, code: str, name: str) -> Location:
    code = (code or "").strip().upper()
    name = (name or "").strip()
    if not code or not name:
        raise ValidationError("code and name are required")
    location = Location(code=code, name=name, is_active=True)
    session.add(location)
    session.commit()
    return location


def create_variant(session, *, color: str, brand: str) -> Variant:
    color = (color or "").strip()
    brand = (brand or "").strip()
    if not color or not brand:
        raise ValidationError("color and brand are required")
    variant = Variant(color=color, brand=brand, is_active=True)
    session.add(variant)
    session.commit()
    return variant
