from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product referenced by stock records.

    Catalog maintenance lives outside the ledger; this table only carries what
    the ledger needs to confirm a product is usable (active and not voided).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    @property
    def is_usable(self) -> bool:
        return bool(self.is_active) and self.voided_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "is_active": self.is_active,
            "voided_at": to_utc_z(self.voided_at),
        }


class Location(db.Model):
    """Branch (sucursal) holding stock."""
    __tablename__ = "locations"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_locations_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Location id={self.id} code={self.code!r}>"

    @property
    def is_usable(self) -> bool:
        return bool(self.is_active) and self.voided_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "is_active": self.is_active,
            "voided_at": to_utc_z(self.voided_at),
        }


class Variant(db.Model):
    """
    Color + brand combination distinguishing otherwise-identical product stock
    (e.g. the same frame model in two colors from two brands).
    """
    __tablename__ = "variants"
    __table_args__ = (
        db.UniqueConstraint("color", "brand", name="uq_variants_color_brand"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    color = db.Column(db.String(64), nullable=False)
    brand = db.Column(db.String(128), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Variant id={self.id} color={self.color!r} brand={self.brand!r}>"

    @property
    def is_usable(self) -> bool:
        return bool(self.is_active) and self.voided_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "color": self.color,
            "brand": self.brand,
            "is_active": self.is_active,
            "voided_at": to_utc_z(self.voided_at),
        }
