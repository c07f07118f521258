"""Inventory ledger: catalog references, stock records, ledger entries, audit log

Revision ID: sl001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "sl001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Catalog references (maintained elsewhere; minimal columns the ledger checks)
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("sku", name="uq_products_sku"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_name", "products", ["name"], unique=False)

    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("code", name="uq_locations_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_locations_name", "locations", ["name"], unique=False)

    op.create_table(
        "variants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("color", sa.String(length=64), nullable=False),
        sa.Column("brand", sa.String(length=128), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("color", "brand", name="uq_variants_color_brand"),
        sqlite_autoincrement=True,
    )

    # Stock records
    op.create_table(
        "stock_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("variant_id", sa.Integer(), nullable=False),
        sa.Column("quantity_on_hand", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reorder_threshold", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("modified_by", sa.Integer(), nullable=True),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voided_by", sa.Integer(), nullable=True),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["variant_id"], ["variants.id"]),
        sa.CheckConstraint("quantity_on_hand >= 0", name="ck_stock_records_quantity_non_negative"),
        sa.CheckConstraint("reorder_threshold >= 0", name="ck_stock_records_threshold_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_records_product_id", "stock_records", ["product_id"], unique=False)
    op.create_index("ix_stock_records_location_id", "stock_records", ["location_id"], unique=False)
    op.create_index("ix_stock_records_variant_id", "stock_records", ["variant_id"], unique=False)
    op.create_index("ix_stock_records_voided_at", "stock_records", ["voided_at"], unique=False)
    op.create_index(
        "ix_stock_records_location_quantity",
        "stock_records",
        ["location_id", "quantity_on_hand"],
        unique=False,
    )
    # One live record per (product, location, variant); voided rows do not count
    op.create_index(
        "uq_stock_records_live_tuple",
        "stock_records",
        ["product_id", "location_id", "variant_id"],
        unique=True,
        sqlite_where=sa.text("voided_at IS NULL"),
        postgresql_where=sa.text("voided_at IS NULL"),
    )

    # Ledger entries (append-only)
    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("stock_record_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("resulting_balance", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("voided", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voided_by", sa.Integer(), nullable=True),
        sa.Column("reversal_of_entry_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["stock_record_id"], ["stock_records.id"]),
        sa.ForeignKeyConstraint(["reversal_of_entry_id"], ["ledger_entries.id"]),
        sa.UniqueConstraint("reversal_of_entry_id", name="uq_ledger_entries_reversal_of"),
        sa.CheckConstraint("resulting_balance >= 0", name="ck_ledger_entries_balance_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_ledger_entries_stock_record_id", "ledger_entries", ["stock_record_id"], unique=False)
    op.create_index("ix_ledger_entries_kind", "ledger_entries", ["kind"], unique=False)
    op.create_index("ix_ledger_entries_actor_id", "ledger_entries", ["actor_id"], unique=False)
    op.create_index("ix_ledger_entries_occurred_at", "ledger_entries", ["occurred_at"], unique=False)
    op.create_index(
        "ix_ledger_entries_record_occurred",
        "ledger_entries",
        ["stock_record_id", "occurred_at"],
        unique=False,
    )

    # Audit log
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("outcome", sa.String(length=16), nullable=False),
        sa.Column("module", sa.String(length=32), nullable=False, server_default="inventory"),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_outcome", "audit_logs", ["outcome"], unique=False)
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"], unique=False)


def downgrade():
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_index("ix_audit_logs_outcome", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_ledger_entries_record_occurred", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_occurred_at", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_actor_id", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_kind", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_stock_record_id", table_name="ledger_entries")
    op.drop_table("ledger_entries")

    op.drop_index("uq_stock_records_live_tuple", table_name="stock_records")
    op.drop_index("ix_stock_records_location_quantity", table_name="stock_records")
    op.drop_index("ix_stock_records_voided_at", table_name="stock_records")
    op.drop_index("ix_stock_records_variant_id", table_name="stock_records")
    op.drop_index("ix_stock_records_location_id", table_name="stock_records")
    op.drop_index("ix_stock_records_product_id", table_name="stock_records")
    op.drop_table("stock_records")

    op.drop_table("variants")
    op.drop_index("ix_locations_name", table_name="locations")
    op.drop_table("locations")
    op.drop_index("ix_products_name", table_name="products")
    op.drop_table("products")
