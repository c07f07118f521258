from .catalog import Product, Location, Variant
from .inventory import MovementKind, StockRecord, LedgerEntry
from .audit import AuditLog

__all__ = [
    'Product', 'Location', 'Variant',
    'MovementKind', 'StockRecord', 'LedgerEntry',
    'AuditLog',
]
