"""
Audit sink tests.

Verifies:
- One success or failure row per ledger operation
- A failing audit writer never fails the ledger operation
- Async delivery lands after flush() on a file database
- In-memory SQLite always delivers inline
"""

import pytest

from stockledger import create_app
from stockledger.errors import InsufficientStockError
from stockledger.extensions import audit_sink, db
from stockledger.models import AuditLog, Location, MovementKind, Product, Variant
from stockledger.services.audit_sink import OUTCOME_FAILURE, OUTCOME_SUCCESS
from stockledger.validation import CreateStockRecordRequest, MovementRequest, ReversalRequest


def _outbound(record, quantity):
    return MovementRequest(stock_record_id=record.id, kind=MovementKind.OUTBOUND, quantity=quantity, reason="Sold at counter")


def test_success_and_failure_rows(engine, db_session, make_record):
    record = make_record(quantity=3)
    entry = engine.apply_movement(_outbound(record, 1), actor_id=5)
    with pytest.raises(InsufficientStockError):
        engine.apply_movement(_outbound(record, 50), actor_id=5)

    rows = db_session.query(AuditLog).filter(AuditLog.action == "ledger.movement").order_by(AuditLog.id).all()
    assert [r.outcome for r in rows] == [OUTCOME_SUCCESS, OUTCOME_FAILURE]
    assert rows[0].entity_type == "ledger_entry"
    assert rows[0].entity_id == entry.id
    assert rows[0].actor_id == 5
    assert "Insufficient stock" in rows[1].description


def test_reversal_is_audited(engine, db_session, make_record):
    record = make_record(quantity=3)
    entry = engine.apply_movement(_outbound(record, 1), actor_id=5)
    engine.reverse_movement(ReversalRequest(entry_id=entry.id, reason="Sale cancelled"), actor_id=6)

    row = db_session.query(AuditLog).filter_by(action="ledger.reversal").one()
    assert row.outcome == OUTCOME_SUCCESS
    assert row.entity_id == entry.id
    assert row.actor_id == 6


def test_failing_writer_does_not_fail_operation(engine, db_session, make_record, monkeypatch):
    record = make_record(quantity=3)

    def broken_write(engine_, event):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(audit_sink, "_write", broken_write)
    before = db_session.query(AuditLog).count()

    entry = engine.apply_movement(_outbound(record, 2), actor_id=5)

    db_session.refresh(record)
    assert entry.resulting_balance == 1
    assert record.quantity_on_hand == 1
    assert db_session.query(AuditLog).count() == before


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'audit.sqlite3'}",
        'AUDIT_ASYNC': True,
    })
    with app.app_context():
        db.create_all()
    yield app
    audit_sink.flush(timeout=10)
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed_record(app, quantity):
    product = Product(sku="FR-AVI-01", name="Frame Aviator", is_active=True)
    location = Location(code="CEN", name="Sucursal Centro", is_active=True)
    variant = Variant(color="Black", brand="Ray-Ban", is_active=True)
    db.session.add_all([product, location, variant])
    db.session.commit()
    return app.extensions["stockledger"].stock_records.create(
        CreateStockRecordRequest(
            product_id=product.id,
            location_id=location.id,
            variant_id=variant.id,
            quantity=quantity,
            threshold=None,
        ),
        actor_id=1,
    )


def test_async_delivery(file_app, monkeypatch):
    submitted = []
    real_executor = audit_sink._get_executor

    def counting_executor():
        submitted.append(1)
        return real_executor()

    monkeypatch.setattr(audit_sink, "_get_executor", counting_executor)

    with file_app.app_context():
        record = _seed_record(file_app, 3)
        file_app.extensions["stockledger"].engine.apply_movement(_outbound(record, 1), actor_id=5)
        audit_sink.flush(timeout=10)

        rows = db.session.query(AuditLog).filter_by(action="ledger.movement").all()
        assert [r.outcome for r in rows] == [OUTCOME_SUCCESS]
    assert submitted


def test_in_memory_database_delivers_inline(app, engine, db_session, make_record, monkeypatch):
    """A single shared in-memory connection is never handed to the worker."""
    record = make_record(quantity=3)

    def no_executor():
        raise AssertionError("in-memory delivery must stay on the calling thread")

    monkeypatch.setattr(audit_sink, "_get_executor", no_executor)
    app.config["AUDIT_ASYNC"] = True
    try:
        engine.apply_movement(_outbound(record, 1), actor_id=5)
    finally:
        app.config["AUDIT_ASYNC"] = False

    rows = db_session.query(AuditLog).filter_by(action="ledger.movement").all()
    assert [r.outcome for r in rows] == [OUTCOME_SUCCESS]
