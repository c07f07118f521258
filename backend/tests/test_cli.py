"""
CLI command tests (catalog seeding, stock inspection, ledger verification).
"""

from stockledger.models import Location, Product, StockRecord, Variant


def test_seed_demo_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["catalog", "seed-demo"])
    assert result.exit_code == 0, result.output
    assert "Stock records created: 12" in result.output

    result = runner.invoke(args=["catalog", "seed-demo"])
    assert result.exit_code == 0, result.output
    assert "Stock records created: 0, already present: 12" in result.output

    assert db_session.query(Product).count() == 3
    assert db_session.query(Location).count() == 2
    assert db_session.query(Variant).count() == 2


def test_add_catalog_entries(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["catalog", "add-product", "--sku", "fr-100", "--name", "Frame Round"])
    assert result.exit_code == 0, result.output
    assert db_session.query(Product).filter_by(sku="FR-100").count() == 1

    result = runner.invoke(args=["catalog", "add-location", "--code", "sur", "--name", "Sucursal Sur"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(args=["catalog", "add-variant", "--color", " ", "--brand", "Oakley"])
    assert result.exit_code != 0


def test_stock_list_and_alerts(app, make_record):
    make_record(quantity=1, threshold=3)
    runner = app.test_cli_runner()

    result = runner.invoke(args=["stock", "list"])
    assert result.exit_code == 0, result.output
    assert "Frame Aviator" in result.output

    result = runner.invoke(args=["stock", "alerts"])
    assert result.exit_code == 0, result.output
    assert "Total alerts: 1 (low: 1, out of stock: 0)" in result.output


def test_verify_passes_and_reports_drift(app, db_session, make_record):
    record = make_record(quantity=4)
    runner = app.test_cli_runner()

    result = runner.invoke(args=["stock", "verify"])
    assert result.exit_code == 0, result.output
    assert "PASS 1 records match their ledger" in result.output

    db_session.query(StockRecord).filter_by(id=record.id).update({"quantity_on_hand": 1})
    db_session.commit()

    result = runner.invoke(args=["stock", "verify"])
    assert result.exit_code == 1
    assert "drift -3" in result.output
