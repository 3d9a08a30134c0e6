# Overview: Pytest coverage for Flask CLI commands.

from stockledger.models import Branch, Business, Product, StockLevel
from stockledger.services import ledger_service


def test_create_business_branch_and_product_with_opening_balance(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['businesses', 'create', '--name', 'Corner Shop', '--code', 'CORNER'])
    assert result.exit_code == 0
    assert 'PASS Created business' in result.output
    business = db_session.query(Business).filter_by(code='CORNER').one()

    result = runner.invoke(args=[
        'branches', 'create', '--business-id', str(business.id), '--name', 'Main', '--code', 'M1',
    ])
    assert 'PASS Created branch' in result.output
    branch = db_session.query(Branch).filter_by(business_id=business.id).one()

    result = runner.invoke(args=[
        'products', 'create', '--business-id', str(business.id), '--name', 'Tea 250g',
        '--cost', '0.80', '--price', '1.25', '--sku', 'TEA-250',
        '--branch-id', str(branch.id), '--quantity', '30',
    ])
    assert 'PASS Opening balance' in result.output

    product = db_session.query(Product).filter_by(sku='TEA-250').one()
    assert product.cost_price_cents == 80
    assert product.sell_price_cents == 125
    assert ledger_service.get_stock_quantity(business.id, branch.id, product.id) == 30

    result = runner.invoke(args=['stock', 'levels', '--business-id', str(business.id)])
    assert 'Tea 250g' in result.output


def test_duplicate_business_code_refused(app, db_session, business_a):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['businesses', 'create', '--name', 'Again', '--code', business_a.code])

    assert 'FAIL' in result.output
    assert db_session.query(Business).count() == 1


def test_reconcile_exit_code(app, db_session, business_a, branch_a1, product_a, stock):
    runner = app.test_cli_runner()
    stock(business_a, branch_a1, product_a, 10)

    clean = runner.invoke(args=['stock', 'reconcile', '--business-id', str(business_a.id)])
    assert clean.exit_code == 0

    level = db_session.query(StockLevel).filter_by(product_id=product_a.id).one()
    level.quantity = 3
    db_session.commit()

    drifted = runner.invoke(args=['stock', 'reconcile', '--business-id', str(business_a.id)])
    assert drifted.exit_code == 1
    assert 'difference=-7' in drifted.output
