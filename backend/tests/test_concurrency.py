# Overview: Pytest coverage for concurrent writers against a file database.

"""
Concurrency Tests

Runs engine operations from several threads, each with its own app context
and session, against a temporary SQLite file. Verifies that no decrement is
lost and that opposite-direction transfers do not deadlock.
"""

import threading

import pytest

from stockledger import create_app
from stockledger.errors import ConflictError
from stockledger.extensions import db
from stockledger.models import Branch, Business, Product, StockMovement
from stockledger.services import ledger_service, sales_service, transfer_service
from stockledger.validation import SaleLine, TransferLine

from conftest import USER_ID


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    with file_app.app_context():
        business = Business(name="Concurrent Co", code="CONC")
        db.session.add(business)
        db.session.flush()
        branches = [Branch(business_id=business.id, name=f"Branch {n}") for n in (1, 2)]
        product = Product(business_id=business.id, name="Widget", sell_price_cents=100)
        db.session.add_all(branches + [product])
        db.session.commit()

        ids = {
            "business": business.id,
            "branch_1": branches[0].id,
            "branch_2": branches[1].id,
            "product": product.id,
        }
        for branch_key in ("branch_1", "branch_2"):
            ledger_service.record_opening_balance(
                ids["business"], ids[branch_key], ids["product"], USER_ID, 20
            )
        db.session.remove()
    return ids


def _run_threads(app, target, count):
    errors = []
    lock = threading.Lock()

    def worker(n):
        with app.app_context():
            try:
                target(n)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return errors


def test_parallel_sales_lose_no_decrement(file_app, seeded):
    workers = 8

    def sell(n):
        sales_service.create_sale(
            business_id=seeded["business"],
            branch_id=seeded["branch_1"],
            user_id=USER_ID,
            items=[SaleLine(seeded["product"], 1, 100)],
            total_amount_cents=None,
            payment_method="cash",
            offline_id=f"thread-{n}",
        )

    errors = _run_threads(file_app, sell, workers)

    assert errors == []
    with file_app.app_context():
        qty = ledger_service.get_stock_quantity(seeded["business"], seeded["branch_1"], seeded["product"])
        assert qty == 20 - workers
        assert db.session.query(StockMovement).filter_by(type="sale").count() == workers
        assert ledger_service.reconcile_stock_levels(seeded["business"]) == []


def test_opposite_direction_transfers_complete(file_app, seeded):
    def move(n):
        if n % 2 == 0:
            src, dst = seeded["branch_1"], seeded["branch_2"]
        else:
            src, dst = seeded["branch_2"], seeded["branch_1"]
        transfer_service.create_stock_transfer(
            business_id=seeded["business"],
            user_id=USER_ID,
            from_branch_id=src,
            to_branch_id=dst,
            items=[TransferLine(seeded["product"], 2)],
        )

    errors = _run_threads(file_app, move, 6)

    assert errors == []
    with file_app.app_context():
        total = sum(
            ledger_service.get_stock_quantity(seeded["business"], seeded[key], seeded["product"])
            for key in ("branch_1", "branch_2")
        )
        assert total == 40
        assert ledger_service.reconcile_stock_levels(seeded["business"]) == []


def test_duplicate_offline_submissions_record_one_sale(file_app, seeded):
    def submit(n):
        sales_service.create_sale(
            business_id=seeded["business"],
            branch_id=seeded["branch_2"],
            user_id=USER_ID,
            items=[SaleLine(seeded["product"], 1, 100)],
            total_amount_cents=None,
            payment_method="cash",
            offline_id="same-receipt",
        )

    errors = _run_threads(file_app, submit, 4)

    assert len(errors) == 3
    assert all(isinstance(e, ConflictError) for e in errors)
    with file_app.app_context():
        qty = ledger_service.get_stock_quantity(seeded["business"], seeded["branch_2"], seeded["product"])
        assert qty == 19
