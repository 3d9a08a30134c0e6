# Overview: Pytest coverage for the stock ledger primitives.

import pytest

from stockledger.errors import ConflictError, InvalidArgumentError, NotFoundError
from stockledger.models import StockLevel, StockMovement
from stockledger.services import ledger_service
from stockledger.services.concurrency import unit_of_work

from conftest import USER_ID


def _movements(db_session, branch, product):
    return (
        db_session.query(StockMovement)
        .filter_by(branch_id=branch.id, product_id=product.id)
        .order_by(StockMovement.id)
        .all()
    )


class TestAdjustStock:
    def test_missing_key_reads_as_zero(self, db_session, business_a, branch_a1, product_a):
        assert ledger_service.get_stock_quantity(business_a.id, branch_a1.id, product_a.id) == 0
        assert db_session.query(StockLevel).count() == 0

    def test_creates_level_lazily_and_appends_movement(self, db_session, business_a, branch_a1, product_a):
        with unit_of_work():
            new_qty = ledger_service.adjust_stock(
                business_a.id, branch_a1.id, product_a.id, 5,
                movement_type="purchase", user_id=USER_ID, reference="po:1",
            )

        assert new_qty == 5
        level = db_session.query(StockLevel).filter_by(product_id=product_a.id).one()
        assert level.quantity == 5
        movements = _movements(db_session, branch_a1, product_a)
        assert len(movements) == 1
        assert movements[0].quantity_delta == 5
        assert movements[0].type == "purchase"
        assert movements[0].reference == "po:1"

    def test_negative_delta_may_go_below_zero(self, db_session, business_a, branch_a1, product_a):
        with unit_of_work():
            new_qty = ledger_service.adjust_stock(
                business_a.id, branch_a1.id, product_a.id, -2,
                movement_type="sale", user_id=USER_ID,
            )
        assert new_qty == -2

    @pytest.mark.parametrize("delta", [0, True, 1.5])
    def test_rejects_bad_delta(self, db_session, business_a, branch_a1, product_a, delta):
        with pytest.raises(InvalidArgumentError):
            with unit_of_work():
                ledger_service.adjust_stock(
                    business_a.id, branch_a1.id, product_a.id, delta,
                    movement_type="adjustment", user_id=USER_ID,
                )

    def test_rejects_unknown_movement_type(self, db_session, business_a, branch_a1, product_a):
        with pytest.raises(InvalidArgumentError):
            with unit_of_work():
                ledger_service.adjust_stock(
                    business_a.id, branch_a1.id, product_a.id, 1,
                    movement_type="theft", user_id=USER_ID,
                )

    def test_rollback_discards_level_and_movement(self, db_session, business_a, branch_a1, product_a):
        with pytest.raises(RuntimeError):
            with unit_of_work():
                ledger_service.adjust_stock(
                    business_a.id, branch_a1.id, product_a.id, 3,
                    movement_type="purchase", user_id=USER_ID,
                )
                raise RuntimeError("boom")

        assert db_session.query(StockLevel).count() == 0
        assert db_session.query(StockMovement).count() == 0

    def test_lock_stock_levels_returns_every_key(self, db_session, business_a, branch_a1, branch_a2, product_a):
        with unit_of_work():
            levels = ledger_service.lock_stock_levels(
                business_a.id,
                [(branch_a2.id, product_a.id), (branch_a1.id, product_a.id), (branch_a2.id, product_a.id)],
            )
        assert set(levels) == {(branch_a1.id, product_a.id), (branch_a2.id, product_a.id)}
        assert all(level.quantity == 0 for level in levels.values())


class TestOpeningBalance:
    def test_records_opening_balance(self, db_session, business_a, branch_a1, product_a):
        qty = ledger_service.record_opening_balance(business_a.id, branch_a1.id, product_a.id, USER_ID, 10)

        assert qty == 10
        movements = _movements(db_session, branch_a1, product_a)
        assert [(m.type, m.quantity_delta) for m in movements] == [("opening_balance", 10)]

    def test_second_opening_balance_conflicts(self, db_session, business_a, branch_a1, product_a):
        ledger_service.record_opening_balance(business_a.id, branch_a1.id, product_a.id, USER_ID, 10)

        with pytest.raises(ConflictError):
            ledger_service.record_opening_balance(business_a.id, branch_a1.id, product_a.id, USER_ID, 4)

        assert ledger_service.get_stock_quantity(business_a.id, branch_a1.id, product_a.id) == 10

    def test_opening_balance_after_other_movement_conflicts(self, db_session, business_a, branch_a1, product_a):
        ledger_service.receive_stock(business_a.id, branch_a1.id, product_a.id, USER_ID, 3)

        with pytest.raises(ConflictError):
            ledger_service.record_opening_balance(business_a.id, branch_a1.id, product_a.id, USER_ID, 10)

    def test_foreign_branch_not_found(self, db_session, business_a, branch_b1, product_a):
        with pytest.raises(NotFoundError):
            ledger_service.record_opening_balance(business_a.id, branch_b1.id, product_a.id, USER_ID, 10)

    def test_foreign_product_invalid(self, db_session, business_a, branch_a1, product_b):
        with pytest.raises(InvalidArgumentError):
            ledger_service.record_opening_balance(business_a.id, branch_a1.id, product_b.id, USER_ID, 10)


class TestReceiveAndSetQuantity:
    def test_receive_adds_purchase_movement(self, db_session, business_a, branch_a1, product_a, stock):
        stock(business_a, branch_a1, product_a, 10)

        qty = ledger_service.receive_stock(
            business_a.id, branch_a1.id, product_a.id, USER_ID, 6, note="Supplier delivery"
        )

        assert qty == 16
        last = _movements(db_session, branch_a1, product_a)[-1]
        assert (last.type, last.quantity_delta, last.note) == ("purchase", 6, "Supplier delivery")

    def test_receive_rejects_non_positive(self, db_session, business_a, branch_a1, product_a):
        with pytest.raises(InvalidArgumentError):
            ledger_service.receive_stock(business_a.id, branch_a1.id, product_a.id, USER_ID, 0)

    def test_set_quantity_writes_difference(self, db_session, business_a, branch_a1, product_a, stock):
        stock(business_a, branch_a1, product_a, 10)

        qty = ledger_service.set_stock_quantity(business_a.id, branch_a1.id, product_a.id, USER_ID, 4)

        assert qty == 4
        last = _movements(db_session, branch_a1, product_a)[-1]
        assert (last.type, last.quantity_delta) == ("adjustment", -6)

    def test_set_quantity_equal_writes_nothing(self, db_session, business_a, branch_a1, product_a, stock):
        stock(business_a, branch_a1, product_a, 10)

        qty = ledger_service.set_stock_quantity(business_a.id, branch_a1.id, product_a.id, USER_ID, 10)

        assert qty == 10
        assert len(_movements(db_session, branch_a1, product_a)) == 1

    def test_set_quantity_rejects_negative(self, db_session, business_a, branch_a1, product_a):
        with pytest.raises(InvalidArgumentError):
            ledger_service.set_stock_quantity(business_a.id, branch_a1.id, product_a.id, USER_ID, -1)


class TestReconcile:
    def test_consistent_ledger_has_no_drift(self, db_session, business_a, branch_a1, product_a, stock):
        stock(business_a, branch_a1, product_a, 10)
        ledger_service.set_stock_quantity(business_a.id, branch_a1.id, product_a.id, USER_ID, 7)

        assert ledger_service.reconcile_stock_levels(business_a.id) == []

    def test_detects_direct_quantity_edit(self, db_session, business_a, branch_a1, product_a, stock):
        stock(business_a, branch_a1, product_a, 10)
        level = db_session.query(StockLevel).filter_by(product_id=product_a.id).one()
        level.quantity = 25
        db_session.commit()

        drift = ledger_service.reconcile_stock_levels(business_a.id)

        assert drift == [{
            "branch_id": branch_a1.id,
            "product_id": product_a.id,
            "quantity": 25,
            "movement_total": 10,
            "difference": 15,
        }]
