# Overview: Pytest coverage for inter-branch stock transfers.

import pytest

from stockledger.errors import InsufficientStockError, InvalidArgumentError, NotFoundError
from stockledger.models import StockMovement, StockTransfer, StockTransferItem
from stockledger.services import ledger_service, transfer_service
from stockledger.validation import TransferLine

from conftest import USER_ID


def _transfer(business, from_branch, to_branch, lines):
    return transfer_service.create_stock_transfer(
        business_id=business.id,
        user_id=USER_ID,
        from_branch_id=from_branch.id,
        to_branch_id=to_branch.id,
        items=lines,
    )


def _qty(business, branch, product):
    return ledger_service.get_stock_quantity(business.id, branch.id, product.id)


class TestCreateTransfer:
    def test_transfer_moves_stock_and_balances(
        self, db_session, business_a, branch_a1, branch_a2, product_a, product_a2, stock
    ):
        stock(business_a, branch_a1, product_a, 10)
        stock(business_a, branch_a1, product_a2, 4)

        transfer = _transfer(
            business_a, branch_a1, branch_a2,
            [TransferLine(product_a.id, 6), TransferLine(product_a2.id, 4)],
        )

        assert transfer.status == "pending"
        assert _qty(business_a, branch_a1, product_a) == 4
        assert _qty(business_a, branch_a2, product_a) == 6
        assert _qty(business_a, branch_a1, product_a2) == 0
        assert _qty(business_a, branch_a2, product_a2) == 4

        movements = (
            db_session.query(StockMovement)
            .filter_by(reference=f"transfer:{transfer.id}")
            .all()
        )
        assert len(movements) == 4
        assert sum(m.quantity_delta for m in movements) == 0
        assert {m.type for m in movements} == {"adjustment"}
        out_notes = [m.note for m in movements if m.quantity_delta < 0]
        assert all(f"to branch {branch_a2.id}" in note for note in out_notes)

        items = db_session.query(StockTransferItem).filter_by(transfer_id=transfer.id).count()
        assert items == 2

    def test_insufficient_stock_rolls_back_everything(
        self, db_session, business_a, branch_a1, branch_a2, product_a, product_a2, stock
    ):
        stock(business_a, branch_a1, product_a, 10)
        stock(business_a, branch_a1, product_a2, 1)

        with pytest.raises(InsufficientStockError) as exc:
            _transfer(
                business_a, branch_a1, branch_a2,
                [TransferLine(product_a.id, 5), TransferLine(product_a2.id, 2)],
            )

        assert exc.value.details["product_id"] == product_a2.id
        assert _qty(business_a, branch_a1, product_a) == 10
        assert _qty(business_a, branch_a2, product_a) == 0
        assert db_session.query(StockTransfer).count() == 0

    def test_repeated_lines_checked_together(
        self, db_session, business_a, branch_a1, branch_a2, product_a, stock
    ):
        stock(business_a, branch_a1, product_a, 5)

        with pytest.raises(InsufficientStockError):
            _transfer(
                business_a, branch_a1, branch_a2,
                [TransferLine(product_a.id, 3), TransferLine(product_a.id, 3)],
            )
        assert _qty(business_a, branch_a1, product_a) == 5

    def test_same_branch_rejected(self, db_session, business_a, branch_a1, product_a):
        with pytest.raises(InvalidArgumentError):
            _transfer(business_a, branch_a1, branch_a1, [TransferLine(product_a.id, 1)])

    def test_foreign_destination_not_found(self, db_session, business_a, branch_a1, branch_b1, product_a, stock):
        stock(business_a, branch_a1, product_a, 5)

        with pytest.raises(NotFoundError):
            _transfer(business_a, branch_a1, branch_b1, [TransferLine(product_a.id, 1)])
        assert _qty(business_a, branch_a1, product_a) == 5

    def test_foreign_product_invalid(self, db_session, business_a, branch_a1, branch_a2, product_b):
        with pytest.raises(InvalidArgumentError):
            _transfer(business_a, branch_a1, branch_a2, [TransferLine(product_b.id, 1)])

    @pytest.mark.parametrize("lines", [[], [TransferLine(1, 0)]])
    def test_bad_items_rejected(self, db_session, business_a, branch_a1, branch_a2, lines):
        with pytest.raises(InvalidArgumentError):
            _transfer(business_a, branch_a1, branch_a2, lines)


class TestTransferStatus:
    @pytest.fixture
    def transfer(self, db_session, business_a, branch_a1, branch_a2, product_a, stock):
        stock(business_a, branch_a1, product_a, 10)
        return _transfer(business_a, branch_a1, branch_a2, [TransferLine(product_a.id, 4)])

    def test_forward_moves_allowed(self, db_session, business_a, transfer):
        updated = transfer_service.update_stock_transfer_status(transfer.id, business_a.id, "in-transit")
        assert updated.status == "in-transit"

        updated = transfer_service.update_stock_transfer_status(transfer.id, business_a.id, "received")
        assert updated.status == "received"

    def test_skipping_forward_allowed(self, db_session, business_a, transfer):
        updated = transfer_service.update_stock_transfer_status(transfer.id, business_a.id, "received")
        assert updated.status == "received"

    def test_same_status_is_noop(self, db_session, business_a, transfer):
        updated = transfer_service.update_stock_transfer_status(transfer.id, business_a.id, "pending")
        assert updated.status == "pending"

    def test_backward_move_rejected(self, db_session, business_a, transfer):
        transfer_service.update_stock_transfer_status(transfer.id, business_a.id, "received")

        with pytest.raises(InvalidArgumentError):
            transfer_service.update_stock_transfer_status(transfer.id, business_a.id, "in-transit")

    def test_unknown_status_rejected(self, db_session, business_a, transfer):
        with pytest.raises(InvalidArgumentError):
            transfer_service.update_stock_transfer_status(transfer.id, business_a.id, "lost")

    def test_status_change_never_moves_stock(
        self, db_session, business_a, branch_a1, branch_a2, product_a, transfer
    ):
        movement_count = db_session.query(StockMovement).count()

        transfer_service.update_stock_transfer_status(transfer.id, business_a.id, "received")

        assert db_session.query(StockMovement).count() == movement_count
        assert _qty(business_a, branch_a1, product_a) == 6
        assert _qty(business_a, branch_a2, product_a) == 4

    def test_foreign_business_not_found(self, db_session, business_b, transfer):
        with pytest.raises(NotFoundError):
            transfer_service.update_stock_transfer_status(transfer.id, business_b.id, "received")
