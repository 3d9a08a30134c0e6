# backend/stockledger/services/transfer_service.py
"""
Inter-branch stock transfer service.

Stock moves when the transfer is created: the source branch is decremented
and the destination incremented in the same unit of work as the transfer row.
The status field only tracks the physical shipment afterwards.

LIFECYCLE:
1. pending: created, stock already moved
2. in-transit: shipped
3. received: arrived at destination

Status moves forward only. Skipping a step is allowed, re-setting the
current status is a no-op, and moving backwards is rejected.
"""
from __future__ import annotations

import logging
from collections import Counter

from ..errors import InsufficientStockError, InvalidArgumentError, NotFoundError
from ..extensions import db
from ..models import StockTransfer, StockTransferItem
from ..models.documents import TRANSFER_STATUS_PENDING, TRANSFER_STATUSES
from ..models.inventory import MOVEMENT_ADJUSTMENT
from . import ledger_service
from .concurrency import execute_unit_of_work, lock_for_update
from .tenant_service import require_branch_in_business, require_products_in_business


logger = logging.getLogger(__name__)


def create_stock_transfer(
    business_id: int,
    user_id: int,
    from_branch_id: int,
    to_branch_id: int,
    items,
) -> StockTransfer:
    """
    Move stock between two branches of the same business.

    Args:
        items: TransferLine values (product_id, quantity)

    Returns:
        StockTransfer: the created transfer, status pending

    Raises:
        InvalidArgumentError: empty items, bad quantity, same branch, foreign product
        NotFoundError: either branch outside the business
        InsufficientStockError: source branch holds less than requested
    """
    if not items:
        raise InvalidArgumentError("Transfer must have at least one item")
    for idx, line in enumerate(items):
        qty = line.quantity
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise InvalidArgumentError("Quantity must be a positive integer", {"index": idx})
    if from_branch_id == to_branch_id:
        raise InvalidArgumentError("Cannot transfer to the same branch")

    require_branch_in_business(from_branch_id, business_id)
    require_branch_in_business(to_branch_id, business_id)
    require_products_in_business([line.product_id for line in items], business_id)

    def _op():
        transfer = StockTransfer(
            business_id=business_id,
            from_branch_id=from_branch_id,
            to_branch_id=to_branch_id,
            created_by_user_id=user_id,
            status=TRANSFER_STATUS_PENDING,
        )
        db.session.add(transfer)
        db.session.flush()  # Get ID

        keys = []
        for line in items:
            keys.append((from_branch_id, line.product_id))
            keys.append((to_branch_id, line.product_id))
        levels = ledger_service.lock_stock_levels(business_id, keys)

        # Check the whole request before moving anything
        requested = Counter()
        for line in items:
            requested[line.product_id] += line.quantity
        for product_id, qty in requested.items():
            on_hand = levels[(from_branch_id, product_id)].quantity
            if on_hand < qty:
                raise InsufficientStockError(
                    f"Insufficient stock for product {product_id}. "
                    f"On-hand: {on_hand}, requested: {qty}",
                    {"product_id": product_id, "available": on_hand, "requested": qty},
                )

        reference = f"transfer:{transfer.id}"
        for line in items:
            ledger_service.adjust_stock(
                business_id,
                from_branch_id,
                line.product_id,
                -line.quantity,
                movement_type=MOVEMENT_ADJUSTMENT,
                user_id=user_id,
                note=f"Stock transfer out to branch {to_branch_id} (transfer {transfer.id})",
                reference=reference,
            )
            ledger_service.adjust_stock(
                business_id,
                to_branch_id,
                line.product_id,
                line.quantity,
                movement_type=MOVEMENT_ADJUSTMENT,
                user_id=user_id,
                note=f"Stock transfer in from branch {from_branch_id} (transfer {transfer.id})",
                reference=reference,
            )
            db.session.add(
                StockTransferItem(
                    transfer_id=transfer.id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                )
            )

        db.session.flush()
        return transfer

    transfer = execute_unit_of_work(_op)
    logger.info(
        "Transfer %s recorded: %s -> %s, %d line(s)",
        transfer.id, from_branch_id, to_branch_id, len(items),
    )
    return transfer


def update_stock_transfer_status(transfer_id: int, business_id: int, status: str) -> StockTransfer:
    """
    Advance a transfer's tracking status. Never moves stock.

    Raises:
        NotFoundError: transfer absent or outside the business
        InvalidArgumentError: unknown status or a backwards move
    """
    if status not in TRANSFER_STATUSES:
        raise InvalidArgumentError(
            "status must be one of: " + ", ".join(TRANSFER_STATUSES),
            {"status": status},
        )

    def _op():
        transfer = lock_for_update(
            db.session.query(StockTransfer).filter_by(id=transfer_id, business_id=business_id)
        ).first()
        if transfer is None:
            raise NotFoundError("Stock transfer not found", {"transfer_id": transfer_id})

        current_rank = TRANSFER_STATUSES.index(transfer.status)
        new_rank = TRANSFER_STATUSES.index(status)
        if new_rank < current_rank:
            raise InvalidArgumentError(
                f"Cannot move transfer from {transfer.status} back to {status}",
                {"current_status": transfer.status, "status": status},
            )
        if new_rank > current_rank:
            transfer.status = status
            db.session.flush()
        return transfer

    transfer = execute_unit_of_work(_op)
    logger.info("Transfer %s status is %s", transfer_id, transfer.status)
    return transfer
