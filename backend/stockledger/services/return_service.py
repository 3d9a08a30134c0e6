"""
Return Engine

Customers return goods from an earlier sale. The returned stock goes back to
the branch the sale was made at, and the refund is priced from the sale, never
from the request.

DESIGN PRINCIPLES:
- The sale row is locked for the whole unit of work, so two concurrent
  returns of the same sale see each other's quantities
- Per product, the total returned across all returns of a sale never
  exceeds the quantity sold
- All validation happens before the first write
- One `return` movement per returned line
"""

from __future__ import annotations

import logging
from collections import Counter

from sqlalchemy import func

from ..errors import InvalidArgumentError, NotFoundError
from ..extensions import db
from ..models import Return, ReturnItem, Sale, SaleItem
from ..models.inventory import MOVEMENT_RETURN
from ..models.sales import SALE_STATUS_COMPLETED
from . import ledger_service
from .concurrency import execute_unit_of_work, lock_for_update


logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================

def _sold_by_product(sale_id: int) -> dict[int, tuple[int, int]]:
    """
    Map product_id -> (quantity sold, unit price cents).

    A product sold on several lines is summed; the unit price is taken from
    its first line.
    """
    sold: dict[int, tuple[int, int]] = {}
    lines = db.session.query(SaleItem).filter_by(sale_id=sale_id).order_by(SaleItem.id).all()
    for line in lines:
        qty, price = sold.get(line.product_id, (0, line.unit_price_cents))
        sold[line.product_id] = (qty + line.quantity, price)
    return sold


def _returned_by_product(sale_id: int) -> Counter:
    rows = (
        db.session.query(ReturnItem.product_id, func.sum(ReturnItem.quantity))
        .join(Return, Return.id == ReturnItem.return_id)
        .filter(Return.sale_id == sale_id)
        .group_by(ReturnItem.product_id)
        .all()
    )
    return Counter({product_id: int(total or 0) for product_id, total in rows})


# =============================================================================
# RETURN CREATION
# =============================================================================

def create_return(
    business_id: int,
    branch_id: int | None,
    user_id: int,
    sale_id: int,
    items,
    reason: str | None = None,
    refund_method: str | None = None,
    reference_code: str | None = None,
) -> Return:
    """
    Record a return against a completed sale and restock its branch.

    Args:
        branch_id: caller's branch, or None; must match the sale's branch
        items: ReturnLine values (product_id, quantity). A product listed
            twice counts cumulatively.

    Raises:
        NotFoundError: sale absent or outside the business
        InvalidArgumentError: branch mismatch, sale not completed, product
            not on the sale, or quantity beyond what is still returnable
    """
    if not items:
        raise InvalidArgumentError("Return must have at least one item")
    for idx, line in enumerate(items):
        qty = line.quantity
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise InvalidArgumentError("Quantity must be a positive integer", {"index": idx})

    def _op():
        sale = lock_for_update(
            db.session.query(Sale).filter_by(id=sale_id, business_id=business_id)
        ).first()
        if sale is None:
            raise NotFoundError("Sale not found", {"sale_id": sale_id})

        if branch_id is not None and branch_id != sale.branch_id:
            raise InvalidArgumentError(
                "Sale belongs to a different branch",
                {"sale_branch_id": sale.branch_id, "branch_id": branch_id},
            )
        if sale.status != SALE_STATUS_COMPLETED:
            raise InvalidArgumentError(f"Cannot return items from a {sale.status} sale")

        sold = _sold_by_product(sale.id)
        if not sold:
            raise InvalidArgumentError("Sale has no items to return")

        returned = _returned_by_product(sale.id)
        requested = Counter()
        for line in items:
            if line.product_id not in sold:
                raise InvalidArgumentError(
                    f"Product {line.product_id} was not part of sale {sale.id}",
                    {"product_id": line.product_id},
                )
            sold_qty = sold[line.product_id][0]
            available = sold_qty - returned[line.product_id] - requested[line.product_id]
            if available <= 0:
                raise InvalidArgumentError(
                    f"Product {line.product_id} has already been fully returned",
                    {"product_id": line.product_id},
                )
            if line.quantity > available:
                raise InvalidArgumentError(
                    f"Cannot return {line.quantity} of product {line.product_id}; "
                    f"only {available} remaining",
                    {"product_id": line.product_id, "available": available, "requested": line.quantity},
                )
            requested[line.product_id] += line.quantity

        ledger_service.lock_stock_levels(
            business_id, [(sale.branch_id, line.product_id) for line in items]
        )

        total_cents = sum(line.quantity * sold[line.product_id][1] for line in items)
        ret = Return(
            business_id=business_id,
            branch_id=sale.branch_id,
            sale_id=sale.id,
            user_id=user_id,
            total_amount_cents=total_cents,
            reason=reason,
            refund_method=refund_method,
            reference_code=reference_code,
        )
        db.session.add(ret)
        db.session.flush()

        for line in items:
            unit_price = sold[line.product_id][1]
            db.session.add(
                ReturnItem(
                    return_id=ret.id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price_cents=unit_price,
                    line_total_cents=line.quantity * unit_price,
                )
            )
            ledger_service.adjust_stock(
                business_id,
                sale.branch_id,
                line.product_id,
                line.quantity,
                movement_type=MOVEMENT_RETURN,
                user_id=user_id,
                note=f"Return {ret.id} for sale {sale.id}",
                reference=f"return:{ret.id}",
            )

        db.session.flush()
        return ret

    ret = execute_unit_of_work(_op)
    logger.info("Return %s recorded for sale %s: total_cents=%s", ret.id, sale_id, ret.total_amount_cents)
    return ret
