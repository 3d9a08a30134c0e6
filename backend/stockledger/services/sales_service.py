# Overview: Sale engine; records a sale, its payment and its stock decrements atomically.

from __future__ import annotations

import logging
from collections import Counter

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, InsufficientStockError, InvalidArgumentError
from ..extensions import db
from ..models import CashRegisterEntry, Sale, SaleItem
from ..models.inventory import MOVEMENT_SALE
from ..models.sales import PAYMENT_METHODS, SALE_STATUS_COMPLETED
from . import ledger_service
from .concurrency import execute_unit_of_work
from .tenant_service import require_branch_in_business, require_products_in_business


logger = logging.getLogger(__name__)


def _validate_lines(items) -> None:
    if not items:
        raise InvalidArgumentError("Sale must have at least one item")
    for idx, line in enumerate(items):
        qty = line.quantity
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise InvalidArgumentError("Quantity must be a positive integer", {"index": idx})
        price = line.unit_price_cents
        if isinstance(price, bool) or not isinstance(price, int) or price < 0:
            raise InvalidArgumentError("Unit price must not be negative", {"index": idx})


def _existing_offline_sale_id(business_id: int, offline_id: str) -> int | None:
    return (
        db.session.query(Sale.id)
        .filter_by(business_id=business_id, offline_id=offline_id)
        .scalar()
    )


def _duplicate_offline_sale(offline_id: str, sale_id: int | None) -> ConflictError:
    return ConflictError(
        "Sale with this offline_id was already recorded",
        {"offline_id": offline_id, "sale_id": sale_id},
    )


def create_sale(
    business_id: int,
    branch_id: int,
    user_id: int,
    items,
    total_amount_cents: int | None,
    payment_method: str,
    reference_code: str | None = None,
    offline_id: str | None = None,
) -> Sale:
    """
    Record a completed sale.

    Inserts the Sale, one SaleItem and one sale movement per line, and a
    single CashRegisterEntry, all in one unit of work. Any failure leaves no
    trace.

    Args:
        items: SaleLine values (product_id, quantity, unit_price_cents)
        total_amount_cents: None means the sum of line totals
        offline_id: client idempotency key; a repeat raises ConflictError

    Raises:
        NotFoundError: branch outside the business
        InvalidArgumentError: bad items or foreign product
        ConflictError: offline_id already used
        InsufficientStockError: only when ALLOW_OVERSELL is disabled
    """
    _validate_lines(items)
    if payment_method not in PAYMENT_METHODS:
        raise InvalidArgumentError(f"Unknown payment method {payment_method!r}")
    if total_amount_cents is None:
        total_amount_cents = sum(line.line_total_cents for line in items)
    elif isinstance(total_amount_cents, bool) or not isinstance(total_amount_cents, int):
        raise InvalidArgumentError("Total amount must be an integer number of cents")
    elif total_amount_cents < 0:
        raise InvalidArgumentError("Total amount must not be negative")

    require_branch_in_business(branch_id, business_id)
    require_products_in_business([line.product_id for line in items], business_id)

    allow_oversell = current_app.config.get("ALLOW_OVERSELL", True)

    def _op():
        if offline_id:
            existing_id = _existing_offline_sale_id(business_id, offline_id)
            if existing_id is not None:
                raise _duplicate_offline_sale(offline_id, existing_id)

        levels = ledger_service.lock_stock_levels(
            business_id, [(branch_id, line.product_id) for line in items]
        )

        if not allow_oversell:
            requested = Counter()
            for line in items:
                requested[line.product_id] += line.quantity
            for product_id, qty in requested.items():
                on_hand = levels[(branch_id, product_id)].quantity
                if on_hand < qty:
                    raise InsufficientStockError(
                        f"Insufficient stock for product {product_id}. "
                        f"On-hand: {on_hand}, requested: {qty}",
                        {"product_id": product_id, "available": on_hand, "requested": qty},
                    )

        sale = Sale(
            business_id=business_id,
            branch_id=branch_id,
            user_id=user_id,
            total_amount_cents=total_amount_cents,
            status=SALE_STATUS_COMPLETED,
            offline_id=offline_id,
        )
        db.session.add(sale)
        try:
            db.session.flush()
        except IntegrityError:
            # Lost a race on (business_id, offline_id)
            db.session.rollback()
            raise _duplicate_offline_sale(offline_id, _existing_offline_sale_id(business_id, offline_id))

        for line in items:
            db.session.add(
                SaleItem(
                    sale_id=sale.id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    line_total_cents=line.line_total_cents,
                )
            )
            ledger_service.adjust_stock(
                business_id,
                branch_id,
                line.product_id,
                -line.quantity,
                movement_type=MOVEMENT_SALE,
                user_id=user_id,
                note=f"Sale {sale.id}",
                reference=f"sale:{sale.id}",
            )

        db.session.add(
            CashRegisterEntry(
                business_id=business_id,
                branch_id=branch_id,
                sale_id=sale.id,
                payment_method=payment_method,
                reference_code=reference_code,
                amount_cents=total_amount_cents,
                recorded_by_user_id=user_id,
            )
        )
        db.session.flush()
        return sale

    sale = execute_unit_of_work(_op)
    logger.info(
        "Sale %s recorded: branch=%s lines=%d total_cents=%s",
        sale.id, branch_id, len(items), total_amount_cents,
    )
    return sale
