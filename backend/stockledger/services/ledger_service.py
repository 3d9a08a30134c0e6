# Overview: Per-branch stock quantities and the append-only movement log.

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, InvalidArgumentError
from ..extensions import db
from ..models import StockLevel, StockMovement
from ..models.inventory import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_OPENING_BALANCE,
    MOVEMENT_PURCHASE,
    MOVEMENT_TYPES,
)
from .concurrency import execute_unit_of_work, is_sqlite, lock_for_update
from .tenant_service import require_branch_in_business, require_products_in_business

"""
Stock Ledger Invariants (authoritative)

- StockLevel.quantity is only written here, and every write appends exactly one
  StockMovement in the same transaction.
- For every (business, branch, product) key:
  quantity == SUM(stock_movements.quantity_delta).
- Movements are never updated or deleted.
- A missing StockLevel row means quantity 0; it is created on first movement.
- adjust_stock never commits; it runs inside the caller's unit of work.
"""


logger = logging.getLogger(__name__)


def _level_query(business_id: int, branch_id: int, product_id: int):
    return db.session.query(StockLevel).filter_by(
        business_id=business_id,
        branch_id=branch_id,
        product_id=product_id,
    )


def _get_or_create_level(business_id: int, branch_id: int, product_id: int) -> StockLevel:
    """
    Read the StockLevel for a key under lock, creating it at zero when absent.

    Two transactions can race to create the same key. On databases with row
    locks the insert runs in a savepoint and the loser re-reads the winner's
    row. On SQLite the writer already holds the database lock.
    """
    query = _level_query(business_id, branch_id, product_id)
    level = lock_for_update(query).first()
    if level is not None:
        return level

    level = StockLevel(
        business_id=business_id,
        branch_id=branch_id,
        product_id=product_id,
        quantity=0,
    )
    if is_sqlite():
        db.session.add(level)
        db.session.flush()
        return level

    try:
        with db.session.begin_nested():
            db.session.add(level)
    except IntegrityError:
        level = lock_for_update(query).one()
    return level


def lock_stock_levels(business_id: int, keys) -> dict[tuple[int, int], StockLevel]:
    """
    Lock (and lazily create) StockLevels for many keys at once.

    Keys are (branch_id, product_id) pairs. Locks are taken in ascending key
    order so concurrent multi-key operations cannot deadlock.
    """
    locked = {}
    for branch_id, product_id in sorted(set(keys)):
        locked[(branch_id, product_id)] = _get_or_create_level(business_id, branch_id, product_id)
    return locked


def adjust_stock(
    business_id: int,
    branch_id: int,
    product_id: int,
    delta: int,
    *,
    movement_type: str,
    user_id: int | None,
    note: str | None = None,
    reference: str | None = None,
) -> int:
    """
    Apply a signed quantity change and record the movement.

    Must be called inside a unit of work. Does not check sufficiency; callers
    that forbid negative stock check the locked quantity first.

    Returns:
        The new quantity for the key
    """
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise InvalidArgumentError("Stock delta must be a non-zero integer", {"delta": delta})
    if movement_type not in MOVEMENT_TYPES:
        raise InvalidArgumentError(f"Unknown movement type {movement_type!r}")

    level = _get_or_create_level(business_id, branch_id, product_id)
    level.quantity = level.quantity + delta

    db.session.add(
        StockMovement(
            business_id=business_id,
            branch_id=branch_id,
            product_id=product_id,
            user_id=user_id,
            type=movement_type,
            quantity_delta=delta,
            note=note,
            reference=reference,
        )
    )
    db.session.flush()
    return level.quantity


def get_stock_quantity(business_id: int, branch_id: int, product_id: int) -> int:
    """Current quantity for a key; 0 when nothing has moved yet."""
    quantity = (
        db.session.query(StockLevel.quantity)
        .filter_by(business_id=business_id, branch_id=branch_id, product_id=product_id)
        .scalar()
    )
    return quantity or 0


def _require_key(business_id: int, branch_id: int, product_id: int) -> None:
    require_branch_in_business(branch_id, business_id)
    require_products_in_business([product_id], business_id)


def record_opening_balance(
    business_id: int,
    branch_id: int,
    product_id: int,
    user_id: int,
    quantity: int,
) -> int:
    """
    Seed the starting quantity for a key that has never moved.

    Raises:
        ConflictError if the key already has movements
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidArgumentError("Opening quantity must be a positive integer")
    _require_key(business_id, branch_id, product_id)

    def _op():
        _get_or_create_level(business_id, branch_id, product_id)
        existing = (
            db.session.query(StockMovement.id)
            .filter_by(business_id=business_id, branch_id=branch_id, product_id=product_id)
            .first()
        )
        if existing is not None:
            raise ConflictError(
                "Opening balance already recorded or stock has moved",
                {"branch_id": branch_id, "product_id": product_id},
            )
        return adjust_stock(
            business_id, branch_id, product_id, quantity,
            movement_type=MOVEMENT_OPENING_BALANCE,
            user_id=user_id,
            note="Opening balance",
        )

    new_qty = execute_unit_of_work(_op)
    logger.info(
        "Opening balance branch=%s product=%s quantity=%s", branch_id, product_id, new_qty
    )
    return new_qty


def receive_stock(
    business_id: int,
    branch_id: int,
    product_id: int,
    user_id: int,
    quantity: int,
    note: str | None = None,
) -> int:
    """Record goods received from a supplier as a purchase movement."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidArgumentError("Received quantity must be a positive integer")
    _require_key(business_id, branch_id, product_id)

    def _op():
        return adjust_stock(
            business_id, branch_id, product_id, quantity,
            movement_type=MOVEMENT_PURCHASE,
            user_id=user_id,
            note=note or "Stock received",
        )

    return execute_unit_of_work(_op)


def set_stock_quantity(
    business_id: int,
    branch_id: int,
    product_id: int,
    user_id: int,
    quantity: int,
    note: str | None = None,
) -> int:
    """
    Correct a key to a counted quantity.

    Writes an adjustment movement for the difference so the movement sum
    still equals the stored quantity. Equal counts write nothing.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise InvalidArgumentError("Counted quantity must be a non-negative integer")
    _require_key(business_id, branch_id, product_id)

    def _op():
        level = _get_or_create_level(business_id, branch_id, product_id)
        delta = quantity - level.quantity
        if delta == 0:
            return level.quantity
        return adjust_stock(
            business_id, branch_id, product_id, delta,
            movement_type=MOVEMENT_ADJUSTMENT,
            user_id=user_id,
            note=note or f"Stock count set to {quantity}",
        )

    return execute_unit_of_work(_op)


def reconcile_stock_levels(business_id: int) -> list[dict]:
    """
    Compare every stored quantity against its movement sum.

    Returns one entry per drifting key; an empty list means the ledger is
    consistent.
    """
    sums = dict(
        ((branch_id, product_id), int(total))
        for branch_id, product_id, total in (
            db.session.query(
                StockMovement.branch_id,
                StockMovement.product_id,
                func.coalesce(func.sum(StockMovement.quantity_delta), 0),
            )
            .filter(StockMovement.business_id == business_id)
            .group_by(StockMovement.branch_id, StockMovement.product_id)
            .all()
        )
    )

    levels = {
        (lvl.branch_id, lvl.product_id): lvl.quantity
        for lvl in db.session.query(StockLevel).filter_by(business_id=business_id).all()
    }

    drift = []
    for key in sorted(set(sums) | set(levels)):
        stored = levels.get(key, 0)
        expected = sums.get(key, 0)
        if stored != expected:
            drift.append({
                "branch_id": key[0],
                "product_id": key[1],
                "quantity": stored,
                "movement_total": expected,
                "difference": stored - expected,
            })
    if drift:
        logger.warning("Stock drift in business %s: %d key(s)", business_id, len(drift))
    return drift
