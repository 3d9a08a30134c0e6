# Overview: Read-only audit queries over sales, returns, transfers and stock.

from __future__ import annotations

from datetime import datetime

from ..errors import NotFoundError
from ..extensions import db
from ..models import (
    Branch,
    CashRegisterEntry,
    Product,
    Return,
    ReturnItem,
    Sale,
    SaleItem,
    StockLevel,
    StockMovement,
    StockTransfer,
    StockTransferItem,
)

"""
Audit/Query Layer

- Never locks and never writes.
- Everything is filtered by business_id first.
- Lists are ordered oldest first (creation time, then id) and paginated by
  limit/offset.
- Results are plain dicts with line items and product names joined in.
"""


DEFAULT_LIMIT = 100


def _paginate(query, limit: int, offset: int):
    return query.limit(limit).offset(offset)


def _apply_range(query, column, start: datetime | None, end: datetime | None):
    if start is not None:
        query = query.filter(column >= start)
    if end is not None:
        query = query.filter(column <= end)
    return query


def _product_names(product_ids) -> dict[int, str]:
    ids = set(product_ids)
    if not ids:
        return {}
    rows = db.session.query(Product.id, Product.name).filter(Product.id.in_(ids)).all()
    return {pid: name for pid, name in rows}


def _branch_names(branch_ids) -> dict[int, str]:
    ids = set(branch_ids)
    if not ids:
        return {}
    rows = db.session.query(Branch.id, Branch.name).filter(Branch.id.in_(ids)).all()
    return {bid: name for bid, name in rows}


# =============================================================================
# SALES
# =============================================================================

def serialize_sales(sales: list[Sale]) -> list[dict]:
    """Attach items (with product names) and the payment entry to each sale."""
    if not sales:
        return []
    sale_ids = [s.id for s in sales]

    items_by_sale: dict[int, list[SaleItem]] = {sid: [] for sid in sale_ids}
    items = (
        db.session.query(SaleItem)
        .filter(SaleItem.sale_id.in_(sale_ids))
        .order_by(SaleItem.id)
        .all()
    )
    for item in items:
        items_by_sale[item.sale_id].append(item)

    payments = {
        entry.sale_id: entry
        for entry in db.session.query(CashRegisterEntry)
        .filter(CashRegisterEntry.sale_id.in_(sale_ids))
        .all()
    }
    names = _product_names(i.product_id for i in items)
    branches = _branch_names(s.branch_id for s in sales)

    result = []
    for sale in sales:
        data = sale.to_dict()
        data["branch_name"] = branches.get(sale.branch_id)
        data["items"] = [
            {**item.to_dict(), "product_name": names.get(item.product_id)}
            for item in items_by_sale[sale.id]
        ]
        entry = payments.get(sale.id)
        data["payment"] = entry.to_dict() if entry else None
        result.append(data)
    return result


def list_sales(
    business_id: int,
    branch_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> list[dict]:
    query = db.session.query(Sale).filter(Sale.business_id == business_id)
    if branch_id is not None:
        query = query.filter(Sale.branch_id == branch_id)
    query = _apply_range(query, Sale.sold_at, start, end)
    query = query.order_by(Sale.sold_at.asc(), Sale.id.asc())
    return serialize_sales(_paginate(query, limit, offset).all())


def get_sale(sale_id: int, business_id: int) -> dict:
    sale = db.session.query(Sale).filter_by(id=sale_id, business_id=business_id).first()
    if sale is None:
        raise NotFoundError("Sale not found", {"sale_id": sale_id})
    return serialize_sales([sale])[0]


# =============================================================================
# RETURNS
# =============================================================================

def serialize_returns(returns: list[Return]) -> list[dict]:
    if not returns:
        return []
    return_ids = [r.id for r in returns]

    items_by_return: dict[int, list[ReturnItem]] = {rid: [] for rid in return_ids}
    items = (
        db.session.query(ReturnItem)
        .filter(ReturnItem.return_id.in_(return_ids))
        .order_by(ReturnItem.id)
        .all()
    )
    for item in items:
        items_by_return[item.return_id].append(item)
    names = _product_names(i.product_id for i in items)

    result = []
    for ret in returns:
        data = ret.to_dict()
        data["items"] = [
            {**item.to_dict(), "product_name": names.get(item.product_id)}
            for item in items_by_return[ret.id]
        ]
        result.append(data)
    return result


def list_returns(
    business_id: int,
    branch_id: int | None = None,
    sale_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> list[dict]:
    query = db.session.query(Return).filter(Return.business_id == business_id)
    if branch_id is not None:
        query = query.filter(Return.branch_id == branch_id)
    if sale_id is not None:
        query = query.filter(Return.sale_id == sale_id)
    query = _apply_range(query, Return.created_at, start, end)
    query = query.order_by(Return.created_at.asc(), Return.id.asc())
    return serialize_returns(_paginate(query, limit, offset).all())


def get_return(return_id: int, business_id: int) -> dict:
    ret = db.session.query(Return).filter_by(id=return_id, business_id=business_id).first()
    if ret is None:
        raise NotFoundError("Return not found", {"return_id": return_id})
    return serialize_returns([ret])[0]


# =============================================================================
# TRANSFERS
# =============================================================================

def serialize_transfers(transfers: list[StockTransfer]) -> list[dict]:
    if not transfers:
        return []
    transfer_ids = [t.id for t in transfers]

    items_by_transfer: dict[int, list[StockTransferItem]] = {tid: [] for tid in transfer_ids}
    items = (
        db.session.query(StockTransferItem)
        .filter(StockTransferItem.transfer_id.in_(transfer_ids))
        .order_by(StockTransferItem.id)
        .all()
    )
    for item in items:
        items_by_transfer[item.transfer_id].append(item)
    names = _product_names(i.product_id for i in items)
    branches = _branch_names(
        [t.from_branch_id for t in transfers] + [t.to_branch_id for t in transfers]
    )

    result = []
    for transfer in transfers:
        data = transfer.to_dict()
        data["from_branch_name"] = branches.get(transfer.from_branch_id)
        data["to_branch_name"] = branches.get(transfer.to_branch_id)
        data["items"] = [
            {**item.to_dict(), "product_name": names.get(item.product_id)}
            for item in items_by_transfer[transfer.id]
        ]
        result.append(data)
    return result


def list_stock_transfers(
    business_id: int,
    branch_id: int | None = None,
    status: str | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> list[dict]:
    """Transfers touching ``branch_id`` on either side, oldest first."""
    query = db.session.query(StockTransfer).filter(StockTransfer.business_id == business_id)
    if branch_id is not None:
        query = query.filter(
            db.or_(
                StockTransfer.from_branch_id == branch_id,
                StockTransfer.to_branch_id == branch_id,
            )
        )
    if status is not None:
        query = query.filter(StockTransfer.status == status)
    query = query.order_by(StockTransfer.created_at.asc(), StockTransfer.id.asc())
    return serialize_transfers(_paginate(query, limit, offset).all())


def get_stock_transfer(transfer_id: int, business_id: int) -> dict:
    transfer = (
        db.session.query(StockTransfer)
        .filter_by(id=transfer_id, business_id=business_id)
        .first()
    )
    if transfer is None:
        raise NotFoundError("Stock transfer not found", {"transfer_id": transfer_id})
    return serialize_transfers([transfer])[0]


# =============================================================================
# STOCK
# =============================================================================

def list_stock_levels(business_id: int, branch_id: int | None = None) -> list[dict]:
    query = (
        db.session.query(StockLevel, Product.name, Product.sku)
        .join(Product, Product.id == StockLevel.product_id)
        .filter(StockLevel.business_id == business_id)
    )
    if branch_id is not None:
        query = query.filter(StockLevel.branch_id == branch_id)
    query = query.order_by(StockLevel.branch_id.asc(), StockLevel.product_id.asc())

    return [
        {**level.to_dict(), "product_name": name, "sku": sku}
        for level, name, sku in query.all()
    ]


def list_stock_movements(
    business_id: int,
    branch_id: int | None = None,
    product_id: int | None = None,
    movement_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> list[dict]:
    query = db.session.query(StockMovement).filter(StockMovement.business_id == business_id)
    if branch_id is not None:
        query = query.filter(StockMovement.branch_id == branch_id)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if movement_type is not None:
        query = query.filter(StockMovement.type == movement_type)
    query = _apply_range(query, StockMovement.created_at, start, end)
    query = query.order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
    return [m.to_dict() for m in _paginate(query, limit, offset).all()]

