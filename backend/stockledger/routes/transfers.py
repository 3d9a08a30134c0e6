# backend/stockledger/routes/transfers.py
"""
Inter-branch stock transfer API routes.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import rate_limit, require_context
from ..services import query_service, transfer_service
from ..validation import (
    normalize_transfer_status,
    parse_int,
    parse_pagination,
    parse_transfer_payload,
)


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/stock-transfers")


@transfers_bp.post("")
@require_context
@rate_limit("stock-transfers")
def create_transfer():
    """
    Move stock from one branch to another.

    Request body:
    {
        "from_branch_id": int,
        "to_branch_id": int,
        "items": [{"product_id": int, "quantity": int}]
    }

    Returns:
        201: Transfer created, stock moved
        400: Invalid request
        404: Branch not found
        409: Insufficient stock at the source branch
    """
    data = request.get_json(silent=True) or {}
    parsed = parse_transfer_payload(data)

    transfer = transfer_service.create_stock_transfer(
        business_id=g.business_id,
        user_id=g.user_id,
        from_branch_id=parsed["from_branch_id"],
        to_branch_id=parsed["to_branch_id"],
        items=parsed["items"],
    )
    return jsonify(query_service.get_stock_transfer(transfer.id, g.business_id)), 201


@transfers_bp.get("")
@require_context
def list_transfers():
    args = request.args
    limit, offset = parse_pagination(
        args,
        default=current_app.config["DEFAULT_PAGE_SIZE"],
        maximum=current_app.config["MAX_PAGE_SIZE"],
    )
    branch_id = g.branch_id
    if args.get("branch_id"):
        branch_id = parse_int(args["branch_id"], "branch_id", minimum=1)
    status = normalize_transfer_status(args["status"]) if args.get("status") else None

    transfers = query_service.list_stock_transfers(
        g.business_id,
        branch_id=branch_id,
        status=status,
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": transfers, "limit": limit, "offset": offset}), 200


@transfers_bp.get("/<int:transfer_id>")
@require_context
def get_transfer(transfer_id: int):
    return jsonify(query_service.get_stock_transfer(transfer_id, g.business_id)), 200


@transfers_bp.patch("/<int:transfer_id>/status")
@require_context
@rate_limit("stock-transfers")
def update_transfer_status(transfer_id: int):
    """
    Advance the tracking status of a transfer. Stock does not move.

    Request body:
    {
        "status": "pending" | "in-transit" | "received"
    }
    """
    data = request.get_json(silent=True) or {}
    status = normalize_transfer_status(data.get("status"))

    transfer_service.update_stock_transfer_status(transfer_id, g.business_id, status)
    return jsonify(query_service.get_stock_transfer(transfer_id, g.business_id)), 200
