# Overview: Flask API routes for stock levels, movements and manual stock entries.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import rate_limit, require_context
from ..errors import InvalidArgumentError
from ..models.inventory import MOVEMENT_TYPES
from ..services import ledger_service, query_service
from ..validation import parse_date_range, parse_int, parse_pagination


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _optional_id(source, field: str):
    raw = source.get(field)
    if raw in (None, ""):
        return None
    return parse_int(raw, field, minimum=1)


def _stock_entry(data: dict, *, minimum: int) -> dict:
    branch_id = _optional_id(data, "branch_id") or g.branch_id
    if branch_id is None:
        raise InvalidArgumentError("branch_id is required", {"field": "branch_id"})
    note = data.get("note")
    return {
        "business_id": g.business_id,
        "branch_id": branch_id,
        "product_id": parse_int(data.get("product_id"), "product_id", minimum=1),
        "user_id": g.user_id,
        "quantity": parse_int(data.get("quantity"), "quantity", minimum=minimum),
        "note": str(note).strip() if note else None,
    }


def _level_response(entry: dict, quantity: int):
    return jsonify({
        "branch_id": entry["branch_id"],
        "product_id": entry["product_id"],
        "quantity": quantity,
    })


@inventory_bp.get("/levels")
@require_context
def list_levels():
    branch_id = _optional_id(request.args, "branch_id") or g.branch_id
    levels = query_service.list_stock_levels(g.business_id, branch_id=branch_id)
    return jsonify({"items": levels}), 200


@inventory_bp.get("/movements")
@require_context
def list_movements():
    args = request.args
    start, end = parse_date_range(args)
    limit, offset = parse_pagination(
        args,
        default=current_app.config["DEFAULT_PAGE_SIZE"],
        maximum=current_app.config["MAX_PAGE_SIZE"],
    )
    movement_type = args.get("type") or None
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise InvalidArgumentError(
            "type must be one of: " + ", ".join(MOVEMENT_TYPES), {"field": "type"}
        )

    movements = query_service.list_stock_movements(
        g.business_id,
        branch_id=_optional_id(args, "branch_id") or g.branch_id,
        product_id=_optional_id(args, "product_id"),
        movement_type=movement_type,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": movements, "limit": limit, "offset": offset}), 200


@inventory_bp.post("/receipts")
@require_context
@rate_limit("inventory")
def receive_stock():
    """Record goods received: {"branch_id", "product_id", "quantity", "note"}."""
    entry = _stock_entry(request.get_json(silent=True) or {}, minimum=1)
    quantity = ledger_service.receive_stock(**entry)
    return _level_response(entry, quantity), 201


@inventory_bp.post("/opening-balances")
@require_context
@rate_limit("inventory")
def record_opening_balance():
    entry = _stock_entry(request.get_json(silent=True) or {}, minimum=1)
    entry.pop("note")
    quantity = ledger_service.record_opening_balance(**entry)
    return _level_response(entry, quantity), 201


@inventory_bp.post("/adjustments")
@require_context
@rate_limit("inventory")
def set_quantity():
    """Set a key to a counted quantity; the difference is logged as an adjustment."""
    entry = _stock_entry(request.get_json(silent=True) or {}, minimum=0)
    quantity = ledger_service.set_stock_quantity(**entry)
    return _level_response(entry, quantity), 200


@inventory_bp.get("/reconciliation")
@require_context
def reconciliation():
    drift = ledger_service.reconcile_stock_levels(g.business_id)
    return jsonify({"consistent": not drift, "drift": drift}), 200
