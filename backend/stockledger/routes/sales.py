# Overview: Flask API routes for sales; validates input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import branch_from, rate_limit, require_context
from ..errors import InvalidArgumentError
from ..services import query_service, sales_service
from ..validation import parse_date_range, parse_pagination, parse_sale_payload


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_context
@rate_limit("sales")
def create_sale():
    """
    Record a completed sale.

    Request body:
    {
        "branch_id": int (optional, defaults to X-Branch-Id),
        "items": [{"product_id": int, "quantity": int, "unit_price": "12.50"}],
        "total_amount": "25.00" (optional, defaults to the sum of lines),
        "payment_method": "cash" | "mpesa" | "bank_transfer" | "card" | "other",
        "reference_code": str (optional),
        "offline_id": str (optional idempotency key)
    }

    Returns:
        201: Sale created
        400: Invalid request
        404: Branch not found
        409: Duplicate offline_id or insufficient stock
    """
    data = request.get_json(silent=True) or {}
    parsed = parse_sale_payload(data)

    branch_id = branch_from(data)
    if branch_id is None:
        raise InvalidArgumentError("branch_id is required", {"field": "branch_id"})

    sale = sales_service.create_sale(
        business_id=g.business_id,
        branch_id=branch_id,
        user_id=g.user_id,
        items=parsed["items"],
        total_amount_cents=parsed["total_amount_cents"],
        payment_method=parsed["payment_method"],
        reference_code=parsed["reference_code"],
        offline_id=parsed["offline_id"],
    )
    return jsonify(query_service.get_sale(sale.id, g.business_id)), 201


@sales_bp.get("")
@require_context
def list_sales():
    start, end = parse_date_range(request.args)
    limit, offset = parse_pagination(
        request.args,
        default=current_app.config["DEFAULT_PAGE_SIZE"],
        maximum=current_app.config["MAX_PAGE_SIZE"],
    )
    sales = query_service.list_sales(
        g.business_id,
        branch_id=branch_from(request.args),
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": sales, "limit": limit, "offset": offset}), 200


@sales_bp.get("/<int:sale_id>")
@require_context
def get_sale(sale_id: int):
    return jsonify(query_service.get_sale(sale_id, g.business_id)), 200
