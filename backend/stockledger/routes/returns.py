from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import branch_from, rate_limit, require_context
from ..services import query_service, return_service
from ..validation import parse_date_range, parse_int, parse_pagination, parse_return_payload


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_context
@rate_limit("returns")
def create_return():
    """
    Return items from an earlier sale.

    Request body:
    {
        "sale_id": int,
        "branch_id": int (optional, defaults to X-Branch-Id),
        "items": [{"product_id": int, "quantity": int}],
        "reason": str (optional),
        "refund_method": str (optional),
        "reference_code": str (optional)
    }

    Stock goes back to the sale's branch. A branch named in the body, or
    else the caller's X-Branch-Id, must match it.
    """
    data = request.get_json(silent=True) or {}
    parsed = parse_return_payload(data)

    ret = return_service.create_return(
        business_id=g.business_id,
        branch_id=branch_from(data),
        user_id=g.user_id,
        sale_id=parsed["sale_id"],
        items=parsed["items"],
        reason=parsed["reason"],
        refund_method=parsed["refund_method"],
        reference_code=parsed["reference_code"],
    )
    return jsonify(query_service.get_return(ret.id, g.business_id)), 201


@returns_bp.get("")
@require_context
def list_returns():
    args = request.args
    start, end = parse_date_range(args)
    limit, offset = parse_pagination(
        args,
        default=current_app.config["DEFAULT_PAGE_SIZE"],
        maximum=current_app.config["MAX_PAGE_SIZE"],
    )
    branch_id = g.branch_id
    if args.get("branch_id"):
        branch_id = parse_int(args["branch_id"], "branch_id", minimum=1)
    sale_id = parse_int(args["sale_id"], "sale_id", minimum=1) if args.get("sale_id") else None

    returns = query_service.list_returns(
        g.business_id,
        branch_id=branch_id,
        sale_id=sale_id,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": returns, "limit": limit, "offset": offset}), 200


@returns_bp.get("/<int:return_id>")
@require_context
def get_return(return_id: int):
    return jsonify(query_service.get_return(return_id, g.business_id)), 200
