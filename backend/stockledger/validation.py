from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import InvalidArgumentError
from .models.documents import TRANSFER_STATUSES
from .models.sales import PAYMENT_METHODS, PAYMENT_OTHER
from .time_utils import parse_iso_datetime, parse_range_end


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999
MAX_AMOUNT = Decimal(MAX_PRICE_CENTS) / 100
MAX_OFFLINE_ID_LENGTH = 100

_PAYMENT_ALIASES = {
    "m-pesa": "mpesa",
    "m pesa": "mpesa",
    "bank": "bank_transfer",
    "bank transfer": "bank_transfer",
    "bank-transfer": "bank_transfer",
}


@dataclass(frozen=True)
class SaleLine:
    product_id: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class ReturnLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class TransferLine:
    product_id: int
    quantity: int


def parse_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Strict integer coercion for client input.

    Rejects booleans, floats, decimal strings and scientific notation.
    """
    if isinstance(value, bool):
        raise InvalidArgumentError(f"{field} must be an integer", {"field": field})
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidArgumentError(f"{field} must be an integer", {"field": field})
        # Reject scientific notation (e.g., "1e15") and decimals (e.g., "12.5")
        if "e" in stripped.lower() or "." in stripped:
            raise InvalidArgumentError(f"{field} must be a plain integer", {"field": field})
        try:
            result = int(stripped)
        except ValueError:
            raise InvalidArgumentError(f"{field} must be an integer", {"field": field})
    else:
        raise InvalidArgumentError(f"{field} must be an integer", {"field": field})

    if minimum is not None and result < minimum:
        raise InvalidArgumentError(f"{field} must be at least {minimum}", {"field": field})
    return result


def to_cents(value: Any, field: str) -> int:
    """Convert a decimal amount to integer cents, rounding half-up at 2 places."""
    if isinstance(value, bool) or value is None:
        raise InvalidArgumentError(f"{field} must be a number", {"field": field})
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidArgumentError(f"{field} must be a number", {"field": field})
    if not amount.is_finite():
        raise InvalidArgumentError(f"{field} must be a number", {"field": field})
    # Bound before scaling; huge exponents overflow the decimal context
    if amount.copy_abs() > MAX_AMOUNT:
        raise InvalidArgumentError(f"{field} is too large", {"field": field})
    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents < 0:
        raise InvalidArgumentError(f"{field} must not be negative", {"field": field})
    if cents > MAX_PRICE_CENTS:
        raise InvalidArgumentError(f"{field} is too large", {"field": field})
    return cents


def _amount_cents(payload: dict, name: str, *, required: bool) -> int | None:
    """Read either ``<name>_cents`` (integer) or ``<name>`` (decimal)."""
    if payload.get(f"{name}_cents") is not None:
        cents = parse_int(payload[f"{name}_cents"], f"{name}_cents", minimum=0)
        if cents > MAX_PRICE_CENTS:
            raise InvalidArgumentError(f"{name}_cents is too large", {"field": f"{name}_cents"})
        return cents
    if payload.get(name) is not None:
        return to_cents(payload[name], name)
    if required:
        raise InvalidArgumentError(f"{name} is required", {"field": name})
    return None


def normalize_payment_method(value: Any) -> str:
    """Map client spellings onto the stored payment methods; unknown -> other."""
    if not isinstance(value, str):
        return PAYMENT_OTHER
    method = value.strip().lower()
    method = _PAYMENT_ALIASES.get(method, method)
    return method if method in PAYMENT_METHODS else PAYMENT_OTHER


def normalize_transfer_status(value: Any) -> str:
    if not isinstance(value, str) or value.strip().lower() not in TRANSFER_STATUSES:
        raise InvalidArgumentError(
            "status must be one of: " + ", ".join(TRANSFER_STATUSES),
            {"field": "status"},
        )
    return value.strip().lower()


def _require_item_list(payload: dict) -> list:
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise InvalidArgumentError("items must be a non-empty list", {"field": "items"})
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidArgumentError("each item must be an object", {"index": idx})
    return items


def parse_sale_payload(payload: dict) -> dict:
    items = _require_item_list(payload)
    lines = []
    for idx, item in enumerate(items):
        lines.append(
            SaleLine(
                product_id=parse_int(item.get("product_id"), f"items[{idx}].product_id", minimum=1),
                quantity=parse_int(item.get("quantity"), f"items[{idx}].quantity", minimum=1),
                unit_price_cents=_amount_cents(item, "unit_price", required=True),
            )
        )

    offline_id = payload.get("offline_id")
    if offline_id is not None:
        offline_id = str(offline_id).strip() or None
    if offline_id and len(offline_id) > MAX_OFFLINE_ID_LENGTH:
        raise InvalidArgumentError(
            f"offline_id must be at most {MAX_OFFLINE_ID_LENGTH} characters",
            {"field": "offline_id"},
        )

    reference_code = payload.get("reference_code")
    return {
        "items": lines,
        "total_amount_cents": _amount_cents(payload, "total_amount", required=False),
        "payment_method": normalize_payment_method(payload.get("payment_method")),
        "reference_code": str(reference_code).strip() if reference_code else None,
        "offline_id": offline_id,
    }


def parse_return_payload(payload: dict) -> dict:
    items = _require_item_list(payload)
    lines = [
        ReturnLine(
            product_id=parse_int(item.get("product_id"), f"items[{idx}].product_id", minimum=1),
            quantity=parse_int(item.get("quantity"), f"items[{idx}].quantity", minimum=1),
        )
        for idx, item in enumerate(items)
    ]
    refund_method = payload.get("refund_method")
    reference_code = payload.get("reference_code")
    reason = payload.get("reason")
    return {
        "sale_id": parse_int(payload.get("sale_id"), "sale_id", minimum=1),
        "items": lines,
        "reason": str(reason).strip() if reason else None,
        "refund_method": normalize_payment_method(refund_method) if refund_method else None,
        "reference_code": str(reference_code).strip() if reference_code else None,
    }


def parse_transfer_payload(payload: dict) -> dict:
    items = _require_item_list(payload)
    lines = [
        TransferLine(
            product_id=parse_int(item.get("product_id"), f"items[{idx}].product_id", minimum=1),
            quantity=parse_int(item.get("quantity"), f"items[{idx}].quantity", minimum=1),
        )
        for idx, item in enumerate(items)
    ]
    return {
        "from_branch_id": parse_int(payload.get("from_branch_id"), "from_branch_id", minimum=1),
        "to_branch_id": parse_int(payload.get("to_branch_id"), "to_branch_id", minimum=1),
        "items": lines,
    }


def parse_pagination(args, *, default: int, maximum: int) -> tuple[int, int]:
    """Read limit/offset query args, clamping limit to ``maximum``."""
    limit = args.get("limit")
    offset = args.get("offset")
    limit = default if limit in (None, "") else parse_int(limit, "limit", minimum=1)
    offset = 0 if offset in (None, "") else parse_int(offset, "offset", minimum=0)
    return min(limit, maximum), offset


def parse_date_range(args) -> tuple:
    """Read ``from``/``to`` query args; a date-only ``to`` covers the whole day."""
    try:
        start = parse_iso_datetime(args.get("from"))
        end = parse_range_end(args.get("to"))
    except ValueError:
        raise InvalidArgumentError("from/to must be ISO-8601 dates", {"field": "from/to"})
    return start, end
