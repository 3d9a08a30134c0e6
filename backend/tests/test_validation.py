# Overview: Pytest coverage for request payload parsing.

import pytest

from stockledger.errors import InvalidArgumentError
from stockledger.validation import (
    SaleLine,
    normalize_payment_method,
    normalize_transfer_status,
    parse_int,
    parse_pagination,
    parse_sale_payload,
    to_cents,
)


class TestParseInt:
    @pytest.mark.parametrize("value, expected", [(3, 3), ("12", 12), (" 7 ", 7)])
    def test_accepts_plain_integers(self, value, expected):
        assert parse_int(value, "quantity") == expected

    @pytest.mark.parametrize("value", [True, 1.5, "1.5", "1e3", "", None, "abc"])
    def test_rejects_everything_else(self, value):
        with pytest.raises(InvalidArgumentError):
            parse_int(value, "quantity")

    def test_minimum(self):
        with pytest.raises(InvalidArgumentError):
            parse_int(0, "quantity", minimum=1)


class TestMoney:
    @pytest.mark.parametrize("value, cents", [
        ("1.50", 150),
        (2, 200),
        ("0.005", 1),
        ("10.004", 1000),
        (19.99, 1999),
    ])
    def test_to_cents_rounds_half_up(self, value, cents):
        assert to_cents(value, "amount") == cents

    @pytest.mark.parametrize("value", ["-1", "abc", True, "NaN", "1e30", "1e999999999", 1e30, "-1e999999999"])
    def test_to_cents_rejects(self, value):
        with pytest.raises(InvalidArgumentError):
            to_cents(value, "amount")


class TestNormalizers:
    @pytest.mark.parametrize("raw, method", [
        ("cash", "cash"),
        ("M-Pesa", "mpesa"),
        ("m pesa", "mpesa"),
        ("Bank", "bank_transfer"),
        ("bank transfer", "bank_transfer"),
        ("CARD", "card"),
        ("voucher", "other"),
        (None, "other"),
    ])
    def test_payment_methods(self, raw, method):
        assert normalize_payment_method(raw) == method

    def test_transfer_status(self):
        assert normalize_transfer_status(" In-Transit ") == "in-transit"
        with pytest.raises(InvalidArgumentError):
            normalize_transfer_status("shipped")


class TestSalePayload:
    def test_parses_lines_and_optional_total(self):
        parsed = parse_sale_payload({
            "items": [
                {"product_id": 4, "quantity": 2, "unit_price": "1.25"},
                {"product_id": "5", "quantity": "1", "unit_price_cents": 300},
            ],
            "payment_method": "bank",
            "offline_id": "  ",
        })

        assert parsed["items"] == [SaleLine(4, 2, 125), SaleLine(5, 1, 300)]
        assert parsed["total_amount_cents"] is None
        assert parsed["payment_method"] == "bank_transfer"
        assert parsed["offline_id"] is None

    def test_missing_price_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_sale_payload({"items": [{"product_id": 1, "quantity": 1}]})

    def test_empty_items_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_sale_payload({"items": []})

    def test_offline_id_length_capped(self):
        line = {"product_id": 1, "quantity": 1, "unit_price_cents": 100}

        accepted = parse_sale_payload({"items": [line], "offline_id": "r" * 100})
        assert accepted["offline_id"] == "r" * 100

        with pytest.raises(InvalidArgumentError):
            parse_sale_payload({"items": [line], "offline_id": "r" * 101})

    def test_oversized_decimal_price_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_sale_payload({"items": [{"product_id": 1, "quantity": 1, "unit_price": "1e30"}]})


def test_pagination_clamps_limit():
    assert parse_pagination({"limit": "900", "offset": "5"}, default=100, maximum=500) == (500, 5)
    assert parse_pagination({}, default=100, maximum=500) == (100, 0)
