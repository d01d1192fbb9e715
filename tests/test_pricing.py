"""Tests for share/asset arithmetic and the checkout gate."""

import itertools
from decimal import Decimal

import pytest

from portal.models.schemas import Investor
from portal.workflow.offering import QUOTES
from portal.workflow.pricing import (
    can_checkout,
    checkout_blockers,
    compute_shares,
    quote_for,
    required_asset_amount,
)

MINIMUM = Decimal("5000")


class TestShares:

    def test_exact_division(self):
        shares = compute_shares(Decimal("5000"), Decimal("5"))
        assert shares == Decimal("1000")
        assert str(shares) == "1000.000"

    def test_truncates_not_rounds(self):
        # 10000 / 3 = 3333.3333... ; 2 / 3 = 0.6666... must floor to 0.666
        assert compute_shares(Decimal("10000"), Decimal("3")) == Decimal("3333.333")
        assert compute_shares(Decimal("2"), Decimal("3")) == Decimal("0.666")

    @pytest.mark.parametrize("amount,price", [
        ("5000", "5"), ("5001", "5"), ("7777.77", "3.33"), ("123456.789", "0.07"),
    ])
    def test_matches_floor_formula(self, amount, price):
        amount, price = Decimal(amount), Decimal(price)
        expected = Decimal(int((amount / price) * 1000)) / 1000
        assert compute_shares(amount, price) == expected

    def test_large_amount(self):
        # quantizing 2e20 to 3 dp needs more than the default 28 digits
        shares = compute_shares(Decimal("1e21"), Decimal("5"))
        assert shares == Decimal("2e20")
        assert str(shares) == "200000000000000000000.000"

    def test_fractional_amount(self):
        assert compute_shares(Decimal("123456789012345.67"), Decimal("5")) == Decimal("24691357802469.134")
        assert compute_shares(Decimal("0.004"), Decimal("5")) == Decimal("0")


class TestRequiredAssetAmount:

    def test_usdc_is_one_to_one(self):
        needed = required_asset_amount(Decimal("5000"), "USDC", QUOTES)
        assert str(needed) == "5000.00000000"

    def test_btc_scenario(self):
        # (10000 / 68000) = 0.1470588235... -> 0.14705882
        assert required_asset_amount(Decimal("10000"), "BTC", QUOTES) == Decimal("0.14705882")

    def test_eth(self):
        # 5000 / 3600 = 1.38888888... -> 1.38888889
        assert required_asset_amount(Decimal("5000"), "ETH", QUOTES) == Decimal("1.38888889")

    def test_rounds_half_up(self):
        quotes = {"XYZUSD": Decimal("200000000")}
        # 1 / 2e8 = 0.000000005 -> 0.00000001
        assert required_asset_amount(Decimal("1"), "XYZ", quotes) == Decimal("0.00000001")

    def test_large_amount(self):
        # 1e21 / 68000 = 14705882352941176.4705882352...
        needed = required_asset_amount(Decimal("1e21"), "BTC", QUOTES)
        assert needed == Decimal("14705882352941176.47058824")

    def test_unknown_asset_quotes_at_one(self):
        assert quote_for("DOGE", QUOTES) == Decimal("1")
        assert required_asset_amount(Decimal("5000"), "DOGE", QUOTES) == Decimal("5000")


class TestCheckoutGate:

    @pytest.mark.parametrize(
        "has_name,has_email,meets_minimum,kyc,accredited",
        list(itertools.product([True, False], repeat=5)),
    )
    def test_all_combinations(self, has_name, has_email, meets_minimum, kyc, accredited):
        investor = Investor(
            name="Ada Lovelace" if has_name else "",
            email="ada@example.com" if has_email else "",
        )
        amount = MINIMUM if meets_minimum else MINIMUM - Decimal("0.01")
        expected = all([has_name, has_email, meets_minimum, kyc, accredited])
        assert can_checkout(investor, amount, MINIMUM, kyc, accredited) is expected

    def test_empty_name_blocks_everything_else_ok(self):
        investor = Investor(name="", email="ada@example.com")
        assert not can_checkout(investor, Decimal("100000"), MINIMUM, True, True)
        assert checkout_blockers(investor, Decimal("100000"), MINIMUM, True, True) == [
            "investor name is required",
        ]

    def test_blockers_list_every_reason(self):
        blockers = checkout_blockers(Investor(), Decimal("0"), MINIMUM, False, False)
        assert len(blockers) == 5
        assert "amount must be at least 5000 USD" in blockers
