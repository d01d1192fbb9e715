"""
Investment arithmetic and the checkout gate.

Nothing here is stored. Every figure is recomputed from the amount,
the share price and the quote table whenever it is needed.

Decimal is used throughout so the rounding rules are exact:
  - shares are truncated (floored) to 3 decimal places
  - the asset amount is rounded half-up to 8 decimal places (satoshi precision)
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, localcontext

from portal.models.schemas import Investor

SHARE_PRECISION = Decimal("0.001")
ASSET_PRECISION = Decimal("0.00000001")


def _divide(amount: Decimal, divisor: Decimal, places: Decimal, rounding: str) -> Decimal:
    """amount / divisor quantized to `places`.

    The default 28-digit context cannot hold a quantized result above
    ~1e20, so precision is widened to fit the integer digits as well."""
    amount, divisor = Decimal(amount), Decimal(divisor)
    with localcontext() as ctx:
        integer_digits = max(amount.adjusted() - divisor.adjusted() + 2, 1)
        ctx.prec = max(ctx.prec, integer_digits - places.as_tuple().exponent + 10)
        return (amount / divisor).quantize(places, rounding=rounding)


def compute_shares(amount: Decimal, price: Decimal) -> Decimal:
    """Shares bought for `amount` USD at `price` USD/share, floored to 3 dp."""
    return _divide(amount, price, SHARE_PRECISION, ROUND_FLOOR)


def quote_for(asset: str, quotes: dict[str, Decimal]) -> Decimal:
    """USD price of one unit of `asset`. Unknown assets are quoted at 1."""
    return Decimal(quotes.get(f"{asset}USD", 1))


def required_asset_amount(amount: Decimal, asset: str, quotes: dict[str, Decimal]) -> Decimal:
    """How much of `asset` must be sent to cover `amount` USD, to 8 dp."""
    return _divide(amount, quote_for(asset, quotes), ASSET_PRECISION, ROUND_HALF_UP)


def checkout_blockers(
    investor: Investor,
    amount: Decimal,
    minimum: Decimal,
    kyc_passed: bool,
    accredited: bool,
) -> list[str]:
    """Every reason the investor cannot check out yet. Empty means go."""
    blockers = []
    if not investor.name:
        blockers.append("investor name is required")
    if not investor.email:
        blockers.append("investor email is required")
    if Decimal(amount) < Decimal(minimum):
        blockers.append(f"amount must be at least {minimum} USD")
    if not kyc_passed:
        blockers.append("KYC has not passed")
    if not accredited:
        blockers.append("accreditation has not been verified")
    return blockers


def can_checkout(
    investor: Investor,
    amount: Decimal,
    minimum: Decimal,
    kyc_passed: bool,
    accredited: bool,
) -> bool:
    return not checkout_blockers(investor, amount, minimum, kyc_passed, accredited)
