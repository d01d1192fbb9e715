"""
Static demo configuration for the raise.

One issuer, one offer and a hardcoded quote table. In production the
quotes would come from a price feed; for the demo they never move.
"""

from decimal import Decimal

from portal.models.schemas import Issuer, Offer

ISSUER = Issuer(
    name="Acme Robotics, Inc.",
    exemption="Reg D 506(c)",
    price_per_share_usd=Decimal("5"),
    min_investment_usd=Decimal("5000"),
    allowed_assets=("USDC", "BTC", "ETH"),
)

OFFER = Offer(id="seed-1", title="Seed Round")

# USD price per asset. Looked up as asset + "USD".
QUOTES: dict[str, Decimal] = {
    "BTCUSD": Decimal("68000"),
    "ETHUSD": Decimal("3600"),
    "USDCUSD": Decimal("1"),
}

OVERVIEW = [
    f"{ISSUER.exemption} demo — accredited-only",
    "Pay with USDC/BTC/ETH; shares calculated automatically",
    "Simulated KYC, accreditation, payment, issuance, and Compliance Pack",
]

DISCLOSURES = [
    "High-risk investment; you could lose all capital.",
    "Restricted securities; illiquid.",
    f"{ISSUER.exemption}: accredited investors only (verified).",
    "Crypto payments auto-converted to USD per policy.",
]
