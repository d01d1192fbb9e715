"""
Startup Raise Portal -- Pydantic Data Models

Everything the portal holds or exchanges is defined here:
  - the static offering entities (Issuer, Offer)
  - the investor's own details
  - the immutable WorkflowState that each workflow step returns
  - request/response bodies of the session API

WorkflowState is frozen. A step never mutates it -- it returns a new
state built with transitions.advance() or model_copy().
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Offering -- static demo configuration
# ---------------------------------------------------------------------------

class Issuer(BaseModel):
    """The company raising money and the terms of its exemption."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(examples=["Acme Robotics, Inc."])
    exemption: str = Field(examples=["Reg D 506(c)"])
    price_per_share_usd: Decimal = Field(gt=0, examples=[5])
    min_investment_usd: Decimal = Field(ge=0, examples=[5000])
    allowed_assets: tuple[str, ...] = Field(
        description="Payment assets the issuer's wallet policy accepts.",
        examples=[("USDC", "BTC", "ETH")],
    )


class Offer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(examples=["seed-1"])
    title: str = Field(examples=["Seed Round"])


class OfferingResponse(BaseModel):
    """Everything the portal page needs to describe the raise."""

    issuer: Issuer
    offer: Offer
    quotes: dict[str, Decimal] = Field(
        description="USD price per asset, keyed by '<ASSET>USD'.",
        examples=[{"BTCUSD": 68000, "ETHUSD": 3600, "USDCUSD": 1}],
    )
    overview: list[str]
    disclosures: list[str]


# ---------------------------------------------------------------------------
# Workflow stage -- explicit tagged state
# ---------------------------------------------------------------------------

class Stage(str, Enum):
    """Where an investor session is in the raise workflow.

    The stages are strictly linear. Position in STAGE_ORDER decides
    whether a stage has been reached."""

    not_started = "not_started"
    kyc_passed = "kyc_passed"
    accredited = "accredited"
    payment_created = "payment_created"
    payment_confirmed = "payment_confirmed"
    issued = "issued"
    document_ready = "document_ready"

    def reached(self, other: "Stage") -> bool:
        """True if this stage is `other` or comes after it."""
        return STAGE_ORDER.index(self) >= STAGE_ORDER.index(other)


STAGE_ORDER: list[Stage] = list(Stage)


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

class Investor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    email: str = ""
    country: str = "US"


class StepFailure(BaseModel):
    """The last backend call that failed during a workflow action."""

    model_config = ConfigDict(frozen=True)

    step: str = Field(examples=["confirm_payment"])
    message: str = Field(examples=["API error 503: upstream unavailable"])
    status_code: int | None = Field(default=None, examples=[503])


class WorkflowState(BaseModel):
    """One investor's session. Immutable; every step returns a new copy.

    Shares and the required asset amount are deliberately absent -- they
    are always derived from amount_usd, the share price and the quotes."""

    model_config = ConfigDict(frozen=True)

    investor: Investor = Field(default_factory=Investor)
    asset: str = "USDC"
    amount_usd: Decimal = Decimal("0")
    stage: Stage = Stage.not_started

    kyc_reference: str | None = None
    accreditation_reference: str | None = None
    payment_txid: str | None = Field(
        default=None,
        description="Reference returned by payments/checkout; sent to the webhook as txid.",
    )
    payment_reference: str | None = Field(
        default=None,
        description="Reference returned by the payment webhook; sent as txRef for the Compliance Pack.",
    )
    document_url: str | None = None
    last_error: StepFailure | None = None

    @property
    def kyc_passed(self) -> bool:
        return self.stage.reached(Stage.kyc_passed)

    @property
    def accredited(self) -> bool:
        return self.stage.reached(Stage.accredited)

    @property
    def payment_created(self) -> bool:
        return self.stage.reached(Stage.payment_created)

    @property
    def payment_confirmed(self) -> bool:
        return self.stage.reached(Stage.payment_confirmed)

    @property
    def issued(self) -> bool:
        return self.stage.reached(Stage.issued)


# ---------------------------------------------------------------------------
# Session API bodies
# ---------------------------------------------------------------------------

# Upper bound on a single investment accepted from the form.
MAX_INVESTMENT_USD = Decimal("1e15")


class InvestorUpdate(BaseModel):
    """Form fields the investor can change. Omitted fields are left as-is."""

    name: str | None = Field(default=None, examples=["Ada Lovelace"])
    email: str | None = Field(default=None, examples=["ada@example.com"])
    country: str | None = Field(default=None, examples=["US"])
    asset: str | None = Field(default=None, examples=["BTC"])
    amount_usd: Decimal | None = Field(default=None, ge=0, le=MAX_INVESTMENT_USD, examples=[10000])


class Progress(BaseModel):
    kyc: bool
    accredited: bool
    payment: bool
    shares_issued: bool


class SessionView(BaseModel):
    """The session state plus everything derived from it for display."""

    state: WorkflowState
    shares: Decimal = Field(examples=["1000.000"])
    required_asset_amount: Decimal = Field(examples=["0.14705882"])
    can_checkout: bool = Field(description="All five checkout conditions hold.")
    checkout_complete: bool = Field(
        default=False,
        description="The Compliance Pack step has finished; checkout will not run again.",
    )
    checkout_blockers: list[str] = Field(
        default=[],
        examples=[["investor name is required"]],
    )
    progress: Progress
