"""
The investor workflow actions.

Each action takes the current (immutable) WorkflowState plus a backend
client and returns the next state. Backend failures never leave a
half-updated state behind:

  - start_kyc / start_accreditation either advance one stage or raise,
    leaving the caller's state untouched.
  - run_checkout chains four calls. Completed calls are recorded as the
    chain goes, so when one fails the caller gets CheckoutInterrupted
    carrying the partial state. Calling run_checkout again with that
    state resumes at the failed call. Nothing is rolled back.
"""

import logging
from decimal import Decimal

from portal.backend.client import WEBHOOK_CONFIRMATIONS, RaiseApiError, RaiseClient
from portal.models.schemas import (
    Issuer,
    Offer,
    Stage,
    StepFailure,
    WorkflowState,
)
from portal.workflow.offering import ISSUER, OFFER, QUOTES
from portal.workflow.pricing import checkout_blockers, compute_shares, required_asset_amount
from portal.workflow.transitions import InvalidTransition, advance

logger = logging.getLogger(__name__)


class CheckoutNotAllowed(Exception):
    """The checkout gate is closed. `blockers` says why."""

    def __init__(self, blockers: list[str]):
        super().__init__("Checkout not allowed: " + "; ".join(blockers))
        self.blockers = blockers


class CheckoutInterrupted(Exception):
    """A call in the checkout chain failed.

    `state` holds every step that did complete, with last_error set, and
    can be passed straight back to run_checkout to resume."""

    def __init__(self, state: WorkflowState, step: str, cause: RaiseApiError):
        super().__init__(f"Checkout stopped at '{step}': {cause}")
        self.state = state
        self.step = step
        self.cause = cause


class DetailsLocked(Exception):
    """An investor field was changed after the step that depends on it."""


def new_session(issuer: Issuer = ISSUER) -> WorkflowState:
    return WorkflowState(asset=issuer.allowed_assets[0], amount_usd=issuer.min_investment_usd)


def update_details(
    state: WorkflowState,
    *,
    name: str | None = None,
    email: str | None = None,
    country: str | None = None,
    asset: str | None = None,
    amount_usd: Decimal | None = None,
    issuer: Issuer = ISSUER,
) -> WorkflowState:
    """Apply form edits.

    Identity fields are sent to KYC, so they freeze once KYC has passed.
    Asset and amount are sent with the payment and freeze once a payment
    has been created."""
    identity = {k: v for k, v in (("name", name), ("email", email), ("country", country)) if v is not None}
    changed_identity = {k: v for k, v in identity.items() if getattr(state.investor, k) != v}
    if changed_identity and state.kyc_passed:
        raise DetailsLocked("Investor details cannot change after KYC has passed")

    payment = {}
    if asset is not None and asset != state.asset:
        if asset not in issuer.allowed_assets:
            raise ValueError(f"Asset '{asset}' is not accepted; choose one of {', '.join(issuer.allowed_assets)}")
        payment["asset"] = asset
    if amount_usd is not None and Decimal(amount_usd) != state.amount_usd:
        payment["amount_usd"] = Decimal(amount_usd)
    if payment and state.payment_created:
        raise DetailsLocked("Asset and amount cannot change after a payment has been created")

    update = dict(payment)
    if changed_identity:
        update["investor"] = state.investor.model_copy(update=changed_identity)
    if not update:
        return state
    return state.model_copy(update=update)


def record_failure(state: WorkflowState, step: str, exc: RaiseApiError) -> WorkflowState:
    failure = StepFailure(step=step, message=str(exc), status_code=exc.status_code)
    return state.model_copy(update={"last_error": failure})


# ---------------------------------------------------------------------------
# Verification steps
# ---------------------------------------------------------------------------

def start_kyc(state: WorkflowState, client: RaiseClient) -> WorkflowState:
    if state.stage is not Stage.not_started:
        raise InvalidTransition(state.stage, Stage.kyc_passed)
    investor = state.investor
    result = client.start_kyc(email=investor.email, name=investor.name)
    logger.info("KYC passed for %s (ref=%s)", investor.email, result.reference_id)
    return advance(state, Stage.kyc_passed, kyc_reference=result.reference_id)


def start_accreditation(state: WorkflowState, client: RaiseClient) -> WorkflowState:
    if state.stage is not Stage.kyc_passed:
        raise InvalidTransition(state.stage, Stage.accredited)
    result = client.start_accreditation(email=state.investor.email)
    logger.info("Accreditation verified for %s (ref=%s)", state.investor.email, result.reference_id)
    return advance(state, Stage.accredited, accreditation_reference=result.reference_id)


# ---------------------------------------------------------------------------
# Checkout chain
# ---------------------------------------------------------------------------

def run_checkout(
    state: WorkflowState,
    client: RaiseClient,
    issuer: Issuer = ISSUER,
    offer: Offer = OFFER,
    quotes: dict[str, Decimal] = QUOTES,
) -> WorkflowState:
    """Create payment -> confirm payment -> issue shares -> Compliance Pack.

    Steps already reflected in `state.stage` are skipped, which is what
    makes a retry after CheckoutInterrupted resume instead of repeat."""
    if state.stage is Stage.document_ready:
        raise InvalidTransition(state.stage, Stage.document_ready)
    blockers = checkout_blockers(
        state.investor,
        state.amount_usd,
        issuer.min_investment_usd,
        state.kyc_passed,
        state.accredited,
    )
    if blockers:
        raise CheckoutNotAllowed(blockers)

    price = issuer.price_per_share_usd
    shares = compute_shares(state.amount_usd, price)
    email = state.investor.email
    step = ""

    if state.payment_created:
        logger.info("Resuming checkout for %s at stage %s", email, state.stage.value)

    try:
        if state.stage is Stage.accredited:
            step = "create_payment"
            payment = client.create_payment(
                asset=state.asset,
                amount=required_asset_amount(state.amount_usd, state.asset, quotes),
                amount_usd=state.amount_usd,
                offer_id=offer.id,
                email=email,
            )
            state = advance(state, Stage.payment_created, payment_txid=payment.reference_id)

        if state.stage is Stage.payment_created:
            step = "confirm_payment"
            confirmation = client.confirm_payment(
                txid=state.payment_txid,
                confirmations=WEBHOOK_CONFIRMATIONS,
            )
            state = advance(state, Stage.payment_confirmed, payment_reference=confirmation.reference_id)
            logger.info("Payment confirmed for %s (ref=%s)", email, confirmation.reference_id)

        if state.stage is Stage.payment_confirmed:
            step = "issue_shares"
            client.issue_shares(investor=email, shares=shares, price=price, offer_id=offer.id)
            state = advance(state, Stage.issued)
            logger.info("Issued %s shares of %s to %s", shares, offer.id, email)

        if state.stage is Stage.issued:
            step = "compliance_pack"
            pack = client.request_compliance_pack(
                investor=email,
                shares=shares,
                price=price,
                offer_id=offer.id,
                tx_ref=state.payment_reference,
            )
            state = advance(state, Stage.document_ready, document_url=pack.download_url)
    except RaiseApiError as e:
        logger.warning("Checkout for %s stopped at %s: %s", email, step, e)
        raise CheckoutInterrupted(record_failure(state, step, e), step, e) from e

    return state
