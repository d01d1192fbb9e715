"""
/v1/session -- JSON API driving one investor through the raise.

Each browser gets a session id in the portal_session cookie. The session
state lives in the in-memory store and is replaced after every action.

Status codes:
  409  the action is not allowed from the current stage, or the checkout
       gate is closed
  422  KYC/accreditation declined, or an invalid form value
  502  the raise backend failed; for checkout the partial progress is kept
       and POST /v1/session/checkout resumes from the failed call
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from portal.backend.client import RaiseApiError, RaiseClient, VerificationDeclined
from portal.models.schemas import (
    InvestorUpdate,
    OfferingResponse,
    Progress,
    SessionView,
    Stage,
    WorkflowState,
)
from portal.store import sessions
from portal.workflow import steps
from portal.workflow.offering import DISCLOSURES, ISSUER, OFFER, OVERVIEW, QUOTES
from portal.workflow.pricing import checkout_blockers, compute_shares, required_asset_amount
from portal.workflow.transitions import InvalidTransition

logger = logging.getLogger(__name__)

router = APIRouter()

SESSION_COOKIE = "portal_session"


# ---------------------------------------------------------------------------
# Dependencies and helpers
# ---------------------------------------------------------------------------

def get_raise_client():
    """A backend client for one request. Tests override this dependency.

    requests.Session is not safe to share between the worker threads that
    run sync handlers, so each request gets its own."""
    client = RaiseClient()
    try:
        yield client
    finally:
        client.close()


def get_session_id(request: Request) -> str:
    return request.cookies.get(SESSION_COOKIE) or uuid.uuid4().hex


def set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")


def load_state(session_id: str) -> WorkflowState:
    """The stored state, or a fresh one. Only a completed action stores it."""
    state = sessions.get(session_id)
    return steps.new_session() if state is None else state


def session_error(status_code: int, detail, session_id: str) -> HTTPException:
    """An HTTPException that still hands the session cookie to the client.

    Cookies set on the injected Response are dropped when a handler raises."""
    carrier = Response()
    set_session_cookie(carrier, session_id)
    return HTTPException(
        status_code=status_code,
        detail=detail,
        headers={"set-cookie": carrier.headers["set-cookie"]},
    )


def build_view(state: WorkflowState) -> SessionView:
    blockers = checkout_blockers(
        state.investor,
        state.amount_usd,
        ISSUER.min_investment_usd,
        state.kyc_passed,
        state.accredited,
    )
    return SessionView(
        state=state,
        shares=compute_shares(state.amount_usd, ISSUER.price_per_share_usd),
        required_asset_amount=required_asset_amount(state.amount_usd, state.asset, QUOTES),
        can_checkout=not blockers,
        checkout_complete=state.stage is Stage.document_ready,
        checkout_blockers=blockers,
        progress=Progress(
            kyc=state.kyc_passed,
            accredited=state.accredited,
            payment=state.payment_confirmed,
            shares_issued=state.issued,
        ),
    )


def apply_update(session_id: str, update: InvestorUpdate) -> WorkflowState:
    state = load_state(session_id)
    try:
        state = steps.update_details(state, **update.model_dump())
    except steps.DetailsLocked as e:
        raise session_error(409, str(e), session_id)
    except ValueError as e:
        raise session_error(422, str(e), session_id)
    sessions[session_id] = state
    return state


def run_verification(session_id: str, step_name: str, action, client: RaiseClient) -> WorkflowState:
    """Run start_kyc or start_accreditation and store the result.

    On a backend failure the stage is unchanged but the failure is
    recorded so the page can show it."""
    state = load_state(session_id)
    try:
        state = action(state, client)
    except InvalidTransition as e:
        raise session_error(409, str(e), session_id)
    except VerificationDeclined as e:
        sessions[session_id] = steps.record_failure(state, step_name, e)
        raise session_error(422, str(e), session_id)
    except RaiseApiError as e:
        sessions[session_id] = steps.record_failure(state, step_name, e)
        raise session_error(502, str(e), session_id)
    sessions[session_id] = state
    return state


def run_checkout(session_id: str, client: RaiseClient) -> WorkflowState:
    state = load_state(session_id)
    try:
        state = steps.run_checkout(state, client)
    except InvalidTransition as e:
        raise session_error(409, str(e), session_id)
    except steps.CheckoutNotAllowed as e:
        raise session_error(409, {"message": str(e), "blockers": e.blockers}, session_id)
    except steps.CheckoutInterrupted as e:
        sessions[session_id] = e.state
        raise session_error(502, str(e), session_id)
    sessions[session_id] = state
    return state


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get(
    "/v1/offering",
    response_model=OfferingResponse,
    summary="Describe the raise",
    tags=["Offering"],
)
def offering() -> OfferingResponse:
    return OfferingResponse(
        issuer=ISSUER,
        offer=OFFER,
        quotes=QUOTES,
        overview=OVERVIEW,
        disclosures=DISCLOSURES,
    )


@router.get(
    "/v1/session",
    response_model=SessionView,
    summary="Current investor session",
    description="Returns the session state with shares, asset amount, checkout gate and progress.",
    tags=["Session"],
)
def get_session(response: Response, session_id: str = Depends(get_session_id)) -> SessionView:
    set_session_cookie(response, session_id)
    return build_view(load_state(session_id))


@router.put(
    "/v1/session/investor",
    response_model=SessionView,
    summary="Update investor details",
    tags=["Session"],
)
def update_investor(
    update: InvestorUpdate,
    response: Response,
    session_id: str = Depends(get_session_id),
) -> SessionView:
    set_session_cookie(response, session_id)
    return build_view(apply_update(session_id, update))


@router.post(
    "/v1/session/kyc",
    response_model=SessionView,
    summary="Start KYC",
    tags=["Workflow"],
)
def start_kyc(
    response: Response,
    session_id: str = Depends(get_session_id),
    client: RaiseClient = Depends(get_raise_client),
) -> SessionView:
    set_session_cookie(response, session_id)
    return build_view(run_verification(session_id, "kyc", steps.start_kyc, client))


@router.post(
    "/v1/session/accreditation",
    response_model=SessionView,
    summary="Verify accredited-investor status",
    tags=["Workflow"],
)
def start_accreditation(
    response: Response,
    session_id: str = Depends(get_session_id),
    client: RaiseClient = Depends(get_raise_client),
) -> SessionView:
    set_session_cookie(response, session_id)
    return build_view(run_verification(session_id, "accreditation", steps.start_accreditation, client))


@router.post(
    "/v1/session/checkout",
    response_model=SessionView,
    summary="Checkout & pay",
    description=(
        "Creates the payment, confirms it, issues shares and generates the "
        "Compliance Pack. If a call fails, completed steps are kept and calling "
        "this endpoint again resumes from the failed step."
    ),
    tags=["Workflow"],
)
def checkout(
    response: Response,
    session_id: str = Depends(get_session_id),
    client: RaiseClient = Depends(get_raise_client),
) -> SessionView:
    set_session_cookie(response, session_id)
    return build_view(run_checkout(session_id, client))


@router.post(
    "/v1/session/reset",
    response_model=SessionView,
    summary="Start over",
    tags=["Session"],
)
def reset(response: Response, session_id: str = Depends(get_session_id)) -> SessionView:
    sessions.pop(session_id, None)
    logger.info("Session %s reset", session_id)
    set_session_cookie(response, session_id)
    return build_view(load_state(session_id))
