"""
GET / -- the investor portal page.

A single server-rendered HTML form. The three workflow buttons submit
the same form to different actions (formaction), so whatever the
investor typed is saved before KYC, accreditation or checkout runs.
Every action redirects back to / (303), carrying a validation message
in ?error= when the action was refused. Backend failures are shown from
the session's last_error.
"""

from decimal import Decimal
from html import escape
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError

from portal.backend.client import API_BASE, RaiseClient
from portal.models.schemas import MAX_INVESTMENT_USD, InvestorUpdate, SessionView
from portal.routes.session import (
    apply_update,
    build_view,
    get_raise_client,
    get_session_id,
    load_state,
    run_checkout,
    run_verification,
    set_session_cookie,
)
from portal.store import sessions
from portal.workflow import steps
from portal.workflow.offering import DISCLOSURES, ISSUER, OVERVIEW

router = APIRouter(include_in_schema=False)

STEP_LABELS = {
    "kyc": "KYC",
    "accreditation": "Accreditation",
    "create_payment": "Payment",
    "confirm_payment": "Payment confirmation",
    "issue_shares": "Share issuance",
    "compliance_pack": "Compliance Pack",
}


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

STYLE = """
body { font-family: system-ui, -apple-system, Segoe UI, Roboto, Arial; padding: 20px; }
section { max-width: 960px; margin: 20px auto; padding: 16px; border: 1px solid #e5e7eb; border-radius: 12px; }
section h2 { margin-top: 0; }
.grid { display: grid; grid-template-columns: 1fr 1fr; gap: 12px; }
input, select { width: 100%; padding: 10px; border: 1px solid #cbd5e1; border-radius: 8px; box-sizing: border-box; }
.actions { display: flex; gap: 8px; margin-top: 12px; }
button { padding: 10px 14px; border: 1px solid #cbd5e1; border-radius: 8px; background: #f1f5f9; color: #111827; cursor: pointer; }
button.active { background: #6366f1; color: #fff; }
button:disabled { cursor: not-allowed; opacity: 0.6; }
.error { color: #b91c1c; }
.muted { color: #475569; }
"""


def _section(title: str, body: str) -> str:
    return f"<section><h2>{escape(title)}</h2>{body}</section>"


def _bullets(items: list[str], tag: str = "ul") -> str:
    return f"<{tag}>" + "".join(f"<li>{item}</li>" for item in items) + f"</{tag}>"


def _tick(done: bool) -> str:
    return "✓" if done else "…"


def render_page(view: SessionView, error: str | None = None) -> str:
    state = view.state
    investor = state.investor
    identity_locked = " readonly" if state.kyc_passed else ""
    payment_locked = " disabled" if state.payment_created else ""

    options = "".join(
        f'<option value="{escape(a)}"{" selected" if a == state.asset else ""}>{escape(a)}</option>'
        for a in ISSUER.allowed_assets
    )
    # A disabled select is not submitted; keep the value in the form.
    asset_hidden = f'<input type="hidden" name="asset" value="{escape(state.asset)}">' if payment_locked else ""

    kyc_btn = (
        '<button class="active" disabled>KYC Passed ✓</button>'
        if state.kyc_passed
        else '<button formaction="/portal/kyc">Start KYC</button>'
    )
    acc_btn = (
        '<button class="active" disabled>Accredited ✓</button>'
        if state.accredited
        else f'<button formaction="/portal/accreditation"{"" if state.kyc_passed else " disabled"}>Verify Accredited</button>'
    )
    if view.checkout_complete:
        pay_btn = '<button disabled>Payment Confirmed ✓</button>'
    else:
        label = "Resume Checkout" if state.payment_created else "Checkout &amp; Pay"
        pay_btn = (
            f'<button formaction="/portal/checkout" class="active">{label}</button>'
            if view.can_checkout
            else f"<button disabled>{label}</button>"
        )

    messages = []
    if error:
        messages.append(f'<p class="error">{escape(error)}</p>')
    if state.last_error:
        step = STEP_LABELS.get(state.last_error.step, state.last_error.step)
        messages.append(
            f'<p class="error">{escape(step)} failed: {escape(state.last_error.message)}</p>'
        )
    if state.document_url:
        messages.append(
            f'<p>Compliance Pack: <a href="{escape(state.document_url)}" target="_blank" '
            f'rel="noreferrer">Download (stub)</a></p>'
        )

    progress = _bullets(
        [
            f"<b>KYC</b> {_tick(view.progress.kyc)}",
            f"<b>Accredited</b> {_tick(view.progress.accredited)}",
            f"<b>Payment</b> {_tick(view.progress.payment)}",
            f"<b>Shares Issued</b> {_tick(view.progress.shares_issued)}",
        ],
        tag="ol",
    )

    portal = f"""
<form method="post" action="/portal/save">
  <div class="grid">
    <label>Name<br><input name="name" value="{escape(investor.name)}"{identity_locked}></label>
    <label>Email<br><input name="email" type="email" value="{escape(investor.email)}"{identity_locked}></label>
    <label>Payment Asset<br><select name="asset"{payment_locked}>{options}</select>{asset_hidden}</label>
    <label>Investment Amount (USD) — min ${ISSUER.min_investment_usd:,}<br>
      <input name="amount_usd" type="number" step="any" min="{ISSUER.min_investment_usd}"
             value="{state.amount_usd}"{" readonly" if payment_locked else ""}></label>
  </div>
  <div style="margin-top:12px; font-size:14px">
    Price/Share: ${ISSUER.price_per_share_usd} • Estimated Shares: <b>{view.shares:,}</b>
    • Send ≈ <b>{view.required_asset_amount} {escape(state.asset)}</b>
    <button type="submit" style="margin-left:8px">Update</button>
  </div>
  <div class="actions">{kyc_btn}{acc_btn}{pay_btn}</div>
</form>
{progress}
{"".join(messages)}
<form method="post" action="/portal/reset"><button type="submit">Start over</button></form>
"""

    return f"""<!doctype html>
<html>
<head><meta charset="utf-8"><title>Startup Raise — Investor Portal</title><style>{STYLE}</style></head>
<body>
<h1>Startup Raise — Frontend</h1>
<p class="muted">Backend: <code>{escape(API_BASE.removesuffix("/api"))}</code></p>
{_section("Overview", _bullets([escape(line) for line in OVERVIEW]))}
{_section("Investor Portal", portal)}
{_section("Disclosures", _bullets([escape(line) for line in DISCLOSURES]))}
</body>
</html>"""


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

def _back(session_id: str, error: str | None = None) -> RedirectResponse:
    url = "/" + (f"?{urlencode({'error': error})}" if error else "")
    resp = RedirectResponse(url=url, status_code=303)
    set_session_cookie(resp, session_id)
    return resp


def _detail(e: HTTPException) -> str:
    if isinstance(e.detail, dict):
        return e.detail.get("message", str(e.detail))
    return str(e.detail)


def _save_form(session_id: str, name, email, asset, amount_usd) -> str | None:
    """Apply the submitted form. Returns an error message or None."""
    try:
        update = InvestorUpdate(
            name=name,
            email=email,
            asset=asset,
            amount_usd=Decimal("0") if amount_usd == "" else amount_usd,
        )
    except ValidationError:
        return f"Investment amount must be a number from 0 to {int(MAX_INVESTMENT_USD):,} USD"
    try:
        apply_update(session_id, update)
    except HTTPException as e:
        return _detail(e)
    return None


@router.get("/", response_class=HTMLResponse)
async def portal_page(request: Request, error: str | None = None):
    """Render the portal for this browser's session."""
    session_id = get_session_id(request)
    resp = HTMLResponse(render_page(build_view(load_state(session_id)), error))
    set_session_cookie(resp, session_id)
    return resp


@router.post("/portal/save")
def save(
    session_id: str = Depends(get_session_id),
    name: str | None = Form(None),
    email: str | None = Form(None),
    asset: str | None = Form(None),
    amount_usd: str | None = Form(None),
):
    return _back(session_id, _save_form(session_id, name, email, asset, amount_usd))


@router.post("/portal/kyc")
def kyc(
    session_id: str = Depends(get_session_id),
    client: RaiseClient = Depends(get_raise_client),
    name: str | None = Form(None),
    email: str | None = Form(None),
    asset: str | None = Form(None),
    amount_usd: str | None = Form(None),
):
    error = _save_form(session_id, name, email, asset, amount_usd)
    if error is None:
        try:
            run_verification(session_id, "kyc", steps.start_kyc, client)
        except HTTPException as e:
            if e.status_code == 409:
                error = _detail(e)
    return _back(session_id, error)


@router.post("/portal/accreditation")
def accreditation(
    session_id: str = Depends(get_session_id),
    client: RaiseClient = Depends(get_raise_client),
    name: str | None = Form(None),
    email: str | None = Form(None),
    asset: str | None = Form(None),
    amount_usd: str | None = Form(None),
):
    error = _save_form(session_id, name, email, asset, amount_usd)
    if error is None:
        try:
            run_verification(session_id, "accreditation", steps.start_accreditation, client)
        except HTTPException as e:
            if e.status_code == 409:
                error = _detail(e)
    return _back(session_id, error)


@router.post("/portal/checkout")
def checkout(
    session_id: str = Depends(get_session_id),
    client: RaiseClient = Depends(get_raise_client),
    name: str | None = Form(None),
    email: str | None = Form(None),
    asset: str | None = Form(None),
    amount_usd: str | None = Form(None),
):
    error = _save_form(session_id, name, email, asset, amount_usd)
    if error is None:
        try:
            run_checkout(session_id, client)
        except HTTPException as e:
            # 502s are already recorded as the session's last_error
            if e.status_code == 409:
                error = _detail(e)
    return _back(session_id, error)


@router.post("/portal/reset")
def reset(session_id: str = Depends(get_session_id)):
    sessions.pop(session_id, None)
    return _back(session_id)
