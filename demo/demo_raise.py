"""
STARTUP RAISE PORTAL -- Investor Workflow Demo

Walks one investor through the whole raise using the portal's session API:

  1. Show the offering (issuer, price, quotes)
  2. Fill in investor details and see the derived share estimate
  3. Try to check out too early (gate refuses)
  4. Start KYC
  5. Verify accredited status
  6. Checkout & pay -> payment, issuance, Compliance Pack
  7. Show the final progress list

Run with:
    python demo/demo_raise.py

Requires the portal at PORTAL_URL (default http://localhost:8000) and a
raise backend reachable from it at RAISE_API_BASE.
"""

import os
import sys
import time

import requests

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

BASE_URL = os.getenv("PORTAL_URL", "http://localhost:8000")

INVESTOR = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "country": "US",
    "asset": "BTC",
    "amount_usd": 10000,
}

# ---------------------------------------------------------------------------
# ANSI color codes
# ---------------------------------------------------------------------------

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"

CYAN = "\033[36m"
GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
WHITE = "\033[97m"


def header(text: str) -> None:
    width = 64
    print()
    print(f"{CYAN}{BOLD}{'=' * width}{RESET}")
    print(f"{CYAN}{BOLD}  {text}{RESET}")
    print(f"{CYAN}{BOLD}{'=' * width}{RESET}")
    print()


def step(number: int, title: str) -> None:
    print(f"{WHITE}{BOLD}[Step {number}]{RESET} {YELLOW}{title}{RESET}")
    print(f"{DIM}{'-' * 56}{RESET}")


def tick(done: bool) -> str:
    return f"{GREEN}✓{RESET}" if done else f"{DIM}…{RESET}"


def print_progress(view: dict) -> None:
    progress = view["progress"]
    print(f"    1. KYC            {tick(progress['kyc'])}")
    print(f"    2. Accredited     {tick(progress['accredited'])}")
    print(f"    3. Payment        {tick(progress['payment'])}")
    print(f"    4. Shares Issued  {tick(progress['shares_issued'])}")
    print()


def fail(resp: requests.Response) -> None:
    """Print a failed portal response and stop the demo."""
    try:
        detail = resp.json().get("detail")
    except ValueError:
        detail = resp.text
    print(f"  {RED}ERROR {resp.status_code}: {detail}{RESET}")
    sys.exit(1)


def pause(seconds: float = 1.0) -> None:
    time.sleep(seconds)


# ---------------------------------------------------------------------------
# Main demo
# ---------------------------------------------------------------------------

def main() -> None:
    print()
    print(f"{CYAN}{BOLD}")
    print("  +=====================================================+")
    print("  |                                                     |")
    print("  |   S T A R T U P   R A I S E   P O R T A L           |")
    print("  |   Investor Workflow Demo                            |")
    print("  |                                                     |")
    print("  +=====================================================+")
    print(f"{RESET}")
    print(f"  {DIM}Portal: {BASE_URL}{RESET}")
    print()

    # Check portal
    try:
        r = requests.get(f"{BASE_URL}/v1/health", timeout=5)
        r.raise_for_status()
        health = r.json()
        print(f"  {GREEN}Portal is running ({health['mode']} mode, v{health['version']}){RESET}")
        print(f"  {DIM}Raise backend: {health['backend']}{RESET}")
    except requests.ConnectionError:
        print(f"  {RED}ERROR: Cannot connect to {BASE_URL}{RESET}")
        print(f"  {DIM}Start the portal first: uvicorn portal.main:app --reload{RESET}")
        sys.exit(1)

    # One requests.Session keeps the portal_session cookie between steps
    http = requests.Session()
    http.post(f"{BASE_URL}/v1/session/reset")

    pause()

    # ── STEP 1: Offering ──────────────────────────────────────

    header("THE OFFERING")

    step(1, "Issuer terms and quotes")
    offering = http.get(f"{BASE_URL}/v1/offering").json()
    issuer = offering["issuer"]
    print(f"  Issuer:        {WHITE}{issuer['name']}{RESET}")
    print(f"  Exemption:     {DIM}{issuer['exemption']}{RESET}")
    print(f"  Offer:         {DIM}{offering['offer']['title']} ({offering['offer']['id']}){RESET}")
    print(f"  Price/Share:   {WHITE}${issuer['price_per_share_usd']}{RESET}")
    print(f"  Minimum:       {WHITE}${issuer['min_investment_usd']}{RESET}")
    print(f"  Assets:        {DIM}{', '.join(issuer['allowed_assets'])}{RESET}")
    for pair, usd in offering["quotes"].items():
        print(f"    {pair:10s} {DIM}${usd}{RESET}")
    print()

    pause()

    # ── STEP 2: Investor details ──────────────────────────────

    header("INVESTOR PORTAL")

    step(2, "Fill in investor details")
    r = http.put(f"{BASE_URL}/v1/session/investor", json=INVESTOR)
    if r.status_code != 200:
        fail(r)
    view = r.json()
    print(f"  Investor:      {WHITE}{INVESTOR['name']} <{INVESTOR['email']}>{RESET}")
    print(f"  Investment:    {WHITE}${INVESTOR['amount_usd']:,}{RESET} paid in {INVESTOR['asset']}")
    print(f"  Est. Shares:   {GREEN}{BOLD}{view['shares']}{RESET}")
    print(f"  Send ≈         {GREEN}{BOLD}{view['required_asset_amount']} {INVESTOR['asset']}{RESET}")
    print()

    pause()

    # ── STEP 3: Gate ──────────────────────────────────────────

    step(3, "Checkout before verification")
    print(f"  {DIM}Checkout stays closed until KYC and accreditation pass...{RESET}")
    r = http.post(f"{BASE_URL}/v1/session/checkout")
    blockers = r.json()["detail"]["blockers"] if r.status_code == 409 else []
    print(f"  Status:        {YELLOW}{r.status_code}{RESET}")
    for blocker in blockers:
        print(f"    {YELLOW}- {blocker}{RESET}")
    print()

    pause()

    # ── STEP 4: KYC ───────────────────────────────────────────

    header("VERIFICATION")

    step(4, "Start KYC")
    r = http.post(f"{BASE_URL}/v1/session/kyc")
    if r.status_code != 200:
        fail(r)
    state = r.json()["state"]
    print(f"  {GREEN}KYC Passed ✓{RESET}  {DIM}ref {state['kyc_reference']}{RESET}")
    print()

    pause()

    # ── STEP 5: Accreditation ─────────────────────────────────

    step(5, "Verify accredited investor")
    r = http.post(f"{BASE_URL}/v1/session/accreditation")
    if r.status_code != 200:
        fail(r)
    state = r.json()["state"]
    print(f"  {GREEN}Accredited ✓{RESET}  {DIM}ref {state['accreditation_reference']}{RESET}")
    print()

    pause()

    # ── STEP 6: Checkout ──────────────────────────────────────

    header("CHECKOUT & ISSUANCE")

    step(6, "Checkout & pay")
    print(f"  {DIM}Create payment -> webhook confirm -> issue shares -> Compliance Pack...{RESET}")
    r = http.post(f"{BASE_URL}/v1/session/checkout")
    if r.status_code == 502:
        state = http.get(f"{BASE_URL}/v1/session").json()["state"]
        print(f"  {RED}Stopped at {state['last_error']['step']}: {state['last_error']['message']}{RESET}")
        print(f"  {DIM}Run checkout again to resume from that step.{RESET}")
        sys.exit(1)
    if r.status_code != 200:
        fail(r)
    view = r.json()
    state = view["state"]
    print(f"  Payment tx:    {DIM}{state['payment_txid']}{RESET}")
    print(f"  Payment ref:   {DIM}{state['payment_reference']}{RESET}")
    print(f"  Shares:        {GREEN}{BOLD}{view['shares']}{RESET}")
    if state["document_url"]:
        print(f"  Compliance Pack: {WHITE}{state['document_url']}{RESET}")
    else:
        print(f"  {YELLOW}The backend did not return a Compliance Pack link.{RESET}")
    print()

    pause()

    # ── STEP 7: Progress ──────────────────────────────────────

    step(7, "Final progress")
    print_progress(view)

    # Done
    print(f"{CYAN}{BOLD}{'=' * 64}{RESET}")
    print(f"{CYAN}{BOLD}  Demo complete.{RESET}")
    print()
    print(f"  {DIM}Investor portal:   {WHITE}{BASE_URL}/{RESET}")
    print(f"  {DIM}Interactive docs:  {WHITE}{BASE_URL}/docs{RESET}")
    print()


if __name__ == "__main__":
    main()
